#!/usr/bin/env python
"""Grid search of elastic-net hyperparameters under k-fold cross-validation.

Every (grid point, fold) pair is an independent fit-and-score unit. Units
run either in-process or on a ``ThreadPoolExecutor``; each writes its result
to its own slot and aggregation runs single-threaded once all units finish.

Key design decisions:
- Fold partitions are transformed once per fold and shared read-only by all
  grid points
- A unit whose fit does not converge is marked missing and excluded from the
  mean (never counted as zero); a grid point with no valid folds is omitted
  with a warning
- ``select_best`` breaks exact ties by preferring the smaller |mixture|, then
  the smaller |penalty|
"""

from __future__ import annotations

import math
import warnings
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.exceptions import ConvergenceWarning

from enet_workflow.config import METRICS
from enet_workflow.errors import InvalidConfiguration, SolverNonConvergence, UnknownColumn
from enet_workflow.models.common.cv_utils import FoldSet, compute_fold_metrics
from enet_workflow.models.common.grid import GridPoint
from enet_workflow.models.elasticnet.pipeline import (
    build_elasticnet_pipeline,
    check_convergence,
    predict_checked,
)
from enet_workflow.preprocess.column_dropper import ColumnDropper

DIRECTIONS = {"rmse": "minimize", "rsq": "maximize"}


@dataclass
class TuneSettings:
    """Solver and scoring settings shared by every unit."""

    max_iter: int = 10000
    tol: float = 1e-4
    random_state: int = 42
    rsq_kind: str = "traditional"
    max_workers: int = 1
    verbose: bool = True


@dataclass(frozen=True)
class MetricRecord:
    """Cross-validated summary of one metric at one grid point."""

    penalty: float
    mixture: float
    metric: str
    mean: float
    std_err: float
    n: int
    n_excluded: int
    config: str

    @property
    def point(self) -> GridPoint:
        return GridPoint(self.penalty, self.mixture)


@dataclass(frozen=True)
class BestConfig:
    """Selected hyperparameters for one metric."""

    penalty: float
    mixture: float
    metric: str
    mean: float
    std_err: float

    @property
    def point(self) -> GridPoint:
        return GridPoint(self.penalty, self.mixture)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class UnitResult:
    """Outcome of fitting and scoring one (grid point, fold) unit."""

    grid_idx: int
    fold_idx: int
    metrics: Dict[str, float] | None
    error: str | None = None


@dataclass
class TuneResult(Sequence[MetricRecord]):
    """Metric records plus the diagnostics needed for reporting."""

    records: List[MetricRecord]
    fold_metrics: pd.DataFrame
    excluded: List[Dict[str, Any]] = field(default_factory=list)
    omitted_points: List[GridPoint] = field(default_factory=list)
    undefined: List[Dict[str, Any]] = field(default_factory=list)
    grid: List[GridPoint] = field(default_factory=list)
    n_folds: int = 0

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, idx):  # type: ignore[override]
        return self.records[idx]

    def __iter__(self) -> Iterator[MetricRecord]:
        return iter(self.records)

    @property
    def n_excluded(self) -> int:
        """Number of fold evaluations dropped because the fit failed."""
        return len(self.excluded)

    @property
    def n_undefined(self) -> int:
        """Number of fold metric values left out of the mean because they were NaN."""
        return len(self.undefined)

    def to_frame(self) -> pd.DataFrame:
        return records_to_frame(self.records)


def _config_label(grid_idx: int, width: int) -> str:
    return f"Model{grid_idx + 1:0{width}d}"


def _split_xy(df: pd.DataFrame, target: str) -> Tuple[pd.DataFrame, np.ndarray]:
    X = df.drop(columns=[target])
    y = df[target].to_numpy(dtype=float)
    return X, y


def _fit_unit(
    grid_idx: int,
    fold_idx: int,
    point: GridPoint,
    fold_data: Tuple[pd.DataFrame, np.ndarray, pd.DataFrame, np.ndarray],
    settings: TuneSettings,
) -> UnitResult:
    X_train, y_train, X_valid, y_valid = fold_data
    pipeline = build_elasticnet_pipeline(
        point.penalty,
        point.mixture,
        max_iter=settings.max_iter,
        tol=settings.tol,
        random_state=settings.random_state,
    )
    try:
        pipeline.fit(X_train, y_train)
        check_convergence(pipeline)
        pred = predict_checked(pipeline, X_valid)
    except (SolverNonConvergence, np.linalg.LinAlgError) as exc:
        return UnitResult(grid_idx, fold_idx, None, error=str(exc))

    metrics = compute_fold_metrics(y_valid, pred, rsq_kind=settings.rsq_kind)
    return UnitResult(grid_idx, fold_idx, metrics)


def _validate_inputs(
    train: pd.DataFrame,
    transformation: ColumnDropper,
    grid: Sequence[GridPoint],
    folds: FoldSet,
    target: str,
) -> pd.DataFrame:
    if not grid:
        raise InvalidConfiguration("hyperparameter grid is empty")
    if len(folds) < 2:
        raise InvalidConfiguration(f"need at least 2 folds, got {len(folds)}")
    transformed = transformation.transform(train)
    if target not in transformed.columns:
        raise UnknownColumn(
            f"Target column '{target}' not present after transformation", [target]
        )
    if transformed.shape[1] < 2:
        raise InvalidConfiguration("no predictor columns remain after transformation")
    n = len(transformed)
    for fold_idx, (tr, va) in enumerate(folds):
        if len(tr) == 0 or len(va) == 0:
            raise InvalidConfiguration(f"fold {fold_idx} has an empty partition")
        if max(tr.max(), va.max()) >= n:
            raise InvalidConfiguration(f"fold {fold_idx} indexes beyond the training set")
    return transformed


def _aggregate(values: List[float]) -> Tuple[float, float, int]:
    finite = [v for v in values if math.isfinite(v)]
    n = len(finite)
    if n == 0:
        return float("nan"), float("nan"), 0
    mean = float(np.mean(finite))
    std_err = float(np.std(finite, ddof=1) / math.sqrt(n)) if n > 1 else float("nan")
    return mean, std_err, n


def search(
    train: pd.DataFrame,
    transformation: ColumnDropper,
    grid: Sequence[GridPoint],
    folds: FoldSet,
    *,
    target: str,
    settings: TuneSettings | None = None,
) -> TuneResult:
    """Cross-validate every grid point and summarise RMSE and R^2.

    Parameters
    ----------
    train : pd.DataFrame
        Full training set (untransformed). Not mutated.
    transformation : ColumnDropper
        Fitted transformation applied to every fold partition.
    grid : sequence of GridPoint
        Hyperparameter combinations to evaluate.
    folds : FoldSet
        (train_positions, val_positions) pairs over ``train``.
    target : str
        Target column name.
    settings : TuneSettings, optional
        Solver, scoring and concurrency settings.

    Returns
    -------
    TuneResult
        One ``MetricRecord`` per (grid point, metric), penalty-major with
        RMSE before R^2, plus per-fold metrics and exclusion diagnostics.
    """
    if settings is None:
        settings = TuneSettings()
    grid = list(grid)
    transformed = _validate_inputs(train, transformation, grid, folds, target)

    X_all, y_all = _split_xy(transformed, target)
    fold_data = [
        (X_all.iloc[tr], y_all[tr], X_all.iloc[va], y_all[va])
        for tr, va in folds
    ]

    units = [(g, f) for g in range(len(grid)) for f in range(len(folds))]
    slots: Dict[Tuple[int, int], UnitResult] = {}

    if settings.verbose:
        print(f"\n{'=' * 60}")
        print(
            f"Tuning {len(grid)} grid points x {len(folds)} folds "
            f"({len(units)} fits, max_workers={settings.max_workers})"
        )
        print(f"{'=' * 60}\n")

    # Filters are changed here, in the dispatching thread only.
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        if settings.max_workers <= 1:
            for g, f in units:
                slots[(g, f)] = _fit_unit(g, f, grid[g], fold_data[f], settings)
        else:
            with ThreadPoolExecutor(max_workers=settings.max_workers) as executor:
                future_map = {
                    executor.submit(_fit_unit, g, f, grid[g], fold_data[f], settings): (g, f)
                    for g, f in units
                }
                for future in as_completed(future_map):
                    try:
                        result = future.result()
                    except Exception:
                        for pending in future_map:
                            if pending is not future:
                                pending.cancel()
                        raise
                    slots[future_map[future]] = result

    width = max(3, len(str(len(grid))))
    records: List[MetricRecord] = []
    fold_rows: List[Dict[str, Any]] = []
    excluded: List[Dict[str, Any]] = []
    undefined: List[Dict[str, Any]] = []
    omitted: List[GridPoint] = []

    for g, point in enumerate(grid):
        label = _config_label(g, width)
        per_metric: Dict[str, List[float]] = {m: [] for m in METRICS}
        n_failed = 0
        for f in range(len(folds)):
            result = slots[(g, f)]
            if result.metrics is None:
                n_failed += 1
                excluded.append(
                    {
                        "penalty": point.penalty,
                        "mixture": point.mixture,
                        "fold": f + 1,
                        "reason": result.error,
                    }
                )
                continue
            for metric in METRICS:
                per_metric[metric].append(result.metrics[metric])
                if not math.isfinite(result.metrics[metric]):
                    undefined.append(
                        {"penalty": point.penalty, "mixture": point.mixture, "fold": f + 1, "metric": metric}
                    )
                fold_rows.append(
                    {
                        "penalty": point.penalty,
                        "mixture": point.mixture,
                        "fold": f + 1,
                        "metric": metric,
                        "estimate": result.metrics[metric],
                        "config": label,
                    }
                )

        if n_failed == len(folds):
            omitted.append(point)
            print(
                f"[warn] penalty={point.penalty:g} mixture={point.mixture:g}: "
                f"all {len(folds)} folds failed to converge; grid point omitted"
            )
            continue

        for metric in METRICS:
            mean, std_err, n = _aggregate(per_metric[metric])
            records.append(
                MetricRecord(
                    penalty=point.penalty,
                    mixture=point.mixture,
                    metric=metric,
                    mean=mean,
                    std_err=std_err,
                    n=n,
                    n_excluded=n_failed,
                    config=label,
                )
            )

    if excluded and settings.verbose:
        print(f"[warn] {len(excluded)} fold evaluations excluded due to non-convergence")
    if undefined:
        counts = {m: sum(1 for u in undefined if u["metric"] == m) for m in METRICS}
        detail = ", ".join(f"{m}={c}" for m, c in counts.items() if c)
        print(f"[warn] {len(undefined)} fold metric values undefined and left out of the mean ({detail})")
    if settings.verbose:
        print(f"[info] {len(records)} metric records from {len(grid) - len(omitted)} grid points")

    fold_metrics = pd.DataFrame(
        fold_rows, columns=["penalty", "mixture", "fold", "metric", "estimate", "config"]
    )
    return TuneResult(
        records=records,
        fold_metrics=fold_metrics,
        excluded=excluded,
        omitted_points=omitted,
        undefined=undefined,
        grid=grid,
        n_folds=len(folds),
    )


def records_to_frame(records: Sequence[MetricRecord]) -> pd.DataFrame:
    """Tabular view of metric records (one row per grid point and metric)."""
    columns = ["penalty", "mixture", "metric", "mean", "std_err", "n", "n_excluded", "config"]
    return pd.DataFrame([asdict(r) for r in records], columns=columns)


def _resolve_direction(metric: str, direction: str | None) -> str:
    if metric not in DIRECTIONS:
        raise InvalidConfiguration(f"Unknown metric {metric!r}; expected one of {list(DIRECTIONS)}")
    if direction is None:
        return DIRECTIONS[metric]
    if direction not in ("minimize", "maximize"):
        raise InvalidConfiguration(f"direction must be 'minimize' or 'maximize', got {direction!r}")
    return direction


def _ranked(records: Sequence[MetricRecord], metric: str, direction: str) -> List[MetricRecord]:
    candidates = [r for r in records if r.metric == metric and math.isfinite(r.mean)]
    sign = 1.0 if direction == "minimize" else -1.0
    return sorted(candidates, key=lambda r: (sign * r.mean,) + r.point.simplicity_key)


def select_best(
    records: Sequence[MetricRecord],
    metric: str,
    direction: str | None = None,
) -> BestConfig:
    """Return the grid point with the best mean ``metric``.

    ``direction`` defaults to ``minimize`` for RMSE and ``maximize`` for
    R^2. On exact ties the point with the smaller |mixture| wins, then the
    one with the smaller |penalty|.
    """
    direction = _resolve_direction(metric, direction)
    ranked = _ranked(records, metric, direction)
    if not ranked:
        raise InvalidConfiguration(f"No finite '{metric}' records to select from")
    best = ranked[0]
    return BestConfig(
        penalty=best.penalty,
        mixture=best.mixture,
        metric=metric,
        mean=best.mean,
        std_err=best.std_err,
    )


def show_best(
    records: Sequence[MetricRecord],
    metric: str,
    n: int = 5,
    direction: str | None = None,
) -> pd.DataFrame:
    """Top ``n`` grid points for ``metric``, in selection order."""
    direction = _resolve_direction(metric, direction)
    return records_to_frame(_ranked(records, metric, direction)[:n]).reset_index(drop=True)
