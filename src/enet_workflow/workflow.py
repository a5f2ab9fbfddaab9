#!/usr/bin/env python
"""End-to-end tuning workflow: split -> preprocess -> tune -> finalize.

``TuningWorkflow`` is a small state machine. It starts in SEARCHING, moves
to SELECTED once a configuration has been chosen and to FINALIZED after the
single test evaluation. Steps called out of order raise
``WorkflowStateError``; there is no way back to an earlier state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

import pandas as pd

from enet_workflow.config import METRICS, WorkflowConfig
from enet_workflow.data.loader import validate_target
from enet_workflow.data.splitter import Split, stratified_split
from enet_workflow.errors import InvalidConfiguration, WorkflowStateError
from enet_workflow.models.common.cv_utils import CVConfig, FoldSet, create_cv_splits
from enet_workflow.models.common.grid import build_grid
from enet_workflow.models.finalize import FinalModel, finalize
from enet_workflow.models.tuning import BestConfig, TuneResult, TuneSettings, search, select_best
from enet_workflow.preprocess.column_dropper import ColumnDropper, fit_transformation


class WorkflowState(str, Enum):
    SEARCHING = "searching"
    SELECTED = "selected"
    FINALIZED = "finalized"


@dataclass
class WorkflowReport:
    """Everything produced by one workflow run."""

    config: WorkflowConfig
    n_rows: int
    n_train: int
    n_test: int
    tune_result: TuneResult
    best: Dict[str, BestConfig | None]
    selected_metric: str
    final_model: FinalModel
    test_metrics: Dict[str, float] = field(default_factory=dict)

    @property
    def n_excluded(self) -> int:
        return self.tune_result.n_excluded


class TuningWorkflow:
    def __init__(self, config: WorkflowConfig | None = None, *, verbose: bool = True) -> None:
        self.config = (config or WorkflowConfig()).validate()
        self.verbose = verbose
        self.state = WorkflowState.SEARCHING
        self.split_: Split | None = None
        self.transformation_: ColumnDropper | None = None
        self.folds_: FoldSet | None = None
        self.tune_result_: TuneResult | None = None
        self.best_: Dict[str, BestConfig | None] = {}
        self.selected_: BestConfig | None = None
        self.final_model_: FinalModel | None = None

    @property
    def settings(self) -> TuneSettings:
        cfg = self.config
        return TuneSettings(
            max_iter=cfg.max_iter,
            tol=cfg.tol,
            random_state=cfg.seed,
            rsq_kind=cfg.rsq_kind,
            max_workers=cfg.max_workers,
            verbose=self.verbose,
        )

    def _require(self, state: WorkflowState, step: str) -> None:
        if self.state is not state:
            raise WorkflowStateError(
                f"cannot {step} in state '{self.state.value}' (expected '{state.value}')"
            )

    def split(self, df: pd.DataFrame) -> Split:
        """Split the dataset, fit the transformation and build the folds."""
        self._require(WorkflowState.SEARCHING, "split")
        if self.tune_result_ is not None:
            raise WorkflowStateError("cannot re-split after tuning")
        cfg = self.config
        df = validate_target(df, cfg.target_col)
        # Fatal schema errors surface here, before any split or fit.
        ColumnDropper(cfg.excluded_columns).fit(df.head(0))

        split = stratified_split(
            df,
            cfg.target_col,
            cfg.train_fraction,
            cfg.seed,
            n_bins=cfg.strata_bins,
            depth=cfg.strata_depth,
        )
        self.split_ = split
        self.transformation_ = fit_transformation(split.train, cfg.excluded_columns)
        self.folds_ = create_cv_splits(
            split.train[cfg.target_col],
            CVConfig(
                n_splits=cfg.n_folds,
                random_state=cfg.seed,
                stratify=cfg.stratify_folds,
                strata_bins=cfg.strata_bins,
                strata_depth=cfg.strata_depth,
            ),
        )
        if self.verbose:
            print(
                f"[info] split {len(df)} rows -> train={split.n_train} test={split.n_test} "
                f"({split.strata.nunique()} strata)"
            )
            dropped = self.transformation_.dropped_columns_
            print(f"[info] excluding {len(dropped)} columns: {dropped}")
        return split

    def tune(self) -> TuneResult:
        self._require(WorkflowState.SEARCHING, "tune")
        if self.split_ is None or self.transformation_ is None or self.folds_ is None:
            raise WorkflowStateError("call split() before tune()")
        if self.tune_result_ is not None:
            raise WorkflowStateError("grid search already ran")
        grid = build_grid(self.config.penalty, self.config.mixture)
        self.tune_result_ = search(
            self.split_.train,
            self.transformation_,
            grid,
            self.folds_,
            target=self.config.target_col,
            settings=self.settings,
        )
        return self.tune_result_

    def select(self, metric: str | None = None) -> BestConfig:
        """Pick the best configuration for ``metric`` and report the others.

        The best point of every other metric is computed on a best-effort
        basis; a metric with no finite records is stored as ``None``.
        """
        self._require(WorkflowState.SEARCHING, "select")
        if self.tune_result_ is None:
            raise WorkflowStateError("call tune() before select()")
        metric = metric or self.config.select_metric
        if metric not in METRICS:
            raise InvalidConfiguration(f"Unknown metric {metric!r}; expected one of {list(METRICS)}")

        records = self.tune_result_.records
        selected = select_best(records, metric)
        best: Dict[str, BestConfig | None] = {}
        for m in METRICS:
            if m == metric:
                best[m] = selected
                continue
            try:
                best[m] = select_best(records, m)
            except InvalidConfiguration as exc:
                print(f"[warn] no best configuration by {m}: {exc}")
                best[m] = None

        self.best_ = best
        self.selected_ = selected
        self.state = WorkflowState.SELECTED
        if self.verbose:
            for m, b in best.items():
                if b is None:
                    continue
                print(
                    f"[info] best by {m}: penalty={b.penalty:g} mixture={b.mixture:g} "
                    f"mean={b.mean:.6f}"
                )
        return selected

    def finalize(self) -> FinalModel:
        self._require(WorkflowState.SELECTED, "finalize")
        if self.split_ is None or self.transformation_ is None or self.selected_ is None:
            raise WorkflowStateError("call select() before finalize()")
        self.final_model_ = finalize(
            self.selected_,
            self.split_.train,
            self.transformation_,
            self.split_.test,
            target=self.config.target_col,
            settings=self.settings,
        )
        self.state = WorkflowState.FINALIZED
        return self.final_model_

    def report(self) -> WorkflowReport:
        self._require(WorkflowState.FINALIZED, "report")
        if (
            self.split_ is None
            or self.tune_result_ is None
            or self.selected_ is None
            or self.final_model_ is None
        ):
            raise WorkflowStateError("call finalize() before report()")
        return WorkflowReport(
            config=self.config,
            n_rows=self.split_.n_train + self.split_.n_test,
            n_train=self.split_.n_train,
            n_test=self.split_.n_test,
            tune_result=self.tune_result_,
            best=dict(self.best_),
            selected_metric=self.selected_.metric,
            final_model=self.final_model_,
            test_metrics=dict(self.final_model_.evaluate()),
        )

    def run(self, df: pd.DataFrame) -> WorkflowReport:
        self.split(df)
        self.tune()
        self.select()
        self.finalize()
        return self.report()


def run_workflow(df: pd.DataFrame, config: WorkflowConfig | None = None, **kwargs: Any) -> WorkflowReport:
    return TuningWorkflow(config, **kwargs).run(df)
