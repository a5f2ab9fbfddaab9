"""Workflow configuration.

All knobs of the split -> preprocess -> tune -> finalize workflow live in a
single ``WorkflowConfig`` dataclass. Defaults mirror the reference notebook:
70/30 split, 10 folds, penalty grid 0..10 step 1, mixture grid 0..1 step 0.1.

Key design decisions:
- Configuration is loaded from YAML (``yaml.safe_load``) and overridden by
  CLI flags; unknown keys are rejected instead of silently ignored
- ``validate()`` runs before any data is touched so that a bad config aborts
  the whole run up front
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping

import numpy as np
import yaml

from enet_workflow.errors import InvalidConfiguration

METRICS = ("rmse", "rsq")
RSQ_KINDS = ("traditional", "correlation")


@dataclass
class GridRange:
    """Inclusive numeric range ``start, start + step, ..., stop``."""

    start: float
    stop: float
    step: float

    def values(self) -> List[float]:
        if self.step <= 0:
            raise InvalidConfiguration(f"grid step must be > 0, got {self.step}")
        if self.stop < self.start:
            raise InvalidConfiguration(
                f"grid stop ({self.stop}) must be >= start ({self.start})"
            )
        n_steps = int(np.floor((self.stop - self.start) / self.step + 1e-9))
        raw = self.start + self.step * np.arange(n_steps + 1)
        # Rounding keeps 0.1-step grids free of 0.30000000000000004 artifacts.
        return [float(v) for v in np.round(raw, 10)]

    @classmethod
    def from_mapping(cls, name: str, raw: Any) -> "GridRange":
        if isinstance(raw, GridRange):
            return raw
        if not isinstance(raw, Mapping):
            raise InvalidConfiguration(f"'{name}' must be a mapping with start/stop/step")
        missing = [k for k in ("start", "stop", "step") if k not in raw]
        if missing:
            raise InvalidConfiguration(f"'{name}' is missing keys: {missing}")
        try:
            return cls(float(raw["start"]), float(raw["stop"]), float(raw["step"]))
        except (TypeError, ValueError) as exc:
            raise InvalidConfiguration(f"'{name}' values must be numeric: {exc}") from exc


@dataclass
class WorkflowConfig:
    """Configuration for one tuning run."""

    data_path: str = "data/raw/train.csv"
    target_col: str = "target"
    excluded_columns: List[str] = field(default_factory=list)
    train_fraction: float = 0.7
    seed: int = 42
    strata_bins: int = 4
    strata_depth: int = 20
    n_folds: int = 10
    stratify_folds: bool = False
    penalty: GridRange = field(default_factory=lambda: GridRange(0.0, 10.0, 1.0))
    mixture: GridRange = field(default_factory=lambda: GridRange(0.0, 1.0, 0.1))
    select_metric: str = "rmse"
    rsq_kind: str = "traditional"
    max_iter: int = 10000
    tol: float = 1e-4
    max_workers: int = 1
    out_dir: str = "artifacts/elasticnet"

    def validate(self) -> "WorkflowConfig":
        if not 0.0 < float(self.train_fraction) < 1.0:
            raise InvalidConfiguration(
                f"train_fraction must be in (0, 1), got {self.train_fraction}"
            )
        if int(self.n_folds) < 2:
            raise InvalidConfiguration(f"n_folds must be >= 2, got {self.n_folds}")
        if int(self.strata_bins) < 1:
            raise InvalidConfiguration(f"strata_bins must be >= 1, got {self.strata_bins}")
        if int(self.strata_depth) < 1:
            raise InvalidConfiguration(f"strata_depth must be >= 1, got {self.strata_depth}")
        if self.select_metric not in METRICS:
            raise InvalidConfiguration(
                f"select_metric must be one of {list(METRICS)}, got {self.select_metric!r}"
            )
        if self.rsq_kind not in RSQ_KINDS:
            raise InvalidConfiguration(
                f"rsq_kind must be one of {list(RSQ_KINDS)}, got {self.rsq_kind!r}"
            )
        if int(self.max_iter) < 1:
            raise InvalidConfiguration(f"max_iter must be >= 1, got {self.max_iter}")
        if float(self.tol) <= 0:
            raise InvalidConfiguration(f"tol must be > 0, got {self.tol}")
        if int(self.max_workers) < 1:
            raise InvalidConfiguration(f"max_workers must be >= 1, got {self.max_workers}")
        if not str(self.target_col):
            raise InvalidConfiguration("target_col must not be empty")
        if self.target_col in self.excluded_columns:
            raise InvalidConfiguration(
                f"target column '{self.target_col}' cannot be excluded"
            )
        penalties = self.penalty.values()
        mixtures = self.mixture.values()
        if min(penalties) < 0:
            raise InvalidConfiguration("penalty values must be non-negative")
        if min(mixtures) < 0 or max(mixtures) > 1:
            raise InvalidConfiguration("mixture values must lie in [0, 1]")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "WorkflowConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise InvalidConfiguration(f"Unknown configuration keys: {unknown}")

        kwargs: Dict[str, Any] = dict(raw)
        for name in ("penalty", "mixture"):
            if name in kwargs:
                kwargs[name] = GridRange.from_mapping(name, kwargs[name])
        if "excluded_columns" in kwargs:
            excluded = kwargs["excluded_columns"] or []
            if isinstance(excluded, str):
                excluded = [excluded]
            kwargs["excluded_columns"] = [str(c) for c in excluded]
        return cls(**kwargs)


def load_workflow_config(config_path: str | Path) -> WorkflowConfig:
    """Load a ``WorkflowConfig`` from a YAML file.

    The file may either hold the keys at top level or under a ``workflow``
    section.
    """
    path = Path(config_path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"workflow config not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        full_cfg: Dict[str, Any] = yaml.safe_load(fh) or {}
    if not isinstance(full_cfg, Mapping):
        raise InvalidConfiguration(f"workflow config must be a mapping: {path}")
    section = full_cfg.get("workflow", full_cfg)
    if not isinstance(section, Mapping):
        raise InvalidConfiguration(f"'workflow' section must be a mapping: {path}")
    return WorkflowConfig.from_dict(section)
