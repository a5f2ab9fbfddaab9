#!/usr/bin/env python
"""Cross-validation utilities for elastic-net tuning.

This module provides the fold construction and per-fold scoring shared by
the tuner and the finalizer.

Key design decisions:
- Shuffled KFold under a fixed seed (v-fold CV); optionally stratified on
  binned target values
- RMSE and R^2 are the only metrics; R^2 is either the coefficient of
  determination or the squared Pearson correlation
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import mean_squared_error, r2_score
from sklearn.model_selection import KFold, StratifiedKFold

from enet_workflow.data.splitter import make_strata
from enet_workflow.errors import InvalidConfiguration

FoldSet = List[Tuple[np.ndarray, np.ndarray]]


@dataclass
class CVConfig:
    """Configuration for cross-validation."""

    n_splits: int = 10
    random_state: int = 42
    stratify: bool = False
    strata_bins: int = 4
    strata_depth: int = 20


def create_cv_splits(
    y: pd.Series,
    config: CVConfig | None = None,
) -> FoldSet:
    """Create shuffled k-fold indices for cross-validation.

    Parameters
    ----------
    y : pd.Series
        Training target, used for its length and, when stratifying, its bins.
    config : CVConfig, optional
        CV configuration. If None, uses default settings.

    Returns
    -------
    List[Tuple[np.ndarray, np.ndarray]]
        List of (train_positions, val_positions) tuples for each fold.
    """
    if config is None:
        config = CVConfig()

    n_samples = len(y)
    if config.n_splits < 2:
        raise InvalidConfiguration(f"n_splits must be >= 2, got {config.n_splits}")
    if config.n_splits > n_samples:
        raise InvalidConfiguration(
            f"n_splits={config.n_splits} exceeds the number of training rows ({n_samples})"
        )

    positions = np.arange(n_samples)
    if config.stratify:
        strata = make_strata(
            pd.Series(np.asarray(y, dtype=float)),
            n_bins=config.strata_bins,
            depth=config.strata_depth,
        ).to_numpy()
        if np.bincount(strata).min() >= config.n_splits:
            skf = StratifiedKFold(
                n_splits=config.n_splits, shuffle=True, random_state=config.random_state
            )
            return [(tr, va) for tr, va in skf.split(positions, strata)]
        print("[warn] strata too small for stratified folds; using plain KFold")

    kf = KFold(n_splits=config.n_splits, shuffle=True, random_state=config.random_state)
    return [(tr, va) for tr, va in kf.split(positions)]


def rsq(y_true: np.ndarray, y_pred: np.ndarray, kind: str = "traditional") -> float:
    """R^2 between observed and predicted values.

    ``traditional`` is 1 - SSE/SST; ``correlation`` is the squared Pearson
    correlation. Both return NaN when undefined (constant truth or
    constant predictions for the correlation form).
    """
    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()
    if kind == "traditional":
        if len(y_true) < 2 or np.all(y_true == y_true[0]):
            return float("nan")
        return float(r2_score(y_true, y_pred))
    if kind == "correlation":
        if len(y_true) < 2 or np.std(y_true) == 0 or np.std(y_pred) == 0:
            return float("nan")
        return float(np.corrcoef(y_true, y_pred)[0, 1] ** 2)
    raise InvalidConfiguration(f"Unknown rsq kind: {kind!r}")


def compute_fold_metrics(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    rsq_kind: str = "traditional",
) -> Dict[str, float]:
    """Compute evaluation metrics for a single fold.

    Parameters
    ----------
    y_true : np.ndarray
        True target values.
    y_pred : np.ndarray
        Predicted values.
    rsq_kind : str
        Flavor of R^2, see ``rsq``.

    Returns
    -------
    Dict[str, float]
        ``{"rmse": ..., "rsq": ...}``
    """
    y_true = np.asarray(y_true, dtype=float).ravel()
    y_pred = np.asarray(y_pred, dtype=float).ravel()

    return {
        "rmse": float(math.sqrt(mean_squared_error(y_true, y_pred))),
        "rsq": rsq(y_true, y_pred, rsq_kind),
    }
