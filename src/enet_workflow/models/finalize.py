#!/usr/bin/env python
"""Final refit of the selected configuration and single test evaluation.

Key design decisions:
- The pipeline is refit once on the full (transformed) training set
- Test predictions and metrics are computed on first request and cached, so
  repeated evaluation returns the identical result
- Convergence failures here are fatal: there is no fold to fall back on
"""

from __future__ import annotations

import warnings
from typing import Dict

import numpy as np
import pandas as pd
from sklearn.exceptions import ConvergenceWarning
from sklearn.pipeline import Pipeline

from enet_workflow.errors import UnknownColumn
from enet_workflow.models.common.cv_utils import compute_fold_metrics
from enet_workflow.models.elasticnet.pipeline import (
    INTERCEPT_TERM,
    build_elasticnet_pipeline,
    check_convergence,
    extract_coefficients,
    predict_checked,
)
from enet_workflow.models.tuning import BestConfig, TuneSettings
from enet_workflow.preprocess.column_dropper import ColumnDropper


class FinalModel:
    """Elastic net trained on all of train with the selected hyperparameters."""

    def __init__(
        self,
        best: BestConfig,
        pipeline: Pipeline,
        transformation: ColumnDropper,
        test: pd.DataFrame,
        target: str,
        rsq_kind: str = "traditional",
    ) -> None:
        self.best = best
        self.pipeline = pipeline
        self.transformation = transformation
        self.target = target
        self.rsq_kind = rsq_kind
        self._test = test
        self._predictions: np.ndarray | None = None
        self._metrics: Dict[str, float] | None = None

    def evaluate(self) -> Dict[str, float]:
        """RMSE and R^2 on the held-out test set (computed once)."""
        if self._metrics is None:
            test = self.transformation.transform(self._test)
            if self.target not in test.columns:
                raise UnknownColumn(f"Target column '{self.target}' missing from test set", [self.target])
            X_test = test.drop(columns=[self.target])
            y_test = test[self.target].to_numpy(dtype=float)
            self._predictions = predict_checked(self.pipeline, X_test)
            self._metrics = compute_fold_metrics(y_test, self._predictions, rsq_kind=self.rsq_kind)
        return self._metrics

    def predictions(self) -> pd.DataFrame:
        self.evaluate()
        return pd.DataFrame(
            {
                self.target: self._test[self.target].to_numpy(dtype=float),
                ".pred": self._predictions,
            },
            index=self._test.index,
        )

    def coefficients(self) -> pd.DataFrame:
        """Coefficients ranked by absolute magnitude (original scale)."""
        coefs = extract_coefficients(self.pipeline)
        return (
            coefs.sort_values("estimate", key=np.abs, ascending=False, kind="stable")
            .reset_index(drop=True)
        )

    def variable_importance(self) -> pd.DataFrame:
        """|standardized coefficient| per predictor, signed by direction."""
        coefs = extract_coefficients(self.pipeline)
        coefs = coefs[coefs["term"] != INTERCEPT_TERM]
        importance = pd.DataFrame(
            {
                "variable": coefs["term"].to_numpy(),
                "importance": np.abs(coefs["std_estimate"].to_numpy()),
                "sign": np.where(coefs["std_estimate"].to_numpy() < 0, "NEG", "POS"),
            }
        )
        return importance.sort_values("importance", ascending=False, kind="stable").reset_index(drop=True)


def finalize(
    best: BestConfig,
    train: pd.DataFrame,
    transformation: ColumnDropper,
    test: pd.DataFrame,
    *,
    target: str,
    settings: TuneSettings | None = None,
) -> FinalModel:
    """Refit ``best`` on all of ``train`` and evaluate once on ``test``."""
    if settings is None:
        settings = TuneSettings()

    transformed = transformation.transform(train)
    if target not in transformed.columns:
        raise UnknownColumn(f"Target column '{target}' not present after transformation", [target])
    X_train = transformed.drop(columns=[target])
    y_train = transformed[target].to_numpy(dtype=float)

    pipeline = build_elasticnet_pipeline(
        best.penalty,
        best.mixture,
        max_iter=settings.max_iter,
        tol=settings.tol,
        random_state=settings.random_state,
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", category=ConvergenceWarning)
        pipeline.fit(X_train, y_train)
    check_convergence(pipeline)

    final = FinalModel(best, pipeline, transformation, test, target, rsq_kind=settings.rsq_kind)
    metrics = final.evaluate()
    if settings.verbose:
        print(
            f"[info] final model penalty={best.penalty:g} mixture={best.mixture:g}: "
            f"test rmse={metrics['rmse']:.6f} rsq={metrics['rsq']:.6f}"
        )
    return final
