#!/usr/bin/env python
"""Elastic-net pipeline construction and coefficient diagnostics.

The penalty/mixture parameterisation follows glmnet:

    1/(2n) * ||y - Xb||^2 + penalty * (mixture * ||b||_1 + (1 - mixture)/2 * ||b||_2^2)

which is exactly scikit-learn's ``ElasticNet(alpha=penalty, l1_ratio=mixture)``
on standardized predictors. ``penalty == 0`` is ordinary least squares and
uses ``LinearRegression`` (coordinate descent is not meant for alpha=0).

Key design decisions:
- Numeric columns are median-imputed, categorical columns one-hot encoded,
  then every design column is standardized before the model step
- Coefficients are reported both on the standardized scale and mapped back
  to the original predictor scale (as glmnet does)
"""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer, make_column_selector
from sklearn.impute import SimpleImputer
from sklearn.linear_model import ElasticNet, LinearRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, StandardScaler

from enet_workflow.errors import SolverNonConvergence

INTERCEPT_TERM = "(Intercept)"


def _build_preprocess() -> ColumnTransformer:
    numeric_selector = make_column_selector(dtype_include=np.number)  # type: ignore[arg-type]
    categorical_selector = make_column_selector(dtype_exclude=np.number)  # type: ignore[arg-type]

    numeric_pipeline = Pipeline(
        steps=[
            ("imputer", SimpleImputer(strategy="median")),
        ]
    )
    categorical_pipeline = Pipeline(
        steps=[
            ("imputer", SimpleImputer(strategy="most_frequent")),
            ("encoder", OneHotEncoder(handle_unknown="ignore", sparse_output=False)),
        ]
    )

    return ColumnTransformer(
        transformers=[
            ("num", numeric_pipeline, numeric_selector),
            ("cat", categorical_pipeline, categorical_selector),
        ],
        remainder="drop",
        verbose_feature_names_out=False,
    )


def build_elasticnet_pipeline(
    penalty: float,
    mixture: float,
    *,
    max_iter: int = 10000,
    tol: float = 1e-4,
    random_state: int = 42,
) -> Pipeline:
    """Build the preprocessing + elastic-net pipeline for one grid point."""
    model: Any
    if penalty == 0:
        model = LinearRegression()
    else:
        model = ElasticNet(
            alpha=float(penalty),
            l1_ratio=float(mixture),
            fit_intercept=True,
            max_iter=int(max_iter),
            tol=float(tol),
            selection="cyclic",
            random_state=random_state,
        )

    steps = [
        ("preprocess", _build_preprocess()),
        ("scaler", StandardScaler()),
        ("model", model),
    ]
    return Pipeline(steps=steps)


def _to_1d(pred: Any) -> np.ndarray:
    """Convert prediction to 1D numpy array."""
    array = np.asarray(pred)
    if array.ndim > 1:
        array = array.ravel()
    return array.astype(float, copy=False)


def check_convergence(pipeline: Pipeline) -> None:
    """Raise ``SolverNonConvergence`` if the coordinate descent hit max_iter."""
    model = pipeline.named_steps["model"]
    if not isinstance(model, ElasticNet):
        return
    n_iter = int(np.max(np.atleast_1d(model.n_iter_)))
    if n_iter >= model.max_iter:
        raise SolverNonConvergence(
            f"ElasticNet(alpha={model.alpha}, l1_ratio={model.l1_ratio}) "
            f"did not converge in {model.max_iter} iterations"
        )


def predict_checked(pipeline: Pipeline, X: pd.DataFrame) -> np.ndarray:
    """Predict and reject non-finite outputs."""
    pred = _to_1d(pipeline.predict(X))
    if not np.all(np.isfinite(pred)):
        raise SolverNonConvergence("model produced non-finite predictions")
    return pred


def extract_coefficients(pipeline: Pipeline) -> pd.DataFrame:
    """Coefficient table of a fitted pipeline.

    Returns
    -------
    pd.DataFrame
        Columns ``term``, ``estimate`` (original predictor scale) and
        ``std_estimate`` (standardized scale). The first row is the intercept.
    """
    preprocess = pipeline.named_steps["preprocess"]
    scaler = pipeline.named_steps["scaler"]
    model = pipeline.named_steps["model"]

    terms = [str(t) for t in preprocess.get_feature_names_out()]
    std_coef = np.asarray(model.coef_, dtype=float).ravel()
    scale = np.asarray(scaler.scale_, dtype=float)
    mean = np.asarray(scaler.mean_, dtype=float)

    coef = std_coef / scale
    intercept = float(model.intercept_) - float(np.sum(std_coef * mean / scale))
    return pd.DataFrame(
        {
            "term": [INTERCEPT_TERM] + terms,
            "estimate": np.concatenate([[intercept], coef]),
            "std_estimate": np.concatenate([[float(model.intercept_)], std_coef]),
        }
    )
