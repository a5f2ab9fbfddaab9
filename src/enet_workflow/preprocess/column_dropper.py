#!/usr/bin/env python
"""Column-removal transformation fit on train and reapplied everywhere.

This module provides the preprocessing step of the workflow: a named set of
columns (identifiers, leakage-prone fields, ...) is removed from every
dataset the model sees.

Key design decisions:
- ``fit`` looks at the training schema only (column names), never values
- A column named for removal that is missing at fit time is a fatal
  configuration error, not silently ignored
- ``transform`` checks schema only, so it never fails because test values
  differ from train values; it is idempotent on already-transformed frames
"""

from __future__ import annotations

from typing import Any, Iterable, List

import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.utils.validation import check_is_fitted

from enet_workflow.errors import UnknownColumn


class ColumnDropper(BaseEstimator, TransformerMixin):
    """Drop a fixed list of named columns.

    Parameters
    ----------
    columns : iterable of str
        Column names to remove.
    """

    def __init__(self, columns: Iterable[str] = ()) -> None:
        self.columns = columns

    def fit(self, X: pd.DataFrame, y: Any = None) -> "ColumnDropper":
        if not isinstance(X, pd.DataFrame):
            raise TypeError("ColumnDropper expects a pandas DataFrame")
        requested = [str(c) for c in self.columns]
        missing = [c for c in requested if c not in X.columns]
        if missing:
            raise UnknownColumn(
                f"Columns marked for removal not found in training data: {missing}",
                missing,
            )
        self.feature_names_in_ = [str(c) for c in X.columns]
        self.dropped_columns_: List[str] = list(dict.fromkeys(requested))
        dropped = set(self.dropped_columns_)
        self.columns_: List[str] = [c for c in self.feature_names_in_ if c not in dropped]
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        check_is_fitted(self, "columns_")
        if not isinstance(X, pd.DataFrame):
            raise TypeError("ColumnDropper expects a pandas DataFrame")

        known = set(self.feature_names_in_)
        unexpected = [str(c) for c in X.columns if str(c) not in known]
        if unexpected:
            raise UnknownColumn(f"Columns not seen during fit: {unexpected}", unexpected)
        absent = [c for c in self.columns_ if c not in X.columns]
        if absent:
            raise UnknownColumn(f"Columns required by the transformation are missing: {absent}", absent)
        return X.loc[:, self.columns_]

    def get_feature_names_out(self, input_features: Any = None) -> List[str]:
        check_is_fitted(self, "columns_")
        return list(self.columns_)


def fit_transformation(train: pd.DataFrame, excluded: Iterable[str]) -> ColumnDropper:
    """Fit a ``ColumnDropper`` on the training schema."""
    return ColumnDropper(columns=list(excluded)).fit(train)


def apply_transformation(transformation: ColumnDropper, df: pd.DataFrame) -> pd.DataFrame:
    """Project ``df`` onto the columns kept by ``transformation``."""
    return transformation.transform(df)
