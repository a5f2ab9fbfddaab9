"""Preprocessing transformations fit on train and reapplied unchanged."""

from enet_workflow.preprocess.column_dropper import (
    ColumnDropper,
    apply_transformation,
    fit_transformation,
)

__all__ = [
    "ColumnDropper",
    "apply_transformation",
    "fit_transformation",
]
