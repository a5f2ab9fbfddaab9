"""Common utilities for model tuning and evaluation."""

from enet_workflow.models.common.cv_utils import (
    CVConfig,
    FoldSet,
    compute_fold_metrics,
    create_cv_splits,
    rsq,
)
from enet_workflow.models.common.grid import GridPoint, build_grid

__all__ = [
    # cv_utils
    "CVConfig",
    "FoldSet",
    "compute_fold_metrics",
    "create_cv_splits",
    "rsq",
    # grid
    "GridPoint",
    "build_grid",
]
