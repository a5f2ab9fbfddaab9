"""Model tuning and finalization.

This package provides the grid search of elastic-net hyperparameters under
k-fold cross-validation and the final refit on the full training set.
"""

from enet_workflow.models.finalize import FinalModel, finalize
from enet_workflow.models.tuning import (
    BestConfig,
    MetricRecord,
    TuneResult,
    TuneSettings,
    records_to_frame,
    search,
    select_best,
    show_best,
)

__all__ = [
    "FinalModel",
    "finalize",
    "BestConfig",
    "MetricRecord",
    "TuneResult",
    "TuneSettings",
    "records_to_frame",
    "search",
    "select_best",
    "show_best",
]
