"""Elastic-net hyperparameter tuning workflow.

Stratified train/test split, column exclusion, grid search of
(penalty, mixture) under k-fold cross-validation and a single final
evaluation on held-out data.
"""

from enet_workflow.config import GridRange, WorkflowConfig, load_workflow_config
from enet_workflow.errors import (
    DataIntegrity,
    InvalidConfiguration,
    SolverNonConvergence,
    UnknownColumn,
    WorkflowError,
    WorkflowStateError,
)
from enet_workflow.workflow import TuningWorkflow, WorkflowReport, WorkflowState, run_workflow

__version__ = "0.1.0"

__all__ = [
    "GridRange",
    "WorkflowConfig",
    "load_workflow_config",
    "DataIntegrity",
    "InvalidConfiguration",
    "SolverNonConvergence",
    "UnknownColumn",
    "WorkflowError",
    "WorkflowStateError",
    "TuningWorkflow",
    "WorkflowReport",
    "WorkflowState",
    "run_workflow",
]
