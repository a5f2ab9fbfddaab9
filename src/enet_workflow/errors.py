"""Exception hierarchy for the elastic-net tuning workflow.

Configuration and data-integrity errors are fatal and raised before any
model is fitted. ``SolverNonConvergence`` is recovered per fold evaluation
by the tuner and only surfaces as a count in the final report.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for every error raised by enet_workflow."""


class InvalidConfiguration(WorkflowError, ValueError):
    """A parameter is outside its valid domain (fraction, grid, folds, ...)."""


class UnknownColumn(WorkflowError, KeyError):
    """A declared column (target, exclusion) does not match the dataset schema."""

    def __init__(self, message: str, columns: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.columns = list(columns or [])

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return self.message


class SolverNonConvergence(WorkflowError, RuntimeError):
    """A single elastic-net fit did not converge."""


class DataIntegrity(WorkflowError, ValueError):
    """The input file is malformed.

    ``row`` is the 1-based line number in the source file (header = 1) and
    ``column`` the offending column name, when they can be determined.
    """

    def __init__(self, message: str, *, row: int | None = None, column: str | None = None) -> None:
        location = []
        if row is not None:
            location.append(f"line {row}")
        if column is not None:
            location.append(f"column '{column}'")
        if location:
            message = f"{message} ({', '.join(location)})"
        super().__init__(message)
        self.row = row
        self.column = column


class WorkflowStateError(WorkflowError, RuntimeError):
    """A workflow step was called out of order."""
