"""Regular (penalty, mixture) hyperparameter grid."""

from __future__ import annotations

import itertools
from typing import Iterable, List, NamedTuple

from enet_workflow.config import GridRange
from enet_workflow.errors import InvalidConfiguration


class GridPoint(NamedTuple):
    penalty: float
    mixture: float

    @property
    def simplicity_key(self) -> tuple:
        # Tie-break order: smaller |mixture| first, then smaller |penalty|.
        return (abs(self.mixture), abs(self.penalty))


def build_grid(
    penalty: GridRange | Iterable[float],
    mixture: GridRange | Iterable[float],
) -> List[GridPoint]:
    """Cartesian product of penalty and mixture values, penalty-major.

    Either argument may be a ``GridRange`` or an explicit list of values.
    """
    penalties = penalty.values() if isinstance(penalty, GridRange) else [float(p) for p in penalty]
    mixtures = mixture.values() if isinstance(mixture, GridRange) else [float(m) for m in mixture]
    if not penalties or not mixtures:
        raise InvalidConfiguration("hyperparameter grid is empty")
    if any(p < 0 for p in penalties):
        raise InvalidConfiguration(f"penalty values must be non-negative: {penalties}")
    if any(m < 0 or m > 1 for m in mixtures):
        raise InvalidConfiguration(f"mixture values must lie in [0, 1]: {mixtures}")
    if len(set(penalties)) != len(penalties) or len(set(mixtures)) != len(mixtures):
        raise InvalidConfiguration("grid values must be unique")

    return [GridPoint(p, m) for p, m in itertools.product(penalties, mixtures)]
