"""Stratified train/test splitting on a continuous target.

Key design decisions:
- Strata are quantile bins of the target; when there are fewer than
  ``depth`` rows per bin the number of bins shrinks to ``n // depth``, and
  with fewer than two bins the data is treated as a single stratum
- The training size is fixed globally (``round(p * n)``) and distributed
  over strata by largest remainder, so every stratum receives ``floor`` or
  ``ceil`` of its proportional share
- Row order and index labels of the input are preserved in both subsets
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from enet_workflow.errors import InvalidConfiguration, UnknownColumn


@dataclass(frozen=True)
class Split:
    """Disjoint train/test partition of a dataset."""

    train: pd.DataFrame
    test: pd.DataFrame
    strata: pd.Series

    @property
    def n_train(self) -> int:
        return len(self.train)

    @property
    def n_test(self) -> int:
        return len(self.test)


def make_strata(y: pd.Series, n_bins: int = 4, depth: int = 20) -> pd.Series:
    """Assign each row of ``y`` to a quantile bin.

    Parameters
    ----------
    y : pd.Series
        Continuous target values.
    n_bins : int
        Requested number of quantile bins.
    depth : int
        Minimum average number of rows per bin.

    Returns
    -------
    pd.Series
        Integer stratum labels aligned with ``y``.
    """
    n = len(y)
    if n_bins < 1 or depth < 1:
        raise InvalidConfiguration("n_bins and depth must be >= 1")
    if n // n_bins < depth:
        n_bins = min(n_bins, n // depth)
    if n_bins < 2:
        return pd.Series(np.zeros(n, dtype=int), index=y.index, name="stratum")

    labels = pd.qcut(y, q=n_bins, labels=False, duplicates="drop")
    return pd.Series(np.asarray(labels, dtype=int), index=y.index, name="stratum")


def _allocate(counts: np.ndarray, n_train: int) -> np.ndarray:
    """Largest-remainder allocation of ``n_train`` rows across strata."""
    total = counts.sum()
    exact = counts * (n_train / total)
    alloc = np.floor(exact).astype(int)
    leftover = n_train - int(alloc.sum())
    if leftover > 0:
        remainders = exact - alloc
        # Stable sort keeps the lower stratum first on equal remainders.
        order = np.argsort(-remainders, kind="stable")
        for idx in order[:leftover]:
            alloc[idx] += 1
    return np.minimum(alloc, counts)


def stratified_split(
    df: pd.DataFrame,
    target: str,
    train_fraction: float = 0.7,
    seed: int = 42,
    *,
    n_bins: int = 4,
    depth: int = 20,
) -> Split:
    """Split ``df`` into train/test with stratified sampling on ``target``.

    Parameters
    ----------
    df : pd.DataFrame
        Full dataset. Never mutated.
    target : str
        Name of the continuous target column.
    train_fraction : float
        Share of rows assigned to train, in (0, 1).
    seed : int
        Random seed; the split is deterministic given the seed.
    n_bins, depth : int
        Stratification settings, see ``make_strata``.

    Returns
    -------
    Split
        Train and test subsets plus the stratum label of every input row.
    """
    if not 0.0 < float(train_fraction) < 1.0:
        raise InvalidConfiguration(f"train_fraction must be in (0, 1), got {train_fraction}")
    if target not in df.columns:
        raise UnknownColumn(f"Target column '{target}' not found in dataset", [target])
    n = len(df)
    if n < 2:
        raise InvalidConfiguration(f"Need at least 2 rows to split, got {n}")

    strata = make_strata(df[target], n_bins=n_bins, depth=depth)
    n_train = int(round(train_fraction * n))
    n_train = min(max(n_train, 1), n - 1)

    labels = strata.to_numpy()
    stratum_ids = np.unique(labels)
    counts = np.array([(labels == s).sum() for s in stratum_ids])
    alloc = _allocate(counts, n_train)

    rng = np.random.default_rng(seed)
    train_mask = np.zeros(n, dtype=bool)
    for stratum, k in zip(stratum_ids, alloc):
        positions = np.flatnonzero(labels == stratum)
        chosen = rng.choice(positions, size=int(k), replace=False)
        train_mask[chosen] = True

    return Split(
        train=df.iloc[np.flatnonzero(train_mask)].copy(),
        test=df.iloc[np.flatnonzero(~train_mask)].copy(),
        strata=strata,
    )
