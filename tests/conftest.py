"""Pytest configuration: put ``src`` on the import path and share datasets.

Keeps ``import enet_workflow`` working whether or not the package has been
installed into the environment.
"""

import os
import sys

import numpy as np
import pandas as pd
import pytest


def _add_src_to_path() -> None:
    root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    src = os.path.join(root, "src")
    if src not in sys.path:
        sys.path.insert(0, src)


_add_src_to_path()


def make_linear_dataset(n_rows: int = 20, noise: float = 0.1, seed: int = 0) -> pd.DataFrame:
    """y = 2 + 3*x1 - 2*x2 + noise, plus an identifier column to exclude."""
    rng = np.random.default_rng(seed)
    x1 = rng.normal(size=n_rows)
    x2 = rng.normal(size=n_rows)
    y = 2.0 + 3.0 * x1 - 2.0 * x2 + noise * rng.normal(size=n_rows)
    return pd.DataFrame(
        {
            "row_id": np.arange(n_rows),
            "x1": x1,
            "x2": x2,
            "target": y,
        }
    )


@pytest.fixture
def dataset_factory():
    """Factory for synthetic datasets of arbitrary size."""
    return make_linear_dataset


@pytest.fixture
def linear_dataset() -> pd.DataFrame:
    """20-row synthetic dataset with a known linear relationship."""
    return make_linear_dataset()


@pytest.fixture
def large_dataset() -> pd.DataFrame:
    """1000 rows, enough for four target strata."""
    return make_linear_dataset(n_rows=1000, noise=0.5, seed=1)
