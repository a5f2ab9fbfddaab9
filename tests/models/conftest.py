# Model tests conftest
"""Shared fixtures for model tests."""

import pytest

from enet_workflow.data.splitter import stratified_split
from enet_workflow.models.common.cv_utils import CVConfig, create_cv_splits
from enet_workflow.models.common.grid import build_grid
from enet_workflow.models.tuning import TuneSettings
from enet_workflow.preprocess.column_dropper import fit_transformation


@pytest.fixture
def prepared(linear_dataset):
    """Split, transformation and 2 folds over the 20-row dataset."""
    split = stratified_split(linear_dataset, "target", 0.7, seed=42)
    transformation = fit_transformation(split.train, ["row_id"])
    folds = create_cv_splits(split.train["target"], CVConfig(n_splits=2, random_state=42))
    return split, transformation, folds


@pytest.fixture
def small_grid():
    """penalty in {0, 1} x mixture in {0, 1}."""
    return build_grid([0.0, 1.0], [0.0, 1.0])


@pytest.fixture
def quiet_settings():
    return TuneSettings(verbose=False)
