"""Tests for the command-line entry point."""

from __future__ import annotations

import json
from pathlib import Path

import joblib
import pandas as pd
import pytest

from enet_workflow.train_elasticnet import main

SMALL_GRID = [
    "--penalty-start", "0", "--penalty-stop", "1", "--penalty-step", "1",
    "--mixture-start", "0", "--mixture-stop", "1", "--mixture-step", "1",
    "--n-folds", "2",
]


@pytest.fixture
def csv_path(tmp_path: Path, linear_dataset: pd.DataFrame) -> Path:
    path = tmp_path / "train.csv"
    linear_dataset.to_csv(path, index=False)
    return path


class TestMain:
    def test_writes_artifacts(self, csv_path: Path, tmp_path: Path):
        out_dir = tmp_path / "out"

        code = main(
            ["--data-path", str(csv_path), "--exclude", "row_id", "--out-dir", str(out_dir), "--quiet"]
            + SMALL_GRID
        )

        assert code == 0
        for name in [
            "cv_metrics.csv",
            "cv_fold_metrics.csv",
            "best_configs.json",
            "coefficients.csv",
            "variable_importance.csv",
            "test_predictions.csv",
            "inference_bundle.pkl",
            "model_meta.json",
        ]:
            assert (out_dir / name).exists(), name

        cv_metrics = pd.read_csv(out_dir / "cv_metrics.csv")
        assert len(cv_metrics) == 8

        best = json.loads((out_dir / "best_configs.json").read_text(encoding="utf-8"))
        assert best["selected_metric"] == "rmse"
        assert best["best"]["rmse"]["penalty"] == 0.0

        meta = json.loads((out_dir / "model_meta.json").read_text(encoding="utf-8"))
        assert meta["n_train"] == 14
        assert meta["n_test"] == 6
        assert meta["n_grid_points"] == 4
        assert meta["config"]["excluded_columns"] == ["row_id"]

        preds = pd.read_csv(out_dir / "test_predictions.csv")
        assert len(preds) == 6

    def test_bundle_predicts_raw_rows(self, csv_path: Path, tmp_path: Path, linear_dataset):
        out_dir = tmp_path / "out"
        main(["--data-path", str(csv_path), "--exclude", "row_id", "--out-dir", str(out_dir), "--quiet"] + SMALL_GRID)

        pipeline = joblib.load(out_dir / "inference_bundle.pkl")
        preds = pipeline.predict(linear_dataset[["x1", "x2"]])

        assert preds.shape == (20,)

    def test_no_artifacts(self, csv_path: Path, tmp_path: Path, capsys):
        out_dir = tmp_path / "out"

        code = main(
            ["--data-path", str(csv_path), "--exclude", "row_id", "--out-dir", str(out_dir), "--no-artifacts"]
            + SMALL_GRID
        )

        assert code == 0
        assert not out_dir.exists()
        assert "[TEST] RMSE" in capsys.readouterr().out

    def test_missing_target_returns_error_code(self, csv_path: Path, tmp_path: Path, capsys):
        code = main(
            ["--data-path", str(csv_path), "--target-col", "price", "--out-dir", str(tmp_path / "out"), "--quiet"]
            + SMALL_GRID
        )

        assert code == 2
        assert "UnknownColumn" in capsys.readouterr().err

    def test_invalid_utf8_returns_error_code(self, tmp_path: Path, capsys):
        bad = tmp_path / "bad.csv"
        bad.write_bytes(b"x,target\n1,2\n\xff\xfe,3\n")

        code = main(["--data-path", str(bad), "--quiet", "--no-artifacts"])

        assert code == 2
        assert "DataIntegrity" in capsys.readouterr().err

    def test_invalid_fraction_returns_error_code(self, csv_path: Path, tmp_path: Path):
        code = main(["--data-path", str(csv_path), "--train-fraction", "1.5", "--no-artifacts", "--quiet"])

        assert code == 2

    def test_unknown_excluded_column_returns_error_code(self, csv_path: Path, capsys):
        code = main(
            ["--data-path", str(csv_path), "--exclude", "row_id,nope", "--no-artifacts", "--quiet"] + SMALL_GRID
        )

        assert code == 2
        assert "nope" in capsys.readouterr().err
