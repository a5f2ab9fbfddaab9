"""End-to-end tests for the tuning workflow and its state machine."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from enet_workflow.config import GridRange, WorkflowConfig
from enet_workflow.errors import DataIntegrity, InvalidConfiguration, UnknownColumn, WorkflowStateError
from enet_workflow.workflow import TuningWorkflow, WorkflowState, run_workflow


def _small_config(**overrides) -> WorkflowConfig:
    params = dict(
        target_col="target",
        excluded_columns=["row_id"],
        n_folds=2,
        penalty=GridRange(0.0, 1.0, 1.0),
        mixture=GridRange(0.0, 1.0, 1.0),
    )
    params.update(overrides)
    return WorkflowConfig(**params)


class TestEndToEnd:
    """Four grid points, two folds, 20 rows."""

    @pytest.fixture
    def report(self, linear_dataset):
        return run_workflow(linear_dataset, _small_config(), verbose=False)

    def test_record_count(self, report):
        assert len(report.tune_result) == 8
        assert report.n_excluded == 0

    def test_split_sizes(self, report):
        assert (report.n_rows, report.n_train, report.n_test) == (20, 14, 6)

    def test_best_is_unpenalized(self, report):
        best = report.best["rmse"]

        assert (best.penalty, best.mixture) == (0.0, 0.0)
        assert report.selected_metric == "rmse"

    def test_penalty_clearly_worse(self, report):
        rmse = [r.mean for r in report.tune_result if r.metric == "rmse"]

        assert max(rmse) - min(rmse) > 0.5

    def test_test_rmse_close_to_cv(self, report):
        cv_rmse = report.best["rmse"].mean

        assert abs(report.test_metrics["rmse"] - cv_rmse) < 0.3

    def test_both_metrics_selected(self, report):
        assert set(report.best) == {"rmse", "rsq"}
        assert report.best["rsq"].metric == "rsq"

    def test_identifier_not_a_predictor(self, report):
        assert "row_id" not in set(report.final_model.coefficients()["term"])


class TestDeterminism:
    """Identical inputs and seed give identical results."""

    def test_bit_identical_runs(self, linear_dataset):
        a = TuningWorkflow(_small_config(), verbose=False)
        b = TuningWorkflow(_small_config(), verbose=False)
        report_a = a.run(linear_dataset)
        report_b = b.run(linear_dataset)

        assert a.split_.train.index.equals(b.split_.train.index)
        assert a.split_.test.index.equals(b.split_.test.index)
        assert report_a.tune_result.records == report_b.tune_result.records
        assert np.array_equal(
            report_a.final_model.coefficients()["estimate"],
            report_b.final_model.coefficients()["estimate"],
        )
        assert report_a.test_metrics == report_b.test_metrics

    def test_seed_changes_split(self, linear_dataset):
        a = TuningWorkflow(_small_config(seed=1), verbose=False)
        b = TuningWorkflow(_small_config(seed=2), verbose=False)

        split_a = a.split(linear_dataset)
        split_b = b.split(linear_dataset)

        assert not split_a.test.index.equals(split_b.test.index)


class TestStateMachine:
    """Steps must run in order and cannot be repeated."""

    def test_initial_state(self):
        assert TuningWorkflow(_small_config(), verbose=False).state is WorkflowState.SEARCHING

    def test_tune_before_split(self):
        with pytest.raises(WorkflowStateError):
            TuningWorkflow(_small_config(), verbose=False).tune()

    def test_select_before_tune(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(), verbose=False)
        workflow.split(linear_dataset)

        with pytest.raises(WorkflowStateError):
            workflow.select()

    def test_finalize_before_select(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(), verbose=False)
        workflow.split(linear_dataset)
        workflow.tune()

        with pytest.raises(WorkflowStateError):
            workflow.finalize()

    def test_report_before_finalize(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(), verbose=False)
        workflow.split(linear_dataset)
        workflow.tune()
        workflow.select()

        with pytest.raises(WorkflowStateError):
            workflow.report()

    def test_no_way_back(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(), verbose=False)
        workflow.run(linear_dataset)

        assert workflow.state is WorkflowState.FINALIZED
        with pytest.raises(WorkflowStateError):
            workflow.tune()
        with pytest.raises(WorkflowStateError):
            workflow.select()
        with pytest.raises(WorkflowStateError):
            workflow.split(linear_dataset)

    def test_tune_only_once(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(), verbose=False)
        workflow.split(linear_dataset)
        workflow.tune()

        with pytest.raises(WorkflowStateError):
            workflow.tune()
        with pytest.raises(WorkflowStateError):
            workflow.split(linear_dataset)

    def test_finalize_twice(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(), verbose=False)
        workflow.run(linear_dataset)

        with pytest.raises(WorkflowStateError):
            workflow.finalize()

    def test_select_by_rsq(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(), verbose=False)
        workflow.split(linear_dataset)
        workflow.tune()

        best = workflow.select("rsq")

        assert best.metric == "rsq"
        assert workflow.state is WorkflowState.SELECTED


class TestEarlyFailures:
    """Fatal errors surface before any model is fit."""

    def test_unknown_excluded_column(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(excluded_columns=["missing"]), verbose=False)

        with pytest.raises(UnknownColumn):
            workflow.split(linear_dataset)
        assert workflow.split_ is None

    def test_missing_target(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(target_col="price"), verbose=False)

        with pytest.raises(UnknownColumn):
            workflow.split(linear_dataset)

    def test_missing_target_value(self, linear_dataset):
        df = linear_dataset.copy()
        df.loc[3, "target"] = np.nan

        with pytest.raises(DataIntegrity):
            TuningWorkflow(_small_config(), verbose=False).split(df)

    def test_too_many_folds_for_train(self, dataset_factory):
        df = dataset_factory(n_rows=6)

        with pytest.raises(ValueError):
            TuningWorkflow(_small_config(n_folds=10), verbose=False).split(df)


def test_verbose_run_logs_progress(linear_dataset, capsys):
    run_workflow(linear_dataset, _small_config())

    out = capsys.readouterr().out
    assert "[info] split 20 rows" in out
    assert "best by rmse" in out


def test_default_config_requires_target_column():
    df = pd.DataFrame({"x": [1.0, 2.0, 3.0]})

    with pytest.raises(UnknownColumn):
        TuningWorkflow(verbose=False).split(df)


class TestLeaveOneOut:
    """One-row validation folds leave R^2 undefined but RMSE usable."""

    @pytest.fixture
    def config(self):
        return _small_config(n_folds=14, select_metric="rmse")

    def test_rmse_selection_still_runs(self, linear_dataset, config, capsys):
        report = run_workflow(linear_dataset, config)

        assert report.best["rsq"] is None
        assert report.best["rmse"] is not None
        assert report.selected_metric == "rmse"
        assert report.tune_result.n_undefined == 14 * 4
        out = capsys.readouterr().out
        assert "[warn] no best configuration by rsq" in out

    def test_report_written_without_rsq_best(self, linear_dataset, config, tmp_path):
        import json

        from enet_workflow.report import write_report

        report = run_workflow(linear_dataset, config, verbose=False)
        paths = write_report(report, tmp_path / "out", verbose=False)

        best = json.loads(paths["best_configs"].read_text(encoding="utf-8"))
        assert best["best"]["rsq"] is None
        meta = json.loads(paths["meta"].read_text(encoding="utf-8"))
        assert meta["n_undefined_fold_metrics"] == 14 * 4

    def test_selecting_rsq_fails(self, linear_dataset, config):
        workflow = TuningWorkflow(config, verbose=False)
        workflow.split(linear_dataset)
        workflow.tune()

        with pytest.raises(InvalidConfiguration):
            workflow.select("rsq")
        assert workflow.state is WorkflowState.SEARCHING


class TestSelectArguments:
    def test_unknown_metric(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(), verbose=False)
        workflow.split(linear_dataset)
        workflow.tune()

        with pytest.raises(InvalidConfiguration, match="mae"):
            workflow.select("mae")
        assert workflow.state is WorkflowState.SEARCHING

    def test_forced_state_without_selection(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(), verbose=False)
        workflow.split(linear_dataset)
        workflow.state = WorkflowState.SELECTED

        with pytest.raises(WorkflowStateError):
            workflow.finalize()

    def test_forced_state_without_final_model(self, linear_dataset):
        workflow = TuningWorkflow(_small_config(), verbose=False)
        workflow.split(linear_dataset)
        workflow.state = WorkflowState.FINALIZED

        with pytest.raises(WorkflowStateError):
            workflow.report()
