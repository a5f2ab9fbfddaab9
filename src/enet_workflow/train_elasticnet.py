#!/usr/bin/env python
"""Elastic-net tuning script.

This script runs the full workflow on a tabular dataset: stratified 70/30
split, column exclusion, grid search of (penalty, mixture) under k-fold CV,
selection of the best configuration and a single evaluation on the held-out
test set.

Key features:
- Settings come from a YAML file (``--config-path``) and CLI overrides
- Reports both the RMSE-optimal and the R^2-optimal configuration
- Writes metrics, coefficients, variable importance and the fitted pipeline
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from typing import Any, Dict, Sequence

from enet_workflow.config import METRICS, RSQ_KINDS, GridRange, WorkflowConfig, load_workflow_config
from enet_workflow.data.loader import load_dataset
from enet_workflow.errors import WorkflowError
from enet_workflow.report import write_report
from enet_workflow.workflow import TuningWorkflow


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    ap = argparse.ArgumentParser(description="Tune an elastic net with grid search and k-fold CV.")
    ap.add_argument(
        "--config-path",
        type=str,
        default=None,
        help="YAML workflow config; CLI flags override its values",
    )
    ap.add_argument("--data-path", type=str, default=None, help="CSV or parquet dataset")
    ap.add_argument("--target-col", type=str, default=None)
    ap.add_argument(
        "--exclude",
        type=str,
        action="append",
        default=None,
        help="Column to drop before modeling (repeatable, or comma separated)",
    )
    ap.add_argument("--out-dir", type=str, default=None)
    # Split / CV settings
    ap.add_argument("--train-fraction", type=float, default=None)
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--n-folds", type=int, default=None)
    ap.add_argument(
        "--stratify-folds",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Stratify CV folds on binned target values (--no-stratify-folds to disable)",
    )
    # Grid
    ap.add_argument("--penalty-start", type=float, default=None)
    ap.add_argument("--penalty-stop", type=float, default=None)
    ap.add_argument("--penalty-step", type=float, default=None)
    ap.add_argument("--mixture-start", type=float, default=None)
    ap.add_argument("--mixture-stop", type=float, default=None)
    ap.add_argument("--mixture-step", type=float, default=None)
    # Selection / solver
    ap.add_argument("--select-metric", type=str, default=None, choices=list(METRICS))
    ap.add_argument("--rsq-kind", type=str, default=None, choices=list(RSQ_KINDS))
    ap.add_argument("--max-iter", type=int, default=None)
    ap.add_argument("--tol", type=float, default=None)
    ap.add_argument("--max-workers", type=int, default=None)
    # Output control
    ap.add_argument("--no-artifacts", action="store_true")
    ap.add_argument("--quiet", action="store_true")
    return ap.parse_args(argv)


def _override_range(base: GridRange, start: Any, stop: Any, step: Any) -> GridRange:
    return GridRange(
        start=base.start if start is None else start,
        stop=base.stop if stop is None else stop,
        step=base.step if step is None else step,
    )


def build_config(args: argparse.Namespace) -> WorkflowConfig:
    """Merge YAML config (if any) with CLI overrides."""
    config = load_workflow_config(args.config_path) if args.config_path else WorkflowConfig()

    overrides: Dict[str, Any] = {}
    simple = {
        "data_path": args.data_path,
        "target_col": args.target_col,
        "out_dir": args.out_dir,
        "train_fraction": args.train_fraction,
        "seed": args.seed,
        "n_folds": args.n_folds,
        "select_metric": args.select_metric,
        "rsq_kind": args.rsq_kind,
        "max_iter": args.max_iter,
        "tol": args.tol,
        "max_workers": args.max_workers,
    }
    overrides.update({k: v for k, v in simple.items() if v is not None})
    if args.stratify_folds is not None:
        overrides["stratify_folds"] = args.stratify_folds
    if args.exclude:
        overrides["excluded_columns"] = [
            col.strip() for item in args.exclude for col in item.split(",") if col.strip()
        ]
    overrides["penalty"] = _override_range(
        config.penalty, args.penalty_start, args.penalty_stop, args.penalty_step
    )
    overrides["mixture"] = _override_range(
        config.mixture, args.mixture_start, args.mixture_stop, args.mixture_step
    )
    return replace(config, **overrides).validate()


def main(argv: Sequence[str] | None = None) -> int:
    """Main training function."""
    args = parse_args(argv)
    verbose = not args.quiet
    try:
        config = build_config(args)
        if verbose:
            print(f"[info] data file: {config.data_path}")
        df = load_dataset(config.data_path, config.target_col)
        workflow = TuningWorkflow(config, verbose=verbose)
        report = workflow.run(df)
    except (WorkflowError, FileNotFoundError) as exc:
        print(f"[error] {type(exc).__name__}: {exc}", file=sys.stderr)
        return 2

    if verbose:
        print(f"\n{'=' * 60}")
        print(f"[TEST] RMSE = {report.test_metrics['rmse']:.6f}")
        print(f"[TEST] RSQ  = {report.test_metrics['rsq']:.6f}")
        print(f"[CV] excluded fold evaluations = {report.n_excluded}")
        print(f"{'=' * 60}\n")

    if not args.no_artifacts:
        write_report(report, config.out_dir, verbose=verbose)
    return 0


if __name__ == "__main__":
    sys.exit(main())
