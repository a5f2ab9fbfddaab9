"""Write the artifacts of a workflow run to disk."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

import joblib
import numpy as np

from enet_workflow.workflow import WorkflowReport


def _json_safe(value: Any) -> Any:
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and not np.isfinite(value):
        return None
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def _write_json(path: Path, payload: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(_json_safe(payload), f, indent=2)


def write_report(report: WorkflowReport, out_dir: str | Path, *, verbose: bool = True) -> Dict[str, Path]:
    """Persist metrics, selections, diagnostics and the fitted pipeline.

    Returns a mapping of artifact name to written path.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    final = report.final_model
    paths: Dict[str, Path] = {}

    paths["cv_metrics"] = out_dir / "cv_metrics.csv"
    report.tune_result.to_frame().to_csv(paths["cv_metrics"], index=False)

    paths["cv_fold_metrics"] = out_dir / "cv_fold_metrics.csv"
    report.tune_result.fold_metrics.to_csv(paths["cv_fold_metrics"], index=False)

    paths["best_configs"] = out_dir / "best_configs.json"
    _write_json(
        paths["best_configs"],
        {
            "selected_metric": report.selected_metric,
            "best": {m: None if b is None else b.to_dict() for m, b in report.best.items()},
        },
    )

    paths["coefficients"] = out_dir / "coefficients.csv"
    final.coefficients().to_csv(paths["coefficients"], index=False)

    paths["variable_importance"] = out_dir / "variable_importance.csv"
    final.variable_importance().to_csv(paths["variable_importance"], index=False)

    paths["test_predictions"] = out_dir / "test_predictions.csv"
    final.predictions().to_csv(paths["test_predictions"], index_label="row")

    paths["model"] = out_dir / "inference_bundle.pkl"
    joblib.dump(final.pipeline, paths["model"])

    coefs = final.coefficients()
    n_terms = int((coefs["term"] != "(Intercept)").sum())
    n_nonzero = int(((coefs["term"] != "(Intercept)") & (coefs["estimate"] != 0)).sum())
    meta = {
        "model_type": "elasticnet",
        "config": report.config.to_dict(),
        "n_rows": report.n_rows,
        "n_train": report.n_train,
        "n_test": report.n_test,
        "n_grid_points": len(report.tune_result.grid),
        "n_folds": report.tune_result.n_folds,
        "n_metric_records": len(report.tune_result),
        "n_excluded_fold_evaluations": report.n_excluded,
        "excluded_fold_evaluations": report.tune_result.excluded,
        "n_undefined_fold_metrics": report.tune_result.n_undefined,
        "omitted_grid_points": [p._asdict() for p in report.tune_result.omitted_points],
        "selected": report.final_model.best.to_dict(),
        "test_metrics": report.test_metrics,
        "n_features": n_terms,
        "n_nonzero_coefficients": n_nonzero,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    paths["meta"] = out_dir / "model_meta.json"
    _write_json(paths["meta"], meta)

    if verbose:
        for path in paths.values():
            print(f"[info] Saved {path.name} to {path}")
    return paths
