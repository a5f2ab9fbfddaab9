# ElasticNet model module
"""ElasticNet (L1+L2 regularization) linear model implementation."""

from enet_workflow.models.elasticnet.pipeline import (
    build_elasticnet_pipeline,
    check_convergence,
    extract_coefficients,
    predict_checked,
)

__all__ = [
    "build_elasticnet_pipeline",
    "check_convergence",
    "extract_coefficients",
    "predict_checked",
]
