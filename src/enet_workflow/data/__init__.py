"""Dataset loading and train/test splitting."""

from enet_workflow.data.loader import load_dataset, load_table, validate_target
from enet_workflow.data.splitter import Split, make_strata, stratified_split

__all__ = [
    "load_dataset",
    "load_table",
    "validate_target",
    "Split",
    "make_strata",
    "stratified_split",
]
