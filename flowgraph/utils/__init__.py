"""Utility functions for flowgraph."""

from flowgraph.utils.identifiers import (
    generate_flow_id,
    next_free_slug,
    utc_timestamp,
)
from flowgraph.utils.merge import merge_model, merge_value, shallow_update

__all__ = [
    "generate_flow_id",
    "next_free_slug",
    "utc_timestamp",
    "merge_model",
    "merge_value",
    "shallow_update",
]
