"""SDK for loading, saving and repairing flows from editor code."""

from flowgraph.sdk.field_repair import ensure_field_definitions
from flowgraph.sdk.flow_client import (
    FlowClient,
    FlowClientError,
    FlowConflictError,
)

__all__ = [
    "ensure_field_definitions",
    "FlowClient",
    "FlowClientError",
    "FlowConflictError",
]
