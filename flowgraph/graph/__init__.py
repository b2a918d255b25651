"""Pure graph functions: derivation, layout and structural validation."""

from flowgraph.graph.deriver import definition_to_graph, stage_edges
from flowgraph.graph.layout import auto_layout, ensure_graph_layout, needs_layout
from flowgraph.graph.validation import DEFAULT_MESSAGES, validate_graph

__all__ = [
    "definition_to_graph",
    "stage_edges",
    "auto_layout",
    "ensure_graph_layout",
    "needs_layout",
    "DEFAULT_MESSAGES",
    "validate_graph",
]
