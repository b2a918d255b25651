"""Flowgraph - graph engine behind the conversational flow editor."""

from flowgraph.models.flow_definition import (
    ConditionalItem,
    FieldDefinition,
    FlowConfig,
    FlowDefinition,
    FlowRecord,
    NextStageConditional,
    StageAction,
    StageDefinition,
)
from flowgraph.models.flow_graph import (
    GraphEdge,
    GraphEdgeKind,
    GraphIssue,
    GraphNode,
)
from flowgraph.models.editor_state import EditorState, RenameResult
from flowgraph.graph import (
    auto_layout,
    definition_to_graph,
    ensure_graph_layout,
    validate_graph,
)
from flowgraph.editor.session import EditorSession
from flowgraph.sdk.flow_client import FlowClient, FlowClientError, FlowConflictError

__all__ = [
    # Definitions
    "ConditionalItem",
    "FieldDefinition",
    "FlowConfig",
    "FlowDefinition",
    "FlowRecord",
    "NextStageConditional",
    "StageAction",
    "StageDefinition",
    # Derived graph
    "GraphEdge",
    "GraphEdgeKind",
    "GraphIssue",
    "GraphNode",
    # Graph functions
    "auto_layout",
    "definition_to_graph",
    "ensure_graph_layout",
    "validate_graph",
    # Editing
    "EditorState",
    "RenameResult",
    "EditorSession",
    # Persistence client
    "FlowClient",
    "FlowClientError",
    "FlowConflictError",
]
