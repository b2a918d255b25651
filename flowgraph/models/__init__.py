"""Core data models for flow definitions and their derived graphs."""

from flowgraph.models.flow_definition import (
    ConditionalItem,
    FieldDefinition,
    FieldType,
    FlowConfig,
    FlowDefinition,
    FlowRecord,
    FlowSummary,
    FlowUiConfig,
    NextStageConditional,
    StageAction,
    StageDefinition,
)
from flowgraph.models.flow_graph import (
    GraphEdge,
    GraphEdgeKind,
    GraphIssue,
    GraphNode,
    IssueType,
)
from flowgraph.models.editor_state import (
    EditorChange,
    EditorChangeKind,
    EditorState,
    RenameResult,
)

__all__ = [
    # Definitions
    "ConditionalItem",
    "FieldDefinition",
    "FieldType",
    "FlowConfig",
    "FlowDefinition",
    "FlowRecord",
    "FlowSummary",
    "FlowUiConfig",
    "NextStageConditional",
    "StageAction",
    "StageDefinition",
    # Derived graph
    "GraphEdge",
    "GraphEdgeKind",
    "GraphIssue",
    "GraphNode",
    "IssueType",
    # Editor
    "EditorChange",
    "EditorChangeKind",
    "EditorState",
    "RenameResult",
]
