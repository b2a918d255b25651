"""Working copy of a flow held by an editor session."""

from enum import Enum

from pydantic import BaseModel, Field

from flowgraph.models.flow_definition import FlowRecord
from flowgraph.models.flow_graph import GraphEdge, GraphIssue, GraphNode


class EditorState(BaseModel):
    """The flow being edited plus everything derived from it.

    ``pending_field_slug_edits`` holds renames typed but not committed yet.
    ``field_renames`` is the committed rename audit, always old slug -> current
    slug with chains collapsed. It travels with a save so storage can migrate
    collected values.
    """

    model_config = {"populate_by_name": True}

    flow: FlowRecord
    graph_nodes: list[GraphNode] = Field(default_factory=list, alias="graphNodes")
    graph_edges: list[GraphEdge] = Field(default_factory=list, alias="graphEdges")
    graph_issues: list[GraphIssue] = Field(default_factory=list, alias="graphIssues")
    selected_stage: str | None = Field(default=None, alias="selectedStage")
    touched: bool = False
    pending_field_slug_edits: dict[str, str] = Field(
        default_factory=dict, alias="pendingFieldSlugEdits"
    )
    field_renames: dict[str, str] = Field(default_factory=dict, alias="fieldRenames")


class RenameResult(BaseModel):
    """Outcome of committing pending field renames."""

    ok: bool
    applied: int = 0
    collisions: list[str] = Field(default_factory=list)


class EditorChangeKind(str, Enum):
    """Mutations an editor session reports to its change sink."""

    loaded = "loaded"
    value_merged = "value_merged"
    value_overwritten = "value_overwritten"
    stage_added = "stage_added"
    stage_deleted = "stage_deleted"
    stage_renamed = "stage_renamed"
    stage_updated = "stage_updated"
    stage_selected = "stage_selected"
    initial_stage_set = "initial_stage_set"
    node_moved = "node_moved"
    field_renames_committed = "field_renames_committed"
    saved = "saved"


class EditorChange(BaseModel):
    """A single mutation applied to a working copy."""

    model_config = {"extra": "forbid"}

    flow_id: str
    sequence: int  # monotonic within a session
    timestamp: str
    kind: EditorChangeKind
    stage_slug: str | None = None
    details: dict = Field(default_factory=dict)
