"""Data model for the graph derived from a flow definition.

Nodes and edges are never stored; they are recomputed from the stage map
whenever a definition is loaded.
"""

from enum import Enum

from pydantic import BaseModel, Field


class GraphEdgeKind(str, Enum):
    """How a stage reaches the edge target."""

    fixed = "fixed"
    conditional = "conditional"
    fallback = "fallback"


class GraphNode(BaseModel):
    """a stage placed on the canvas."""

    model_config = {"populate_by_name": True}

    stage_slug: str = Field(alias="stageSlug")
    x: float = 0
    y: float = 0
    is_final: bool = Field(default=False, alias="isFinal")


class GraphEdge(BaseModel):
    """a directed transition between two stages."""

    model_config = {"populate_by_name": True}

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    kind: GraphEdgeKind


class IssueType(str, Enum):
    error = "error"
    warning = "warning"


class GraphIssue(BaseModel):
    """A structural diagnostic. Advisory only, never blocks an edit."""

    model_config = {"populate_by_name": True}

    id: str
    type: IssueType
    message: str
    stage_slug: str | None = Field(default=None, alias="stageSlug")
