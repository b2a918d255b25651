"""Derive the canvas graph from a stage map."""

from flowgraph.models.flow_definition import StageDefinition
from flowgraph.models.flow_graph import GraphEdge, GraphEdgeKind, GraphNode


def stage_edges(stage_slug: str, stage: StageDefinition) -> list[GraphEdge]:
    """Outgoing edges of a single stage, in definition order."""
    next_stage = stage.next_stage
    if next_stage is None:
        return []
    if isinstance(next_stage, str):
        return [GraphEdge(source=stage_slug, target=next_stage, kind=GraphEdgeKind.fixed)]

    edges = [GraphEdge(source=stage_slug, target=next_stage.fallback, kind=GraphEdgeKind.fallback)]
    for item in next_stage.conditional:
        edges.append(GraphEdge(source=stage_slug, target=item.if_true, kind=GraphEdgeKind.conditional))
        if item.if_false:
            edges.append(GraphEdge(source=stage_slug, target=item.if_false, kind=GraphEdgeKind.conditional))
    return edges


def definition_to_graph(
    stages: dict[str, StageDefinition],
) -> tuple[list[GraphNode], list[GraphEdge]]:
    """Build one node per stage and one edge per transition target.

    Nodes start at the origin; placing them is the layout step's job.
    Redundant transitions are kept as duplicate edges.
    """
    nodes: list[GraphNode] = []
    edges: list[GraphEdge] = []

    for stage_slug, stage in stages.items():
        nodes.append(GraphNode(stage_slug=stage_slug, x=0, y=0, is_final=stage.is_final))
        edges.extend(stage_edges(stage_slug, stage))

    return nodes, edges
