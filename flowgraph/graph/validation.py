"""Static structural checks for a flow graph.

Issues are advisory: they are shown next to the canvas and never block an
edit. Whether any of them blocks a save is up to the persistence side.
"""

from flowgraph.models.flow_graph import GraphEdge, GraphIssue, GraphNode, IssueType

# message templates, keyed by issue kind; pass a translated copy to validate_graph
DEFAULT_MESSAGES = {
    "no_initial": "Initial stage is not set",
    "initial_missing": "Initial stage points to a non-existent node",
    "edge_missing": "Edge points to missing stage: {stage}",
    "unreachable": "Unreachable stage: {stage}",
}


def reachable_from(initial_stage: str, edges: list[GraphEdge]) -> set[str]:
    """Every slug reachable from the initial stage, the initial stage included."""
    visited: set[str] = set()
    stack = [initial_stage]
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        for edge in edges:
            if edge.source == current and edge.target not in visited:
                stack.append(edge.target)
    return visited


def validate_graph(
    nodes: list[GraphNode],
    edges: list[GraphEdge],
    initial: str | None = None,
    messages: dict[str, str] | None = None,
) -> list[GraphIssue]:
    """Check the initial stage, dangling edges and reachability.

    Issues come out in rule order, then in edge/node order within a rule.
    Dangling-edge ids only use the (source, target) pair, so parallel edges
    of different kinds to the same missing stage share an id.
    """
    text = {**DEFAULT_MESSAGES, **(messages or {})}
    issues: list[GraphIssue] = []
    node_ids = {node.stage_slug for node in nodes}

    if not initial:
        issues.append(GraphIssue(id="no-initial", type=IssueType.error, message=text["no_initial"]))
    elif initial not in node_ids:
        issues.append(GraphIssue(
            id="initial-missing",
            type=IssueType.error,
            message=text["initial_missing"],
            stage_slug=initial,
        ))

    for edge in edges:
        if edge.target not in node_ids:
            issues.append(GraphIssue(
                id=f"edge-missing-{edge.source}->{edge.target}",
                type=IssueType.error,
                message=text["edge_missing"].format(stage=edge.target),
                stage_slug=edge.source,
            ))

    if initial and initial in node_ids:
        visited = reachable_from(initial, edges)
        for node in nodes:
            if node.stage_slug not in visited:
                issues.append(GraphIssue(
                    id=f"unreach-{node.stage_slug}",
                    type=IssueType.warning,
                    message=text["unreachable"].format(stage=node.stage_slug),
                    stage_slug=node.stage_slug,
                ))

    return issues
