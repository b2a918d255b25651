"""Deterministic auto-layout for flow graphs.

Stages are placed in columns by their BFS distance from the initial stage.
Stages the initial stage cannot reach are fanned out four per column after
the last reachable column.
"""

import logging
import math
from collections import defaultdict, deque

from flowgraph.models.flow_graph import GraphEdge, GraphNode

logger = logging.getLogger(__name__)

X_START = 30
Y_START = 40
X_GAP = 320
Y_GAP = 160

# unreachable stages per extra column
UNREACHABLE_PER_COLUMN = 4


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _position_key(node: GraphNode) -> tuple[int, int]:
    return _round_half_up(node.x), _round_half_up(node.y)


def has_overlaps(nodes: list[GraphNode]) -> bool:
    """True if two nodes share the same rounded position."""
    seen: set[tuple[int, int]] = set()
    for node in nodes:
        key = _position_key(node)
        if key in seen:
            return True
        seen.add(key)
    return False


def needs_layout(nodes: list[GraphNode]) -> bool:
    """Decide whether stored positions should be replaced.

    Manual placement wins unless every node still sits at the origin or
    nodes are stacked on top of each other.
    """
    all_at_origin = len(nodes) > 1 and all(n.x == 0 and n.y == 0 for n in nodes)
    return all_at_origin or has_overlaps(nodes)


def compute_levels(
    nodes: list[GraphNode],
    edges: list[GraphEdge],
    initial_stage: str | None,
) -> dict[str, int]:
    """Column index source for every slug: BFS hop distance from the initial stage."""
    outgoing: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        outgoing[edge.source].append(edge.target)

    level: dict[str, int] = {}
    if initial_stage:
        level[initial_stage] = 0
        queue = deque([initial_stage])
        while queue:
            current = queue.popleft()
            for target in outgoing.get(current, []):
                if target not in level:
                    level[target] = level[current] + 1
                    queue.append(target)

    # dangling targets reached by BFS count towards the last reachable column
    max_level = max(level.values(), default=0)
    extra_index = 0
    for node in nodes:
        if node.stage_slug not in level:
            level[node.stage_slug] = max_level + 1 + extra_index // UNREACHABLE_PER_COLUMN
            extra_index += 1

    return level


def auto_layout(
    nodes: list[GraphNode],
    edges: list[GraphEdge],
    initial_stage: str | None,
) -> list[GraphNode]:
    """Place nodes on a grid, one column per BFS level.

    Returns new node objects in the input order; only x and y differ.
    """
    if not nodes:
        return []

    level = compute_levels(nodes, edges, initial_stage)

    by_level: dict[int, list[str]] = defaultdict(list)
    for node in nodes:
        by_level[level[node.stage_slug]].append(node.stage_slug)

    positions: dict[str, tuple[int, int]] = {}
    for column, lvl in enumerate(sorted(by_level)):
        for row, slug in enumerate(sorted(by_level[lvl])):
            positions[slug] = (X_START + column * X_GAP, Y_START + row * Y_GAP)

    logger.debug("auto layout placed %d nodes in %d columns", len(nodes), len(by_level))
    return [
        node.model_copy(update={"x": positions[node.stage_slug][0], "y": positions[node.stage_slug][1]})
        for node in nodes
    ]


def ensure_graph_layout(
    nodes: list[GraphNode],
    edges: list[GraphEdge],
    initial_stage: str | None,
) -> list[GraphNode]:
    """Auto-layout when needed, otherwise return the nodes untouched."""
    if needs_layout(nodes):
        return auto_layout(nodes, edges, initial_stage)
    return nodes
