"""Editor session: the mutation protocol over a flow's working copy.

One session per open editor. The session owns an EditorState, applies every
edit synchronously and in place, and keeps the derived graph in step where an
edit changes it. Structural issues are only recomputed on load and when the
caller asks for it through ``validate()``.

Usage:
    session = EditorSession.open(client, flow_id)
    slug = session.add_stage()
    session.update_stage(slug, {"nextStage": "intro"})
    session.validate()
    session.save(client)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from flowgraph.adapters.event_api import ChangeEmitter
from flowgraph.adapters.sinks import ChangeSink
from flowgraph.graph.deriver import definition_to_graph
from flowgraph.graph.layout import ensure_graph_layout
from flowgraph.graph.validation import validate_graph
from flowgraph.models.editor_state import EditorChangeKind, EditorState, RenameResult
from flowgraph.models.flow_definition import FlowDefinition, FlowRecord, StageDefinition
from flowgraph.models.flow_graph import GraphIssue, GraphNode
from flowgraph.utils.identifiers import next_free_slug
from flowgraph.utils.merge import merge_model, shallow_update

if TYPE_CHECKING:
    from flowgraph.sdk.flow_client import FlowClient

logger = logging.getLogger(__name__)

# stage placement for freshly added stages: three per row
NEW_STAGE_X = 80
NEW_STAGE_Y = 80
NEW_STAGE_X_GAP = 240
NEW_STAGE_Y_GAP = 160
NEW_STAGES_PER_ROW = 3

# identity and version stamp are owned by storage
_READ_ONLY_KEYS = {"id", "version"}

_NEXT_STAGE_KEYS = {"next_stage", "nextStage"}


def _clean_slug(value: Any) -> str:
    return str(value if value is not None else "").strip()


class EditorSession:
    """Working copy of one flow plus the operations that edit it."""

    def __init__(self, flow: FlowRecord, change_sink: ChangeSink | None = None) -> None:
        self._emitter = ChangeEmitter(flow.id, change_sink)
        self.state = self._build_state(flow)
        self._emitter.emit(EditorChangeKind.loaded, details={"version": flow.version})

    @classmethod
    def open(
        cls,
        client: FlowClient,
        flow_id: str,
        change_sink: ChangeSink | None = None,
    ) -> EditorSession:
        """Fetch a flow and start a session on it.

        The fetch happens before any state exists, so a failed load never
        leaves a half-built session behind.
        """
        return cls(client.get_flow(flow_id), change_sink)

    # --- loading and snapshots ---

    @staticmethod
    def _build_state(flow: FlowRecord) -> EditorState:
        flow = flow.model_copy(deep=True)
        initial = flow.definition.config.initial_stage
        raw_nodes, edges = definition_to_graph(flow.definition.stages)
        nodes = ensure_graph_layout(raw_nodes, edges, initial)
        return EditorState(
            flow=flow,
            graph_nodes=nodes,
            graph_edges=edges,
            graph_issues=validate_graph(nodes, edges, initial),
            selected_stage=None,
            touched=False,
            pending_field_slug_edits={},
            field_renames={},
        )

    def load(self, flow: FlowRecord) -> None:
        """Replace the working copy with a fresh derivation of ``flow``."""
        self.state = self._build_state(flow)
        self._emitter.flow_id = flow.id
        self._emitter.emit(EditorChangeKind.loaded, details={"version": flow.version})

    def reload(self, client: FlowClient) -> FlowRecord:
        """Re-fetch the flow from storage, discarding local edits."""
        flow = client.get_flow(self.state.flow.id)
        self.load(flow)
        return flow

    def snapshot(self) -> EditorState:
        """Deep copy of the current state; later edits do not affect it."""
        return self.state.model_copy(deep=True)

    @property
    def flow(self) -> FlowRecord:
        return self.state.flow

    @property
    def definition(self) -> FlowDefinition:
        return self.state.flow.definition

    @property
    def touched(self) -> bool:
        return self.state.touched

    # --- diagnostics and introspection ---

    def validate(self, messages: dict[str, str] | None = None) -> list[GraphIssue]:
        """Recompute structural issues for the current graph."""
        self.state.graph_issues = validate_graph(
            self.state.graph_nodes,
            self.state.graph_edges,
            self.definition.config.initial_stage,
            messages,
        )
        return self.state.graph_issues

    def missing_field_refs(self, stage_slug: str | None = None) -> Any:
        """Field slugs collected by stages but absent from the field map.

        With a stage slug returns that stage's list; otherwise a dict of every
        stage that has dangling references.
        """
        if stage_slug is None:
            return self.definition.missing_field_refs()
        stage = self.definition.stages.get(stage_slug)
        if stage is None:
            return []
        return [f for f in stage.fields_to_collect if f not in self.definition.fields]

    # --- whole-flow edits ---

    def merge_value(self, partial: dict[str, Any]) -> None:
        """Deep-merge a partial flow record into the working copy."""
        partial = {k: v for k, v in partial.items() if k not in _READ_ONLY_KEYS}
        self.state.flow = merge_model(self.state.flow, partial)
        self.state.touched = True
        self._emitter.emit(EditorChangeKind.value_merged, details={"keys": sorted(partial)})

    def overwrite_value(self, partial: dict[str, Any]) -> None:
        """Replace top-level keys of the flow record without merging."""
        partial = {k: v for k, v in partial.items() if k not in _READ_ONLY_KEYS}
        self.state.flow = shallow_update(self.state.flow, partial)
        self.state.touched = True
        self._emitter.emit(EditorChangeKind.value_overwritten, details={"keys": sorted(partial)})

    # --- stage edits ---

    def add_stage(self) -> str:
        """Insert an empty final stage under the lowest free ``stage_N`` slug."""
        stages = self.definition.stages
        stage_slug = next_free_slug(stages)
        stages[stage_slug] = StageDefinition(description="", fields_to_collect=[])

        count = len(self.state.graph_nodes)
        self.state.graph_nodes.append(GraphNode(
            stage_slug=stage_slug,
            is_final=True,
            x=NEW_STAGE_X + (count % NEW_STAGES_PER_ROW) * NEW_STAGE_X_GAP,
            y=NEW_STAGE_Y + (count // NEW_STAGES_PER_ROW) * NEW_STAGE_Y_GAP,
        ))
        self.state.touched = True
        self._emitter.emit(EditorChangeKind.stage_added, stage_slug)

        self.select_stage(stage_slug)
        return stage_slug

    def set_initial_stage(self, stage_slug: str) -> None:
        self.definition.config.initial_stage = stage_slug
        self.state.touched = True
        self._emitter.emit(EditorChangeKind.initial_stage_set, stage_slug)

    def delete_stage(self, stage_slug: str) -> bool:
        """Remove a stage, its node, and every edge into or out of it.

        Transitions in other stages that named it are left as they are and
        show up as dangling edges on the next full load.
        """
        if stage_slug not in self.definition.stages:
            logger.debug("delete_stage: no stage %r", stage_slug)
            return False

        del self.definition.stages[stage_slug]
        self.state.graph_nodes = [n for n in self.state.graph_nodes if n.stage_slug != stage_slug]
        self.state.graph_edges = [
            e for e in self.state.graph_edges
            if e.source != stage_slug and e.target != stage_slug
        ]
        if self.state.selected_stage == stage_slug:
            self.state.selected_stage = None
        self.state.touched = True
        self._emitter.emit(EditorChangeKind.stage_deleted, stage_slug)
        return True

    def select_stage(self, stage_slug: str | None) -> None:
        self.state.selected_stage = stage_slug
        self._emitter.emit(EditorChangeKind.stage_selected, stage_slug)

    def move_node(self, stage_slug: str, dx: float, dy: float) -> bool:
        """Nudge a node on the canvas. Positions are not part of the flow."""
        for node in self.state.graph_nodes:
            if node.stage_slug == stage_slug:
                node.x += dx
                node.y += dy
                self._emitter.emit(EditorChangeKind.node_moved, stage_slug, {"dx": dx, "dy": dy})
                return True
        logger.debug("move_node: no node %r", stage_slug)
        return False

    def change_stage_slug(self, stage_slug: str, new_slug: str) -> bool:
        """Re-key a stage and relabel its node and edges.

        Other stages' transitions and the initial-stage pointer that still
        name the old slug are not rewritten; they become dangling references.
        Refuses (returns False) when the old slug is unknown, the new slug is
        empty or unchanged, or another stage already uses it.
        """
        stages = self.definition.stages
        if stage_slug not in stages:
            logger.debug("change_stage_slug: no stage %r", stage_slug)
            return False
        if not new_slug or new_slug == stage_slug:
            return False
        if new_slug in stages:
            logger.warning("change_stage_slug: %r already exists, keeping %r", new_slug, stage_slug)
            return False

        # rebuild to keep the stage's position in the map
        self.definition.stages = {
            (new_slug if slug == stage_slug else slug): stage
            for slug, stage in stages.items()
        }
        for node in self.state.graph_nodes:
            if node.stage_slug == stage_slug:
                node.stage_slug = new_slug
        for edge in self.state.graph_edges:
            if edge.source == stage_slug:
                edge.source = new_slug
            if edge.target == stage_slug:
                edge.target = new_slug
        if self.state.selected_stage == stage_slug:
            self.state.selected_stage = new_slug

        self.state.touched = True
        self._emitter.emit(EditorChangeKind.stage_renamed, new_slug, {"from": stage_slug})
        return True

    def update_stage(self, stage_slug: str, partial: dict[str, Any]) -> bool:
        """Shallow-merge ``partial`` into a stage.

        Changing the transition recomputes every edge. Node ``is_final`` flags
        are left as they were until the next full load.
        """
        stages = self.definition.stages
        if stage_slug not in stages:
            logger.debug("update_stage: no stage %r", stage_slug)
            return False

        stages[stage_slug] = shallow_update(stages[stage_slug], partial)
        if _NEXT_STAGE_KEYS & partial.keys():
            _, self.state.graph_edges = definition_to_graph(stages)

        self.state.touched = True
        self._emitter.emit(EditorChangeKind.stage_updated, stage_slug, {"keys": sorted(partial)})
        return True

    # --- field slug renames ---

    def stage_pending_rename(self, from_slug: str, to_slug: str) -> None:
        """Record a tentative field rename; blank or no-op entries clear it."""
        source = _clean_slug(from_slug)
        target = _clean_slug(to_slug)
        if not source:
            return

        pending = self.state.pending_field_slug_edits
        if not target or target == source:
            pending.pop(source, None)
            return

        pending[source] = target
        self.state.touched = True

    def commit_pending_renames(self) -> RenameResult:
        """Apply every pending field rename at once, or none of them.

        Rejects the batch when two renames share a target, or a target is an
        existing field that is not itself being renamed away.
        """
        entries = [
            (_clean_slug(source), _clean_slug(target))
            for source, target in self.state.pending_field_slug_edits.items()
        ]
        entries = [(s, t) for s, t in entries if s and t and s != t]

        if not entries:
            self.state.pending_field_slug_edits = {}
            return RenameResult(ok=True, applied=0)

        current_fields = self.definition.fields
        renaming_from = {source for source, _ in entries}
        targets: set[str] = set()
        collisions: list[str] = []

        for source, target in entries:
            if target in targets:
                collisions.append(f"'{source}' -> '{target}' (duplicate target)")
            targets.add(target)
            if target in current_fields and target not in renaming_from:
                collisions.append(f"'{source}' -> '{target}' (already exists)")

        if collisions:
            logger.info("field rename rejected: %s", "; ".join(collisions))
            return RenameResult(ok=False, collisions=collisions)

        rename_map = dict(entries)
        new_fields = {rename_map.get(slug, slug): field for slug, field in current_fields.items()}

        new_stages = {}
        for stage_slug, stage in self.definition.stages.items():
            mapped = [rename_map.get(f, f) for f in stage.fields_to_collect]
            # dict.fromkeys dedupes and keeps first occurrence order
            kept = [f for f in dict.fromkeys(mapped) if f in new_fields]
            new_stages[stage_slug] = stage.model_copy(update={"fields_to_collect": kept})

        self.definition.fields = new_fields
        self.definition.stages = new_stages
        self.state.pending_field_slug_edits = {}
        self.record_field_renames(rename_map)
        self.state.touched = True

        self._emitter.emit(EditorChangeKind.field_renames_committed, details={"renames": rename_map})
        return RenameResult(ok=True, applied=len(entries))

    def record_field_renames(self, renames: dict[str, str]) -> None:
        """Fold renames into the audit map, collapsing chains.

        A->B followed by B->C leaves A->C. A chain that returns to its start
        drops the entry altogether. Keys are only ever original slugs: a
        slug that is the current end of an existing entry is not recorded as
        a new source. Renames within one call apply together, so a swap
        records both directions.
        """
        batch = {}
        for raw_source, raw_target in (renames or {}).items():
            source = _clean_slug(raw_source)
            target = _clean_slug(raw_target)
            if source and target and source != target:
                batch[source] = target
        if not batch:
            return

        previous = self.state.field_renames
        audit = {original: batch.get(current, current) for original, current in previous.items()}
        intermediate = set(previous.values())
        audit.update({
            source: target for source, target in batch.items() if source not in intermediate
        })
        self.state.field_renames = {
            original: current for original, current in audit.items() if original != current
        }
        self.state.touched = True

    def clear_recorded_field_renames(self) -> None:
        self.state.field_renames = {}

    # --- persistence ---

    def save(self, client: FlowClient, include_renames: bool = True) -> FlowRecord:
        """Write a snapshot of the flow through the client.

        Errors from the client propagate and leave the working copy exactly
        as it was. On success the local version follows the stored one, the
        dirty flag is cleared and the rename audit, now migrated, is dropped.
        """
        snapshot = self.state.flow.model_copy(deep=True)
        renames = dict(self.state.field_renames) if include_renames else {}

        saved = client.save_flow(snapshot, field_renames=renames or None)

        self.state.flow.version = saved.version
        self.state.touched = False
        self.state.field_renames = {}
        self._emitter.emit(EditorChangeKind.saved, details={"version": saved.version})
        return saved

    def __repr__(self) -> str:
        return (
            f"EditorSession(flow_id={self.state.flow.id!r}, "
            f"stages={len(self.definition.stages)}, touched={self.state.touched})"
        )
