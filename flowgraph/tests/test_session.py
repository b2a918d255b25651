"""Tests for the editor session mutation protocol."""

import pytest

from flowgraph.adapters.sinks import FileSink, ListSink
from flowgraph.editor.session import EditorSession
from flowgraph.graph.layout import X_GAP, X_START, Y_GAP, Y_START
from flowgraph.models.editor_state import EditorChange, EditorChangeKind
from flowgraph.models.flow_definition import FlowRecord
from flowgraph.models.flow_graph import GraphEdgeKind


def sample_flow() -> FlowRecord:
    """Four stages: s1 -> s2, s2 branches to s3/s4, s3 and s4 are final."""
    return FlowRecord.model_validate({
        "id": "flow-1",
        "name": "Sample",
        "slug": "sample",
        "version": 3,
        "definition": {
            "stages": {
                "s1": {"description": "Start", "fieldsToCollect": ["email"], "nextStage": "s2"},
                "s2": {
                    "nextStage": {
                        "fallback": "s3",
                        "conditional": [{"condition": "x>1", "ifTrue": "s4", "ifFalse": "s3"}],
                    },
                },
                "s3": {},
                "s4": {},
            },
            "fields": {"email": {"type": "string", "description": "Email"}},
            "config": {"initialStage": "s1"},
        },
    })


def flow_with_stages(*slugs: str) -> FlowRecord:
    return FlowRecord.model_validate({
        "id": "flow-2",
        "name": "Numbered",
        "slug": "numbered",
        "definition": {
            "stages": {slug: {} for slug in slugs},
            "config": {"initialStage": slugs[0] if slugs else None},
        },
    })


def _edges(session: EditorSession) -> list[tuple[str, str, GraphEdgeKind]]:
    return [(e.source, e.target, e.kind) for e in session.state.graph_edges]


def _node(session: EditorSession, slug: str):
    return next(n for n in session.state.graph_nodes if n.stage_slug == slug)


@pytest.fixture
def session() -> EditorSession:
    return EditorSession(sample_flow())


class TestLoad:
    """Test building the working copy."""

    def test_derives_graph_layout_and_issues(self, session):
        """Loading should derive nodes and edges, lay them out and validate."""
        state = session.state
        assert [n.stage_slug for n in state.graph_nodes] == ["s1", "s2", "s3", "s4"]
        assert len(state.graph_edges) == 4
        assert state.graph_issues == []
        assert (_node(session, "s1").x, _node(session, "s1").y) == (X_START, Y_START)
        assert (_node(session, "s4").x, _node(session, "s4").y) == (
            X_START + 2 * X_GAP,
            Y_START + Y_GAP,
        )

    def test_fresh_state(self, session):
        """A fresh working copy is clean with nothing selected or pending."""
        assert session.touched is False
        assert session.state.selected_stage is None
        assert session.state.pending_field_slug_edits == {}
        assert session.state.field_renames == {}

    def test_working_copy_is_detached(self):
        """Edits should not leak back into the record the session was built from."""
        flow = sample_flow()
        session = EditorSession(flow)
        session.add_stage()
        session.set_initial_stage("s2")
        assert "stage_1" not in flow.definition.stages
        assert flow.definition.config.initial_stage == "s1"

    def test_issues_reported_on_load(self):
        """Structural problems should be present right after loading."""
        flow = sample_flow()
        flow.definition.config.initial_stage = "gone"
        session = EditorSession(flow)
        assert [i.id for i in session.state.graph_issues] == ["initial-missing"]

    def test_load_replaces_everything(self, session):
        """load() should discard edits, selection and pending renames."""
        session.add_stage()
        session.stage_pending_rename("email", "mail")
        session.load(sample_flow())
        assert "stage_1" not in session.definition.stages
        assert session.state.selected_stage is None
        assert session.state.pending_field_slug_edits == {}
        assert session.touched is False


class TestAddStage:
    """Test inserting new stages."""

    def test_first_free_slug_and_position(self, session):
        """Fifth node goes to the second slot of the second row."""
        slug = session.add_stage()
        assert slug == "stage_1"
        node = _node(session, slug)
        assert (node.x, node.y) == (80 + 240, 80 + 160)
        assert node.is_final is True

    def test_sixth_stage_position(self):
        """With stage_1..stage_5 present the new stage is stage_6 at (560, 240)."""
        session = EditorSession(flow_with_stages(*[f"stage_{i}" for i in range(1, 6)]))
        slug = session.add_stage()
        assert slug == "stage_6"
        node = _node(session, slug)
        assert (node.x, node.y) == (560, 240)

    def test_fills_lowest_gap(self):
        """A deleted number should be reused first."""
        session = EditorSession(flow_with_stages("stage_1", "stage_3"))
        assert session.add_stage() == "stage_2"

    def test_new_stage_is_empty_final_and_selected(self, session):
        """The new stage has no fields, no transition and becomes the selection."""
        edges_before = _edges(session)
        slug = session.add_stage()
        stage = session.definition.stages[slug]
        assert stage.description == ""
        assert stage.fields_to_collect == []
        assert stage.is_final
        assert session.state.selected_stage == slug
        assert session.touched is True
        assert _edges(session) == edges_before
        assert list(session.definition.stages)[-1] == slug


class TestDeleteStage:
    """Test removing stages."""

    def test_removes_stage_node_and_incident_edges(self, session):
        """Every edge into or out of the stage should go with it."""
        assert session.delete_stage("s2") is True
        assert "s2" not in session.definition.stages
        assert [n.stage_slug for n in session.state.graph_nodes] == ["s1", "s3", "s4"]
        assert _edges(session) == []
        assert session.touched is True

    def test_references_elsewhere_are_left_alone(self, session):
        """s1 still points at s2; nothing rewrites it."""
        session.delete_stage("s2")
        assert session.definition.stages["s1"].next_stage == "s2"

    def test_revalidation_after_delete(self, session):
        """Stages only reachable through the deleted one become unreachable."""
        session.delete_stage("s2")
        assert [i.id for i in session.validate()] == ["unreach-s3", "unreach-s4"]

    def test_dangling_reference_surfaces_on_reload(self, session):
        """A full derivation from the edited definition shows the dangling edge."""
        session.delete_stage("s2")
        session.load(session.flow)
        ids = [i.id for i in session.state.graph_issues]
        assert "edge-missing-s1->s2" in ids

    def test_clears_selection_of_deleted_stage(self, session):
        session.select_stage("s3")
        session.delete_stage("s3")
        assert session.state.selected_stage is None

    def test_keeps_unrelated_selection(self, session):
        session.select_stage("s1")
        session.delete_stage("s3")
        assert session.state.selected_stage == "s1"

    def test_unknown_stage_is_a_no_op(self, session):
        assert session.delete_stage("nope") is False
        assert session.touched is False
        assert len(session.state.graph_nodes) == 4


class TestChangeStageSlug:
    """Test re-keying a stage."""

    def test_relabels_stage_node_and_edges(self, session):
        """The stage keeps its map position; node and edges follow the new slug."""
        assert session.change_stage_slug("s2", "middle") is True
        assert list(session.definition.stages) == ["s1", "middle", "s3", "s4"]
        assert [n.stage_slug for n in session.state.graph_nodes] == ["s1", "middle", "s3", "s4"]
        assert _edges(session) == [
            ("s1", "middle", GraphEdgeKind.fixed),
            ("middle", "s3", GraphEdgeKind.fallback),
            ("middle", "s4", GraphEdgeKind.conditional),
            ("middle", "s3", GraphEdgeKind.conditional),
        ]
        assert session.touched is True

    def test_other_references_are_not_rewritten(self, session):
        """Transitions naming the old slug stay as they were."""
        session.change_stage_slug("s2", "middle")
        assert session.definition.stages["s1"].next_stage == "s2"

    def test_initial_stage_pointer_is_not_rewritten(self, session):
        session.change_stage_slug("s1", "start")
        assert session.definition.config.initial_stage == "s1"
        assert [i.id for i in session.validate()] == ["initial-missing"]

    def test_selection_follows(self, session):
        session.select_stage("s2")
        session.change_stage_slug("s2", "middle")
        assert session.state.selected_stage == "middle"

    def test_position_is_kept(self, session):
        before = (_node(session, "s3").x, _node(session, "s3").y)
        session.change_stage_slug("s3", "end")
        assert (_node(session, "end").x, _node(session, "end").y) == before

    @pytest.mark.parametrize("old, new", [
        ("s2", "s3"),  # collision
        ("s2", ""),
        ("s2", "s2"),
        ("ghost", "x"),
    ])
    def test_refused(self, session, old, new):
        """Collisions, blank or unchanged slugs and unknown stages are refused."""
        assert session.change_stage_slug(old, new) is False
        assert list(session.definition.stages) == ["s1", "s2", "s3", "s4"]
        assert session.touched is False


class TestUpdateStage:
    """Test shallow stage updates."""

    def test_transition_change_recomputes_edges(self, session):
        """Setting nextStage should rebuild the edge list."""
        assert session.update_stage("s3", {"nextStage": "s1"}) is True
        assert ("s3", "s1", GraphEdgeKind.fixed) in _edges(session)
        assert len(session.state.graph_edges) == 5

    def test_python_key_also_recomputes(self, session):
        session.update_stage("s4", {"next_stage": "s1"})
        assert ("s4", "s1", GraphEdgeKind.fixed) in _edges(session)

    def test_is_final_stays_stale(self, session):
        """Node is_final flags only refresh on a full derivation."""
        session.update_stage("s3", {"nextStage": "s1"})
        assert _node(session, "s3").is_final is True
        session.load(session.flow)
        assert _node(session, "s3").is_final is False

    def test_clearing_transition_removes_edges(self, session):
        session.update_stage("s1", {"nextStage": None})
        assert all(e.source != "s1" for e in session.state.graph_edges)
        assert session.definition.stages["s1"].is_final

    def test_other_keys_leave_edges(self, session):
        """Updates that do not touch the transition keep the same edge list."""
        edges = session.state.graph_edges
        session.update_stage("s1", {"description": "Hello", "prompt": "Say hi"})
        assert session.state.graph_edges is edges
        stage = session.definition.stages["s1"]
        assert stage.description == "Hello"
        assert stage.prompt == "Say hi"
        assert stage.fields_to_collect == ["email"]

    def test_update_is_shallow(self, session):
        """A new nested value replaces the old one whole."""
        session.update_stage("s2", {"nextStage": {"fallback": "s4"}})
        assert session.definition.stages["s2"].next_stage.conditional == []
        assert _edges(session)[1:] == [("s2", "s4", GraphEdgeKind.fallback)]

    def test_unknown_stage(self, session):
        assert session.update_stage("ghost", {"description": "x"}) is False
        assert "ghost" not in session.definition.stages
        assert session.touched is False


class TestValueEdits:
    """Test flow-level merge and overwrite."""

    def test_merge_value_is_deep(self, session):
        session.merge_value({"definition": {"config": {"initialStage": "s2"}}})
        assert session.definition.config.initial_stage == "s2"
        assert list(session.definition.stages) == ["s1", "s2", "s3", "s4"]
        assert session.definition.fields["email"].description == "Email"
        assert session.touched is True

    def test_merge_into_field(self, session):
        session.merge_value({"definition": {"fields": {"email": {"minLength": 5}}}})
        field = session.definition.fields["email"]
        assert field.min_length == 5
        assert field.description == "Email"

    def test_identity_and_version_are_read_only(self, session):
        session.merge_value({"id": "other", "version": 99, "name": "Renamed"})
        assert session.flow.id == "flow-1"
        assert session.flow.version == 3
        assert session.flow.name == "Renamed"

    def test_overwrite_replaces_top_level(self, session):
        session.overwrite_value({"description": "Updated", "version": 1})
        assert session.flow.description == "Updated"
        assert session.flow.version == 3

    def test_set_initial_stage(self, session):
        session.set_initial_stage("s2")
        assert session.definition.config.initial_stage == "s2"
        assert session.touched is True
        assert [i.id for i in session.validate()] == ["unreach-s1"]


class TestSelectionAndCanvas:
    """Test selection and node movement."""

    def test_select_does_not_dirty(self, session):
        session.select_stage("s2")
        assert session.state.selected_stage == "s2"
        session.select_stage(None)
        assert session.state.selected_stage is None
        assert session.touched is False

    def test_move_node(self, session):
        """Moving a node shifts it without dirtying the flow."""
        assert session.move_node("s1", 10, -5) is True
        node = _node(session, "s1")
        assert (node.x, node.y) == (X_START + 10, Y_START - 5)
        assert session.touched is False

    def test_move_unknown_node(self, session):
        assert session.move_node("ghost", 1, 1) is False


class TestIntrospection:
    """Test snapshot and field reference queries."""

    def test_snapshot_is_independent(self, session):
        snap = session.snapshot()
        session.add_stage()
        session.delete_stage("s4")
        assert list(snap.flow.definition.stages) == ["s1", "s2", "s3", "s4"]
        assert len(snap.graph_nodes) == 4
        assert snap.touched is False

    def test_missing_field_refs(self, session):
        session.update_stage("s1", {"fieldsToCollect": ["email", "phone"]})
        assert session.missing_field_refs() == {"s1": ["phone"]}
        assert session.missing_field_refs("s1") == ["phone"]
        assert session.missing_field_refs("s2") == []
        assert session.missing_field_refs("ghost") == []

    def test_validate_stores_issues(self, session):
        session.set_initial_stage(None)
        issues = session.validate()
        assert session.state.graph_issues is issues
        assert [i.id for i in issues] == ["no-initial"]

    def test_repr(self, session):
        assert repr(session) == "EditorSession(flow_id='flow-1', stages=4, touched=False)"


class TestChangeEvents:
    """Test mutation reporting through change sinks."""

    def test_changes_are_sequenced(self):
        sink = ListSink()
        session = EditorSession(sample_flow(), change_sink=sink)
        slug = session.add_stage()
        session.update_stage(slug, {"nextStage": "s1"})
        session.delete_stage(slug)

        kinds = [c.kind for c in sink.changes]
        assert kinds == [
            EditorChangeKind.loaded,
            EditorChangeKind.stage_added,
            EditorChangeKind.stage_selected,
            EditorChangeKind.stage_updated,
            EditorChangeKind.stage_deleted,
        ]
        assert [c.sequence for c in sink.changes] == [0, 1, 2, 3, 4]
        assert all(c.flow_id == "flow-1" for c in sink.changes)
        assert sink.changes[1].stage_slug == slug

    def test_refused_edits_are_not_reported(self):
        sink = ListSink()
        session = EditorSession(sample_flow(), change_sink=sink)
        sink.clear()
        session.delete_stage("ghost")
        session.change_stage_slug("s1", "s2")
        assert sink.changes == []

    def test_rename_details(self):
        sink = ListSink()
        session = EditorSession(sample_flow(), change_sink=sink)
        session.change_stage_slug("s2", "middle")
        change = sink.changes[-1]
        assert change.kind == EditorChangeKind.stage_renamed
        assert change.stage_slug == "middle"
        assert change.details == {"from": "s2"}

    def test_file_sink_writes_jsonl(self, tmp_path):
        path = tmp_path / "logs" / "edits.jsonl"
        session = EditorSession(sample_flow(), change_sink=FileSink(path))
        session.move_node("s1", 5, 5)

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        change = EditorChange.model_validate_json(lines[1])
        assert change.kind == EditorChangeKind.node_moved
        assert change.details == {"dx": 5, "dy": 5}
