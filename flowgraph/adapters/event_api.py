"""Change emission for editor sessions.

A session reports each mutation it applies to an emitter; the emitter stamps
it with a sequence number and timestamp and hands it to the sink. Without a
sink nothing is recorded.
"""

from flowgraph.adapters.sinks import ChangeSink
from flowgraph.models.editor_state import EditorChange, EditorChangeKind
from flowgraph.utils.identifiers import utc_timestamp


class ChangeEmitter:
    """Emit EditorChange records for one working copy."""

    def __init__(self, flow_id: str, sink: ChangeSink | None = None) -> None:
        self.flow_id = flow_id
        self.sink = sink
        self._sequence = 0

    def _next_sequence(self) -> int:
        """Get the next sequence number."""
        seq = self._sequence
        self._sequence += 1
        return seq

    def emit(
        self,
        kind: EditorChangeKind,
        stage_slug: str | None = None,
        details: dict | None = None,
    ) -> EditorChange | None:
        """Emit a change; returns None when no sink is attached."""
        if self.sink is None:
            return None
        change = EditorChange(
            flow_id=self.flow_id,
            sequence=self._next_sequence(),
            timestamp=utc_timestamp(),
            kind=kind,
            stage_slug=stage_slug,
            details=details or {},
        )
        self.sink.append(change)
        return change
