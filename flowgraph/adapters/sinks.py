"""Change sinks for editor sessions."""

from pathlib import Path
from typing import Protocol

from flowgraph.models.editor_state import EditorChange


class ChangeSink(Protocol):
    """Protocol for receiving editor changes."""

    def append(self, change: EditorChange) -> None:
        """Append a change to the sink."""
        ...


class ListSink:
    """Stores changes in a list."""

    def __init__(self) -> None:
        self.changes: list[EditorChange] = []

    def append(self, change: EditorChange) -> None:
        """Append a change to the list."""
        self.changes.append(change)

    def clear(self) -> None:
        """Clear all changes."""
        self.changes.clear()


class FileSink:
    """Writes changes to a JSONL file, one edit log per session."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, change: EditorChange) -> None:
        """Append a change to the file."""
        with open(self.path, "a") as f:
            f.write(change.model_dump_json() + "\n")
