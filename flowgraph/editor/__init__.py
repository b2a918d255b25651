"""Editor sessions over a flow's working copy."""

from flowgraph.editor.session import EditorSession

__all__ = ["EditorSession"]
