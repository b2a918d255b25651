"""Adapters for observing editor sessions."""

from flowgraph.adapters.event_api import ChangeEmitter
from flowgraph.adapters.sinks import ChangeSink, FileSink, ListSink

__all__ = [
    "ChangeSink",
    "ListSink",
    "FileSink",
    "ChangeEmitter",
]
