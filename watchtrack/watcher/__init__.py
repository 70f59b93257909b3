"""
Playback session watcher.

- ``channel`` – trusted channel to the embedded player (origin + payload checks)
- ``sinks`` – write targets: in-process store or the HTTP API
- ``session`` – the per-session state machine
"""

from .channel import PlayerChannel, PositionEvent
from .session import SessionState, SessionWatcher, WatcherState
from .sinks import HttpSink, StoreSink, TelemetrySink

__all__ = [
    "PlayerChannel",
    "PositionEvent",
    "SessionState",
    "SessionWatcher",
    "WatcherState",
    "TelemetrySink",
    "StoreSink",
    "HttpSink",
]
