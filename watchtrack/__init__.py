"""
WatchTrack - playback telemetry and resume engine
"""

from .constants import APP_VERSION

__version__ = APP_VERSION

from .app_state import AppState  # noqa: E402
from .watcher import PlayerChannel, SessionWatcher, StoreSink  # noqa: E402
from .web_server import TelemetryServer  # noqa: E402

__all__ = [
    "AppState",
    "PlayerChannel",
    "SessionWatcher",
    "StoreSink",
    "TelemetryServer",
]
