"""
Repository mixins for AppState.

Each mixin encapsulates one table and expects the host class to provide:
    - ``self._get_conn()``  → ``sqlite3.Connection``
    - ``self._write_lock``  → ``threading.Lock`` guarding read-then-write
    - ``self.clock()``      → current Unix seconds
    - ``self.policy``       → ``ProgressWritePolicy`` (progress only)
    - ``self.logger``       → ``logging.Logger``
    - ``self.broadcast(event, data, room=None)``
"""

from .history_repo import HistoryRepositoryMixin
from .progress_repo import ProgressRepositoryMixin
from .skip_window_repo import SkipWindowRepositoryMixin

__all__ = [
    "ProgressRepositoryMixin",
    "HistoryRepositoryMixin",
    "SkipWindowRepositoryMixin",
]
