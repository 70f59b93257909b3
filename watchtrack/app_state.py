"""
Application state management using SQLite.
Thread-safe singleton shared by the HTTP routes, the aggregators and
in-process session watchers.
"""
import sqlite3
import threading
from pathlib import Path
from typing import Callable, Optional

from .config import TelemetrySettings
from .constants import DEFAULT_DB_PATH
from .policies import ProgressWritePolicy, get_policy
from .repositories import (
    HistoryRepositoryMixin,
    ProgressRepositoryMixin,
    SkipWindowRepositoryMixin,
)
from .utils import now_ts, setup_logger


class AppState(ProgressRepositoryMixin, HistoryRepositoryMixin, SkipWindowRepositoryMixin):
    """Thread-safe telemetry store backed by SQLite"""

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, db_path: str = None, settings: TelemetrySettings = None):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self, db_path: str = None, settings: TelemetrySettings = None):
        if self._initialized:
            return
        self._initialized = True

        if db_path is None:
            db_path = str(Path(__file__).parent.parent / DEFAULT_DB_PATH)

        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self.settings = settings or TelemetrySettings()
        self.policy: ProgressWritePolicy = get_policy(self.settings.progress_write_policy)
        self.clock: Callable[[], int] = now_ts
        self.logger = setup_logger("app_state", "app_state.log")
        self._local = threading.local()
        self._write_lock = threading.Lock()
        self._socketio = None
        self._init_db()
        self.logger.info("AppState initialized with database: %s", db_path)

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local database connection"""
        if not hasattr(self._local, 'conn') or self._local.conn is None:
            self._local.conn = sqlite3.connect(self.db_path)
            self._local.conn.row_factory = sqlite3.Row
            self._local.conn.execute("PRAGMA journal_mode=WAL")
        return self._local.conn

    def _init_db(self):
        """Initialize database schema"""
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS watch_progress (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                content_id TEXT NOT NULL,
                content_type TEXT NOT NULL,
                progress_seconds INTEGER NOT NULL,
                total_seconds INTEGER NOT NULL,
                last_watched_at INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                UNIQUE (user_id, content_id, content_type)
            );

            CREATE INDEX IF NOT EXISTS idx_watch_progress_recent
                ON watch_progress (user_id, last_watched_at DESC);

            CREATE TABLE IF NOT EXISTS watch_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                content_id TEXT NOT NULL,
                content_type TEXT NOT NULL,
                title TEXT NOT NULL,
                poster_path TEXT,
                watched_at INTEGER NOT NULL,
                progress_seconds INTEGER NOT NULL,
                total_seconds INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_watch_history_recent
                ON watch_history (user_id, watched_at DESC);

            CREATE TABLE IF NOT EXISTS skip_timestamps (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                content_id TEXT NOT NULL,
                content_type TEXT NOT NULL,
                intro_start INTEGER,
                intro_end INTEGER,
                outro_start INTEGER,
                outro_end INTEGER,
                created_at INTEGER NOT NULL,
                UNIQUE (content_id, content_type)
            );
        """)
        conn.commit()

    def set_socketio(self, socketio):
        """Set the SocketIO instance for broadcasting events"""
        self._socketio = socketio

    def broadcast(self, event: str, data: dict, room: Optional[str] = None):
        """Emit to the clients in ``room``, or to every client when ``room`` is None"""
        if self._socketio:
            try:
                self._socketio.emit(event, data, to=room)
            except Exception as e:
                self.logger.debug("Broadcast of %s failed: %s", event, e)

    def ping(self) -> bool:
        """Round-trip the database for the health endpoint."""
        self._get_conn().execute("SELECT 1").fetchone()
        return True

    def close(self):
        """Close database connection for current thread"""
        if hasattr(self._local, 'conn') and self._local.conn:
            self._local.conn.close()
            self._local.conn = None

    @classmethod
    def reset(cls):
        """Reset singleton (for testing)"""
        with cls._lock:
            if cls._instance and hasattr(cls._instance, '_local'):
                cls._instance.close()
            cls._instance = None
