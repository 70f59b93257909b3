"""
Test fixtures and configuration for pytest
"""

from typing import Dict, List, Tuple

import pytest

from watchtrack.app_state import AppState
from watchtrack.errors import CatalogError
from watchtrack.models import CatalogItem
from watchtrack.observability.errors import ErrorTracker
from watchtrack.observability.metrics import MetricsCollector

NOW = 1_700_000_000


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path_factory, monkeypatch):
    """Keep log files out of the project tree and reset process singletons."""
    monkeypatch.setenv("LOG_DIR", str(tmp_path_factory.getbasetemp() / "logs"))
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    monkeypatch.delenv("TRUSTED_PLAYER_HOSTS", raising=False)
    MetricsCollector.reset()
    ErrorTracker.reset()
    yield
    MetricsCollector.reset()
    ErrorTracker.reset()


class FakeClock:
    """Deterministic replacement for ``AppState.clock``."""

    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


class FakeCatalog:
    """In-memory stand-in for ``TMDBClient``."""

    enabled = True

    def __init__(self):
        self.details: Dict[Tuple[str, str], CatalogItem] = {}
        self.trending: List[CatalogItem] = []
        self.by_genre: Dict[Tuple[str, int], List[CatalogItem]] = {}
        self.fail_details = set()
        self.fail_trending = False
        self.fail_genres = set()
        self.calls = []

    def add(self, content_type, content_id, title, genre_ids=(), poster_path=None) -> CatalogItem:
        item = CatalogItem(
            content_id=str(content_id),
            content_type=content_type,
            title=title,
            poster_path=poster_path,
            genre_ids=list(genre_ids),
        )
        self.details[item.key] = item
        return item

    def get_details(self, content_type, content_id):
        self.calls.append(("details", content_type, content_id))
        if (content_type, content_id) in self.fail_details:
            raise CatalogError("details unavailable")
        try:
            return self.details[(content_type, content_id)]
        except KeyError:
            raise CatalogError("not in catalog") from None

    def get_trending(self, media_type="all", time_window="week"):
        self.calls.append(("trending", media_type, time_window))
        if self.fail_trending:
            raise CatalogError("trending unavailable")
        return list(self.trending)

    def discover_by_genre(self, content_type, genre_id, page=1):
        self.calls.append(("genre", content_type, genre_id))
        if genre_id in self.fail_genres:
            raise CatalogError("discover unavailable")
        return list(self.by_genre.get((content_type, genre_id), []))


def make_items(content_type, start, count, genre_ids=()):
    return [
        CatalogItem(content_id=str(i), content_type=content_type, title=f"Title {i}",
                    genre_ids=list(genre_ids))
        for i in range(start, start + count)
    ]


class ImmediateExecutor:
    """Runs submitted work inline so sink writes are observable right away."""

    def __init__(self):
        self.submitted = 0
        self.shut_down = False

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        fn(*args, **kwargs)

    def shutdown(self, wait=True):
        self.shut_down = True


class FakeTimer:
    """Manually fired replacement for ``threading.Timer``."""

    instances: List["FakeTimer"] = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.daemon = False
        FakeTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    """Timers created by the code under test, oldest first."""
    FakeTimer.instances = []
    yield FakeTimer.instances
    FakeTimer.instances = []


@pytest.fixture
def app_state(tmp_path, clock):
    """Create an AppState with a temporary database"""
    AppState.reset()
    state = AppState(db_path=str(tmp_path / "test.db"))
    state.clock = clock
    yield state
    AppState.reset()


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def test_config(tmp_path):
    """Provide test configuration"""
    return {
        "database": {"path": str(tmp_path / "config.db")},
        "web_server": {"host": "127.0.0.1", "port": 8097},
        "telemetry": {
            "trusted_player_hosts": ["videasy.net", "vidluna.fun"],
            "completion_threshold": 0.95,
            "commit_interval_seconds": 10,
            "history_min_seconds": 30,
            "history_fallback_delay_seconds": 32,
            "fallback_duration_seconds": 7200,
            "progress_write_policy": "last_writer_wins",
        },
        "catalog": {"api_key": "", "base_url": "https://tmdb.test/3", "timeout_seconds": 2},
        "recommendations": {"platform_name": "TestFlix", "history_window_days": 365,
                            "history_sample_size": 50},
        "logging": {"debug": False},
    }


@pytest.fixture
def server(test_config, app_state, catalog):
    from watchtrack.web_server import TelemetryServer

    srv = TelemetryServer(test_config, app_state=app_state, catalog=catalog)
    srv.app.config["TESTING"] = True
    return srv


@pytest.fixture
def flask_client(server):
    """Create a Flask test client"""
    with server.app.test_client() as client:
        yield client
