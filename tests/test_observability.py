"""
Tests for the observability package: structured logging, metrics
and error tracking.
"""

import json
import logging
import sys

from watchtrack.observability.errors import ErrorTracker
from watchtrack.observability.logging import (
    _JsonFormatter,
    clear_log_context,
    set_log_context,
    setup_structured_logger,
)
from watchtrack.observability.metrics import MetricsCollector


def _record(msg="Hello %s", args=("world",), level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="test", level=level, pathname="test.py", lineno=1,
        msg=msg, args=args, exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# ── Structured Logging ───────────────────────────────────────────


class TestStructuredLogging:
    def test_setup_structured_logger_returns_logger(self):
        logger = setup_structured_logger("test_obs_log", "test_obs.log")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "test_obs_log"

    def test_log_file_holds_json_lines(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_DIR", str(tmp_path))
        logger = setup_structured_logger("test_obs_json_file", "json_lines.log")
        logger.info("Request done", extra={"status_code": 204})
        for handler in logger.handlers:
            handler.flush()

        line = (tmp_path / "json_lines.log").read_text().strip().splitlines()[-1]
        data = json.loads(line)
        assert data["message"] == "Request done"
        assert data["status_code"] == 204

    def test_json_formatter_output(self):
        data = json.loads(_JsonFormatter().format(_record()))
        assert data["message"] == "Hello world"
        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["service"] == "watchtrack"
        assert "timestamp" in data
        assert "version" in data

    def test_json_formatter_includes_exception(self):
        try:
            raise ValueError("test error")
        except ValueError:
            record = _record("Something broke", None, logging.ERROR, sys.exc_info())
        data = json.loads(_JsonFormatter().format(record))
        assert data["error_type"] == "ValueError"
        assert "test error" in data["exception"]

    def test_context_and_promoted_keys(self):
        set_log_context(request_id="req-1", user_id="u1")
        try:
            data = json.loads(
                _JsonFormatter().format(_record(duration_ms=12.5, status_code=201))
            )
        finally:
            clear_log_context()
        assert data["request_id"] == "req-1"
        assert data["user_id"] == "u1"
        assert data["duration_ms"] == 12.5
        assert data["status_code"] == 201


# ── Metrics ──────────────────────────────────────────────────────


class TestMetrics:
    def test_singleton(self):
        assert MetricsCollector() is MetricsCollector()

    def test_labelled_counters_are_independent(self):
        mc = MetricsCollector()
        mc.inc("player_events_total", labels={"result": "accepted"})
        mc.inc("player_events_total", labels={"result": "accepted"})
        mc.inc("player_events_total", labels={"result": "rejected_origin"})
        assert mc.counter_value("player_events_total", {"result": "accepted"}) == 2
        assert mc.counter_value("player_events_total", {"result": "rejected_origin"}) == 1
        assert mc.counter_value("player_events_total", {"result": "ignored"}) == 0

    def test_label_order_does_not_matter(self):
        mc = MetricsCollector()
        mc.inc("progress_upserts_total", labels={"source": "api", "result": "ok"})
        assert mc.counter_value("progress_upserts_total", {"result": "ok", "source": "api"}) == 1

    def test_prometheus_exposition(self):
        mc = MetricsCollector()
        mc.inc("history_appends_total", labels={"result": "ok", "source": "watcher"})
        mc.observe("http_request_duration_ms", 42, labels={"path": "/healthz"})
        text = mc.prometheus_exposition()
        assert 'history_appends_total{result="ok",source="watcher"} 1.0' in text
        assert 'http_request_duration_ms_bucket{path="/healthz",le="50"} 1' in text
        assert 'http_request_duration_ms_count{path="/healthz"} 1' in text
        assert text.startswith("# HELP uptime_seconds")

    def test_snapshot(self):
        mc = MetricsCollector()
        mc.gauge_add("active_sessions", 3)
        mc.gauge_add("active_sessions", -1)
        mc.observe("http_request_duration_ms", 10)
        mc.observe("http_request_duration_ms", 30)
        snap = mc.snapshot()
        assert snap["gauges"]["active_sessions"] == 2
        assert snap["histograms"]["http_request_duration_ms"] == {
            "count": 2, "sum": 40, "avg": 20,
        }


# ── Error tracking ───────────────────────────────────────────────


class TestErrorTracker:
    def test_capture_outside_request(self):
        tracker = ErrorTracker()
        try:
            raise KeyError("missing")
        except KeyError:
            record = tracker.capture_exception(extra={"session_id": "s-1"})
        assert record.error_type == "KeyError"
        assert record.context["session_id"] == "s-1"
        assert "method" not in record.context

    def test_nothing_to_capture(self):
        assert ErrorTracker().capture_exception() is None

    def test_summary_dedupes_by_location(self):
        tracker = ErrorTracker()
        for _ in range(3):
            try:
                raise RuntimeError("same place")
            except RuntimeError as e:
                tracker.capture_exception(e)
        summary = tracker.error_summary()
        assert summary["total_captured"] == 3
        assert summary["unique_errors"] == 1
        assert tracker.recent_errors(limit=2)[0]["message"] == "same place"
        assert len(tracker.recent_errors(limit=2)) == 2

    def test_sentry_missing_is_not_fatal(self, monkeypatch):
        monkeypatch.setenv("SENTRY_DSN", "https://key@sentry.test/1")
        monkeypatch.setitem(sys.modules, "sentry_sdk", None)
        ErrorTracker.reset()
        tracker = ErrorTracker()
        assert tracker._sentry is None
