"""
Centralised error tracking for the HTTP surface and the watcher.

Domain errors (``TelemetryError``) are rendered as ``{"error", "code"}``
with their own status. Anything else is captured into a bounded ring
buffer, logged with trace context, optionally forwarded to Sentry, and
answered with a 500.
"""

import os
import sys
import threading
import traceback
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from ..errors import TelemetryError
from .logging import get_log_context, setup_structured_logger
from .metrics import MetricsCollector
from .tracing import get_trace_context

_MAX_ERROR_BUFFER = 200


@dataclass
class ErrorRecord:
    """A single captured error event."""

    timestamp: str
    error_type: str
    message: str
    traceback: str
    context: Dict[str, Any] = field(default_factory=dict)
    fingerprint: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ErrorTracker:
    """Singleton that captures and counts unexpected errors.

    Usage::

        tracker = ErrorTracker()
        tracker.install_flask(app)

        try:
            sink.upsert_progress(...)
        except Exception:
            tracker.capture_exception(extra={"session_id": sid})
    """

    _instance: Optional["ErrorTracker"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ErrorTracker":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        self._buffer: Deque[ErrorRecord] = deque(maxlen=_MAX_ERROR_BUFFER)
        self._counts: Dict[str, int] = {}
        self._counts_lock = threading.Lock()
        self._logger = setup_structured_logger("error_tracker", "errors.log")
        self._sentry = None

        dsn = os.environ.get("SENTRY_DSN", "")
        if dsn:
            try:
                import sentry_sdk  # type: ignore[import-untyped]
            except ImportError:
                self._logger.warning("SENTRY_DSN set but sentry-sdk not installed")
            else:
                sentry_sdk.init(dsn=dsn, traces_sample_rate=0.1)
                self._sentry = sentry_sdk
                self._logger.info("Sentry SDK initialised")

    # ── Flask integration ────────────────────────────────────────

    def install_flask(self, app: Flask) -> None:
        """Register JSON error handlers on ``app``."""

        @app.errorhandler(TelemetryError)
        def _handle_telemetry_error(exc: TelemetryError):
            MetricsCollector().inc("telemetry_errors_total", labels={"code": exc.code})
            return jsonify(exc.to_dict()), exc.status_code

        @app.errorhandler(HTTPException)
        def _handle_http_exception(exc: HTTPException):
            code = (exc.name or "error").upper().replace(" ", "_")
            return jsonify({"error": exc.description, "code": code}), exc.code

        @app.errorhandler(Exception)
        def _handle_exception(exc: Exception):
            record = self.capture_exception(exc=exc)
            return (
                jsonify(
                    {
                        "error": "Internal Server Error",
                        "code": "INTERNAL_ERROR",
                        "request_id": (record.context.get("request_id") if record else "") or "",
                    }
                ),
                500,
            )

    # ── Capture ──────────────────────────────────────────────────

    def capture_exception(
        self,
        exc: Optional[BaseException] = None,
        *,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Optional[ErrorRecord]:
        """Capture an exception with trace and request context.

        Args:
            exc: The exception. If ``None``, uses ``sys.exc_info()``.
            extra: Additional context to attach.

        Returns:
            The ``ErrorRecord``, or ``None`` if there was nothing to capture.
        """
        if exc is None:
            exc_info = sys.exc_info()
            if exc_info[0] is None:
                return None
            exc = exc_info[1]
        else:
            exc_info = (type(exc), exc, exc.__traceback__)

        fingerprint = f"{type(exc).__name__}:{_extract_location(exc_info)}"

        ctx: Dict[str, Any] = {}
        trace = get_trace_context()
        if trace:
            ctx["trace_id"] = trace.trace_id
            ctx["operation"] = trace.operation
        ctx.update(get_log_context())
        if extra:
            ctx.update(extra)

        try:
            ctx.setdefault("method", request.method)
            ctx.setdefault("path", request.path)
        except RuntimeError:
            pass  # outside a request context

        record = ErrorRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            error_type=type(exc).__name__,
            message=str(exc),
            traceback="".join(traceback.format_exception(*exc_info)),
            context=ctx,
            fingerprint=fingerprint,
        )

        self._buffer.append(record)
        with self._counts_lock:
            self._counts[fingerprint] = self._counts.get(fingerprint, 0) + 1

        self._logger.error(
            "Captured %s: %s",
            record.error_type,
            record.message,
            extra={"error_type": record.error_type},
        )

        if self._sentry is not None:
            self._sentry.capture_exception(exc)

        return record

    # ── Queries ──────────────────────────────────────────────────

    def recent_errors(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent errors first."""
        items = list(self._buffer)[-limit:]
        items.reverse()
        return [e.to_dict() for e in items]

    def error_summary(self) -> Dict[str, Any]:
        with self._counts_lock:
            counts = dict(self._counts)
        return {
            "total_captured": sum(counts.values()),
            "unique_errors": len(counts),
            "top_errors": sorted(
                ({"fingerprint": fp, "count": c} for fp, c in counts.items()),
                key=lambda x: x["count"],
                reverse=True,
            )[:20],
        }

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None


def _extract_location(exc_info) -> str:
    """file:line of the innermost traceback frame."""
    tb = exc_info[2]
    if tb is None:
        return "unknown"
    while tb.tb_next:
        tb = tb.tb_next
    return f"{tb.tb_frame.f_code.co_filename}:{tb.tb_lineno}"
