"""
Request-ID propagation and latency tracking.

Flask middleware that takes ``X-Request-ID`` (or a W3C ``traceparent``)
from the incoming request, or mints a fresh id, pushes it into the
structured log context and echoes it back on the response.
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from flask import Flask, g, request

from .logging import clear_log_context, set_log_context

_trace_local = threading.local()


@dataclass
class TraceContext:
    """Trace context for the request being served on this thread."""

    trace_id: str
    span_id: str
    parent_span_id: Optional[str] = None
    operation: str = ""
    start_time: float = field(default_factory=time.monotonic)
    attributes: Dict[str, Any] = field(default_factory=dict)


def get_trace_context() -> Optional[TraceContext]:
    return getattr(_trace_local, "ctx", None)


def set_trace_context(ctx: TraceContext) -> None:
    _trace_local.ctx = ctx


def clear_trace_context() -> None:
    _trace_local.ctx = None


def _new_id(length: int = 32) -> str:
    """Random hex id (32 chars for a trace, 16 for a span)."""
    return uuid.uuid4().hex[:length]


def _request_user_id() -> Optional[str]:
    """Best-effort ``userId`` from the query string or JSON body."""
    user_id = request.args.get("userId")
    if user_id:
        return user_id
    body = request.get_json(silent=True)
    if isinstance(body, dict) and isinstance(body.get("userId"), str):
        return body["userId"]
    return None


class RequestTracer:
    """Flask middleware: assigns request ids and measures latency.

    Usage::

        tracer = RequestTracer(app, logger=logger, metrics=MetricsCollector())
    """

    REQUEST_ID_HEADER = "X-Request-ID"
    TRACEPARENT_HEADER = "traceparent"

    def __init__(self, app: Flask, *, logger=None, metrics=None):
        self.app = app
        self.logger = logger
        self.metrics = metrics
        app.before_request(self._before)
        app.after_request(self._after)
        app.teardown_request(self._teardown)

    def _before(self) -> None:
        trace_id, parent_span = self._extract_trace_id()
        span_id = _new_id(16)

        set_trace_context(
            TraceContext(
                trace_id=trace_id,
                span_id=span_id,
                parent_span_id=parent_span,
                operation=f"{request.method} {request.path}",
            )
        )
        g.request_id = trace_id

        set_log_context(
            request_id=trace_id,
            trace_id=trace_id,
            span_id=span_id,
            user_id=_request_user_id() or "anonymous",
            method=request.method,
            path=request.path,
        )

        if self.metrics:
            self.metrics.inc(
                "http_requests_total",
                labels={"method": request.method, "path": request.path},
            )

    def _after(self, response):
        ctx = get_trace_context()
        if ctx is None:
            return response

        duration_ms = (time.monotonic() - ctx.start_time) * 1000
        response.headers[self.REQUEST_ID_HEADER] = ctx.trace_id

        labels = {
            "method": request.method,
            "path": request.path,
            "status": str(response.status_code),
        }
        if self.metrics:
            self.metrics.observe("http_request_duration_ms", duration_ms, labels=labels)
            if response.status_code >= 400:
                self.metrics.inc("http_errors_total", labels=labels)

        if self.logger:
            log_method = self.logger.warning if response.status_code >= 400 else self.logger.info
            log_method(
                "%s %s %s %.1fms",
                request.method,
                request.path,
                response.status_code,
                duration_ms,
                extra={
                    "duration_ms": round(duration_ms, 2),
                    "status_code": response.status_code,
                },
            )
        return response

    def _teardown(self, exc=None) -> None:
        clear_trace_context()
        clear_log_context()

    def _extract_trace_id(self) -> Tuple[str, Optional[str]]:
        """Returns ``(trace_id, parent_span_id | None)``."""
        # W3C traceparent: 00-<trace_id>-<parent_span_id>-<flags>
        tp = request.headers.get(self.TRACEPARENT_HEADER, "")
        if tp:
            parts = tp.split("-")
            if len(parts) >= 4 and len(parts[1]) == 32:
                return parts[1], parts[2]

        rid = request.headers.get(self.REQUEST_ID_HEADER, "")
        if rid:
            return rid, None

        return _new_id(32), None
