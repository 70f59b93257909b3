"""
Observability package: structured logging, metrics, tracing, and error tracking.

Provides:
- ``setup_structured_logger``: JSON-formatted logging with request context
- ``RequestTracer``: Flask middleware for request-id propagation
- ``MetricsCollector``: in-process request and telemetry metrics
- ``ErrorTracker``: JSON error responses and captured-error ring buffer
"""

from .errors import ErrorTracker
from .logging import setup_structured_logger
from .metrics import MetricsCollector
from .tracing import RequestTracer, get_trace_context

__all__ = [
    "setup_structured_logger",
    "RequestTracer",
    "get_trace_context",
    "MetricsCollector",
    "ErrorTracker",
]
