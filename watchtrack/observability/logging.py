"""
JSON log lines for the HTTP and error-tracking loggers.

Each line carries ``timestamp``, ``level``, ``logger``, ``message``,
``service`` and ``version``, the request fields the tracer stored for the
current thread (``request_id``, ``user_id``, ``method``, ``path``, ...),
and the timing/status extras passed at the call site.
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict

from ..constants import APP_VERSION
from ..utils import setup_logger

_context = threading.local()

SERVICE_NAME: str = os.environ.get("LOG_SERVICE_NAME", "watchtrack")

# ``extra=`` fields copied onto the line
_EXTRA_KEYS = ("duration_ms", "status_code", "error_type")


def set_log_context(**kwargs: Any) -> None:
    """Add fields to every line this thread logs until ``clear_log_context``."""
    data = getattr(_context, "data", None)
    if data is None:
        data = _context.data = {}
    data.update(kwargs)


def clear_log_context() -> None:
    _context.data = {}


def get_log_context() -> Dict[str, Any]:
    return dict(getattr(_context, "data", {}))


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": SERVICE_NAME,
            "version": APP_VERSION,
        }
        line.update(get_log_context())
        for key in _EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                line[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            line["error_type"] = record.exc_info[0].__name__
            line["exception"] = self.formatException(record.exc_info)
            line["where"] = f"{record.module}.{record.funcName}:{record.lineno}"

        return json.dumps(line, default=str, ensure_ascii=False)


def setup_structured_logger(name: str, log_file: str, *, debug: bool = False) -> logging.Logger:
    """``utils.setup_logger`` with JSON lines in the log file.

    The console keeps the plain format unless ``LOG_FORMAT=json``.
    """
    logger = setup_logger(name, log_file, debug=debug)
    json_console = os.environ.get("LOG_FORMAT", "").lower() == "json"
    for handler in logger.handlers:
        if isinstance(handler, RotatingFileHandler) or json_console:
            handler.setFormatter(_JsonFormatter())
    return logger
