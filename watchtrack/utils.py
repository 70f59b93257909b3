"""
Utility functions for the watch telemetry service
"""

import logging
import math
import os
import secrets
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .constants import LOG_BACKUP_COUNT, LOG_MAX_BYTES

load_dotenv()


def get_log_dir() -> Path:
    """Return the log directory from LOG_DIR or ``<project>/logs``."""
    env_dir = os.environ.get("LOG_DIR", "").strip()
    if env_dir:
        return Path(env_dir)
    return Path(__file__).parent.parent / "logs"


def setup_logger(name: str, log_file: str, level=None, debug: bool = False) -> logging.Logger:
    """
    Setup a logger with file and console output

    Args:
        name: Logger name
        log_file: Log file name under the log directory
        level: Logging level (overrides debug flag if provided)
        debug: If True, set level to DEBUG

    Returns:
        Configured logger
    """
    if level is None:
        level = logging.DEBUG if debug else logging.INFO

    log_path = get_log_dir() / log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
    )
    file_handler.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    # Function name only in debug mode
    if debug:
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
    else:
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    formatter = logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def now_ts() -> int:
    """Current wall-clock time as whole Unix seconds."""
    return int(time.time())


def days_ago_ts(days: int, now: Optional[int] = None) -> int:
    """Unix timestamp ``days`` whole days before ``now``."""
    if now is None:
        now = now_ts()
    return now - days * 24 * 60 * 60


def whole_seconds(value: float) -> int:
    """Floor a player position to whole seconds (never negative)."""
    return max(0, int(math.floor(value)))


def new_guest_id() -> str:
    """Durable anonymous identifier for viewers without an account."""
    return f"guest-{int(time.time() * 1000)}-{secrets.token_hex(4)[:7]}"


def user_room(user_id: str) -> str:
    """Socket.IO room that receives one viewer's progress events."""
    return f"user:{user_id}"
