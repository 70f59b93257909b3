"""
Configuration loading and validation for the telemetry service.

Centralises config parsing so it happens once at startup rather than
redundantly in every component constructor.
"""

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .constants import (
    COMMIT_INTERVAL_SECONDS,
    COMPLETION_THRESHOLD,
    DEFAULT_CONFIG_PATH,
    DEFAULT_TRUSTED_PLAYER_HOSTS,
    FALLBACK_DURATION_SECONDS,
    HISTORY_FALLBACK_DELAY_SECONDS,
    HISTORY_MIN_SECONDS,
    PROGRESS_POLICY_LAST_WRITER_WINS,
    PROGRESS_POLICY_ONLY_ADVANCE,
)

# Required top-level keys and the sub-keys that must exist within them.
_REQUIRED_SCHEMA: Dict[str, List[str]] = {
    "database": ["path"],
    "web_server": ["port", "host"],
    "telemetry": [],
}

_KNOWN_POLICIES = (PROGRESS_POLICY_LAST_WRITER_WINS, PROGRESS_POLICY_ONLY_ADVANCE)


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from a JSON file and resolve ``${ENV_VAR:-default}``
    placeholders in all string values.

    Args:
        config_path: Path to the config file (relative to project root,
            absolute paths are used as-is)

    Returns:
        Fully-resolved configuration dictionary.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    base_dir = Path(__file__).parent.parent
    full_path = base_dir / config_path

    if not full_path.exists():
        raise ConfigError(f"Configuration file not found: {full_path}")

    try:
        with open(full_path, "r") as f:
            config = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {full_path}: {exc}") from exc

    return _resolve(config)


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate a config dict against the required schema.

    Returns:
        A list of human-readable error strings.  Empty means valid.
    """
    errors: List[str] = []

    for section, sub_keys in _REQUIRED_SCHEMA.items():
        if section not in config:
            errors.append(f"Missing required config section: '{section}'")
            continue
        for sub in sub_keys:
            if sub not in config[section]:
                errors.append(f"Missing required key '{sub}' in config section '{section}'")

    telemetry = config.get("telemetry", {})
    threshold = telemetry.get("completion_threshold", COMPLETION_THRESHOLD)
    if not isinstance(threshold, (int, float)) or not 0 < threshold <= 1:
        errors.append(f"telemetry.completion_threshold must be in (0, 1], got {threshold!r}")

    for key in (
        "commit_interval_seconds",
        "history_min_seconds",
        "history_fallback_delay_seconds",
        "fallback_duration_seconds",
    ):
        value = telemetry.get(key)
        if value is not None and (
            isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0
        ):
            errors.append(f"telemetry.{key} must be a positive number, got {value!r}")

    policy = telemetry.get("progress_write_policy", PROGRESS_POLICY_LAST_WRITER_WINS)
    if policy not in _KNOWN_POLICIES:
        errors.append(
            f"telemetry.progress_write_policy must be one of {', '.join(_KNOWN_POLICIES)}, "
            f"got {policy!r}"
        )

    hosts = telemetry.get("trusted_player_hosts", [])
    if not isinstance(hosts, list) or not all(isinstance(h, str) and h for h in hosts):
        errors.append("telemetry.trusted_player_hosts must be a list of hostnames")

    db_path = config.get("database", {}).get("path", "")
    if isinstance(db_path, str) and db_path.startswith("${"):
        errors.append(
            f"database.path is an unresolved placeholder: '{db_path}'. "
            "Set the WATCHTRACK_DB environment variable."
        )

    return errors


@dataclass(frozen=True)
class TelemetrySettings:
    """Typed view of the ``telemetry`` config section."""

    trusted_player_hosts: Tuple[str, ...] = DEFAULT_TRUSTED_PLAYER_HOSTS
    completion_threshold: float = COMPLETION_THRESHOLD
    commit_interval_seconds: int = COMMIT_INTERVAL_SECONDS
    history_min_seconds: float = HISTORY_MIN_SECONDS
    history_fallback_delay_seconds: float = HISTORY_FALLBACK_DELAY_SECONDS
    fallback_duration_seconds: int = FALLBACK_DURATION_SECONDS
    progress_write_policy: str = PROGRESS_POLICY_LAST_WRITER_WINS

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "TelemetrySettings":
        section = config.get("telemetry", {}) or {}
        hosts = section.get("trusted_player_hosts") or list(DEFAULT_TRUSTED_PLAYER_HOSTS)
        env_hosts = os.environ.get("TRUSTED_PLAYER_HOSTS", "").strip()
        if env_hosts:
            hosts = [h.strip() for h in env_hosts.split(",") if h.strip()]
        return cls(
            trusted_player_hosts=tuple(h.lower() for h in hosts),
            completion_threshold=float(section.get("completion_threshold", COMPLETION_THRESHOLD)),
            commit_interval_seconds=int(
                section.get("commit_interval_seconds", COMMIT_INTERVAL_SECONDS)
            ),
            history_min_seconds=float(section.get("history_min_seconds", HISTORY_MIN_SECONDS)),
            history_fallback_delay_seconds=float(
                section.get("history_fallback_delay_seconds", HISTORY_FALLBACK_DELAY_SECONDS)
            ),
            fallback_duration_seconds=int(
                section.get("fallback_duration_seconds", FALLBACK_DURATION_SECONDS)
            ),
            progress_write_policy=section.get(
                "progress_write_policy", PROGRESS_POLICY_LAST_WRITER_WINS
            ),
        )


# ── Private helpers ──────────────────────────────────────────────

_PLACEHOLDER_RE = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def _resolve(obj: Any) -> Any:
    """Recursively resolve ``${ENV_VAR:-default}`` in string values."""
    if isinstance(obj, str):
        return _PLACEHOLDER_RE.sub(_replace_match, obj)
    elif isinstance(obj, dict):
        return {k: _resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_resolve(v) for v in obj]
    return obj


def _replace_match(m: re.Match) -> str:
    var = m.group(1)
    default = m.group(2) if m.group(2) is not None else ""
    return os.environ.get(var, default)
