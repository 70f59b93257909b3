"""Field validators shared by the repositories and the HTTP layer.

Every failure raises ``ValidationError`` with the stable code the
clients already know.
"""

import math
from typing import Any, Optional, Tuple

from .constants import CONTENT_TYPE_ALIASES, CONTENT_TYPES
from .errors import ValidationError

_TYPE_LIST = '"movie" or "series"'

# Largest value an SQLite INTEGER column holds
MAX_INTEGER = 2 ** 63 - 1


def require_string(value: Any, field: str, code: str) -> str:
    """Return ``value`` stripped; reject missing, non-string or blank values."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required and must be a non-empty string", code=code)
    return value.strip()


def content_type(
    value: Any,
    *,
    missing_code: str = "MISSING_CONTENT_TYPE",
    invalid_code: str = "INVALID_CONTENT_TYPE",
) -> str:
    """Validate and normalise a content type (``tv`` becomes ``series``)."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            "contentType is required and must be a non-empty string", code=missing_code
        )
    normalised = value.strip().lower()
    normalised = CONTENT_TYPE_ALIASES.get(normalised, normalised)
    if normalised not in CONTENT_TYPES:
        raise ValidationError(f"contentType must be either {_TYPE_LIST}", code=invalid_code)
    return normalised


def whole_number(
    value: Any,
    field: str,
    *,
    missing_code: str,
    invalid_code: str,
    minimum: int = 0,
) -> int:
    """Validate an integer-valued JSON number ``>= minimum``.

    ``12.0`` is accepted (JSON has no integer type); booleans, NaN and
    fractional values are not.
    """
    if value is None:
        raise ValidationError(f"{field} is required", code=missing_code)
    number = _as_int(value)
    if number is None or not minimum <= number <= MAX_INTEGER:
        if minimum > 0:
            detail = f"an integer greater than or equal to {minimum}"
        else:
            detail = "a non-negative integer"
        raise ValidationError(f"{field} must be {detail}", code=invalid_code)
    return number


def progress_pair(progress_seconds: Any, total_seconds: Any) -> Tuple[int, int]:
    """Validate the numeric invariants shared by progress and history writes."""
    progress = whole_number(
        progress_seconds,
        "progressSeconds",
        missing_code="MISSING_PROGRESS_SECONDS",
        invalid_code="INVALID_PROGRESS_SECONDS",
    )
    total = whole_number(
        total_seconds,
        "totalSeconds",
        missing_code="MISSING_TOTAL_SECONDS",
        invalid_code="INVALID_TOTAL_SECONDS",
        minimum=1,
    )
    if progress > total:
        raise ValidationError(
            "progressSeconds cannot exceed totalSeconds", code="PROGRESS_EXCEEDS_TOTAL"
        )
    return progress, total


def optional_bound(value: Any, field: str, code: str) -> Optional[int]:
    """A skip-window bound: ``None`` or a non-negative integer."""
    if value is None:
        return None
    number = _as_int(value)
    if number is None or not 0 <= number <= MAX_INTEGER:
        raise ValidationError(f"{field} must be a non-negative integer", code=code)
    return number


def window_range(start: Optional[int], end: Optional[int], label: str, code: str) -> None:
    """When both bounds are set, ``end`` must be strictly greater than ``start``."""
    if start is not None and end is not None and end <= start:
        raise ValidationError(f"{label}End must be greater than {label}Start", code=code)


def query_int(
    raw: Optional[str],
    *,
    default: int,
    code: str,
    field: str,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
    clamp_min: bool = False,
) -> int:
    """Parse an integer query-string parameter.

    Values above ``maximum`` (or the SQLite integer range) are capped.
    Values below ``minimum`` are either raised to it (``clamp_min``) or
    rejected.
    """
    if raw is None or raw == "":
        return default
    try:
        value = int(raw.strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", code=code) from None
    if minimum is not None and value < minimum:
        if not clamp_min:
            raise ValidationError(f"{field} must be at least {minimum}", code=code)
        value = minimum
    value = min(value, MAX_INTEGER if maximum is None else maximum)
    return value


def record_id(raw: Any) -> int:
    """Path-parameter record id."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("Valid ID is required", code="INVALID_ID") from None
    if not 1 <= value <= MAX_INTEGER:
        raise ValidationError("Valid ID is required", code="INVALID_ID")
    return value


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return None
