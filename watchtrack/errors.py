"""
Error taxonomy for the telemetry engine.

Validation and not-found errors travel synchronously to the HTTP caller
with a stable ``code``.  Untrusted player input, catalog failures and
transient write failures are caught at their boundaries and never
interrupt playback or fail an aggregation.
"""

from typing import Any, Dict, Optional


class TelemetryError(Exception):
    """Base class; carries a machine-readable code and an HTTP status."""

    code: str = "TELEMETRY_ERROR"
    message: str = "Telemetry error"
    status_code: int = 400

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class ValidationError(TelemetryError):
    code = "VALIDATION_ERROR"
    message = "Validation error"
    status_code = 400


class NotFoundError(TelemetryError):
    code = "NOT_FOUND"
    message = "Resource not found"
    status_code = 404


class ConflictError(TelemetryError):
    code = "DUPLICATE_CONTENT"
    message = "Resource conflict"
    status_code = 409


class UntrustedInputError(TelemetryError):
    """A player message from a foreign origin or with a malformed payload.

    Dropped at the channel; never shown to the user.
    """

    code = "UNTRUSTED_INPUT"
    message = "Untrusted player event"

    def __init__(self, message: Optional[str] = None, *, reason: str = "invalid"):
        super().__init__(message)
        self.reason = reason


class CatalogError(TelemetryError):
    """The external catalog provider failed or returned garbage."""

    code = "CATALOG_UNAVAILABLE"
    message = "Catalog provider error"
    status_code = 502


class TransientWriteFailure(TelemetryError):
    """A progress commit or history append could not reach the store."""

    code = "WRITE_FAILED"
    message = "Telemetry write failed"
    status_code = 503
