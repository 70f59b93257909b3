"""Request helpers shared by the blueprints."""

from typing import Any, Dict

from flask import request

from ..errors import ValidationError


def json_body() -> Dict[str, Any]:
    """The request's JSON object, or ``INVALID_JSON``."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", code="INVALID_JSON")
    return data


def require_user_id() -> str:
    user_id = (request.args.get("userId") or "").strip()
    if not user_id:
        raise ValidationError("userId query parameter is required", code="MISSING_USER_ID")
    return user_id
