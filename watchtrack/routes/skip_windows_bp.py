"""Skip-window (intro / outro timestamps) routes."""

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from .. import validation
from ..errors import ValidationError
from ..repositories.skip_window_repo import BOUND_FIELDS
from ._common import json_body

skip_windows_bp = Blueprint("skip_windows", __name__)


def _server():
    return current_app.config["server"]


def _bounds_from(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map wire names to columns, keeping explicit nulls and dropping absent keys."""
    return {
        column: data[wire_name]
        for column, (wire_name, _) in BOUND_FIELDS.items()
        if wire_name in data
    }


@skip_windows_bp.route("/skip-timestamps")
def get_window():
    content_id = request.args.get("contentId")
    content_type = request.args.get("contentType")
    if not content_id or not content_type:
        raise ValidationError(
            "contentId and contentType are required", code="MISSING_REQUIRED_PARAMS"
        )
    window = _server().app_state.get_window(content_id, content_type)
    return jsonify(window.to_dict())


@skip_windows_bp.route("/skip-timestamps", methods=["POST"])
def upsert_window():
    """Create or merge-update the window for (contentId, contentType)."""
    data = json_body()
    if not data.get("contentId") or not data.get("contentType"):
        raise ValidationError(
            "contentId and contentType are required", code="MISSING_REQUIRED_FIELDS"
        )
    window, created = _server().app_state.upsert_window(
        data["contentId"], data["contentType"], _bounds_from(data)
    )
    return jsonify(window.to_dict()), 201 if created else 200


@skip_windows_bp.route("/skip-timestamps/<window_id>", methods=["PUT"])
def update_window(window_id):
    data = json_body()
    changes = _bounds_from(data)
    if "contentId" in data:
        changes["content_id"] = data["contentId"]
    if "contentType" in data:
        changes["content_type"] = data["contentType"]
    window = _server().app_state.update_window(validation.record_id(window_id), changes)
    return jsonify(window.to_dict())


@skip_windows_bp.route("/skip-timestamps/<window_id>", methods=["DELETE"])
def delete_window(window_id):
    window = _server().app_state.delete_window(validation.record_id(window_id))
    return jsonify({
        "message": "Skip timestamps deleted successfully",
        "deletedRecord": window.to_dict(),
    })
