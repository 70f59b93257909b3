"""Watch progress routes."""

from flask import Blueprint, current_app, jsonify, request

from .. import validation
from ..constants import PROGRESS_DEFAULT_LIMIT, PROGRESS_MAX_LIMIT
from ..observability.metrics import MetricsCollector
from ._common import json_body, require_user_id

progress_bp = Blueprint("progress", __name__)


def _server():
    return current_app.config["server"]


@progress_bp.route("/watch-progress", methods=["POST"])
def save_progress():
    """Upsert the resume position for (userId, contentId, contentType)."""
    data = json_body()
    record, created = _server().app_state.upsert_progress(
        data.get("userId"),
        data.get("contentId"),
        data.get("contentType"),
        data.get("progressSeconds"),
        data.get("totalSeconds"),
    )
    MetricsCollector().inc(
        "progress_upserts_total",
        labels={"result": "created" if created else "updated", "source": "api"},
    )
    return jsonify(record.to_dict()), 201 if created else 200


@progress_bp.route("/watch-progress")
def get_progress():
    """Single record when contentId and contentType are given, else the in-progress list."""
    srv = _server()
    user_id = require_user_id()
    content_id = request.args.get("contentId")
    content_type = request.args.get("contentType")

    if content_id and content_type:
        record = srv.app_state.get_progress(user_id, content_id, content_type)
        return jsonify(record.to_dict())

    limit = validation.query_int(
        request.args.get("limit"), default=PROGRESS_DEFAULT_LIMIT, code="INVALID_LIMIT",
        field="limit", minimum=1, maximum=PROGRESS_MAX_LIMIT,
    )
    offset = validation.query_int(
        request.args.get("offset"), default=0, code="INVALID_OFFSET", field="offset", minimum=0,
    )
    page, total = srv.continue_watching.list_in_progress(user_id, limit, offset)
    return jsonify({
        "progress": [r.to_dict() for r in page],
        "pagination": {"limit": limit, "offset": offset, "total": total},
    })


@progress_bp.route("/watch-progress/<record_id>", methods=["DELETE"])
def delete_progress(record_id):
    """Remove one title from continue watching."""
    record = _server().app_state.delete_progress(validation.record_id(record_id))
    return jsonify({
        "message": "Watch progress deleted successfully",
        "deletedRecord": record.to_dict(),
    })
