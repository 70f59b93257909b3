"""Watch history routes."""

from flask import Blueprint, current_app, jsonify, request

from .. import validation
from ..constants import (
    HISTORY_DEFAULT_DAYS,
    HISTORY_DEFAULT_LIMIT,
    HISTORY_MAX_DAYS,
    HISTORY_MAX_LIMIT,
    HISTORY_MIN_DAYS,
)
from ..observability.metrics import MetricsCollector
from ._common import json_body, require_user_id

history_bp = Blueprint("history", __name__)


def _server():
    return current_app.config["server"]


@history_bp.route("/watch-history", methods=["POST"])
def append_history():
    data = json_body()
    entry = _server().app_state.append_history(
        data.get("userId"),
        data.get("contentId"),
        data.get("contentType"),
        data.get("title"),
        data.get("posterPath"),
        data.get("progressSeconds"),
        data.get("totalSeconds"),
        watched_at=data.get("watchedAt"),
    )
    MetricsCollector().inc("history_appends_total", labels={"result": "ok", "source": "api"})
    return jsonify(entry.to_dict()), 201


@history_bp.route("/watch-history")
def list_history():
    """Recent history of a user, newest first.

    ``days`` is clamped to [1, 365]; ``limit`` is capped at 100.
    """
    user_id = require_user_id()
    days = validation.query_int(
        request.args.get("days"), default=HISTORY_DEFAULT_DAYS, code="INVALID_DAYS",
        field="days", minimum=HISTORY_MIN_DAYS, maximum=HISTORY_MAX_DAYS, clamp_min=True,
    )
    limit = validation.query_int(
        request.args.get("limit"), default=HISTORY_DEFAULT_LIMIT, code="INVALID_LIMIT",
        field="limit", minimum=1, maximum=HISTORY_MAX_LIMIT,
    )
    offset = validation.query_int(
        request.args.get("offset"), default=0, code="INVALID_OFFSET", field="offset", minimum=0,
    )
    content_type = request.args.get("contentType")
    if content_type:
        content_type = validation.content_type(content_type)

    entries, total = _server().app_state.list_history(
        user_id, days, content_type=content_type, limit=limit, offset=offset
    )

    filters = {"userId": user_id, "days": days}
    if content_type:
        filters["contentType"] = content_type
    return jsonify({
        "history": [e.to_dict() for e in entries],
        "pagination": {"limit": limit, "offset": offset, "days": days, "total": total},
        "filters": filters,
    })


@history_bp.route("/watch-history", methods=["DELETE"])
def purge_history():
    """Administrative purge of every history entry of a user."""
    user_id = require_user_id()
    removed = _server().app_state.purge_history(user_id)
    return jsonify({"message": "Watch history purged", "deletedCount": removed})
