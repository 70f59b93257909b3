"""Continue-watching and recommendation routes."""

from flask import Blueprint, current_app, jsonify, request

from .. import validation
from ..constants import PROGRESS_DEFAULT_LIMIT, PROGRESS_MAX_LIMIT
from ._common import require_user_id

discovery_bp = Blueprint("discovery", __name__)


def _server():
    return current_app.config["server"]


@discovery_bp.route("/continue-watching")
def continue_watching():
    """In-progress titles with title, poster and percent watched."""
    user_id = require_user_id()
    limit = validation.query_int(
        request.args.get("limit"), default=PROGRESS_DEFAULT_LIMIT, code="INVALID_LIMIT",
        field="limit", minimum=1, maximum=PROGRESS_MAX_LIMIT,
    )
    offset = validation.query_int(
        request.args.get("offset"), default=0, code="INVALID_OFFSET", field="offset", minimum=0,
    )
    items, total = _server().continue_watching.list_continue_watching(user_id, limit, offset)
    return jsonify({
        "items": items,
        "pagination": {"limit": limit, "offset": offset, "total": total},
    })


@discovery_bp.route("/recommendations")
def recommendations():
    user_id = require_user_id()
    groups = _server().recommendations.recommend(user_id)
    return jsonify({"groups": [g.to_dict() for g in groups]})
