"""
Observability routes: health check, metrics, error dashboard.

Endpoints:
    GET /healthz        JSON health status (liveness + readiness)
    GET /metrics        Prometheus exposition format
    GET /metrics/json   JSON metrics snapshot
    GET /errors/recent  Recent captured errors
    GET /errors/summary Error dedup summary
"""

import sqlite3

from flask import Blueprint, Response, current_app, jsonify

from ..observability.errors import ErrorTracker
from ..observability.metrics import MetricsCollector

observability_bp = Blueprint("observability", __name__)


def _server():
    return current_app.config["server"]


@observability_bp.route("/healthz")
def healthz():
    """200 when the database answers, 503 otherwise."""
    checks = {}
    healthy = True

    try:
        _server().app_state.ping()
        checks["database"] = {"status": "ok"}
    except sqlite3.Error as e:
        checks["database"] = {"status": "error", "message": str(e)}
        healthy = False

    checks["catalog"] = {
        "status": "ok" if _server().catalog.enabled else "disabled",
    }

    payload = {
        "status": "healthy" if healthy else "degraded",
        "uptime_seconds": round(MetricsCollector().uptime_seconds, 1),
        "checks": checks,
    }
    return jsonify(payload), 200 if healthy else 503


@observability_bp.route("/metrics")
def metrics_prometheus():
    return Response(
        MetricsCollector().prometheus_exposition(), mimetype="text/plain; charset=utf-8"
    )


@observability_bp.route("/metrics/json")
def metrics_json():
    return jsonify(MetricsCollector().snapshot())


@observability_bp.route("/errors/recent")
def errors_recent():
    limit = int(current_app.config.get("ERROR_DISPLAY_LIMIT", 50))
    return jsonify(ErrorTracker().recent_errors(limit))


@observability_bp.route("/errors/summary")
def errors_summary():
    return jsonify(ErrorTracker().error_summary())
