"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — 200 whenever the process is serving
    GET /api/v1/health/live   — database round-trip, Slack wiring, review backlog
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from finishline.models import db
from finishline.models.change_request import ChangeRequest

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


def _database_check():
    t0 = time.perf_counter()
    db.session.execute(db.text("SELECT 1"))
    return {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}


def _slack_check(config):
    """Report Slack wiring from config only; never calls Slack."""
    if not config.get("SLACK_NOTIFICATIONS_ENABLED"):
        return {"status": "disabled"}
    if not config.get("SLACK_BOT_TOKEN"):
        return {"status": "missing_token"}
    return {"status": "configured", "eboard_channel": bool(config.get("SLACK_EBOARD_CHANNEL"))}


def _review_backlog():
    open_count = (
        ChangeRequest.query_active()
        .filter(ChangeRequest.date_reviewed.is_(None))
        .count()
    )
    return {"status": "ok", "unreviewed_change_requests": open_count}


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Dependency status; 503 when the database is unreachable."""
    checks = {"slack": _slack_check(current_app.config)}
    healthy = True

    try:
        checks["database"] = _database_check()
        checks["review_backlog"] = _review_backlog()
    except Exception as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        healthy = False
        logger.error("Health check: database failed: %s", exc)

    body = {
        "status": "healthy" if healthy else "degraded",
        "app": "FinishLine",
        "checks": checks,
    }
    return jsonify(body), 200 if healthy else 503
