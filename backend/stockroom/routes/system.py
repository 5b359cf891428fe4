# backend/stockroom/routes/system.py
"""
System health endpoint.

Replicas and load balancers poll GET /health. The server is healthy when
the database answers and the revision counter is not behind the changelog
(a lagging counter would hand out revisions that already exist).
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import RevisionCounter
from ..services.changelog_service import current_revision
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_changelog_health() -> dict:
    start_time = time.time()
    try:
        revision = current_revision()
        counter = db.session.get(RevisionCounter, 1)
        elapsed_ms = round((time.time() - start_time) * 1000, 2)
    except Exception:
        current_app.logger.exception("Changelog health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }

    # No counter yet is fine; the first append seeds it.
    counter_revision = counter.last_revision if counter is not None else revision
    status = "healthy" if counter_revision >= revision else "unhealthy"
    return {
        "status": status,
        "latency_ms": elapsed_ms,
        "details": {"last_revision": revision, "counter_revision": counter_revision},
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable and changelog counter consistent
    - 503: otherwise
    """
    changelog = check_changelog_health()
    healthy = changelog["status"] == "healthy"

    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"changelog": changelog},
    }
    return response, 200 if healthy else 503
