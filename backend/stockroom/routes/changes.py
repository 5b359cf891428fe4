# backend/stockroom/routes/changes.py
"""
Changelog pull endpoint for replicas.

POST /api/changes  {"syncedRevision": int | null}
-> {"changes": [...], "lastRevision": int}

Replication is read-only and carries no user context; every replica
receives the full compacted stream.
"""
from flask import Blueprint, request

from ..services import sync_service
from .errors import error_response


changes_bp = Blueprint("changes", __name__, url_prefix="/api/changes")


@changes_bp.post("")
def pull_changes():
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return {"error": "object input data expected"}, 400

    synced_revision = payload.get("syncedRevision")
    if synced_revision is not None and (isinstance(synced_revision, bool) or not isinstance(synced_revision, int)):
        return {"error": "syncedRevision must be an integer or null"}, 400
    if synced_revision is not None and synced_revision < 0:
        return {"error": "syncedRevision must be >= 0"}, 400

    try:
        result = sync_service.pull(synced_revision)
    except Exception as exc:
        return error_response(exc)

    return result.to_dict(), 200
