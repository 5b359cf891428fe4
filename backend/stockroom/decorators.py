# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services.changelog_service import SYSTEM_ACTOR_ID


ACTOR_HEADER = "X-Actor-Id"


def require_actor(f):
    """
    Require an acting user id.

    Authentication happens upstream; the validated user id arrives in the
    X-Actor-Id header and is stored as g.actor_id.

    Returns 401 if:
    - the header is missing or blank
    - the header carries the reserved system actor id
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = (request.headers.get(ACTOR_HEADER) or "").strip()

        if not actor_id:
            return jsonify({"error": "Authentication required"}), 401

        if actor_id == SYSTEM_ACTOR_ID:
            return jsonify({"error": "Reserved actor id"}), 401

        g.actor_id = actor_id
        return f(*args, **kwargs)

    return decorated_function
