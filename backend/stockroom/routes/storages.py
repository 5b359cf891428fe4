# Overview: Flask API routes for storages; parses input and returns JSON responses.

from flask import Blueprint, g, request

from ..decorators import require_actor
from ..services import storage_service
from ..validation import ensure_object, get_boolean, get_mandatory_string
from .errors import error_response


storages_bp = Blueprint("storages", __name__, url_prefix="/api/storages")


@storages_bp.get("")
@require_actor
def list_storages():
    return {"storages": [s.snapshot() for s in storage_service.list_storages()]}, 200


@storages_bp.put("")
@require_actor
def create_storage():
    try:
        data = ensure_object(request.get_json(silent=True))
        active = get_boolean(data, "active") if "active" in data else True
        storage = storage_service.create_storage(
            g.actor_id,
            name=get_mandatory_string(data, "name"),
            active=active,
        )
    except Exception as exc:
        return error_response(exc)
    return storage.snapshot(), 201


@storages_bp.post("/<storage_id>")
@require_actor
def update_storage(storage_id: str):
    try:
        data = ensure_object(request.get_json(silent=True))
        storage = storage_service.update_storage(
            g.actor_id,
            storage_id,
            name=get_mandatory_string(data, "name") if "name" in data else None,
            active=get_boolean(data, "active") if "active" in data else None,
        )
    except Exception as exc:
        return error_response(exc)
    return storage.snapshot(), 200


@storages_bp.delete("/<storage_id>")
@require_actor
def delete_storage(storage_id: str):
    try:
        storage_service.delete_storage(g.actor_id, storage_id)
    except Exception as exc:
        return error_response(exc)
    return {"deleted": storage_id}, 200
