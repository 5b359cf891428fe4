# backend/stockroom/routes/permissions.py
"""
Permission management routes.

Scopes use "*" for the NULL scope:
- storage permission storageId "*" covers every storage
- product permission groupId "*" covers products without a group

PUT upserts the grant for (scope, user); fields left out keep their value.
"""
from flask import Blueprint, g, request

from ..decorators import require_actor
from ..services import permission_service
from ..validation import ValidationError, ensure_object, get_boolean, get_mandatory_string, get_optional_id
from .errors import error_response


permissions_bp = Blueprint("permissions", __name__, url_prefix="/api/permissions")


def _optional_boolean(data: dict, key: str):
    return get_boolean(data, key) if key in data else None


@permissions_bp.put("/storage")
@require_actor
def put_storage_permission():
    try:
        data = ensure_object(request.get_json(silent=True))
        permission = permission_service.put_storage_permission(
            g.actor_id,
            user_id=get_mandatory_string(data, "userId"),
            storage_id=get_optional_id(data, "storageId"),
            stock=_optional_boolean(data, "stock"),
        )
    except Exception as exc:
        return error_response(exc)
    return permission.snapshot(), 200


@permissions_bp.delete("/storage")
@require_actor
def delete_storage_permission():
    try:
        data = ensure_object(request.get_json(silent=True))
        deleted = permission_service.delete_storage_permission(
            g.actor_id,
            user_id=get_mandatory_string(data, "userId"),
            storage_id=get_optional_id(data, "storageId"),
        )
    except Exception as exc:
        return error_response(exc)
    if not deleted:
        return {"error": "permission not found"}, 404
    return {"deleted": True}, 200


@permissions_bp.put("/product")
@require_actor
def put_product_permission():
    try:
        data = ensure_object(request.get_json(silent=True))
        properties = data.get("properties")
        if properties is not None and not isinstance(properties, list):
            raise ValidationError("properties must be an array")
        permission = permission_service.put_product_permission(
            g.actor_id,
            user_id=get_mandatory_string(data, "userId"),
            group_id=get_optional_id(data, "groupId"),
            add=_optional_boolean(data, "add"),
            remove=_optional_boolean(data, "remove"),
            properties=properties,
        )
    except Exception as exc:
        return error_response(exc)
    return permission.snapshot(), 200


@permissions_bp.delete("/product")
@require_actor
def delete_product_permission():
    try:
        data = ensure_object(request.get_json(silent=True))
        deleted = permission_service.delete_product_permission(
            g.actor_id,
            user_id=get_mandatory_string(data, "userId"),
            group_id=get_optional_id(data, "groupId"),
        )
    except Exception as exc:
        return error_response(exc)
    if not deleted:
        return {"error": "permission not found"}, 404
    return {"deleted": True}, 200
