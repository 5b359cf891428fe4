# Overview: Maps service-layer exceptions to JSON error responses.

from flask import current_app

from ..services.catalog_service import CatalogSyncError
from ..services.permission_service import PermissionDeniedError
from ..validation import ConflictError, NotFoundError, ValidationError


def error_response(exc: Exception):
    """Return a (body, status) pair for an exception raised by a service."""
    if isinstance(exc, NotFoundError):
        return {"error": str(exc)}, 404
    if isinstance(exc, ConflictError):
        return {"error": str(exc)}, 409
    if isinstance(exc, (ValidationError, CatalogSyncError)):
        return {"error": str(exc)}, 400
    if isinstance(exc, PermissionDeniedError):
        return {"error": str(exc)}, 403
    current_app.logger.exception("Unhandled service error")
    return {"error": "Internal server error"}, 500
