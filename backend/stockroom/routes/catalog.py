# backend/stockroom/routes/catalog.py
"""
ready2order webhook receiver.

ready2order posts one product or product group per call. A body that holds
only the id is a deletion. Writes are made by the system actor.
"""
from flask import Blueprint, current_app, request

from ..services import catalog_service
from .errors import error_response


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


@catalog_bp.post("/webhook")
def webhook():
    if not current_app.config.get("CATALOG_WEBHOOK_ENABLED", False):
        return {"error": "Catalog webhook disabled"}, 404

    try:
        outcome = catalog_service.apply_webhook(request.get_json(silent=True))
    except Exception as exc:
        return error_response(exc)

    current_app.logger.info("Catalog webhook: %s", outcome)
    return {"result": outcome}, 200
