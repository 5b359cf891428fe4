# Overview: Flask API routes for stock postings.

from flask import Blueprint, g, request

from ..decorators import require_actor
from ..services import stock_service
from ..validation import ensure_object, get_mandatory_decimal, get_mandatory_id, get_optional_id
from .errors import error_response


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
@require_actor
def list_stock():
    try:
        args = request.args
        rows = stock_service.list_stock(
            product_id=get_optional_id(args, "productId") if "productId" in args else None,
            storage_id=get_optional_id(args, "storageId") if "storageId" in args else None,
        )
    except Exception as exc:
        return error_response(exc)
    return {"stock": [row.snapshot() for row in rows]}, 200


@stock_bp.post("")
@require_actor
def post_stock():
    """
    Post a stock delta.

    Body: {"productId": uuid, "storageId": uuid, "delta": number}
    """
    try:
        data = ensure_object(request.get_json(silent=True))
        stock = stock_service.post_stock_delta(
            g.actor_id,
            product_id=get_mandatory_id(data, "productId"),
            storage_id=get_mandatory_id(data, "storageId"),
            delta=get_mandatory_decimal(data, "delta"),
        )
    except Exception as exc:
        return error_response(exc)
    return stock.snapshot(), 200
