# Overview: Flask API routes for local product edits.

from flask import Blueprint, g, request

from ..decorators import require_actor
from ..services import catalog_service
from .errors import error_response


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("/<product_id>")
@require_actor
def edit_product(product_id: str):
    """
    Edit a product.

    Body uses the product snapshot field names, e.g.
    {"name": "Pils 0.5", "productionCosts": 0.42, "groupId": "*"}
    """
    try:
        product = catalog_service.edit_product(g.actor_id, product_id, request.get_json(silent=True))
    except Exception as exc:
        return error_response(exc)
    return product.snapshot(), 200


@products_bp.delete("/<product_id>")
@require_actor
def delete_product(product_id: str):
    try:
        catalog_service.delete_product(g.actor_id, product_id)
    except Exception as exc:
        return error_response(exc)
    return {"deleted": product_id}, 200
