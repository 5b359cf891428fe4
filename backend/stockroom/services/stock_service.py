# Overview: Service-layer operations for stock levels; encapsulates business logic and database work.

# backend/stockroom/services/stock_service.py

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Product, Stock, Storage
from ..validation import NotFoundError, ValidationError
from .changelog_service import insert_row, update_row
from .concurrency import lock_for_update, transactional
from .permission_service import PermissionDeniedError, can_post_stock
"""
Stock Invariants (authoritative)

- At most one Stock row per (product, storage).
- Posting a delta locks that row (read-modify-write) so concurrent posts to
  the same row serialize; posts to different rows do not block each other.
- A post to a missing row creates it with value = delta.
- A zero delta on an existing row changes nothing and logs nothing.
"""


def get_stock(product_id: str, storage_id: str) -> Stock | None:
    return db.session.query(Stock).filter_by(product_id=product_id, storage_id=storage_id).first()


def list_stock(*, product_id: str | None = None, storage_id: str | None = None) -> list[Stock]:
    query = db.session.query(Stock)
    if product_id is not None:
        query = query.filter(Stock.product_id == product_id)
    if storage_id is not None:
        query = query.filter(Stock.storage_id == storage_id)
    return query.all()


@transactional
def post_stock_delta(actor_id: str, *, product_id: str, storage_id: str, delta) -> Stock:
    """Add delta to the stock of product_id in storage_id."""
    if isinstance(delta, bool) or not isinstance(delta, (int, Decimal)):
        raise ValidationError("delta must be an integer or decimal")
    delta = Decimal(delta)

    if not can_post_stock(actor_id, storage_id):
        raise PermissionDeniedError("stock operation not allowed")

    if db.session.get(Storage, storage_id) is None:
        raise NotFoundError("storage not found")
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("product not found")

    stock = lock_for_update(
        db.session.query(Stock).filter_by(product_id=product_id, storage_id=storage_id)
    ).first()

    if stock is None:
        return insert_row(actor_id, Stock(product_id=product_id, storage_id=storage_id, value=delta))

    update_row(actor_id, stock, value=Decimal(stock.value) + delta)
    return stock
