from __future__ import annotations

from ..extensions import db
from .base import json_number


class Storage(db.Model):
    """A physical storage location (warehouse, shelf, van...)."""
    __tablename__ = "storages"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_storages_name"),
    )

    id = db.Column(db.String(36), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Storage id={self.id} name={self.name!r}>"

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "active": bool(self.active),
        }


class Stock(db.Model):
    """
    Current quantity of one product in one storage.

    Stock is a mutable quantity; each posted delta updates the single
    (product, storage) row, so the changelog records value changes rather
    than a movement history.
    """
    __tablename__ = "stock"
    __table_args__ = (
        db.UniqueConstraint("product_id", "storage_id", name="uq_stock_product_storage"),
    )

    id = db.Column(db.String(36), primary_key=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)
    storage_id = db.Column(db.String(36), db.ForeignKey("storages.id"), nullable=False, index=True)
    value = db.Column(db.Numeric(20, 5), nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Stock product_id={self.product_id} storage_id={self.storage_id} value={self.value}>"

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "storageId": self.storage_id,
            "value": json_number(self.value),
        }
