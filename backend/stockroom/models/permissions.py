from __future__ import annotations

from ..extensions import db
from .base import scope_key
from .catalog import ProductProperty


class ProductPermission(db.Model):
    """
    What a user may do with products of one group.

    group_id NULL scopes the permission to products without a group. A grant
    on a group is inherited by every descendant group.
    """
    __tablename__ = "product_permissions"
    __table_args__ = (
        db.UniqueConstraint("group_id", "user_id", name="uq_product_permissions_group_user"),
    )

    id = db.Column(db.String(36), primary_key=True)
    group_id = db.Column(db.String(36), db.ForeignKey("product_groups.id"), nullable=True, index=True)
    user_id = db.Column(db.String(36), nullable=False, index=True)
    add = db.Column(db.Boolean, nullable=False, default=False)
    remove = db.Column(db.Boolean, nullable=False, default=False)
    # Sorted list of ProductProperty values
    property_names = db.Column(db.JSON, nullable=False, default=list)

    @property
    def properties(self) -> frozenset[ProductProperty]:
        return frozenset(ProductProperty(name) for name in (self.property_names or []))

    @properties.setter
    def properties(self, value) -> None:
        self.property_names = sorted(ProductProperty(p).value for p in value)

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "groupId": scope_key(self.group_id),
            "userId": self.user_id,
            "add": bool(self.add),
            "remove": bool(self.remove),
            "properties": list(self.property_names or []),
        }


class StoragePermission(db.Model):
    """
    Whether a user may post stock to a storage.

    storage_id NULL grants the permission for every storage.
    """
    __tablename__ = "storage_permissions"
    __table_args__ = (
        db.UniqueConstraint("storage_id", "user_id", name="uq_storage_permissions_storage_user"),
    )

    id = db.Column(db.String(36), primary_key=True)
    storage_id = db.Column(db.String(36), db.ForeignKey("storages.id"), nullable=True, index=True)
    user_id = db.Column(db.String(36), nullable=False, index=True)
    stock = db.Column(db.Boolean, nullable=False, default=False)

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "storageId": scope_key(self.storage_id),
            "userId": self.user_id,
            "stock": bool(self.stock),
        }
