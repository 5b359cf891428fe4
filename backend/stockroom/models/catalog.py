from __future__ import annotations

from enum import Enum

from ..extensions import db
from ..time_utils import to_utc_z
from .base import json_number, scope_key


class ProductProperty(str, Enum):
    """
    Product fields a user may be allowed to edit.

    Values are the snapshot field names, so a permission check can compare
    them directly against the keys of an edit request.
    """
    EXTERNAL_REFERENCE = "externalReference"
    ITEM_NUMBER = "itemNumber"
    BARCODE = "barcode"
    NAME = "name"
    DESCRIPTION = "description"
    PRICE = "price"
    PRICE_INCLUDES_VAT = "priceIncludesVat"
    VAT = "vat"
    STOCK_ENABLED = "stockEnabled"
    STOCK_VALUE = "stockValue"
    STOCK_UNIT = "stockUnit"
    STOCK_REORDER_LEVEL = "stockReorderLevel"
    STOCK_SAFETY_STOCK = "stockSafetyStock"
    ACTIVE = "active"
    SOLD_OUT = "soldOut"
    DISCOUNTABLE = "discountable"
    ACCOUNTING_CODE = "accountingCode"
    ALTERNATIVE_NAME_ON_RECEIPTS = "alternativeNameOnReceipts"
    ALTERNATIVE_NAME_IN_POS = "alternativeNameInPos"
    PRODUCTION_COSTS = "productionCosts"


class ProductGroup(db.Model):
    """
    Product group mirrored from the ready2order catalog.

    api_id is the catalog's numeric id; id is the local row key used by the
    changelog. api_parent_id is kept so a child that arrives before its
    parent can be linked once the parent is synced.
    """
    __tablename__ = "product_groups"

    id = db.Column(db.String(36), primary_key=True)
    parent_id = db.Column(db.String(36), db.ForeignKey("product_groups.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    shortcut = db.Column(db.String(20), nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True)
    sort_index = db.Column(db.BigInteger, nullable=False, default=0)
    accounting_code = db.Column(db.String(50), nullable=True)
    type_id = db.Column(db.BigInteger, nullable=True)
    created_at = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=True)

    api_id = db.Column(db.BigInteger, nullable=False, unique=True)
    api_parent_id = db.Column(db.BigInteger, nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<ProductGroup id={self.id} api_id={self.api_id} name={self.name!r}>"

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "parentId": scope_key(self.parent_id),
            "name": self.name,
            "description": self.description,
            "shortcut": self.shortcut,
            "active": bool(self.active),
            "sortIndex": self.sort_index,
            "accountingCode": self.accounting_code,
            "typeId": self.type_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.String(36), primary_key=True)
    group_id = db.Column(db.String(36), db.ForeignKey("product_groups.id"), nullable=True, index=True)

    external_reference = db.Column(db.String(50), nullable=True)
    item_number = db.Column(db.String(100), nullable=True)
    barcode = db.Column(db.String(255), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(20, 5), nullable=False, default=0)
    price_includes_vat = db.Column(db.Boolean, nullable=False, default=True)
    vat = db.Column(db.Numeric(20, 5), nullable=False, default=0)
    stock_enabled = db.Column(db.Boolean, nullable=False, default=False)
    stock_value = db.Column(db.Numeric(20, 5), nullable=False, default=0)
    stock_unit = db.Column(db.String(50), nullable=True)
    stock_reorder_level = db.Column(db.Numeric(20, 5), nullable=True)
    stock_safety_stock = db.Column(db.Numeric(20, 5), nullable=True)
    sort_index = db.Column(db.BigInteger, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)
    sold_out = db.Column(db.Boolean, nullable=False, default=False)
    discountable = db.Column(db.Boolean, nullable=False, default=True)
    accounting_code = db.Column(db.String(50), nullable=True)
    alternative_name_on_receipts = db.Column(db.String(255), nullable=True)
    alternative_name_in_pos = db.Column(db.String(100), nullable=True)
    # Local-only: never sent to or received from the catalog.
    production_costs = db.Column(db.Numeric(20, 5), nullable=True)
    created_at = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=True)

    api_id = db.Column(db.BigInteger, nullable=False, unique=True)
    api_group_id = db.Column(db.BigInteger, nullable=True, index=True)

    group = db.relationship("ProductGroup", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} api_id={self.api_id} name={self.name!r}>"

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "groupId": scope_key(self.group_id),
            "externalReference": self.external_reference,
            "itemNumber": self.item_number,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "price": json_number(self.price),
            "priceIncludesVat": bool(self.price_includes_vat),
            "vat": json_number(self.vat),
            "stockEnabled": bool(self.stock_enabled),
            "stockValue": json_number(self.stock_value),
            "stockUnit": self.stock_unit,
            "stockReorderLevel": json_number(self.stock_reorder_level),
            "stockSafetyStock": json_number(self.stock_safety_stock),
            "sortIndex": self.sort_index,
            "active": bool(self.active),
            "soldOut": bool(self.sold_out),
            "discountable": bool(self.discountable),
            "accountingCode": self.accounting_code,
            "alternativeNameOnReceipts": self.alternative_name_on_receipts,
            "alternativeNameInPos": self.alternative_name_in_pos,
            "productionCosts": json_number(self.production_costs),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


# Snapshot field name -> Product attribute, for user edits.
PRODUCT_PROPERTY_COLUMNS = {
    ProductProperty.EXTERNAL_REFERENCE: "external_reference",
    ProductProperty.ITEM_NUMBER: "item_number",
    ProductProperty.BARCODE: "barcode",
    ProductProperty.NAME: "name",
    ProductProperty.DESCRIPTION: "description",
    ProductProperty.PRICE: "price",
    ProductProperty.PRICE_INCLUDES_VAT: "price_includes_vat",
    ProductProperty.VAT: "vat",
    ProductProperty.STOCK_ENABLED: "stock_enabled",
    ProductProperty.STOCK_VALUE: "stock_value",
    ProductProperty.STOCK_UNIT: "stock_unit",
    ProductProperty.STOCK_REORDER_LEVEL: "stock_reorder_level",
    ProductProperty.STOCK_SAFETY_STOCK: "stock_safety_stock",
    ProductProperty.ACTIVE: "active",
    ProductProperty.SOLD_OUT: "sold_out",
    ProductProperty.DISCOUNTABLE: "discountable",
    ProductProperty.ACCOUNTING_CODE: "accounting_code",
    ProductProperty.ALTERNATIVE_NAME_ON_RECEIPTS: "alternative_name_on_receipts",
    ProductProperty.ALTERNATIVE_NAME_IN_POS: "alternative_name_in_pos",
    ProductProperty.PRODUCTION_COSTS: "production_costs",
}
