# Overview: Service-layer operations for the mirrored ready2order catalog (groups and products).

from __future__ import annotations

from ..extensions import db
from ..models import (
    PRODUCT_PROPERTY_COLUMNS,
    Product,
    ProductGroup,
    ProductPermission,
    ProductProperty,
    Stock,
)
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    ensure_object,
    get_boolean,
    get_datetime,
    get_mandatory_decimal,
    get_mandatory_int,
    get_mandatory_string,
    get_optional_decimal,
    get_optional_id,
    get_optional_int,
    get_optional_string,
    validate_payload,
)
from .changelog_service import SYSTEM_ACTOR_ID, current_revision, delete_row, insert_row, update_row
from .concurrency import lock_for_update, transactional
from .permission_service import (
    PermissionDeniedError,
    can_add_product,
    can_remove_product,
    ensure_product_properties,
)
"""
Catalog mirror semantics:

- ready2order owns groups and products; rows are matched by api_id and get a
  local UUID key on first sight.
- A product or group may arrive before its parent group. The catalog id of
  the parent is remembered (api_group_id / api_parent_id) and the link is
  filled in when the parent is inserted.
- production_costs is local data and is never overwritten by the catalog.
- All catalog writes are made by the system actor.
"""


class CatalogSyncError(Exception):
    """Raised when a full catalog sync is driven out of order."""
    pass


# =============================================================================
# Payload mapping (ready2order field names -> model attributes)
# =============================================================================

def _group_values(data: dict) -> dict:
    return {
        "name": get_mandatory_string(data, "productgroup_name"),
        "description": get_optional_string(data, "productgroup_description"),
        "shortcut": get_optional_string(data, "productgroup_shortcut"),
        "active": get_boolean(data, "productgroup_active"),
        "sort_index": get_mandatory_int(data, "productgroup_sortIndex"),
        "accounting_code": get_optional_string(data, "productgroup_accountingCode"),
        "type_id": get_optional_int(data, "productgroup_type_id"),
        "created_at": get_datetime(data, "productgroup_created_at"),
        "updated_at": get_datetime(data, "productgroup_updated_at"),
    }


def _product_api_group_id(data: dict) -> int | None:
    nested = data.get("productgroup")
    if isinstance(nested, dict) and "productgroup_id" in nested:
        return get_optional_int(nested, "productgroup_id")
    if "productgroup_id" in data:
        return get_optional_int(data, "productgroup_id")
    return None


def _product_values(data: dict) -> dict:
    return {
        "external_reference": get_optional_string(data, "product_externalReference"),
        "item_number": get_optional_string(data, "product_itemnumber"),
        "barcode": get_optional_string(data, "product_barcode"),
        "name": get_mandatory_string(data, "product_name"),
        "description": get_optional_string(data, "product_description"),
        "price": get_mandatory_decimal(data, "product_price"),
        "price_includes_vat": get_boolean(data, "product_priceIncludesVat"),
        "vat": get_mandatory_decimal(data, "product_vat"),
        "stock_enabled": get_boolean(data, "product_stock_enabled"),
        "stock_value": get_mandatory_decimal(data, "product_stock_value"),
        "stock_unit": get_optional_string(data, "product_stock_unit"),
        "stock_reorder_level": get_optional_decimal(data, "product_stock_reorderLevel"),
        "stock_safety_stock": get_optional_decimal(data, "product_stock_safetyStock"),
        "sort_index": get_mandatory_int(data, "product_sortIndex"),
        "active": get_boolean(data, "product_active"),
        "sold_out": get_boolean(data, "product_soldOut"),
        "discountable": get_boolean(data, "product_discountable"),
        "accounting_code": get_optional_string(data, "product_accountingCode"),
        "alternative_name_on_receipts": get_optional_string(data, "product_alternativeNameOnReceipts"),
        "alternative_name_in_pos": get_optional_string(data, "product_alternativeNameInPos"),
        "created_at": get_datetime(data, "product_created_at"),
        "updated_at": get_datetime(data, "product_updated_at"),
    }


def _group_by_api_id(api_id: int | None) -> ProductGroup | None:
    if api_id is None:
        return None
    return db.session.query(ProductGroup).filter_by(api_id=api_id).first()


# =============================================================================
# Upserts and deletes (no commit; callers own the transaction)
# =============================================================================

def _upsert_product_group(actor_id: str, data: dict) -> ProductGroup:
    ensure_object(data)
    api_id = get_mandatory_int(data, "productgroup_id")
    api_parent_id = get_optional_int(data, "productgroup_parent")
    parent = _group_by_api_id(api_parent_id)
    values = _group_values(data)
    values["parent_id"] = parent.id if parent else None
    values["api_parent_id"] = api_parent_id

    group = lock_for_update(db.session.query(ProductGroup).filter_by(api_id=api_id)).first()
    if group is not None:
        update_row(actor_id, group, **values)
        return group

    group = insert_row(actor_id, ProductGroup(api_id=api_id, **values))

    # Link children that arrived before this group.
    for child in db.session.query(ProductGroup).filter_by(api_parent_id=api_id).all():
        if child.id != group.id and child.parent_id != group.id:
            update_row(actor_id, child, parent_id=group.id)
    for product in db.session.query(Product).filter_by(api_group_id=api_id).all():
        if product.group_id != group.id:
            update_row(actor_id, product, group_id=group.id)
    return group


def _upsert_product(actor_id: str, data: dict) -> Product:
    ensure_object(data)
    api_id = get_mandatory_int(data, "product_id")
    api_group_id = _product_api_group_id(data)
    group = _group_by_api_id(api_group_id)
    values = _product_values(data)
    values["group_id"] = group.id if group else None
    values["api_group_id"] = api_group_id

    product = lock_for_update(db.session.query(Product).filter_by(api_id=api_id)).first()
    if product is not None:
        update_row(actor_id, product, **values)
        return product

    return insert_row(actor_id, Product(api_id=api_id, **values))


def _delete_product(actor_id: str, product: Product) -> None:
    for stock in db.session.query(Stock).filter_by(product_id=product.id).all():
        delete_row(actor_id, stock)
    delete_row(actor_id, product)


def _delete_product_group(actor_id: str, group: ProductGroup) -> None:
    for product in db.session.query(Product).filter_by(group_id=group.id).all():
        update_row(actor_id, product, group_id=None)
    for child in db.session.query(ProductGroup).filter_by(parent_id=group.id).all():
        update_row(actor_id, child, parent_id=None)
    for permission in db.session.query(ProductPermission).filter_by(group_id=group.id).all():
        delete_row(actor_id, permission)
    delete_row(actor_id, group)


@transactional
def upsert_product_group(data: dict) -> ProductGroup:
    return _upsert_product_group(SYSTEM_ACTOR_ID, data)


@transactional
def upsert_product(data: dict) -> Product:
    return _upsert_product(SYSTEM_ACTOR_ID, data)


@transactional
def delete_product(actor_id: str, product_id: str) -> None:
    """Delete a product and its stock rows; users need remove permission on its group."""
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError("product not found")
    if not can_remove_product(actor_id, product.group_id):
        raise PermissionDeniedError("delete product not allowed")
    _delete_product(actor_id, product)


@transactional
def delete_product_group(group_id: str) -> None:
    group = lock_for_update(db.session.query(ProductGroup).filter_by(id=group_id)).first()
    if group is None:
        raise NotFoundError("product group not found")
    _delete_product_group(SYSTEM_ACTOR_ID, group)


# =============================================================================
# Webhook and full sync
# =============================================================================

@transactional
def apply_webhook(data) -> str:
    """
    Apply one ready2order webhook payload.

    A payload holding only the id deletes; anything else upserts.
    Returns a short description of what was done.
    """
    data = ensure_object(data)

    if "product_id" in data:
        if len(data) == 1:
            product = db.session.query(Product).filter_by(api_id=get_mandatory_int(data, "product_id")).first()
            if product is None:
                return "product already absent"
            _delete_product(SYSTEM_ACTOR_ID, product)
            return "product deleted"
        _upsert_product(SYSTEM_ACTOR_ID, data)
        return "product upserted"

    if "productgroup_id" in data:
        if len(data) == 1:
            group = _group_by_api_id(get_mandatory_int(data, "productgroup_id"))
            if group is None:
                return "product group already absent"
            _delete_product_group(SYSTEM_ACTOR_ID, group)
            return "product group deleted"
        _upsert_product_group(SYSTEM_ACTOR_ID, data)
        return "product group upserted"

    raise ValidationError("unknown data type")


class CatalogSync:
    """
    Full catalog sync session.

    start() -> apply("productGroup", [...]) / apply("product", [...]) ... -> finish()

    finish() deletes every product and group that was not part of the sync.
    Groups should be applied before products so new products link directly.
    """

    KINDS = ("productGroup", "product")

    def __init__(self):
        self.start_revision: int | None = None
        self._group_ids: set[str] = set()
        self._product_ids: set[str] = set()

    @property
    def started(self) -> bool:
        return self.start_revision is not None

    def start(self) -> int:
        if self.started:
            raise CatalogSyncError("sync already started")
        self.start_revision = current_revision()
        self._group_ids.clear()
        self._product_ids.clear()
        return self.start_revision

    def apply(self, kind: str, items) -> int:
        if not self.started:
            raise CatalogSyncError("sync not started")
        if kind not in self.KINDS:
            raise ValidationError("invalid object type")
        if not isinstance(items, list):
            raise ValidationError("ARRAY input data expected")
        return self._apply_batch(kind, items)

    @transactional
    def _apply_batch(self, kind: str, items: list) -> int:
        for item in items:
            if kind == "productGroup":
                self._group_ids.add(_upsert_product_group(SYSTEM_ACTOR_ID, item).id)
            else:
                self._product_ids.add(_upsert_product(SYSTEM_ACTOR_ID, item).id)
        return len(items)

    def finish(self) -> dict:
        if not self.started:
            raise CatalogSyncError("sync not started")
        self.start_revision = None
        return self._remove_stale()

    @transactional
    def _remove_stale(self) -> dict:
        products = db.session.query(Product).filter(Product.id.notin_(list(self._product_ids))).all()
        for product in products:
            _delete_product(SYSTEM_ACTOR_ID, product)

        groups = db.session.query(ProductGroup).filter(ProductGroup.id.notin_(list(self._group_ids))).all()
        for group in groups:
            _delete_product_group(SYSTEM_ACTOR_ID, group)

        return {
            "numberOfProductGroups": len(self._group_ids),
            "numberOfProducts": len(self._product_ids),
            "deletedProductGroups": len(groups),
            "deletedProducts": len(products),
        }


def sync_catalog(groups: list, products: list) -> dict:
    """Run a complete sync from already fetched catalog data."""
    sync = CatalogSync()
    sync.start()
    sync.apply("productGroup", groups)
    sync.apply("product", products)
    return sync.finish()


# =============================================================================
# User edits of mirrored products
# =============================================================================

PRODUCT_EDIT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset(PRODUCT_PROPERTY_COLUMNS.values()),
)


@transactional
def edit_product(actor_id: str, product_id: str, changes) -> Product:
    """
    Apply a user's edit to a product.

    changes uses snapshot field names; "groupId" moves the product ("*" for
    no group). Moving needs add permission on the target group and remove
    permission on the current one; every other field needs to be listed in
    the actor's effective properties for the target group.
    """
    changes = ensure_object(changes)
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError("product not found")

    target_group_id = product.group_id
    if "groupId" in changes:
        target_group_id = get_optional_id(changes, "groupId")
        if target_group_id is not None and db.session.get(ProductGroup, target_group_id) is None:
            raise NotFoundError("product group not found")
        if target_group_id != product.group_id and not (
            can_add_product(actor_id, target_group_id) and can_remove_product(actor_id, product.group_id)
        ):
            raise PermissionDeniedError("move product not allowed")

    fields = [k for k in changes.keys() if k not in ("id", "groupId")]
    unknown = sorted(k for k in fields if k not in {p.value for p in ProductProperty})
    if unknown:
        raise ValidationError(f"Unknown field: {', '.join(unknown)}")
    ensure_product_properties(actor_id, target_group_id, fields)

    patch = validate_payload(
        model=Product,
        payload={PRODUCT_PROPERTY_COLUMNS[ProductProperty(k)]: changes[k] for k in fields},
        policy=PRODUCT_EDIT_POLICY,
    )
    if target_group_id != product.group_id:
        patch["group_id"] = target_group_id

    update_row(actor_id, product, **patch)
    return product
