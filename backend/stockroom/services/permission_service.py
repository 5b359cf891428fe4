# Overview: Service-layer operations for permissions; grants and their evaluation.

"""
Storage and Product Permissions

Storage permissions:
- (storage, user) -> stock. storage NULL means "every storage".
- Posting stock requires a matching grant with stock=True.

Product permissions:
- (group, user) -> add, remove, properties.
- A grant on a group applies to that group and all of its descendants.
- A grant with group NULL applies to products that have no group.
- add/remove control moving products into/out of a group (and creating or
  deleting them there); properties lists the fields the user may edit.

The system actor bypasses every check.
"""

from __future__ import annotations

from ..extensions import db
from ..models import ProductGroup, ProductPermission, ProductProperty, Storage, StoragePermission
from ..validation import NotFoundError, ValidationError
from .changelog_service import SYSTEM_ACTOR_ID, delete_row, insert_row, update_row
from .concurrency import lock_for_update, transactional


class PermissionDeniedError(Exception):
    """Raised when the acting user lacks a required permission."""
    pass


def _ensure_user_id(user_id: str) -> str:
    if not user_id:
        raise ValidationError("userId is required")
    if user_id == SYSTEM_ACTOR_ID:
        raise ValidationError("permissions cannot be granted to the system actor")
    return user_id


def _scope_filter(column, value):
    return column.is_(None) if value is None else column == value


# =============================================================================
# Storage permissions
# =============================================================================

@transactional
def put_storage_permission(
    actor_id: str,
    *,
    user_id: str,
    storage_id: str | None,
    stock: bool | None = None,
) -> StoragePermission:
    """Create or update the grant for (storage, user)."""
    _ensure_user_id(user_id)
    if storage_id is not None and db.session.get(Storage, storage_id) is None:
        raise NotFoundError("storage not found")

    permission = lock_for_update(
        db.session.query(StoragePermission).filter(
            _scope_filter(StoragePermission.storage_id, storage_id),
            StoragePermission.user_id == user_id,
        )
    ).first()

    if permission is None:
        return insert_row(
            actor_id,
            StoragePermission(storage_id=storage_id, user_id=user_id, stock=bool(stock)),
        )

    if stock is not None:
        update_row(actor_id, permission, stock=stock)
    return permission


@transactional
def delete_storage_permission(actor_id: str, *, user_id: str, storage_id: str | None) -> bool:
    permission = db.session.query(StoragePermission).filter(
        _scope_filter(StoragePermission.storage_id, storage_id),
        StoragePermission.user_id == user_id,
    ).first()
    if permission is None:
        return False
    delete_row(actor_id, permission)
    return True


def can_post_stock(actor_id: str, storage_id: str) -> bool:
    if actor_id == SYSTEM_ACTOR_ID:
        return True
    return db.session.query(StoragePermission).filter(
        StoragePermission.user_id == actor_id,
        StoragePermission.stock.is_(True),
        db.or_(StoragePermission.storage_id.is_(None), StoragePermission.storage_id == storage_id),
    ).first() is not None


# =============================================================================
# Product permissions
# =============================================================================

@transactional
def put_product_permission(
    actor_id: str,
    *,
    user_id: str,
    group_id: str | None,
    add: bool | None = None,
    remove: bool | None = None,
    properties=None,
) -> ProductPermission:
    """Create or update the grant for (group, user)."""
    _ensure_user_id(user_id)
    if group_id is not None and db.session.get(ProductGroup, group_id) is None:
        raise NotFoundError("product group not found")
    if properties is not None:
        try:
            properties = frozenset(ProductProperty(p) for p in properties)
        except ValueError as exc:
            raise ValidationError(f"invalid product property: {exc}")

    permission = lock_for_update(
        db.session.query(ProductPermission).filter(
            _scope_filter(ProductPermission.group_id, group_id),
            ProductPermission.user_id == user_id,
        )
    ).first()

    if permission is None:
        permission = ProductPermission(
            group_id=group_id,
            user_id=user_id,
            add=bool(add),
            remove=bool(remove),
        )
        permission.properties = properties or ()
        return insert_row(actor_id, permission)

    values = {}
    if add is not None:
        values["add"] = add
    if remove is not None:
        values["remove"] = remove
    if properties is not None:
        values["property_names"] = sorted(p.value for p in properties)
    update_row(actor_id, permission, **values)
    return permission


@transactional
def delete_product_permission(actor_id: str, *, user_id: str, group_id: str | None) -> bool:
    permission = db.session.query(ProductPermission).filter(
        _scope_filter(ProductPermission.group_id, group_id),
        ProductPermission.user_id == user_id,
    ).first()
    if permission is None:
        return False
    delete_row(actor_id, permission)
    return True


def group_lineage(group_id: str | None) -> list[str | None]:
    """The group followed by its ancestors, root last; [None] for no group."""
    if group_id is None:
        return [None]

    lineage: list[str | None] = []
    seen: set[str] = set()
    current = group_id
    while current is not None and current not in seen:
        seen.add(current)
        lineage.append(current)
        current = db.session.query(ProductGroup.parent_id).filter_by(id=current).scalar()
    return lineage


def effective_product_permissions(actor_id: str, group_id: str | None) -> list[ProductPermission]:
    lineage = group_lineage(group_id)
    group_ids = [g for g in lineage if g is not None]
    query = db.session.query(ProductPermission).filter(ProductPermission.user_id == actor_id)
    if group_ids:
        query = query.filter(ProductPermission.group_id.in_(group_ids))
    else:
        query = query.filter(ProductPermission.group_id.is_(None))
    return query.all()


def can_add_product(actor_id: str, group_id: str | None) -> bool:
    if actor_id == SYSTEM_ACTOR_ID:
        return True
    return any(p.add for p in effective_product_permissions(actor_id, group_id))


def can_remove_product(actor_id: str, group_id: str | None) -> bool:
    if actor_id == SYSTEM_ACTOR_ID:
        return True
    return any(p.remove for p in effective_product_permissions(actor_id, group_id))


def allowed_product_properties(actor_id: str, group_id: str | None) -> frozenset[ProductProperty]:
    if actor_id == SYSTEM_ACTOR_ID:
        return frozenset(ProductProperty)
    allowed: set[ProductProperty] = set()
    for permission in effective_product_permissions(actor_id, group_id):
        allowed |= permission.properties
    return frozenset(allowed)


def ensure_product_properties(actor_id: str, group_id: str | None, fields) -> None:
    """Raise PermissionDeniedError naming every field the actor may not edit."""
    allowed = {p.value for p in allowed_product_properties(actor_id, group_id)}
    denied = sorted(f for f in fields if f not in ("id", "groupId") and f not in allowed)
    if denied:
        raise PermissionDeniedError(f"properties not allowed: {','.join(denied)}"[:128])
