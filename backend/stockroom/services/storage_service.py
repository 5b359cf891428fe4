# Overview: Service-layer operations for storages; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Storage, Stock, StoragePermission
from ..validation import ConflictError, NotFoundError, ValidationError
from .changelog_service import delete_row, insert_row, update_row
from .concurrency import lock_for_update, transactional


def _normalize_name(name) -> str:
    if not isinstance(name, str):
        raise ValidationError("name must be a string")
    if name == "" or name.strip() != name:
        raise ValidationError("name must be non-blank and trimmed")
    return name


def _ensure_unique_name(name: str, *, exclude_id: str | None = None) -> None:
    # Names compare case-insensitively, like the storage name collation.
    query = db.session.query(Storage).filter(db.func.lower(Storage.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Storage.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"storage {name!r} already exists")


def get_storage(storage_id: str, *, lock: bool = False) -> Storage:
    query = db.session.query(Storage).filter_by(id=storage_id)
    if lock:
        query = lock_for_update(query)
    storage = query.first()
    if storage is None:
        raise NotFoundError("storage not found")
    return storage


def list_storages() -> list[Storage]:
    return db.session.query(Storage).order_by(Storage.name.asc()).all()


@transactional
def create_storage(actor_id: str, *, name: str = "", active: bool = True) -> Storage:
    name = _normalize_name(name)
    _ensure_unique_name(name)
    return insert_row(actor_id, Storage(name=name, active=active))


@transactional
def update_storage(
    actor_id: str,
    storage_id: str,
    *,
    name: str | None = None,
    active: bool | None = None,
) -> Storage:
    storage = get_storage(storage_id, lock=True)

    values = {}
    if name is not None:
        values["name"] = _normalize_name(name)
        _ensure_unique_name(values["name"], exclude_id=storage.id)
    if active is not None:
        values["active"] = active

    update_row(actor_id, storage, **values)
    return storage


@transactional
def delete_storage(actor_id: str, storage_id: str) -> None:
    """Delete a storage together with its stock rows and storage permissions."""
    storage = get_storage(storage_id, lock=True)

    for stock in db.session.query(Stock).filter_by(storage_id=storage.id).all():
        delete_row(actor_id, stock)

    for permission in db.session.query(StoragePermission).filter_by(storage_id=storage.id).all():
        delete_row(actor_id, permission)

    delete_row(actor_id, storage)
