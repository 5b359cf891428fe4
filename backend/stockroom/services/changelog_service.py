# Overview: Service-layer operations for the changelog; every entity write goes through here.

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from enum import IntEnum

from sqlalchemy import Numeric, func, update

from ..extensions import db
from ..models import ChangeRecord, RevisionCounter, TABLE_MODELS
from ..models.base import new_key
from ..validation import ValidationError
"""
Changelog Invariants (authoritative)

- Append-only: ChangeRecords are never updated or deleted.
- Records are appended inside the same DB transaction as the mutation they
  describe (see concurrency.transactional); a rollback discards both.
- revision is a single global counter over all tables. Allocation locks the
  RevisionCounter row until commit, so revisions commit in order.
- For one (table, key) the record sequence is: Insert, Update*, Delete?.
  Keys are never reused after a Delete.
- An update that changes no field appends nothing.
"""

# Actor for catalog sync and webhooks (never a real user).
SYSTEM_ACTOR_ID = "00000000-0000-0000-0000-000000000000"

_MODEL_TABLES = {model: table for table, model in TABLE_MODELS.items()}


class ChangeKind(IntEnum):
    INSERT = 1
    UPDATE = 2
    DELETE = 3


class ChangelogError(Exception):
    """Raised when a mutation would break the changelog contract."""
    pass


def table_for(row) -> str:
    try:
        return _MODEL_TABLES[type(row)]
    except KeyError:
        raise ChangelogError(f"{type(row).__name__} is not a tracked table")


def current_revision() -> int:
    """Highest committed revision in the log; 0 when the log is empty."""
    return int(db.session.query(func.coalesce(func.max(ChangeRecord.revision), 0)).scalar() or 0)


def _allocate_revision() -> int:
    stmt = (
        update(RevisionCounter)
        .where(RevisionCounter.id == 1)
        .values(last_revision=RevisionCounter.last_revision + 1)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        return int(db.session.query(RevisionCounter.last_revision).filter_by(id=1).scalar())

    # First append on a fresh database: seed the counter past any existing records.
    revision = current_revision() + 1
    db.session.add(RevisionCounter(id=1, last_revision=revision))
    db.session.flush()
    return revision


def append_change(
    *,
    actor_id: str,
    table: str,
    key: str,
    kind: ChangeKind,
    payload: dict | None = None,
) -> ChangeRecord:
    """
    Append one change record to the log.

    Must run inside the transaction of the mutation it records. The record
    is flushed (revision assigned) but not committed.
    """
    if not actor_id:
        raise ChangelogError("actor_id is required")
    kind = ChangeKind(kind)
    if kind is ChangeKind.DELETE:
        payload = None
    elif payload is None:
        raise ChangelogError(f"{kind.name.lower()} requires a payload")

    record = ChangeRecord(
        revision=_allocate_revision(),
        id=new_key(),
        actor_id=actor_id,
        table_name=table,
        row_key=key,
        kind=int(kind),
        payload=payload,
    )
    db.session.add(record)
    db.session.flush()
    return record


def diff_snapshots(old: dict, new: dict) -> dict:
    """
    New values of every field present in either snapshot whose value differs.

    A field missing from new maps to None.
    """
    mods = {}
    for field in list(old.keys()) + [k for k in new.keys() if k not in old]:
        if old.get(field) != new.get(field) or (field in old) != (field in new):
            mods[field] = new.get(field)
    return mods


def log_insert(actor_id: str, row) -> ChangeRecord:
    snapshot = row.snapshot()
    return append_change(
        actor_id=actor_id,
        table=table_for(row),
        key=snapshot["id"],
        kind=ChangeKind.INSERT,
        payload=snapshot,
    )


def log_update(actor_id: str, row, old_snapshot: dict) -> ChangeRecord | None:
    """Log the difference between old_snapshot and the row's current state."""
    new_snapshot = row.snapshot()
    if old_snapshot.get("id") != new_snapshot.get("id"):
        raise ChangelogError("key change detected")

    mods = diff_snapshots(old_snapshot, new_snapshot)
    if not mods:
        return None

    return append_change(
        actor_id=actor_id,
        table=table_for(row),
        key=new_snapshot["id"],
        kind=ChangeKind.UPDATE,
        payload=mods,
    )


def log_delete(actor_id: str, table: str, key: str) -> ChangeRecord:
    return append_change(actor_id=actor_id, table=table, key=key, kind=ChangeKind.DELETE)


# ---------------------------------------------------------------------------
# Tracked writes: the only way services mutate entity rows
# ---------------------------------------------------------------------------

def round_numeric_columns(row) -> None:
    """
    Round Decimal attributes to their column scale, in place.

    The database keeps Numeric(p, s) values at scale s; the snapshot logged
    for the row has to carry the value as stored.
    """
    for col in row.__mapper__.columns:
        if not isinstance(col.type, Numeric) or col.type.scale is None:
            continue
        value = getattr(row, col.key)
        if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
            continue
        try:
            rounded = Decimal(value).quantize(Decimal(1).scaleb(-col.type.scale))
        except InvalidOperation:
            raise ValidationError(f"{col.key} is out of range")
        if col.type.precision is not None and rounded.adjusted() >= col.type.precision - col.type.scale:
            raise ValidationError(f"{col.key} is out of range")
        if rounded != value or not isinstance(value, Decimal):
            setattr(row, col.key, rounded)


def insert_row(actor_id: str, row):
    if row.id is None:
        row.id = new_key()
    round_numeric_columns(row)
    db.session.add(row)
    db.session.flush()
    log_insert(actor_id, row)
    return row


def update_row(actor_id: str, row, **values) -> ChangeRecord | None:
    old_snapshot = row.snapshot()
    for attr, value in values.items():
        setattr(row, attr, value)
    round_numeric_columns(row)
    db.session.flush()
    return log_update(actor_id, row, old_snapshot)


@contextmanager
def tracked_update(actor_id: str, row):
    """Snapshot the row, let the caller mutate it, then log the diff."""
    old_snapshot = row.snapshot()
    yield row
    round_numeric_columns(row)
    db.session.flush()
    log_update(actor_id, row, old_snapshot)


def delete_row(actor_id: str, row) -> ChangeRecord:
    table = table_for(row)
    key = row.id
    db.session.delete(row)
    db.session.flush()
    return log_delete(actor_id, table, key)
