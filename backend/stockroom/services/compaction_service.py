# Overview: Reduces the raw change history of one row to its net effect over a revision window.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..extensions import db
from ..models import ChangeRecord
from .changelog_service import ChangeKind
"""
Compaction rules for the records of one (table, key) inside [from, to]:

- Insert and Delete both present  -> nothing (row was transient)
- Insert present                  -> Insert of the insert payload with every
                                     later update overlaid in revision order
- Delete present (no Insert)      -> bare Delete
- Updates only                    -> Update with all update payloads merged,
                                     later revisions winning per field
"""


@dataclass(frozen=True)
class CompactedChange:
    kind: ChangeKind
    table: str
    key: str
    payload: Optional[dict] = field(default=None)

    def to_dict(self) -> dict:
        change = {"type": int(self.kind), "table": self.table, "key": self.key}
        if self.kind is ChangeKind.INSERT:
            change["obj"] = dict(self.payload or {})
        elif self.kind is ChangeKind.UPDATE:
            change["mods"] = dict(self.payload or {})
        return change


def merge_updates(obj: dict, mods: dict) -> dict:
    """Copy of obj with every field of mods overwritten."""
    merged = dict(obj)
    merged.update(mods)
    return merged


def compact_records(records: Iterable[ChangeRecord]) -> CompactedChange | None:
    """
    Pure compaction of the records of a single row.

    Records are re-sorted by revision; the caller is responsible for passing
    only records of one (table, key).
    """
    ordered = sorted(records, key=lambda r: r.revision)
    if not ordered:
        return None

    table = ordered[0].table_name
    key = ordered[0].row_key
    kinds = {ChangeKind(r.kind) for r in ordered}
    has_insert = ChangeKind.INSERT in kinds
    has_delete = ChangeKind.DELETE in kinds

    if has_insert and has_delete:
        return None

    if has_delete:
        return CompactedChange(kind=ChangeKind.DELETE, table=table, key=key)

    if has_insert:
        insert = next(r for r in ordered if r.kind == ChangeKind.INSERT)
        obj = dict(insert.payload or {})
        # Only updates after the insert apply; keys are never reused so
        # there are none before it.
        for record in ordered:
            if record.kind == ChangeKind.UPDATE and record.revision > insert.revision:
                obj = merge_updates(obj, record.payload or {})
        return CompactedChange(kind=ChangeKind.INSERT, table=table, key=key, payload=obj)

    mods: dict = {}
    for record in ordered:
        mods = merge_updates(mods, record.payload or {})
    return CompactedChange(kind=ChangeKind.UPDATE, table=table, key=key, payload=mods)


def load_records(table: str, key: str, from_revision: int, to_revision: int) -> list[ChangeRecord]:
    if from_revision > to_revision:
        return []
    return (
        db.session.query(ChangeRecord)
        .filter(
            ChangeRecord.table_name == table,
            ChangeRecord.row_key == key,
            ChangeRecord.revision >= from_revision,
            ChangeRecord.revision <= to_revision,
        )
        .order_by(ChangeRecord.revision.asc())
        .all()
    )


def compact(table: str, key: str, from_revision: int, to_revision: int) -> CompactedChange | None:
    """Net change of (table, key) over from_revision..to_revision (inclusive)."""
    return compact_records(load_records(table, key, from_revision, to_revision))
