# Overview: Read side of the changelog; ships compacted diffs to replicas.

from __future__ import annotations

from dataclasses import dataclass, field

from ..extensions import db
from ..models import ChangeRecord, CHANGELOG_TABLE
from .changelog_service import ChangeKind, current_revision
from .compaction_service import compact_records
"""
Pull semantics:

- from_revision = watermark + 1 (0 when the client never synced)
- new_watermark = current max revision, read once before the range query;
  records committed later are left for the next pull
- one compacted change per (table, key) touched in the window; rows that
  were inserted and deleted inside the window are omitted
- every raw record in the window is also shipped verbatim as an Insert into
  the "changelog" table (the audit trail is replicated, never compacted)
- a window that is empty or reversed yields no changes; pull never raises
  for a well-formed watermark
"""


@dataclass(frozen=True)
class PullResult:
    changes: list = field(default_factory=list)
    new_watermark: int = 0

    def to_dict(self) -> dict:
        return {"changes": list(self.changes), "lastRevision": self.new_watermark}

    @classmethod
    def from_dict(cls, data) -> "PullResult":
        """Parse a wire response; raises ValueError on a malformed body."""
        if not isinstance(data, dict):
            raise ValueError("response must be an object")
        changes = data.get("changes")
        if not isinstance(changes, list):
            raise ValueError("changes must be an array")
        last_revision = data.get("lastRevision")
        if not isinstance(last_revision, int) or isinstance(last_revision, bool) or last_revision < 0:
            raise ValueError("lastRevision must be a non-negative integer")
        for change in changes:
            if not isinstance(change, dict):
                raise ValueError("each change must be an object")
        return cls(changes=changes, new_watermark=last_revision)


def changelog_change(record: ChangeRecord) -> dict:
    return {
        "type": int(ChangeKind.INSERT),
        "table": CHANGELOG_TABLE,
        "key": record.id,
        "obj": record.snapshot(),
    }


def pull(client_watermark: int | None = None) -> PullResult:
    if client_watermark is not None:
        if isinstance(client_watermark, bool) or not isinstance(client_watermark, int):
            raise ValueError("watermark must be an integer")
        if client_watermark < 0:
            raise ValueError("watermark must be >= 0")

    new_watermark = current_revision()
    from_revision = 0 if client_watermark is None else client_watermark + 1
    if from_revision > new_watermark:
        return PullResult(changes=[], new_watermark=new_watermark)

    records = (
        db.session.query(ChangeRecord)
        .filter(
            ChangeRecord.revision >= from_revision,
            ChangeRecord.revision <= new_watermark,
        )
        .order_by(ChangeRecord.revision.asc())
        .all()
    )

    groups: dict[tuple[str, str], list[ChangeRecord]] = {}
    for record in records:
        groups.setdefault((record.table_name, record.row_key), []).append(record)

    changes = []
    for group in groups.values():
        compacted = compact_records(group)
        if compacted is not None:
            changes.append(compacted.to_dict())

    changes.extend(changelog_change(record) for record in records)

    return PullResult(changes=changes, new_watermark=new_watermark)
