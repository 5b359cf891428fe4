from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ChangeRecord(db.Model):
    """
    One row-level mutation of the entity store.

    Append-only: records are written inside the transaction of the mutation
    they describe and are never updated or deleted afterwards.

    kind:
    - 1 Insert: payload is the full snapshot of the new row
    - 2 Update: payload holds only the fields whose value changed (new values)
    - 3 Delete: no payload

    table_name/row_key are stored as plain columns so grouping by row never
    has to decode the payload.
    """
    __tablename__ = "change_records"
    __table_args__ = (
        db.Index("ix_change_records_table_key_revision", "table_name", "row_key", "revision"),
        db.UniqueConstraint("id", name="uq_change_records_id"),
    )

    revision = db.Column(db.BigInteger().with_variant(db.Integer, "sqlite"), primary_key=True, autoincrement=False)
    id = db.Column(db.String(36), nullable=False)

    actor_id = db.Column(db.String(36), nullable=False, index=True)
    table_name = db.Column(db.String(64), nullable=False)
    row_key = db.Column(db.String(36), nullable=False)
    kind = db.Column(db.SmallInteger, nullable=False)
    payload = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<ChangeRecord revision={self.revision} kind={self.kind} {self.table_name}/{self.row_key}>"

    def change_dict(self) -> dict:
        """Wire form of the raw change (same shape as a compacted change)."""
        change = {"type": self.kind, "table": self.table_name, "key": self.row_key}
        if self.kind == 1:
            change["obj"] = self.payload
        elif self.kind == 2:
            change["mods"] = self.payload
        return change

    def snapshot(self) -> dict:
        return {
            "id": self.id,
            "userId": self.actor_id,
            "change": self.change_dict(),
            "time": to_utc_z(self.created_at),
        }

    def to_dict(self) -> dict:
        return {
            "revision": self.revision,
            "id": self.id,
            "actor_id": self.actor_id,
            "table": self.table_name,
            "key": self.row_key,
            "kind": self.kind,
            "payload": self.payload,
            "created_at": to_utc_z(self.created_at),
        }


class RevisionCounter(db.Model):
    """
    Single-row global revision counter.

    WHY: Allocating a revision takes a row lock on this counter that is held
    until the owning transaction commits, so revisions become visible to
    readers in allocation order. A reader that saw revision N can never later
    discover a committed N-1.
    """
    __tablename__ = "revision_counter"

    id = db.Column(db.Integer, primary_key=True)
    last_revision = db.Column(db.BigInteger().with_variant(db.Integer, "sqlite"), nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
