# Overview: Client-side replica of the server tables, kept current from pulled changes.

from __future__ import annotations

import logging
import threading

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    MetaData,
    SmallInteger,
    String,
    Table,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.pool import StaticPool

from ..time_utils import utcnow
from .errors import ConsistencyError
"""
Replica Invariants (authoritative)

- Rows are stored as (table, key) -> data, where data is the server snapshot.
- The watermark is the last server revision fully applied; None means
  "never synced" and the next pull starts at revision 0.
- A batch of changes and the new watermark are written in one transaction.
  If the watermark moved since the pull started (a wipe happened), the
  batch is discarded.
- Insert needs an absent row, Update and Delete need a present one.
  Anything else means drift from the server and raises ConsistencyError.
- The local change journal is written only by the embedding application
  (record_local_change); pulls read it but never add to it.
"""

logger = logging.getLogger(__name__)

INSERT, UPDATE, DELETE = 1, 2, 3

metadata = MetaData()

replica_rows = Table(
    "replica_rows",
    metadata,
    Column("table_name", String(64), primary_key=True),
    Column("row_key", String(64), primary_key=True),
    Column("data", JSON, nullable=False),
)

replica_state = Table(
    "replica_state",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("watermark", Integer, nullable=True),
    Column("updated_at", DateTime, nullable=True),
)

replica_local_changes = Table(
    "replica_local_changes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("table_name", String(64), nullable=False),
    Column("row_key", String(64), nullable=False),
    Column("kind", SmallInteger, nullable=False),
    Column("payload", JSON, nullable=True),
    Column("created_at", DateTime, nullable=False),
)


def _create_engine(database_url: str):
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, or every checkout would see a new empty database.
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url)


class LocalReplica:
    def __init__(self, database_url: str = "sqlite://"):
        self.engine = _create_engine(database_url)
        # Serializes access; an in-memory replica shares one connection between threads.
        self._lock = threading.RLock()
        metadata.create_all(self.engine)
        with self._lock, self.engine.begin() as conn:
            exists = conn.execute(select(replica_state.c.id).where(replica_state.c.id == 1)).first()
            if exists is None:
                conn.execute(insert(replica_state).values(id=1, watermark=None, updated_at=None))

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def watermark(self) -> int | None:
        with self._lock, self.engine.connect() as conn:
            return self._read_watermark(conn)

    @staticmethod
    def _read_watermark(conn) -> int | None:
        return conn.execute(select(replica_state.c.watermark).where(replica_state.c.id == 1)).scalar()

    def get(self, table: str, key: str) -> dict | None:
        with self._lock, self.engine.connect() as conn:
            return conn.execute(
                select(replica_rows.c.data).where(
                    replica_rows.c.table_name == table,
                    replica_rows.c.row_key == key,
                )
            ).scalar()

    def rows(self, table: str) -> list[dict]:
        with self._lock, self.engine.connect() as conn:
            result = conn.execute(
                select(replica_rows.c.data)
                .where(replica_rows.c.table_name == table)
                .order_by(replica_rows.c.row_key)
            )
            return [row.data for row in result]

    def count(self, table: str | None = None) -> int:
        query = select(func.count()).select_from(replica_rows)
        if table is not None:
            query = query.where(replica_rows.c.table_name == table)
        with self._lock, self.engine.connect() as conn:
            return int(conn.execute(query).scalar() or 0)

    # ------------------------------------------------------------------
    # Local change journal
    # ------------------------------------------------------------------

    def record_local_change(self, table: str, key: str, kind: int, payload: dict | None = None) -> None:
        """
        Journal a write made to the replica outside of a pull.

        Sync code never calls this. It is the hook for the application that
        embeds the replica (a UI or a local tool): any direct write it makes
        must be journaled here. Stockroom writes go to the server, so a
        non-empty journal means the replica was edited behind the server's
        back; connect() wipes it and apply_changes() refuses to run.
        """
        with self._lock, self.engine.begin() as conn:
            conn.execute(
                insert(replica_local_changes).values(
                    table_name=table,
                    row_key=key,
                    kind=kind,
                    payload=payload,
                    created_at=utcnow(),
                )
            )

    def pending_local_changes(self) -> list[dict]:
        with self._lock, self.engine.connect() as conn:
            result = conn.execute(select(replica_local_changes).order_by(replica_local_changes.c.id))
            return [
                {"table": r.table_name, "key": r.row_key, "type": r.kind, "payload": r.payload}
                for r in result
            ]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply_changes(self, changes: list, *, expected_watermark: int | None, new_watermark: int) -> bool:
        """
        Apply a pulled batch and advance the watermark.

        Returns False (nothing written) if the watermark is no longer
        expected_watermark. Raises ConsistencyError when a change does not
        fit the replica; the whole batch is rolled back.
        """
        with self._lock, self.engine.begin() as conn:
            current = self._read_watermark(conn)
            if current != expected_watermark:
                logger.info(
                    "Discarding pulled batch: watermark moved from %s to %s",
                    expected_watermark, current,
                )
                return False

            if conn.execute(select(func.count()).select_from(replica_local_changes)).scalar():
                raise ConsistencyError("replica has unsynced local changes")

            for change in changes:
                self._apply_change(conn, change)

            conn.execute(
                update(replica_state)
                .where(replica_state.c.id == 1)
                .values(watermark=new_watermark, updated_at=utcnow())
            )
        return True

    @staticmethod
    def _apply_change(conn, change: dict) -> None:
        kind = change.get("type")
        table = change.get("table")
        key = change.get("key")
        if not isinstance(table, str) or not isinstance(key, str):
            raise ConsistencyError(f"change without table/key: {change!r}")

        where = (replica_rows.c.table_name == table, replica_rows.c.row_key == key)
        existing = conn.execute(select(replica_rows.c.data).where(*where)).first()

        if kind == INSERT:
            obj = change.get("obj")
            if not isinstance(obj, dict):
                raise ConsistencyError(f"insert into {table} {key} without obj")
            if existing is not None:
                raise ConsistencyError(f"insert into {table}: {key} already exists")
            conn.execute(insert(replica_rows).values(table_name=table, row_key=key, data=obj))

        elif kind == UPDATE:
            mods = change.get("mods")
            if not isinstance(mods, dict):
                raise ConsistencyError(f"update of {table} {key} without mods")
            if existing is None:
                raise ConsistencyError(f"update of {table}: {key} does not exist")
            data = dict(existing.data)
            data.update(mods)
            conn.execute(update(replica_rows).where(*where).values(data=data))

        elif kind == DELETE:
            if existing is None:
                raise ConsistencyError(f"delete from {table}: {key} does not exist")
            conn.execute(delete(replica_rows).where(*where))

        else:
            raise ConsistencyError(f"unknown change type {kind!r}")

    def wipe(self) -> None:
        """Drop all replicated rows, the local journal and the watermark."""
        with self._lock, self.engine.begin() as conn:
            conn.execute(delete(replica_rows))
            conn.execute(delete(replica_local_changes))
            conn.execute(
                update(replica_state)
                .where(replica_state.c.id == 1)
                .values(watermark=None, updated_at=utcnow())
            )
        logger.info("Replica wiped")
