"""
Changelog append tests.

Verifies:
- Every tracked mutation appends exactly one record in its transaction
- Updates record only changed fields; no-op updates record nothing
- Revisions are global and strictly increasing across tables
- A failed transaction leaves neither the row nor a record behind
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from stockroom.models import ChangeRecord, Storage
from stockroom.services import storage_service
from stockroom.services.changelog_service import (
    ChangeKind,
    ChangelogError,
    current_revision,
    diff_snapshots,
    insert_row,
    log_update,
    tracked_update,
)
from stockroom.services.concurrency import transactional


USER_ID = "11111111-1111-4111-8111-111111111111"


def _records(db_session):
    return db_session.query(ChangeRecord).order_by(ChangeRecord.revision).all()


# =============================================================================
# DIFF
# =============================================================================


class TestDiffSnapshots:

    def test_changed_fields_only(self):
        assert diff_snapshots({"a": 1, "b": 2}, {"a": 1, "b": 3}) == {"b": 3}

    def test_removed_field_maps_to_none(self):
        assert diff_snapshots({"a": 1, "b": 2}, {"a": 1}) == {"b": None}

    def test_added_field_is_reported(self):
        assert diff_snapshots({"a": 1}, {"a": 1, "c": 5}) == {"c": 5}

    def test_identical_is_empty(self):
        assert diff_snapshots({"a": [1, 2]}, {"a": [1, 2]}) == {}


# =============================================================================
# APPEND
# =============================================================================


class TestAppend:

    def test_empty_log_has_revision_zero(self, db_session):
        assert current_revision() == 0

    def test_insert_records_full_snapshot(self, db_session):
        storage = storage_service.create_storage(USER_ID, name="Main")
        [rec] = _records(db_session)
        assert rec.revision == 1
        assert rec.kind == ChangeKind.INSERT
        assert rec.table_name == "storage"
        assert rec.row_key == storage.id
        assert rec.actor_id == USER_ID
        assert rec.payload == {"id": storage.id, "name": "Main", "active": True}

    def test_update_records_changed_fields(self, db_session):
        storage = storage_service.create_storage(USER_ID, name="Main")
        storage_service.update_storage(USER_ID, storage.id, name="Back", active=True)
        records = _records(db_session)
        assert [r.kind for r in records] == [ChangeKind.INSERT, ChangeKind.UPDATE]
        assert records[1].payload == {"name": "Back"}

    def test_noop_update_records_nothing(self, db_session):
        storage = storage_service.create_storage(USER_ID, name="Main")
        before = current_revision()
        storage_service.update_storage(USER_ID, storage.id, name="Main", active=True)
        assert current_revision() == before
        assert len(_records(db_session)) == 1

    def test_delete_records_no_payload(self, db_session):
        storage = storage_service.create_storage(USER_ID, name="Main")
        storage_service.delete_storage(USER_ID, storage.id)
        rec = _records(db_session)[-1]
        assert rec.kind == ChangeKind.DELETE
        assert rec.payload is None
        assert rec.row_key == storage.id

    def test_revisions_strictly_increase_across_tables(self, db_session, catalog):
        storage_service.create_storage(USER_ID, name="A")
        storage_service.create_storage(USER_ID, name="B")
        revisions = [r.revision for r in _records(db_session)]
        assert revisions == list(range(1, len(revisions) + 1))
        assert {r.table_name for r in _records(db_session)} == {"productGroup", "product", "storage"}

    def test_record_snapshot_shape(self, db_session):
        storage_service.create_storage(USER_ID, name="Main")
        [rec] = _records(db_session)
        snapshot = rec.snapshot()
        assert set(snapshot) == {"id", "userId", "change", "time"}
        assert snapshot["userId"] == USER_ID
        assert snapshot["change"]["type"] == 1
        assert snapshot["change"]["obj"]["name"] == "Main"
        assert snapshot["time"].endswith("Z")


# =============================================================================
# ATOMICITY
# =============================================================================


@transactional
def _insert_then_fail(name):
    insert_row(USER_ID, Storage(name=name, active=True))
    raise RuntimeError("boom")


@transactional
def _insert_raw(name):
    return insert_row(USER_ID, Storage(name=name, active=True))


class TestAtomicity:

    def test_exception_rolls_back_row_and_record(self, db_session):
        with pytest.raises(RuntimeError):
            _insert_then_fail("Doomed")
        assert db_session.query(Storage).count() == 0
        assert current_revision() == 0

    def test_constraint_violation_leaves_no_record(self, db_session):
        _insert_raw("Main")
        with pytest.raises(IntegrityError):
            _insert_raw("Main")
        assert db_session.query(Storage).count() == 1
        assert current_revision() == 1

    def test_revision_continues_after_rollback(self, db_session):
        _insert_raw("A")
        with pytest.raises(RuntimeError):
            _insert_then_fail("B")
        _insert_raw("C")
        assert [r.revision for r in _records(db_session)] == [1, 2]

    def test_lock_contention_is_retried(self, db_session):
        calls = []

        @transactional
        def flaky():
            calls.append(1)
            insert_row(USER_ID, Storage(name=f"Try{len(calls)}", active=True))
            if len(calls) == 1:
                raise OperationalError("INSERT", {}, Exception("database is locked"))

        flaky()
        assert len(calls) == 2
        assert [s.name for s in db_session.query(Storage).all()] == ["Try2"]
        assert current_revision() == 1


class TestContract:

    def test_key_change_is_rejected(self, db_session):
        storage = _insert_raw("Main")
        old = storage.snapshot()
        storage.id = "something-else"
        with pytest.raises(ChangelogError):
            log_update(USER_ID, storage, old)
        db_session.rollback()

    def test_tracked_update_logs_diff(self, db_session):
        storage = _insert_raw("Main")
        with tracked_update(USER_ID, storage) as row:
            row.active = False
        db_session.commit()
        rec = _records(db_session)[-1]
        assert rec.kind == ChangeKind.UPDATE
        assert rec.payload == {"active": False}
