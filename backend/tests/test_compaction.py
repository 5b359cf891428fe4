"""
Compaction tests.

Verifies:
- Insert + Delete in one window compacts to nothing
- Updates are folded onto the insert payload in revision order
- A Delete without Insert wins over earlier updates
- Update-only windows merge, later revisions winning per field
- compact() against the database is repeatable and honours the window
"""

import pytest

from stockroom.models import ChangeRecord, Storage
from stockroom.services.changelog_service import ChangeKind, insert_row, update_row
from stockroom.services.compaction_service import CompactedChange, compact, compact_records, merge_updates
from stockroom.services.concurrency import transactional


USER_ID = "11111111-1111-4111-8111-111111111111"


def record(revision, kind, payload=None, table="product", key="k"):
    return ChangeRecord(
        revision=revision,
        id=f"rec-{revision}",
        actor_id=USER_ID,
        table_name=table,
        row_key=key,
        kind=int(kind),
        payload=payload,
    )


# =============================================================================
# PURE COMPACTION
# =============================================================================


class TestCompactRecords:

    def test_empty_window_is_none(self):
        assert compact_records([]) is None

    def test_insert_update_delete_annihilates(self):
        records = [
            record(5, ChangeKind.INSERT, {"name": "A"}),
            record(7, ChangeKind.UPDATE, {"name": "B"}),
            record(9, ChangeKind.DELETE),
        ]
        assert compact_records(records) is None

    def test_insert_then_updates_merge_field_by_field(self):
        records = [
            record(5, ChangeKind.INSERT, {"name": "A", "price": 10}),
            record(7, ChangeKind.UPDATE, {"price": 12}),
            record(9, ChangeKind.UPDATE, {"name": "B"}),
        ]
        result = compact_records(records)
        assert result == CompactedChange(
            kind=ChangeKind.INSERT, table="product", key="k", payload={"name": "B", "price": 12}
        )

    def test_order_of_input_does_not_matter(self):
        records = [
            record(9, ChangeKind.UPDATE, {"price": 3}),
            record(5, ChangeKind.INSERT, {"price": 1}),
            record(7, ChangeKind.UPDATE, {"price": 2}),
        ]
        assert compact_records(records).payload == {"price": 3}

    def test_update_then_delete_is_bare_delete(self):
        records = [
            record(6, ChangeKind.UPDATE, {"price": 5}),
            record(8, ChangeKind.DELETE),
        ]
        result = compact_records(records)
        assert result.kind is ChangeKind.DELETE
        assert result.payload is None
        assert result.to_dict() == {"type": 3, "table": "product", "key": "k"}

    def test_updates_only_merge_later_wins(self):
        records = [
            record(3, ChangeKind.UPDATE, {"price": 5, "name": "X"}),
            record(4, ChangeKind.UPDATE, {"price": 6}),
        ]
        result = compact_records(records)
        assert result.to_dict() == {
            "type": 2,
            "table": "product",
            "key": "k",
            "mods": {"price": 6, "name": "X"},
        }

    def test_insert_wire_form_carries_obj(self):
        result = compact_records([record(1, ChangeKind.INSERT, {"id": "k", "name": "A"})])
        assert result.to_dict() == {"type": 1, "table": "product", "key": "k", "obj": {"id": "k", "name": "A"}}

    def test_merge_updates_does_not_mutate_input(self):
        obj = {"a": 1}
        merged = merge_updates(obj, {"a": 2, "b": 3})
        assert merged == {"a": 2, "b": 3}
        assert obj == {"a": 1}


# =============================================================================
# COMPACTION AGAINST THE LOG
# =============================================================================


@transactional
def _create_and_rename(name, *renames):
    storage = insert_row(USER_ID, Storage(name=name, active=True))
    for new_name in renames:
        update_row(USER_ID, storage, name=new_name)
    return storage.id


class TestCompactFromLog:

    def test_compact_is_repeatable(self, db_session):
        key = _create_and_rename("A", "B", "C")
        first = compact("storage", key, 1, 10)
        second = compact("storage", key, 1, 10)
        assert first == second
        assert first.kind is ChangeKind.INSERT
        assert first.payload == {"id": key, "name": "C", "active": True}

    def test_window_excluding_insert_yields_update(self, db_session):
        key = _create_and_rename("A", "B", "C")
        result = compact("storage", key, 2, 3)
        assert result.kind is ChangeKind.UPDATE
        assert result.payload == {"name": "C"}

    @pytest.mark.parametrize("bounds", [(5, 4), (10, 1)])
    def test_reversed_window_is_none(self, db_session, bounds):
        key = _create_and_rename("A", "B")
        assert compact("storage", key, *bounds) is None
