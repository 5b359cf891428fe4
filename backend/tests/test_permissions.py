"""
Permission service tests.

Verifies:
- Grants are upserted per (scope, user)
- Group grants are inherited by descendant groups
- A grant without group only covers products without a group
- The system actor bypasses every check
"""

import pytest

from stockroom.models import ChangeRecord, ProductPermission, ProductProperty, StoragePermission
from stockroom.services import catalog_service, permission_service
from stockroom.services.changelog_service import SYSTEM_ACTOR_ID
from stockroom.services.permission_service import PermissionDeniedError
from stockroom.validation import NotFoundError, ValidationError


USER_ID = "11111111-1111-4111-8111-111111111111"
ADMIN_ID = "33333333-3333-4333-8333-333333333333"


@pytest.fixture
def tree(db_session, r2o):
    """root(1) -> child(2) -> leaf(3), plus an unrelated group other(4)."""
    root = catalog_service.upsert_product_group(r2o.group(1, "root"))
    child = catalog_service.upsert_product_group(r2o.group(2, "child", parent=1))
    leaf = catalog_service.upsert_product_group(r2o.group(3, "leaf", parent=2))
    other = catalog_service.upsert_product_group(r2o.group(4, "other"))
    return root, child, leaf, other


# =============================================================================
# STORAGE PERMISSIONS
# =============================================================================


class TestStoragePermissions:

    def test_put_is_upsert(self, db_session, storage):
        first = permission_service.put_storage_permission(ADMIN_ID, user_id=USER_ID, storage_id=storage.id, stock=False)
        second = permission_service.put_storage_permission(ADMIN_ID, user_id=USER_ID, storage_id=storage.id, stock=True)
        assert first.id == second.id
        assert db_session.query(StoragePermission).count() == 1
        assert second.snapshot() == {"id": first.id, "storageId": storage.id, "userId": USER_ID, "stock": True}

    def test_put_without_stock_keeps_value(self, db_session, storage):
        permission_service.put_storage_permission(ADMIN_ID, user_id=USER_ID, storage_id=storage.id, stock=True)
        permission = permission_service.put_storage_permission(ADMIN_ID, user_id=USER_ID, storage_id=storage.id)
        assert permission.stock is True

    def test_null_scope_snapshot_is_star(self, db_session):
        permission = permission_service.put_storage_permission(ADMIN_ID, user_id=USER_ID, storage_id=None, stock=True)
        assert permission.snapshot()["storageId"] == "*"
        assert permission_service.can_post_stock(USER_ID, "any-storage")

    def test_unknown_storage(self, db_session):
        with pytest.raises(NotFoundError):
            permission_service.put_storage_permission(
                ADMIN_ID, user_id=USER_ID, storage_id="00000000-0000-4000-8000-000000000001", stock=True
            )

    def test_cannot_grant_system_actor(self, db_session):
        with pytest.raises(ValidationError):
            permission_service.put_storage_permission(ADMIN_ID, user_id=SYSTEM_ACTOR_ID, storage_id=None, stock=True)

    def test_delete(self, db_session, storage):
        permission_service.put_storage_permission(ADMIN_ID, user_id=USER_ID, storage_id=storage.id, stock=True)
        assert permission_service.delete_storage_permission(ADMIN_ID, user_id=USER_ID, storage_id=storage.id)
        assert not permission_service.delete_storage_permission(ADMIN_ID, user_id=USER_ID, storage_id=storage.id)
        assert not permission_service.can_post_stock(USER_ID, storage.id)


# =============================================================================
# PRODUCT PERMISSIONS
# =============================================================================


class TestProductPermissions:

    def test_properties_are_stored_sorted(self, db_session, tree):
        root = tree[0]
        permission = permission_service.put_product_permission(
            ADMIN_ID, user_id=USER_ID, group_id=root.id, properties=["price", "name"]
        )
        assert permission.snapshot()["properties"] == ["name", "price"]
        assert permission.properties == {ProductProperty.NAME, ProductProperty.PRICE}

    def test_invalid_property(self, db_session, tree):
        with pytest.raises(ValidationError):
            permission_service.put_product_permission(
                ADMIN_ID, user_id=USER_ID, group_id=tree[0].id, properties=["colour"]
            )
        assert db_session.query(ProductPermission).count() == 0

    def test_update_logs_only_changes(self, db_session, tree):
        permission_service.put_product_permission(ADMIN_ID, user_id=USER_ID, group_id=tree[0].id, add=True)
        permission_service.put_product_permission(ADMIN_ID, user_id=USER_ID, group_id=tree[0].id, remove=True)
        rec = db_session.query(ChangeRecord).order_by(ChangeRecord.revision.desc()).first()
        assert rec.table_name == "productPermission"
        assert rec.payload == {"remove": True}

    def test_grant_is_inherited_by_descendants(self, db_session, tree):
        root, child, leaf, other = tree
        permission_service.put_product_permission(ADMIN_ID, user_id=USER_ID, group_id=child.id, add=True)

        assert permission_service.can_add_product(USER_ID, child.id)
        assert permission_service.can_add_product(USER_ID, leaf.id)
        assert not permission_service.can_add_product(USER_ID, root.id)
        assert not permission_service.can_add_product(USER_ID, other.id)
        assert not permission_service.can_remove_product(USER_ID, leaf.id)

    def test_null_group_grant_covers_only_ungrouped(self, db_session, tree):
        permission_service.put_product_permission(ADMIN_ID, user_id=USER_ID, group_id=None, remove=True)
        assert permission_service.can_remove_product(USER_ID, None)
        assert not permission_service.can_remove_product(USER_ID, tree[0].id)

    def test_properties_union_over_lineage(self, db_session, tree):
        root, child, leaf, _ = tree
        permission_service.put_product_permission(ADMIN_ID, user_id=USER_ID, group_id=root.id, properties=["name"])
        permission_service.put_product_permission(ADMIN_ID, user_id=USER_ID, group_id=leaf.id, properties=["price"])

        assert permission_service.allowed_product_properties(USER_ID, leaf.id) == {
            ProductProperty.NAME,
            ProductProperty.PRICE,
        }
        assert permission_service.allowed_product_properties(USER_ID, child.id) == {ProductProperty.NAME}

    def test_ensure_properties_names_denied_fields(self, db_session, tree):
        permission_service.put_product_permission(ADMIN_ID, user_id=USER_ID, group_id=tree[0].id, properties=["name"])
        permission_service.ensure_product_properties(USER_ID, tree[0].id, ["id", "name"])
        with pytest.raises(PermissionDeniedError, match="properties not allowed: barcode,price"):
            permission_service.ensure_product_properties(USER_ID, tree[0].id, ["price", "name", "barcode"])

    def test_system_actor_bypasses_checks(self, db_session, tree):
        assert permission_service.can_add_product(SYSTEM_ACTOR_ID, tree[0].id)
        assert permission_service.can_remove_product(SYSTEM_ACTOR_ID, None)
        assert permission_service.can_post_stock(SYSTEM_ACTOR_ID, "anything")
        assert permission_service.allowed_product_properties(SYSTEM_ACTOR_ID, None) == frozenset(ProductProperty)

    def test_delete_missing_returns_false(self, db_session):
        assert not permission_service.delete_product_permission(ADMIN_ID, user_id=USER_ID, group_id=None)
