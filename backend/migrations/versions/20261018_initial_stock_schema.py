"""Initial stock schema: catalog mirror, storages, stock, permissions, changelog

Revision ID: 20261018_initial_stock
Revises:
Create Date: 2026-10-18

This migration adds:
1. ProductGroup and Product (ready2order mirror, api_id -> local UUID key)
2. Storage and Stock (one row per product/storage)
3. ProductPermission and StoragePermission (NULL scope columns)
4. ChangeRecord (append-only changelog) and the single-row RevisionCounter
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial_stock"
down_revision = None
branch_labels = None
depends_on = None


def _big_integer():
    return sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade():
    op.create_table(
        "product_groups",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("parent_id", sa.String(length=36), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("shortcut", sa.String(length=20), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("sort_index", sa.BigInteger(), nullable=False),
        sa.Column("accounting_code", sa.String(length=50), nullable=True),
        sa.Column("type_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("api_id", sa.BigInteger(), nullable=False),
        sa.Column("api_parent_id", sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(["parent_id"], ["product_groups.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("api_id"),
    )
    op.create_index("ix_product_groups_parent_id", "product_groups", ["parent_id"], unique=False)
    op.create_index("ix_product_groups_api_parent_id", "product_groups", ["api_parent_id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("group_id", sa.String(length=36), nullable=True),
        sa.Column("external_reference", sa.String(length=50), nullable=True),
        sa.Column("item_number", sa.String(length=100), nullable=True),
        sa.Column("barcode", sa.String(length=255), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(20, 5), nullable=False),
        sa.Column("price_includes_vat", sa.Boolean(), nullable=False),
        sa.Column("vat", sa.Numeric(20, 5), nullable=False),
        sa.Column("stock_enabled", sa.Boolean(), nullable=False),
        sa.Column("stock_value", sa.Numeric(20, 5), nullable=False),
        sa.Column("stock_unit", sa.String(length=50), nullable=True),
        sa.Column("stock_reorder_level", sa.Numeric(20, 5), nullable=True),
        sa.Column("stock_safety_stock", sa.Numeric(20, 5), nullable=True),
        sa.Column("sort_index", sa.BigInteger(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("sold_out", sa.Boolean(), nullable=False),
        sa.Column("discountable", sa.Boolean(), nullable=False),
        sa.Column("accounting_code", sa.String(length=50), nullable=True),
        sa.Column("alternative_name_on_receipts", sa.String(length=255), nullable=True),
        sa.Column("alternative_name_in_pos", sa.String(length=100), nullable=True),
        sa.Column("production_costs", sa.Numeric(20, 5), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("api_id", sa.BigInteger(), nullable=False),
        sa.Column("api_group_id", sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(["group_id"], ["product_groups.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("api_id"),
    )
    op.create_index("ix_products_group_id", "products", ["group_id"], unique=False)
    op.create_index("ix_products_api_group_id", "products", ["api_group_id"], unique=False)

    op.create_table(
        "storages",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_storages_name"),
    )

    op.create_table(
        "stock",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("product_id", sa.String(length=36), nullable=False),
        sa.Column("storage_id", sa.String(length=36), nullable=False),
        sa.Column("value", sa.Numeric(20, 5), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["storage_id"], ["storages.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "storage_id", name="uq_stock_product_storage"),
    )
    op.create_index("ix_stock_product_id", "stock", ["product_id"], unique=False)
    op.create_index("ix_stock_storage_id", "stock", ["storage_id"], unique=False)

    op.create_table(
        "product_permissions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("group_id", sa.String(length=36), nullable=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("add", sa.Boolean(), nullable=False),
        sa.Column("remove", sa.Boolean(), nullable=False),
        sa.Column("property_names", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["product_groups.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_product_permissions_group_user"),
    )
    op.create_index("ix_product_permissions_group_id", "product_permissions", ["group_id"], unique=False)
    op.create_index("ix_product_permissions_user_id", "product_permissions", ["user_id"], unique=False)

    op.create_table(
        "storage_permissions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("storage_id", sa.String(length=36), nullable=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("stock", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["storage_id"], ["storages.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("storage_id", "user_id", name="uq_storage_permissions_storage_user"),
    )
    op.create_index("ix_storage_permissions_storage_id", "storage_permissions", ["storage_id"], unique=False)
    op.create_index("ix_storage_permissions_user_id", "storage_permissions", ["user_id"], unique=False)

    op.create_table(
        "change_records",
        sa.Column("revision", _big_integer(), autoincrement=False, nullable=False),
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("actor_id", sa.String(length=36), nullable=False),
        sa.Column("table_name", sa.String(length=64), nullable=False),
        sa.Column("row_key", sa.String(length=36), nullable=False),
        sa.Column("kind", sa.SmallInteger(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("revision"),
        sa.UniqueConstraint("id", name="uq_change_records_id"),
    )
    op.create_index("ix_change_records_actor_id", "change_records", ["actor_id"], unique=False)
    op.create_index(
        "ix_change_records_table_key_revision",
        "change_records",
        ["table_name", "row_key", "revision"],
        unique=False,
    )

    op.create_table(
        "revision_counter",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("last_revision", _big_integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # The counter row must exist before the first append locks it.
    op.execute("INSERT INTO revision_counter (id, last_revision, updated_at) VALUES (1, 0, CURRENT_TIMESTAMP)")


def downgrade():
    op.drop_table("revision_counter")
    op.drop_index("ix_change_records_table_key_revision", table_name="change_records")
    op.drop_index("ix_change_records_actor_id", table_name="change_records")
    op.drop_table("change_records")
    op.drop_index("ix_storage_permissions_user_id", table_name="storage_permissions")
    op.drop_index("ix_storage_permissions_storage_id", table_name="storage_permissions")
    op.drop_table("storage_permissions")
    op.drop_index("ix_product_permissions_user_id", table_name="product_permissions")
    op.drop_index("ix_product_permissions_group_id", table_name="product_permissions")
    op.drop_table("product_permissions")
    op.drop_index("ix_stock_storage_id", table_name="stock")
    op.drop_index("ix_stock_product_id", table_name="stock")
    op.drop_table("stock")
    op.drop_table("storages")
    op.drop_index("ix_products_api_group_id", table_name="products")
    op.drop_index("ix_products_group_id", table_name="products")
    op.drop_table("products")
    op.drop_index("ix_product_groups_api_parent_id", table_name="product_groups")
    op.drop_index("ix_product_groups_parent_id", table_name="product_groups")
    op.drop_table("product_groups")
