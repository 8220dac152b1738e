"""catalog tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_catalog_tables"
down_revision = None
branch_labels = None
depends_on = None


def _json_type(bind) -> sa.types.TypeEngine:
    if bind.dialect.name == "postgresql":
        return postgresql.JSONB()
    return sa.JSON()


def upgrade() -> None:
    bind = op.get_bind()
    json_type = _json_type(bind)

    op.create_table(
        "shop_locations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("shop_code", sa.String(length=100), nullable=False),
        sa.Column("shop_name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("priority_order", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("shop_code", name="uq_shop_locations_shop_code"),
    )

    op.create_table(
        "catalog_categories",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("shop_code", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=500), nullable=False),
        sa.Column("parent_id", sa.String(length=255), nullable=True),
        sa.Column("level", sa.Integer(), server_default="0", nullable=False),
        sa.Column("full_path", sa.Text(), server_default="", nullable=False),
        sa.Column("quanty", sa.Float(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", "shop_code", name="pk_catalog_categories"),
    )
    op.create_index("ix_catalog_categories_shop_parent", "catalog_categories", ["shop_code", "parent_id"])
    op.create_index("ix_catalog_categories_shop_active", "catalog_categories", ["shop_code", "is_active"])

    op.create_table(
        "catalog_items",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("shop_code", sa.String(length=100), nullable=False),
        sa.Column("category_id", sa.String(length=255), nullable=True),
        sa.Column("name", sa.String(length=500), nullable=False),
        sa.Column("quanty", sa.Float(), nullable=True),
        sa.Column("retail_price", sa.Float(), nullable=True),
        sa.Column("characteristics", json_type, nullable=False),
        sa.Column("modifications", json_type, nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", "shop_code", name="pk_catalog_items"),
    )
    op.create_index("ix_catalog_items_shop_category", "catalog_items", ["shop_code", "category_id"])
    op.create_index("ix_catalog_items_shop_active", "catalog_items", ["shop_code", "is_active"])

    op.create_table(
        "catalog_exclusions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("exclusion_type", sa.String(length=16), nullable=False),
        sa.Column("item_id", sa.String(length=255), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("exclusion_type", "item_id", name="uq_catalog_exclusions_type_item"),
    )
    op.create_index("ix_catalog_exclusions_active", "catalog_exclusions", ["is_active"])

    op.create_table(
        "catalog_sync_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("shop_code", sa.String(length=100), nullable=True),
        sa.Column("sync_type", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("products_synced", sa.Integer(), server_default="0", nullable=False),
        sa.Column("products_added", sa.Integer(), server_default="0", nullable=False),
        sa.Column("products_updated", sa.Integer(), server_default="0", nullable=False),
        sa.Column("products_deactivated", sa.Integer(), server_default="0", nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_catalog_sync_log_shop_code", "catalog_sync_log", ["shop_code"])
    op.create_index("ix_catalog_sync_log_status", "catalog_sync_log", ["status"])
    op.create_index("ix_catalog_sync_log_started_at", "catalog_sync_log", ["started_at"])


def downgrade() -> None:
    op.drop_index("ix_catalog_sync_log_started_at", table_name="catalog_sync_log")
    op.drop_index("ix_catalog_sync_log_status", table_name="catalog_sync_log")
    op.drop_index("ix_catalog_sync_log_shop_code", table_name="catalog_sync_log")
    op.drop_table("catalog_sync_log")
    op.drop_index("ix_catalog_exclusions_active", table_name="catalog_exclusions")
    op.drop_table("catalog_exclusions")
    op.drop_index("ix_catalog_items_shop_active", table_name="catalog_items")
    op.drop_index("ix_catalog_items_shop_category", table_name="catalog_items")
    op.drop_table("catalog_items")
    op.drop_index("ix_catalog_categories_shop_active", table_name="catalog_categories")
    op.drop_index("ix_catalog_categories_shop_parent", table_name="catalog_categories")
    op.drop_table("catalog_categories")
    op.drop_table("shop_locations")
