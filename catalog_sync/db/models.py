from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    PrimaryKeyConstraint,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


_json_type = JSONB().with_variant(JSON(), "sqlite")


class ShopLocation(Base):
    __tablename__ = "shop_locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    shop_name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    priority_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class CatalogCategory(Base):
    __tablename__ = "catalog_categories"
    __table_args__ = (
        PrimaryKeyConstraint("id", "shop_code", name="pk_catalog_categories"),
        Index("ix_catalog_categories_shop_parent", "shop_code", "parent_id"),
        Index("ix_catalog_categories_shop_active", "shop_code", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(255), nullable=False)
    shop_code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    full_path: Mapped[str] = mapped_column(Text, nullable=False, default="")
    quanty: Mapped[Optional[float]] = mapped_column(Float(asdecimal=False), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CatalogItem(Base):
    __tablename__ = "catalog_items"
    __table_args__ = (
        PrimaryKeyConstraint("id", "shop_code", name="pk_catalog_items"),
        Index("ix_catalog_items_shop_category", "shop_code", "category_id"),
        Index("ix_catalog_items_shop_active", "shop_code", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(255), nullable=False)
    shop_code: Mapped[str] = mapped_column(String(100), nullable=False)
    category_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    quanty: Mapped[Optional[float]] = mapped_column(Float(asdecimal=False), nullable=True)
    retail_price: Mapped[Optional[float]] = mapped_column(Float(asdecimal=False), nullable=True)
    characteristics: Mapped[dict[str, Any]] = mapped_column(_json_type, nullable=False, default=dict)
    modifications: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(_json_type, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CatalogExclusion(Base):
    __tablename__ = "catalog_exclusions"
    __table_args__ = (
        UniqueConstraint("exclusion_type", "item_id", name="uq_catalog_exclusions_type_item"),
        Index("ix_catalog_exclusions_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    exclusion_type: Mapped[str] = mapped_column(String(16), nullable=False)
    item_id: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class CatalogSyncLog(Base):
    __tablename__ = "catalog_sync_log"
    __table_args__ = (
        Index("ix_catalog_sync_log_shop_code", "shop_code"),
        Index("ix_catalog_sync_log_status", "status"),
        Index("ix_catalog_sync_log_started_at", "started_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    sync_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    products_synced: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    products_added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    products_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    products_deactivated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
