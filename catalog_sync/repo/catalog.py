from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.db.models import CatalogCategory, CatalogItem


def _insert(session: AsyncSession, model):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"upsert is not supported for dialect {dialect!r}")


async def upsert_category(
    session: AsyncSession,
    *,
    category_id: str,
    shop_code: str,
    name: str,
    parent_id: Optional[str],
    level: int,
    full_path: str,
    quanty: Optional[float],
    sort_order: int,
    touched_at: datetime,
) -> None:
    stmt = _insert(session, CatalogCategory).values(
        id=category_id,
        shop_code=shop_code,
        name=name,
        parent_id=parent_id,
        level=level,
        full_path=full_path,
        quanty=quanty,
        is_active=True,
        sort_order=sort_order,
        created_at=touched_at,
        updated_at=touched_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[CatalogCategory.id, CatalogCategory.shop_code],
        set_={
            "name": stmt.excluded.name,
            "parent_id": stmt.excluded.parent_id,
            "level": stmt.excluded.level,
            "full_path": stmt.excluded.full_path,
            "quanty": stmt.excluded.quanty,
            "is_active": True,
            "sort_order": stmt.excluded.sort_order,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    await session.execute(stmt)


async def upsert_item(
    session: AsyncSession,
    *,
    item_id: str,
    shop_code: str,
    category_id: str,
    name: str,
    quanty: Optional[float],
    retail_price: Optional[float],
    characteristics: dict[str, Any],
    modifications: Optional[list[dict[str, Any]]],
    touched_at: datetime,
) -> None:
    stmt = _insert(session, CatalogItem).values(
        id=item_id,
        shop_code=shop_code,
        category_id=category_id,
        name=name,
        quanty=quanty,
        retail_price=retail_price,
        characteristics=characteristics,
        modifications=modifications,
        is_active=True,
        last_updated=touched_at,
        created_at=touched_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[CatalogItem.id, CatalogItem.shop_code],
        set_={
            "category_id": stmt.excluded.category_id,
            "name": stmt.excluded.name,
            "quanty": stmt.excluded.quanty,
            "retail_price": stmt.excluded.retail_price,
            "characteristics": stmt.excluded.characteristics,
            "modifications": stmt.excluded.modifications,
            "is_active": True,
            "last_updated": stmt.excluded.last_updated,
        },
    )
    await session.execute(stmt)


async def existing_item_ids(session: AsyncSession, shop_code: str) -> set[str]:
    result = await session.execute(select(CatalogItem.id).where(CatalogItem.shop_code == shop_code))
    return set(result.scalars())


async def deactivate_stale(session: AsyncSession, shop_code: str, threshold: datetime) -> tuple[int, int]:
    """Flip rows not touched since ``threshold``; returns (categories, items) flipped."""

    categories = await session.execute(
        update(CatalogCategory)
        .where(
            CatalogCategory.shop_code == shop_code,
            CatalogCategory.updated_at < threshold,
            CatalogCategory.is_active.is_(True),
        )
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    items = await session.execute(
        update(CatalogItem)
        .where(
            CatalogItem.shop_code == shop_code,
            CatalogItem.last_updated < threshold,
            CatalogItem.is_active.is_(True),
        )
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    return categories.rowcount or 0, items.rowcount or 0


async def list_items(session: AsyncSession, shop_code: str, *, active_only: bool = False) -> list[CatalogItem]:
    stmt = select(CatalogItem).where(CatalogItem.shop_code == shop_code).order_by(CatalogItem.id)
    if active_only:
        stmt = stmt.where(CatalogItem.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars())


async def list_categories(
    session: AsyncSession, shop_code: str, *, active_only: bool = False
) -> list[CatalogCategory]:
    stmt = (
        select(CatalogCategory)
        .where(CatalogCategory.shop_code == shop_code)
        .order_by(CatalogCategory.level, CatalogCategory.sort_order)
    )
    if active_only:
        stmt = stmt.where(CatalogCategory.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars())
