from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.db.models import CatalogSyncLog


async def start(
    session: AsyncSession,
    shop_code: str,
    sync_type: str,
    started_at: datetime,
) -> CatalogSyncLog:
    entry = CatalogSyncLog(
        shop_code=shop_code,
        sync_type=sync_type,
        status="started",
        started_at=started_at,
    )
    session.add(entry)
    await session.flush()
    return entry


async def finish(
    session: AsyncSession,
    log_id: int,
    *,
    status: str,
    duration_ms: int,
    products_added: int = 0,
    products_updated: int = 0,
    products_deactivated: int = 0,
    error_message: Optional[str] = None,
) -> Optional[CatalogSyncLog]:
    entry = await session.get(CatalogSyncLog, log_id)
    if entry is None:
        return None
    entry.status = status
    entry.products_added = products_added
    entry.products_updated = products_updated
    entry.products_deactivated = products_deactivated
    entry.products_synced = products_added + products_updated
    entry.error_message = error_message
    entry.duration_ms = duration_ms
    entry.completed_at = datetime.now(timezone.utc)
    await session.flush()
    return entry


async def recent(
    session: AsyncSession,
    *,
    shop_code: Optional[str] = None,
    limit: int = 10,
) -> Sequence[CatalogSyncLog]:
    stmt = select(CatalogSyncLog).order_by(CatalogSyncLog.started_at.desc(), CatalogSyncLog.id.desc())
    if shop_code:
        stmt = stmt.where(CatalogSyncLog.shop_code == shop_code)
    result = await session.execute(stmt.limit(limit))
    return list(result.scalars())
