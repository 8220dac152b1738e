from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.catalog.exclusions import Exclusions
from catalog_sync.db.models import CatalogExclusion

EXCLUSION_TYPES = ("product", "category")


async def create(
    session: AsyncSession,
    exclusion_type: str,
    item_id: str,
    *,
    reason: Optional[str] = None,
    created_by: Optional[str] = None,
) -> CatalogExclusion:
    """Add an exclusion, re-activating a soft-deleted one with the same key.

    Raises ``ValueError`` for an unknown type and
    ``sqlalchemy.exc.IntegrityError`` if an active duplicate exists.
    """

    if exclusion_type not in EXCLUSION_TYPES:
        raise ValueError(f"exclusion_type must be one of {EXCLUSION_TYPES}")

    stmt = select(CatalogExclusion).where(
        CatalogExclusion.exclusion_type == exclusion_type,
        CatalogExclusion.item_id == item_id,
        CatalogExclusion.is_active.is_(False),
    )
    existing = (await session.execute(stmt)).scalar_one_or_none()
    if existing is not None:
        existing.is_active = True
        existing.reason = reason
        existing.created_by = created_by
        existing.created_at = datetime.now(timezone.utc)
        await session.flush()
        return existing

    exclusion = CatalogExclusion(
        exclusion_type=exclusion_type,
        item_id=item_id,
        reason=reason,
        created_by=created_by,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    session.add(exclusion)
    await session.flush()
    return exclusion


async def list_active(session: AsyncSession) -> Sequence[CatalogExclusion]:
    stmt = (
        select(CatalogExclusion)
        .where(CatalogExclusion.is_active.is_(True))
        .order_by(CatalogExclusion.exclusion_type.asc(), CatalogExclusion.created_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars())


async def deactivate(session: AsyncSession, exclusion_id: int) -> Optional[CatalogExclusion]:
    exclusion = await session.get(CatalogExclusion, exclusion_id)
    if exclusion is None:
        return None
    exclusion.is_active = False
    await session.flush()
    return exclusion


async def load_active(session: AsyncSession) -> Exclusions:
    stmt = select(CatalogExclusion.exclusion_type, CatalogExclusion.item_id).where(
        CatalogExclusion.is_active.is_(True)
    )
    result = await session.execute(stmt)
    return Exclusions.from_rows(result.all())
