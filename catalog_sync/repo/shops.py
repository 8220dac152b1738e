from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.db.models import ShopLocation


async def get_active(session: AsyncSession, shop_code: str) -> Optional[ShopLocation]:
    stmt = select(ShopLocation).where(
        ShopLocation.shop_code == shop_code,
        ShopLocation.is_active.is_(True),
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_active(session: AsyncSession) -> Sequence[ShopLocation]:
    stmt = (
        select(ShopLocation)
        .where(ShopLocation.is_active.is_(True))
        .order_by(ShopLocation.priority_order.asc(), ShopLocation.shop_code.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars())
