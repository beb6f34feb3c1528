"""
Wear rank among peers

Peers share template (defindex, paintindex) and variant (stattrak, souvenir).
low_rank is 1 + the number of peers with a lower paintwear, high_rank is 1 +
the number with a higher one. Either rank is left out once its count reaches
the cutoff, which also caps the count query itself.
"""

from __future__ import annotations

import logging
from typing import Dict

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from floatdb.models.db_models import SkinItem
from floatdb.services.codec import IdLike, unsigned_to_signed

logger = logging.getLogger(__name__)

DEFAULT_RANK_CUTOFF = 1000


async def find_by_asset(db: AsyncSession, asset_id: IdLike) -> SkinItem | None:
    a = unsigned_to_signed(asset_id)
    return (
        await db.execute(select(SkinItem).where(SkinItem.a == a).limit(1))
    ).scalars().first()


async def _count_peers(db: AsyncSession, item: SkinItem, lower: bool, cutoff: int) -> int:
    wear_cond = SkinItem.paintwear < item.paintwear if lower else SkinItem.paintwear > item.paintwear
    peers = (
        select(SkinItem.id)
        .where(
            SkinItem.defindex == item.defindex,
            SkinItem.paintindex == item.paintindex,
            SkinItem.stattrak == item.stattrak,
            SkinItem.souvenir == item.souvenir,
            wear_cond,
        )
        .limit(cutoff)
        .subquery()
    )
    return (await db.execute(select(func.count()).select_from(peers))).scalar_one()


async def get_item_rank(
    db: AsyncSession,
    asset_id: IdLike,
    cutoff: int = DEFAULT_RANK_CUTOFF,
) -> Dict[str, int]:
    """Return {"low_rank": .., "high_rank": ..}; {} when the asset is unknown."""
    item = await find_by_asset(db, asset_id)
    if item is None:
        return {}

    low_count = await _count_peers(db, item, lower=True, cutoff=cutoff)
    high_count = await _count_peers(db, item, lower=False, cutoff=cutoff)

    result: Dict[str, int] = {}
    if high_count < cutoff:
        result["high_rank"] = high_count + 1
    if low_count < cutoff:
        result["low_rank"] = low_count + 1
    return result
