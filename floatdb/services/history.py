"""Append-only price/owner audit trail (history table)"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from floatdb.models.db_models import HistoryEntry

logger = logging.getLogger(__name__)


async def record_history(
    session_factory: async_sessionmaker[AsyncSession],
    floatid: int,
    a: int,
    steamid: Optional[int] = None,
    price: Optional[float] = None,
) -> bool:
    """
    Insert one history row in its own transaction.

    History is advisory: a failure here is logged and reported through the
    return value, never raised, so the item write that follows still happens.
    """
    try:
        async with session_factory() as db:
            db.add(HistoryEntry(
                floatid=floatid,
                a=a,
                steamid=steamid,
                created_at=datetime.now(timezone.utc),
                price=price,
            ))
            await db.commit()
    except SQLAlchemyError as e:
        logger.warning("record_history failed for a=%s: %s", a, e)
        return False
    return True
