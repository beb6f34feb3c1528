"""
SkinStore — the public face of the item pipeline

  insert_item_data(raw, price)  → IngestQueue (buffered or immediate) → Persister
  update_item_price(a, price)   → history row, then items.price
  get_item_rank(a)              → rank.get_item_rank
  get_item_data(lookups)        → items by asset id, denormalized

Asset ids coming in from callers are always the unsigned Steam form.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from apscheduler.schedulers.base import BaseScheduler
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from floatdb.core.database import init_db
from floatdb.models.db_models import SkinItem
from floatdb.schemas.item import CanonicalItem, ExternalItem, LookupRequest, RawObservation
from floatdb.services import codec, rank
from floatdb.services.history import record_history
from floatdb.services.ingest_queue import IngestQueue
from floatdb.services.persister import Persister

logger = logging.getLogger(__name__)


class SkinStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: AsyncEngine,
        bulk_inserts: bool = False,
        flush_interval_seconds: float = 1.0,
        rank_cutoff: int = rank.DEFAULT_RANK_CUTOFF,
    ):
        self.session_factory = session_factory
        self.engine = engine
        self.rank_cutoff = rank_cutoff
        self.persister = Persister(session_factory)
        self.queue = IngestQueue(
            self.persister,
            buffered=bulk_inserts,
            interval_seconds=flush_interval_seconds,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def ensure_schema(self) -> None:
        await init_db(self.engine)

    def start(self, scheduler: BaseScheduler) -> None:
        self.queue.start(scheduler)

    async def stop(self) -> None:
        await self.queue.stop()

    async def close(self) -> None:
        await self.stop()
        await self.engine.dispose()

    # ── writes ─────────────────────────────────────────────────────────────

    async def insert_item_data(self, raw: RawObservation, price: Optional[float] = None) -> None:
        await self.queue.enqueue(raw, price)

    async def update_item_price(self, asset_id: codec.IdLike, price: Optional[float]) -> bool:
        """Record a new price for the item; False when the asset is unknown."""
        async with self.session_factory() as db:
            item = await rank.find_by_asset(db, asset_id)
        if item is None:
            return False

        await record_history(self.session_factory, floatid=item.floatid, a=item.a, steamid=None, price=price)

        async with self.session_factory() as db:
            await db.execute(update(SkinItem).where(SkinItem.a == item.a).values(price=price))
            await db.commit()
        return True

    # ── reads ──────────────────────────────────────────────────────────────

    async def get_item_rank(self, asset_id: codec.IdLike) -> dict:
        async with self.session_factory() as db:
            return await rank.get_item_rank(db, asset_id, cutoff=self.rank_cutoff)

    async def get_item_data(self, lookups: Iterable[LookupRequest]) -> List[ExternalItem]:
        assets = [codec.unsigned_to_signed(req.a) for req in lookups]
        if not assets:
            return []

        async with self.session_factory() as db:
            rows = (
                await db.execute(select(SkinItem).where(SkinItem.a.in_(assets)))
            ).scalars().all()

        return [codec.denormalize(CanonicalItem.model_validate(row)) for row in rows]
