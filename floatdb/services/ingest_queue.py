"""
Ingest queue in front of the Persister

  immediate  — enqueue() persists the pair right away as a one-element batch
  buffered   — enqueue() only appends; the "ingest_flush" scheduler job swaps the
               pending list out every interval and persists it as one batch

The pending list has no upper bound: under sustained overload it grows until
the flush catches up. Callers that need bounded memory must bound their own input.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from apscheduler.schedulers.base import BaseScheduler

from floatdb.schemas.item import RawObservation
from floatdb.services.persister import Persister, PricedObservation

logger = logging.getLogger(__name__)

FLUSH_JOB_ID = "ingest_flush"


class IngestQueue:
    def __init__(self, persister: Persister, buffered: bool = True, interval_seconds: float = 1.0):
        self.persister = persister
        self.buffered = buffered
        self.interval_seconds = interval_seconds
        self._pending: List[PricedObservation] = []
        self._pending_lock = threading.Lock()
        self._scheduler: Optional[BaseScheduler] = None

    def __len__(self) -> int:
        return len(self._pending)

    async def enqueue(self, raw: RawObservation, price: Optional[float] = None) -> None:
        if not self.buffered:
            await self.persister.persist([(raw, price)])
            return
        with self._pending_lock:
            self._pending.append((raw, price))

    def take_pending(self) -> List[PricedObservation]:
        """Swap the pending list for an empty one and return what was in it."""
        with self._pending_lock:
            taken, self._pending = self._pending, []
        return taken

    async def flush(self) -> int:
        batch = self.take_pending()
        if batch:
            await self.persister.persist(batch)
        return len(batch)

    # ── lifecycle ──────────────────────────────────────────────────────────

    def start(self, scheduler: BaseScheduler) -> None:
        if not self.buffered:
            return
        scheduler.add_job(
            self.flush,
            "interval",
            seconds=self.interval_seconds,
            id=FLUSH_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler = scheduler
        logger.info("IngestQueue: flush job scheduled every %.1fs", self.interval_seconds)

    async def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.remove_job(FLUSH_JOB_ID)
            self._scheduler = None
        flushed = await self.flush()
        logger.info("IngestQueue: stopped, flushed %d pending items", flushed)
