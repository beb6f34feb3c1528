"""
Batched item writer

persist() takes raw (observation, price) pairs and, per batch:
  1. normalize      — codec.normalize, skipped observations dropped
  2. dedupe         — first occurrence per identity key wins
  3. history        — one history row per item with an owner steamid or a price,
                      written before the item joins the bulk
  4. bulk upsert    — INSERT .. ON CONFLICT (identity) DO UPDATE for every
                      surviving row, committed per chunk

Writes are atomic per document, not per batch: rows the database rejects
(e.g. a floatid clash) are logged and dropped, the rest of the batch is kept.
History rows already written stay (they are advisory).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

from sqlalchemy import select, tuple_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from floatdb.models.db_models import SkinItem
from floatdb.schemas.item import RawObservation
from floatdb.services import codec
from floatdb.services.dedup import dedupe_batch
from floatdb.services.history import record_history

logger = logging.getLogger(__name__)

IDENTITY_COLUMNS = ("defindex", "paintindex", "paintwear", "paintseed")

# Keeps a multi-row VALUES clause under SQLite's bound-parameter limit
_CHUNK_ROWS = 500

PricedObservation = Tuple[RawObservation, Optional[float]]


class BulkWriteResult(NamedTuple):
    inserted: int
    updated: int
    failed: int = 0


def _insert_for(dialect_name: str):
    return pg_insert if dialect_name == "postgresql" else sqlite_insert


class Persister:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        # One batch at a time per process; overlapping batches could race on
        # the same identity keys
        self._lock = asyncio.Lock()

    async def persist(self, batch: Iterable[PricedObservation]) -> Optional[BulkWriteResult]:
        async with self._lock:
            return await self._persist(list(batch))

    async def _persist(self, batch: List[PricedObservation]) -> Optional[BulkWriteResult]:
        normalized = []
        for raw, price in batch:
            try:
                item = codec.normalize(raw)
            except (ValueError, OverflowError) as e:
                # Dropped alone; the rest of the batch still goes through
                logger.warning("persist: dropping malformed observation a=%s: %s", raw.a, e)
                continue
            if item is not None:
                normalized.append((item, (raw, price)))

        rows: List[dict] = []
        for item, (raw, price) in dedupe_batch(normalized):
            owner_valid = codec.is_steam_id64(raw.s)
            if owner_valid or price is not None:
                await record_history(
                    self._session_factory,
                    floatid=item.floatid,
                    a=item.a,
                    steamid=codec.unsigned_to_signed(raw.s) if owner_valid else None,
                    price=price,
                )
            item.price = price
            rows.append(item.to_row())

        if not rows:
            return None

        try:
            result = await self._bulk_upsert(rows)
        except SQLAlchemyError as e:
            logger.warning("persist: bulk upsert of %d items failed: %s", len(rows), e)
            return None

        logger.debug(
            "persist: inserted %d / updated %d / rejected %d items",
            result.inserted, result.updated, result.failed,
        )
        return result

    async def _bulk_upsert(self, rows: Sequence[dict]) -> BulkWriteResult:
        """
        Each chunk commits on its own. A chunk the database rejects is replayed
        row by row, so only the offending documents are lost.
        """
        inserted = updated = failed = 0
        last_error: Optional[SQLAlchemyError] = None

        async with self._session_factory() as db:
            insert = _insert_for(db.get_bind().dialect.name)
            for start in range(0, len(rows), _CHUNK_ROWS):
                chunk = list(rows[start:start + _CHUNK_ROWS])
                try:
                    async with db.begin():
                        existed = await _upsert_rows(db, insert, chunk)
                    updated += existed
                    inserted += len(chunk) - existed
                    continue
                except SQLAlchemyError as e:
                    last_error = e

                for row in chunk:
                    try:
                        async with db.begin():
                            existed = await _upsert_rows(db, insert, [row])
                    except SQLAlchemyError as e:
                        failed += 1
                        last_error = e
                        continue
                    updated += existed
                    inserted += 1 - existed

        if failed:
            logger.warning(
                "persist: %d of %d items rejected by the database: %s",
                failed, len(rows), last_error,
            )
        return BulkWriteResult(inserted=inserted, updated=updated, failed=failed)


async def _upsert_rows(db: AsyncSession, insert, rows: List[dict]) -> int:
    """Upsert rows on the identity key; returns how many already existed."""
    identity_cols = [getattr(SkinItem, c) for c in IDENTITY_COLUMNS]
    keys = [tuple(r[c] for c in IDENTITY_COLUMNS) for r in rows]
    found = await db.execute(select(*identity_cols).where(tuple_(*identity_cols).in_(keys)))
    existed = len({tuple(r) for r in found.all()})

    stmt = insert(SkinItem).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(IDENTITY_COLUMNS),
        set_={
            col: stmt.excluded[col]
            for col in rows[0]
            if col not in IDENTITY_COLUMNS
        },
    )
    await db.execute(stmt)
    return existed
