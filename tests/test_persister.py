"""Integration tests for the batched write path against a SQLite database."""

from __future__ import annotations

import asyncio
import logging
import struct

import pytest
from sqlalchemy import func, select, text

from floatdb.models.db_models import HistoryEntry, SkinItem
from floatdb.services.persister import BulkWriteResult, Persister
from tests.conftest import OWNER_STEAMID, make_raw


async def _items(session_factory):
    async with session_factory() as db:
        return (await db.execute(select(SkinItem).order_by(SkinItem.id))).scalars().all()


async def _history(session_factory):
    async with session_factory() as db:
        return (await db.execute(select(HistoryEntry).order_by(HistoryEntry.id))).scalars().all()


@pytest.mark.asyncio
async def test_concrete_observation_is_stored_without_history(session_factory):
    raw = make_raw(
        defindex=7, paintindex=12, paintseed=3, floatvalue=0.24,
        a="18446744073709551615", s="0", stickers=[],
    )

    result = await Persister(session_factory).persist([(raw, None)])

    assert result == BulkWriteResult(inserted=1, updated=0)
    [item] = await _items(session_factory)
    assert item.paintwear == struct.unpack(">i", struct.pack(">f", 0.24))[0]
    assert item.a == -1
    assert item.stickers is None
    assert item.price is None
    assert await _history(session_factory) == []


@pytest.mark.asyncio
async def test_duplicate_identity_in_one_batch_keeps_first(session_factory):
    first = make_raw(a="100", floatid="100")
    second = make_raw(a="200", floatid="200")  # same defindex/paintindex/wear/seed

    result = await Persister(session_factory).persist([(first, 12.5), (second, 99.0)])

    assert result == BulkWriteResult(inserted=1, updated=0)
    [item] = await _items(session_factory)
    assert item.a == 100
    assert item.price == 12.5
    # The dropped duplicate writes no history either
    assert [h.price for h in await _history(session_factory)] == [12.5]


@pytest.mark.asyncio
async def test_same_identity_in_a_later_batch_overwrites(session_factory):
    persister = Persister(session_factory)
    await persister.persist([(make_raw(item_name="old"), None)])

    result = await persister.persist([(make_raw(item_name="new", listed_price=4.2), 7.0)])

    assert result == BulkWriteResult(inserted=0, updated=1)
    [item] = await _items(session_factory)
    assert item.item_name == "new"
    assert item.listed_price == 4.2
    assert item.price == 7.0


@pytest.mark.asyncio
async def test_owner_steamid_writes_history(session_factory):
    await Persister(session_factory).persist([(make_raw(s=OWNER_STEAMID), None)])

    [entry] = await _history(session_factory)
    assert entry.steamid == int(OWNER_STEAMID)
    assert entry.price is None
    assert entry.a == 35432416938
    assert entry.floatid == 35432416938


@pytest.mark.asyncio
async def test_price_alone_writes_history(session_factory):
    await Persister(session_factory).persist([(make_raw(), 3.5)])

    [entry] = await _history(session_factory)
    assert entry.steamid is None
    assert entry.price == 3.5


@pytest.mark.asyncio
async def test_skipped_observations_write_nothing(session_factory):
    result = await Persister(session_factory).persist([(make_raw(floatvalue=0.0), 5.0)])

    assert result is None
    assert await _items(session_factory) == []
    assert await _history(session_factory) == []


@pytest.mark.asyncio
async def test_stickers_stored_compact_with_duplicate_counts(session_factory):
    raw = make_raw(stickers=[
        {"slot": 0, "stickerId": 76, "wear": 0.3},
        {"slot": 1, "stickerId": 76},
    ])
    await Persister(session_factory).persist([(raw, None)])

    [item] = await _items(session_factory)
    assert item.stickers == [{"s": 0, "i": 76, "w": 0.3, "d": 2}, {"s": 1, "i": 76, "d": 2}]


@pytest.mark.asyncio
async def test_rejected_row_does_not_discard_the_rest_of_the_batch(session_factory, caplog):
    persister = Persister(session_factory)
    await persister.persist([(make_raw(a="500", paintseed=1), None)])

    # New identity but the same floatid as the stored row -> unique violation
    clash = make_raw(a="500", paintseed=2)
    fresh = make_raw(a="501", paintseed=3)
    later = make_raw(a="502", paintseed=4)
    with caplog.at_level(logging.WARNING, logger="floatdb.services.persister"):
        result = await persister.persist([(fresh, None), (clash, None), (later, None)])

    assert result == BulkWriteResult(inserted=2, updated=0, failed=1)
    assert "1 of 3 items rejected" in caplog.text
    assert sorted(item.a for item in await _items(session_factory)) == [500, 501, 502]
    async with session_factory() as db:
        stored = (await db.execute(select(SkinItem).where(SkinItem.a == 500))).scalars().one()
    assert stored.paintseed == 1


@pytest.mark.asyncio
async def test_malformed_observation_is_dropped_alone(session_factory, caplog):
    good = make_raw(a="1", paintseed=1)
    # model_copy skips validation, like a caller building observations by hand
    bad = make_raw(a="2", paintseed=2).model_copy(update={"floatvalue": 1e39})

    with caplog.at_level(logging.WARNING, logger="floatdb.services.persister"):
        result = await Persister(session_factory).persist([(bad, None), (good, None)])

    assert result == BulkWriteResult(inserted=1, updated=0)
    assert "malformed observation a=2" in caplog.text
    assert [item.a for item in await _items(session_factory)] == [1]


@pytest.mark.asyncio
async def test_overlapping_batches_are_serialized(session_factory):
    persister = Persister(session_factory)
    first = [(make_raw(a="10", paintseed=1, item_name="first"), None)]
    second = [(make_raw(a="10", paintseed=1, item_name="second"), None)]

    results = await asyncio.gather(persister.persist(first), persister.persist(second))

    assert sorted(results) == [BulkWriteResult(0, 1), BulkWriteResult(1, 0)]
    [item] = await _items(session_factory)
    assert item.item_name == "second"


@pytest.mark.asyncio
async def test_history_failure_does_not_block_the_upsert(engine, session_factory, caplog):
    async with engine.begin() as conn:
        await conn.execute(text("DROP TABLE history"))

    with caplog.at_level(logging.WARNING, logger="floatdb.services.history"):
        result = await Persister(session_factory).persist([(make_raw(s=OWNER_STEAMID), 8.0)])

    assert result == BulkWriteResult(inserted=1, updated=0)
    assert "record_history failed" in caplog.text
    [item] = await _items(session_factory)
    assert item.price == 8.0


@pytest.mark.asyncio
async def test_large_batch_spans_several_statements(session_factory):
    batch = [(make_raw(a=str(1000 + i), paintseed=i), None) for i in range(1200)]

    result = await Persister(session_factory).persist(batch)

    assert result == BulkWriteResult(inserted=1200, updated=0)
    async with session_factory() as db:
        count = (await db.execute(select(func.count()).select_from(SkinItem))).scalar_one()
    assert count == 1200
