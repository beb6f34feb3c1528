"""Shared fixtures: a throwaway SQLite database and a SkinStore on top of it."""

from __future__ import annotations

import pytest
import pytest_asyncio

from floatdb.core.database import build_engine, build_session_factory, init_db
from floatdb.schemas.item import RawObservation
from floatdb.services.item_store import SkinStore

# A real-looking individual SteamID64 (universe 1, type 1, instance 1)
OWNER_STEAMID = "76561198084749846"
MARKET_ID = "4396870089375049729"


def make_raw(**overrides) -> RawObservation:
    data = {
        "defindex": 7,
        "paintindex": 282,
        "paintseed": 661,
        "floatvalue": 0.15,
        "a": "35432416938",
        "s": "0",
        "m": "0",
        "d": "1284736193848372918",
        "origin": 8,
        "quality": 4,
        "rarity": 6,
        "stickers": [],
    }
    data.update(overrides)
    return RawObservation.model_validate(data)


@pytest.fixture
def raw_factory():
    return make_raw


@pytest_asyncio.fixture()
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'floatdb-test.db'}")
    await init_db(eng)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def store(engine, session_factory) -> SkinStore:
    return SkinStore(session_factory, engine, bulk_inserts=False)


@pytest.fixture
def buffered_store(engine, session_factory) -> SkinStore:
    return SkinStore(session_factory, engine, bulk_inserts=True)
