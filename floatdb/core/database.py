import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from floatdb.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str) -> AsyncEngine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_async_engine(url, echo=False, connect_args=connect_args)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url)

AsyncSessionLocal = build_session_factory(engine)


class Base(DeclarativeBase):
    pass


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create the items/history tables and their indexes if they are missing."""
    from floatdb.models import db_models  # noqa: F401 — registers the models

    bind = bind or engine
    try:
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception:
        logger.error("init_db: schema setup failed on %s", bind.url, exc_info=True)
        raise
    logger.info("init_db: items/history schema ready")
