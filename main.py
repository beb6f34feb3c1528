import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI

from floatdb.core.config import settings
from floatdb.core.database import AsyncSessionLocal, engine
from floatdb.api.routes import items
from floatdb.services.item_store import SkinStore

# ── Scheduler ──────────────────────────────────────────────────────────────────
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)
# ────────────────────────────────────────────────────────────────────────────

VERSION = "0.1.0"


def configure_logging() -> None:
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )


def create_app(store: Optional[SkinStore] = None) -> FastAPI:
    if store is None:
        store = SkinStore(
            AsyncSessionLocal,
            engine,
            bulk_inserts=settings.bulk_inserts,
            flush_interval_seconds=settings.flush_interval_seconds,
            rank_cutoff=settings.rank_cutoff,
        )
    scheduler = AsyncIOScheduler()

    app = FastAPI(
        title="floatdb",
        description="CS2 skin float/wear catalog with price history and wear ranks",
        version=VERSION,
    )
    app.state.store = store
    app.state.scheduler = scheduler

    app.include_router(items.router, prefix="/api/items", tags=["items"])

    @app.on_event("startup")
    async def startup():
        # No point serving without the unique indexes in place; let this raise
        await store.ensure_schema()

        # ── Background jobs ──
        # Bulk insert flush: every flush_interval_seconds (buffered mode only)
        store.start(scheduler)
        scheduler.start()
        logger.info("APScheduler started (bulk_inserts=%s)", store.queue.buffered)

    @app.on_event("shutdown")
    async def shutdown():
        # Drains the pending queue before the engine goes away
        await store.close()
        scheduler.shutdown(wait=False)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": VERSION}

    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=True)
