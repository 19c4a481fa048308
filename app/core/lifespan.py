import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from app.core.dependencies import get_parse_cache
from app.store.runs import get_run_store

logger = logging.getLogger(__name__)

_PURGE_INTERVAL_SECONDS = 600


@asynccontextmanager
async def lifespan(app):
    get_run_store().init()
    cache = get_parse_cache()

    stop_event = asyncio.Event()

    async def periodic_purge() -> None:
        while not stop_event.is_set():
            try:
                purged = cache.purge_expired()
                if purged:
                    logger.info("parse_cache_purge purged=%s", purged)
            except Exception as exc:  # pragma: no cover - defensive guard
                logger.warning("parse_cache_purge_failed: %s", exc)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=_PURGE_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                continue

    purge_task = asyncio.create_task(periodic_purge())
    yield
    stop_event.set()
    if not purge_task.done():
        purge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purge_task
