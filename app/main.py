from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.router import router
from app.core.cache import get_sitemap_cache
from app.core.config import settings
from app.core.database import db
from app.repositories.sitemap.repository import SitemapEntryRepository


def _configure_logging() -> None:
    """Configure the ``app`` logger namespace.

    ``logging.basicConfig`` is a no-op when uvicorn has already installed
    root handlers, so the ``app`` namespace gets its own handler and
    ``propagate = False``.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    app_log = logging.getLogger("app")
    app_log.setLevel(level)
    if not app_log.handlers:
        app_log.addHandler(handler)
    app_log.propagate = False


_configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # ── Startup ──────────────────────────────────────────────────────
    await db.connect()
    await SitemapEntryRepository.from_db(db).ensure_indexes()
    logger.info(
        "Serving sitemap from %s (cache ttl %.0fs).",
        settings.sitemap_path,
        settings.sitemap_cache_ttl,
    )
    yield
    # ── Shutdown ─────────────────────────────────────────────────────
    get_sitemap_cache().clear()
    await db.disconnect()


app = FastAPI(
    title="Sitemap Service",
    description="Serves the site sitemap: generated pages merged with custom entries.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "ok", "database": "connected" if db.is_connected else "disconnected"}
