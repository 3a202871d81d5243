from __future__ import annotations

from fastapi import HTTPException, Request

from app.core.cache import get_sitemap_cache
from app.core.config import settings
from app.core.database import db
from app.repositories.sitemap.repository import SitemapEntryRepository
from app.services.sitemap.composer import SitemapComposer
from app.services.sitemap.refresh import RefreshOrchestrator
from app.services.sitemap.static_file import StaticSitemapFile


def get_composer() -> SitemapComposer:
    """FastAPI dependency that builds a ``SitemapComposer`` for each request."""
    return SitemapComposer(
        SitemapEntryRepository.from_db(db),
        StaticSitemapFile(settings.sitemap_path),
        get_sitemap_cache(),
    )


def get_orchestrator() -> RefreshOrchestrator:
    return RefreshOrchestrator(get_sitemap_cache())


def require_identity(request: Request) -> str:
    """Return the logged-in identity forwarded by the gateway.

    The value is opaque here; only its presence is checked.
    """
    identity = request.headers.get(settings.identity_header)
    if not identity:
        raise HTTPException(status_code=401, detail="Authentication required")
    return identity
