from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import PlainTextResponse

from app.api.deps import get_composer, get_orchestrator, require_identity
from app.core.config import settings
from app.core.exceptions import (
    DuplicateEntryError,
    NotFoundError,
    RegenerationFailedError,
    SitemapError,
)
from app.models.common import MessageResponse
from app.models.sitemap.schemas import (
    SitemapEntryCreateRequest,
    SitemapEntryResponse,
    SitemapEntryUpdateRequest,
    SitemapStatusResponse,
    SitemapUrlEditRequest,
    SitemapUrlResponse,
    SitemapUrlsResponse,
)
from app.services.sitemap.composer import SitemapComposer
from app.services.sitemap.refresh import RefreshOrchestrator

logger = logging.getLogger(__name__)

public_router = APIRouter(tags=["public"])
router = APIRouter(
    prefix="/sitemap",
    tags=["sitemap"],
    dependencies=[Depends(require_identity)],
)


def _http_error(exc: SitemapError, action: str) -> HTTPException:
    """Map a sitemap failure to the HTTP error the client sees."""
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, DuplicateEntryError):
        status = 409
    elif isinstance(exc, RegenerationFailedError):
        status = 502
    else:
        status = 500

    if status >= 500:
        logger.error("%s failed: %s", action, exc)
    else:
        logger.warning("%s rejected: %s", action, exc)
    return HTTPException(status_code=status, detail=str(exc))


# ---------------------------------------------------------------------------
# Public files
# ---------------------------------------------------------------------------


@public_router.get(
    "/sitemap.xml",
    response_class=Response,
    summary="Serve the merged sitemap",
)
async def get_sitemap_xml(
    composer: SitemapComposer = Depends(get_composer),
) -> Response:
    """Return the static sitemap merged with custom entries.

    - **200** — sitemap XML (served from cache when fresh)
    - **404** — the static sitemap has not been generated yet
    - **500** — static sitemap is malformed or database failure
    """
    try:
        content = await composer.render()
    except SitemapError as exc:
        raise _http_error(exc, "GET /sitemap.xml")
    return Response(content=content, media_type="application/xml")


@public_router.get("/robots.txt", response_class=PlainTextResponse)
async def get_robots_txt() -> PlainTextResponse:
    base_url = settings.base_url.rstrip("/")
    lines = [
        f"# robots.txt for {base_url}",
        "",
        "User-agent: *",
        "Allow: /",
        "",
        "# Sitemap",
        f"Sitemap: {base_url}/sitemap.xml",
        "",
        "# Disallow admin panel",
        "Disallow: /admin",
        "Disallow: /api",
        "Disallow: /dashboard",
    ]
    return PlainTextResponse("\n".join(lines) + "\n")


# ---------------------------------------------------------------------------
# Merged urls / static edits
# ---------------------------------------------------------------------------


@router.get("/urls", response_model=SitemapUrlsResponse, summary="List served sitemap urls")
async def list_urls(
    composer: SitemapComposer = Depends(get_composer),
) -> SitemapUrlsResponse:
    try:
        document = await composer.compose()
    except SitemapError as exc:
        raise _http_error(exc, "GET /sitemap/urls")
    urls = [
        SitemapUrlResponse(**url.model_dump(include={"loc", "lastmod", "changefreq", "priority"}))
        for url in document.urls
    ]
    return SitemapUrlsResponse(count=len(urls), urls=urls)


@router.put("/urls", response_model=SitemapUrlResponse, summary="Edit a static sitemap url")
async def edit_url(
    request: SitemapUrlEditRequest,
    identity: str = Depends(require_identity),
    composer: SitemapComposer = Depends(get_composer),
) -> SitemapUrlResponse:
    """Edit one entry of the generated sitemap in place.

    - **200** — entry updated, ``lastmod`` set to now
    - **404** — no static entry has this ``loc``
    - **422** — invalid ``changefreq`` or ``priority``
    """
    try:
        updated = await composer.apply_edit(request)
    except SitemapError as exc:
        raise _http_error(exc, f"PUT /sitemap/urls {request.loc}")
    logger.info("Static sitemap entry %s edited by %s", request.loc, identity)
    return SitemapUrlResponse(**updated.model_dump(include={"loc", "lastmod", "changefreq", "priority"}))


# ---------------------------------------------------------------------------
# Custom entries
# ---------------------------------------------------------------------------


@router.get("/custom", response_model=list[SitemapEntryResponse])
async def list_custom(
    composer: SitemapComposer = Depends(get_composer),
) -> list[SitemapEntryResponse]:
    try:
        entries = await composer.list_custom_entries()
    except SitemapError as exc:
        raise _http_error(exc, "GET /sitemap/custom")
    return [SitemapEntryResponse(**entry.model_dump()) for entry in entries]


@router.post(
    "/custom",
    status_code=201,
    response_model=SitemapEntryResponse,
    summary="Add a custom sitemap url",
)
async def add_custom(
    request: SitemapEntryCreateRequest,
    identity: str = Depends(require_identity),
    composer: SitemapComposer = Depends(get_composer),
) -> SitemapEntryResponse:
    """
    - **201** — entry stored
    - **409** — an entry with this url already exists
    - **422** — invalid url, ``changefreq`` or ``priority``
    """
    try:
        entry = await composer.add_custom_entry(request)
    except SitemapError as exc:
        raise _http_error(exc, f"POST /sitemap/custom {request.url}")
    logger.info("Custom sitemap entry %s added by %s", entry.url, identity)
    return SitemapEntryResponse(**entry.model_dump())


@router.patch("/custom", response_model=SitemapEntryResponse)
async def update_custom(
    request: SitemapEntryUpdateRequest,
    url: str = Query(..., min_length=1),
    identity: str = Depends(require_identity),
    composer: SitemapComposer = Depends(get_composer),
) -> SitemapEntryResponse:
    try:
        entry = await composer.update_custom_entry(url, request)
    except SitemapError as exc:
        raise _http_error(exc, f"PATCH /sitemap/custom {url}")
    logger.info("Custom sitemap entry %s updated by %s", url, identity)
    return SitemapEntryResponse(**entry.model_dump())


@router.delete("/custom", response_model=MessageResponse)
async def delete_custom(
    url: str = Query(..., min_length=1),
    identity: str = Depends(require_identity),
    composer: SitemapComposer = Depends(get_composer),
) -> MessageResponse:
    try:
        await composer.delete_custom_entry(url)
    except SitemapError as exc:
        raise _http_error(exc, f"DELETE /sitemap/custom {url}")
    logger.info("Custom sitemap entry %s deleted by %s", url, identity)
    return MessageResponse(message=f"Sitemap entry deleted: {url}")


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


@router.post("/refresh", response_model=MessageResponse, summary="Regenerate the static sitemap")
async def refresh_sitemap(
    identity: str = Depends(require_identity),
    orchestrator: RefreshOrchestrator = Depends(get_orchestrator),
) -> MessageResponse:
    """Run the sitemap generator and wait for it to finish.

    - **200** — regenerated; the next read serves the new file
    - **502** — generator failed; the cached sitemap is kept
    """
    try:
        await orchestrator.refresh()
    except SitemapError as exc:
        raise _http_error(exc, "POST /sitemap/refresh")
    logger.info("Sitemap refresh requested by %s completed", identity)
    return MessageResponse(message="Sitemap regenerated")


@router.delete("/cache", response_model=MessageResponse)
async def clear_cache(
    composer: SitemapComposer = Depends(get_composer),
) -> MessageResponse:
    composer.clear_cache()
    return MessageResponse(message="Sitemap cache cleared")


@router.get("/status", response_model=SitemapStatusResponse)
async def get_status(
    composer: SitemapComposer = Depends(get_composer),
) -> SitemapStatusResponse:
    try:
        return await composer.status()
    except SitemapError as exc:
        raise _http_error(exc, "GET /sitemap/status")
