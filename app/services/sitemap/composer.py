from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable

from app.core.cache import SITEMAP_KEY_PREFIX, SITEMAP_MAIN_KEY, TTLCache
from app.core.exceptions import NotFoundError
from app.models.sitemap.document import SitemapEntryDocument
from app.models.sitemap.schemas import (
    SitemapEntryCreateRequest,
    SitemapEntryUpdateRequest,
    SitemapStatusResponse,
    SitemapUrlEditRequest,
)
from app.models.sitemap.urlset import SitemapDocument, SitemapUrl
from app.repositories.sitemap.repository import SitemapEntryRepository
from app.services.sitemap.codec import decode, encode
from app.services.sitemap.static_file import StaticSitemapFile

logger = logging.getLogger(__name__)

# Serialises read-modify-write of the static file across threads.
_static_edit_lock = threading.Lock()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_sitemap_url(entry: SitemapEntryDocument) -> SitemapUrl:
    return SitemapUrl(
        loc=entry.url,
        lastmod=entry.lastmod,
        changefreq=entry.changefreq,
        priority=entry.priority,
    )


def merge(static: SitemapDocument, custom: Iterable[SitemapEntryDocument]) -> SitemapDocument:
    """Merge custom entries into the static document.

    Static entries keep their order.  A custom entry whose url already appears
    in the static document replaces that entry in place; the rest are
    appended in the order given.
    """
    urls = list(static.urls)
    positions = {url.loc: i for i, url in enumerate(urls)}
    for entry in custom:
        url = _to_sitemap_url(entry)
        if url.loc in positions:
            logger.info("Custom sitemap entry overrides static entry for %s", url.loc)
            urls[positions[url.loc]] = url
        else:
            positions[url.loc] = len(urls)
            urls.append(url)
    return SitemapDocument(urls=urls, attributes=dict(static.attributes))


class SitemapComposer:
    """Builds the served sitemap and applies admin edits to it.

    Reads go through the sitemap cache; every write invalidates it.
    """

    def __init__(
        self,
        repo: SitemapEntryRepository,
        static_file: StaticSitemapFile,
        cache: TTLCache,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repo = repo
        self._static = static_file
        self._cache = cache
        self._clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load_static(self) -> SitemapDocument:
        """Decode the static document.

        Raises:
            NotFoundError: the static file has not been generated.
            MalformedDocumentError: the file is not a valid sitemap.
        """
        raw = await asyncio.to_thread(self._static.read)
        return decode(raw)

    async def compose(self) -> SitemapDocument:
        static = await self.load_static()
        custom = await self._repo.find_custom()
        return merge(static, custom)

    async def render(self) -> str:
        """Return the sitemap XML, from cache when possible.

        A write that invalidates the cache while the document is being
        composed wins: the rendered content is returned but not cached.
        """
        cached = self._cache.get(SITEMAP_MAIN_KEY)
        if cached is not None:
            return cached
        generation = self._cache.generation(SITEMAP_MAIN_KEY)
        content = encode(await self.compose())
        if self._cache.set_if_generation(SITEMAP_MAIN_KEY, content, generation):
            logger.debug("Rendered sitemap cached under %s", SITEMAP_MAIN_KEY)
        return content

    async def status(self) -> SitemapStatusResponse:
        stat = await asyncio.to_thread(self._static.stat)
        static = await self.load_static() if stat is not None else SitemapDocument()
        custom = await self._repo.find_custom()
        merged = merge(static, custom)
        size, modified = stat if stat is not None else (0, None)
        return SitemapStatusResponse(
            url_count=len(merged.urls),
            static_url_count=len(static.urls),
            custom_url_count=len(custom),
            file_size=size,
            last_updated=modified,
            cached=self._cache.get(SITEMAP_MAIN_KEY) is not None,
        )

    # ------------------------------------------------------------------
    # Static document edits
    # ------------------------------------------------------------------

    async def apply_edit(self, edit: SitemapUrlEditRequest) -> SitemapUrl:
        """Update one static entry in place and persist the document.

        ``lastmod`` is set to the current time.  Custom entries are not
        editable here; use ``update_custom_entry``.

        Raises:
            NotFoundError: no static entry has ``edit.loc``.  The file is
                left untouched.
        """
        updated = await asyncio.to_thread(self._apply_edit_locked, edit)
        self._cache.delete(SITEMAP_MAIN_KEY)
        logger.info("Static sitemap entry %s updated", edit.loc)
        return updated

    def _apply_edit_locked(self, edit: SitemapUrlEditRequest) -> SitemapUrl:
        with _static_edit_lock:
            document = decode(self._static.read())
            index = document.index_of(edit.loc)
            if index is None:
                raise NotFoundError(f"No static sitemap entry for {edit.loc}")

            changes: dict[str, object] = {
                "lastmod": self._clock().isoformat(timespec="seconds"),
            }
            if edit.changefreq is not None:
                changes["changefreq"] = edit.changefreq
            if edit.priority is not None:
                changes["priority"] = float(edit.priority)
            document.urls[index] = document.urls[index].model_copy(update=changes)

            self._static.write(encode(document))
            return document.urls[index]

    # ------------------------------------------------------------------
    # Custom entries
    # ------------------------------------------------------------------

    async def list_custom_entries(self) -> list[SitemapEntryDocument]:
        return await self._repo.find_custom()

    async def add_custom_entry(self, request: SitemapEntryCreateRequest) -> SitemapEntryDocument:
        """Store a new admin-authored entry.

        ``created_at`` and ``updated_at`` come from the composer's clock.

        Raises:
            DuplicateEntryError: the url is already stored.
        """
        now = self._clock()
        entry = SitemapEntryDocument(
            **request.model_dump(),
            is_custom=True,
            created_at=now,
            updated_at=now,
        )
        stored = await self._repo.insert(entry)
        self._cache.delete(SITEMAP_MAIN_KEY)
        logger.info("Custom sitemap entry %s added", stored.url)
        return stored

    async def update_custom_entry(
        self, url: str, request: SitemapEntryUpdateRequest
    ) -> SitemapEntryDocument:
        url = url.strip()
        existing = await self._repo.find_by_url(url)
        if existing is None or not existing.is_custom:
            raise NotFoundError(f"No custom sitemap entry for {url}")
        changes = request.model_dump(exclude_none=True)
        changes["updated_at"] = self._clock()
        updated = await self._repo.update_custom(url, changes)
        # Deleted between the lookup and the update.
        if updated is None:
            raise NotFoundError(f"No custom sitemap entry for {url}")
        self._cache.delete(SITEMAP_MAIN_KEY)
        logger.info("Custom sitemap entry %s updated", url)
        return updated

    async def delete_custom_entry(self, url: str) -> None:
        if not await self._repo.delete_custom(url.strip()):
            raise NotFoundError(f"No custom sitemap entry for {url}")
        self._cache.delete(SITEMAP_MAIN_KEY)
        logger.info("Custom sitemap entry %s deleted", url)

    def clear_cache(self) -> None:
        self._cache.clear_prefix(SITEMAP_KEY_PREFIX)
