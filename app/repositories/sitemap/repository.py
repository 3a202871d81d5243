from __future__ import annotations

import logging
from typing import Any

from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.collections import CollectionNames
from app.core.exceptions import DuplicateEntryError, StorageError
from app.models.sitemap.document import SitemapEntryDocument
from app.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class SitemapEntryRepository(BaseRepository):
    """MongoDB repository for the ``sitemap_urls`` collection."""

    COLLECTION_NAME = CollectionNames.SITEMAP_URLS

    async def ensure_indexes(self) -> None:
        await self._col.create_index("url", unique=True)
        await self._col.create_index("is_custom")

    async def insert(self, entry: SitemapEntryDocument) -> SitemapEntryDocument:
        """Insert *entry* as given, timestamps included.

        Raises:
            DuplicateEntryError: an entry with the same url already exists.
            StorageError: any other MongoDB failure.
        """
        payload = entry.model_dump()
        try:
            await self._col.insert_one(payload)
        except DuplicateKeyError as exc:
            raise DuplicateEntryError(f"Sitemap entry already exists: {entry.url}") from exc
        except PyMongoError as exc:
            logger.exception("MongoDB insert failed for url=%s", entry.url)
            raise StorageError("Database write error") from exc
        return SitemapEntryDocument(**self._strip_id(payload))

    async def update_custom(
        self, url: str, changes: dict[str, Any]
    ) -> SitemapEntryDocument | None:
        """Apply *changes* to the custom entry keyed by *url*.

        The caller supplies ``updated_at``; ``created_at`` and ``url`` are
        never touched.  Returns ``None`` if no custom entry matches.
        """
        payload = {k: v for k, v in changes.items() if k not in ("url", "created_at")}
        try:
            updated = await self._col.find_one_and_update(
                {"url": url, "is_custom": True},
                {"$set": payload},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            logger.exception("MongoDB update failed for url=%s", url)
            raise StorageError("Database write error") from exc
        if updated is None:
            return None
        return SitemapEntryDocument(**self._strip_id(updated))

    async def delete_custom(self, url: str) -> bool:
        """Delete the custom entry keyed by *url*.  Returns ``False`` if none matched."""
        try:
            result = await self._col.delete_one({"url": url, "is_custom": True})
        except PyMongoError as exc:
            logger.exception("MongoDB delete failed for url=%s", url)
            raise StorageError("Database write error") from exc
        return result.deleted_count > 0

    async def find_by_url(self, url: str) -> SitemapEntryDocument | None:
        """Return the stored entry for *url*, or ``None`` if not found."""
        try:
            result = await self._col.find_one({"url": url})
        except PyMongoError as exc:
            logger.exception("MongoDB lookup failed for url=%s", url)
            raise StorageError("Database read error") from exc
        if result is None:
            return None
        return SitemapEntryDocument(**self._strip_id(result))

    async def find_custom(self) -> list[SitemapEntryDocument]:
        """Return every admin-authored entry, oldest first."""
        try:
            cursor = self._col.find({"is_custom": True}, sort=[("created_at", ASCENDING)])
            rows = await cursor.to_list(length=None)
        except PyMongoError as exc:
            logger.exception("MongoDB query for custom sitemap entries failed")
            raise StorageError("Database read error") from exc
        return [SitemapEntryDocument(**self._strip_id(row)) for row in rows]
