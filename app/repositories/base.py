"""Abstract base class for MongoDB repositories.

Subclasses set ``COLLECTION_NAME`` from ``CollectionNames`` and override
``ensure_indexes()``; the lifespan hook in ``main.py`` calls it at startup.

Example::

    class SitemapEntryRepository(BaseRepository):
        COLLECTION_NAME = CollectionNames.SITEMAP_URLS

        async def ensure_indexes(self) -> None:
            await self._col.create_index("url", unique=True)
"""

from __future__ import annotations

import logging
from abc import ABC
from typing import Any, ClassVar, TypeVar

from motor.motor_asyncio import AsyncIOMotorCollection

from app.core.database import DatabaseManager

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="BaseRepository")


class BaseRepository(ABC):
    """Base class that wires a repository to its Motor collection."""

    COLLECTION_NAME: ClassVar[str]

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._col = collection

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def from_db(cls: type[T], db: DatabaseManager) -> T:
        """Instantiate the repository using the live ``DatabaseManager``.

        Usage::

            repo = SitemapEntryRepository.from_db(db)
        """
        return cls(db.get_collection(cls.COLLECTION_NAME))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _strip_id(raw: dict[str, Any]) -> dict[str, Any]:
        raw.pop("_id", None)
        return raw

    async def ensure_indexes(self) -> None:
        """Create collection indexes.  Called once at startup.

        The default is a no-op.  MongoDB skips indexes that already exist.
        """
