from __future__ import annotations

import logging
from typing import Awaitable, Callable

from app.core.cache import SITEMAP_MAIN_KEY, TTLCache
from app.core.exceptions import RegenerationFailedError
from app.workers.regenerator import RegenerationResult, run_generator

logger = logging.getLogger(__name__)


class RefreshOrchestrator:
    """Regenerates the static sitemap, then drops the cached rendering."""

    def __init__(
        self,
        cache: TTLCache,
        generator: Callable[[], Awaitable[RegenerationResult]] = run_generator,
    ) -> None:
        self._cache = cache
        self._generator = generator

    async def refresh(self) -> None:
        """Run the generator to completion.

        On failure the cache is left as it was and
        :class:`RegenerationFailedError` is raised with the generator's
        diagnostics.  On success the sitemap cache key is deleted so the next
        read recomposes from the new file.  Nothing is retried.
        """
        try:
            result = await self._generator()
        except RegenerationFailedError as exc:
            logger.error("Sitemap regeneration could not start: %s", exc)
            raise

        if result.failed:
            diagnostic = result.stderr.strip() or f"exit status {result.returncode}"
            logger.error(
                "Sitemap regeneration failed (exit %s): %s",
                result.returncode,
                diagnostic,
            )
            raise RegenerationFailedError(
                f"Sitemap regeneration failed: {diagnostic}",
                returncode=result.returncode,
                stderr=result.stderr,
            )

        self._cache.delete(SITEMAP_MAIN_KEY)
        logger.info("Sitemap regenerated; cache key %s invalidated", SITEMAP_MAIN_KEY)
