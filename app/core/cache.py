"""In-process TTL cache for rendered sitemap output.

The cache is best-effort: no operation raises.  Failures are logged and
reported through the returned ``bool`` (or as a miss for ``get``), which
callers are free to ignore.

One instance exists per worker process, created lazily by
``get_sitemap_cache``.  Workers share nothing, so a write handled by one
worker is only visible to another once its own copy expires.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)

#: Key under which the rendered main sitemap is cached.
SITEMAP_MAIN_KEY = "sitemap:main"
SITEMAP_KEY_PREFIX = "sitemap:"


@dataclass
class CacheRecord:
    content: str
    expiry: float


class TTLCache:
    """Key -> string mapping whose records expire ``ttl`` seconds after insert.

    Expiry is lazy: a stale record stays in the map until the next ``get`` on
    its key evicts it.  Every operation holds ``_lock`` so the expiry check
    and the eviction in ``get`` cannot interleave with another thread's
    ``delete`` or ``set``.

    Every invalidation (``delete``, ``clear``, ``clear_prefix``) advances the
    key's generation.  A reader that captured ``generation(key)`` before
    building its content stores it with ``set_if_generation``, which refuses
    the write if the key was invalidated in the meantime.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._records: dict[str, CacheRecord] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def set(self, key: str, content: str) -> bool:
        try:
            with self._lock:
                self._records[key] = CacheRecord(content, self._clock() + self._ttl)
            return True
        except Exception:
            logger.exception("Cache set failed for key=%s", key)
            return False

    def generation(self, key: str) -> int:
        with self._lock:
            return self._generation(key)

    def _generation(self, key: str) -> int:
        return self._epoch + self._generations.get(key, 0)

    def set_if_generation(self, key: str, content: str, generation: int) -> bool:
        """Store *content* only if *key* has not been invalidated since
        *generation* was read.  Returns ``False`` when the write is dropped.
        """
        try:
            with self._lock:
                if self._generation(key) != generation:
                    logger.debug("Dropped stale cache write for key=%s", key)
                    return False
                self._records[key] = CacheRecord(content, self._clock() + self._ttl)
            return True
        except Exception:
            logger.exception("Cache set failed for key=%s", key)
            return False

    def get(self, key: str) -> Optional[str]:
        """Return the content for *key*, or ``None`` if missing or expired."""
        try:
            with self._lock:
                record = self._records.get(key)
                if record is None:
                    return None
                if self._clock() > record.expiry:
                    del self._records[key]
                    logger.debug("Evicted expired cache key=%s", key)
                    return None
                return record.content
        except Exception:
            logger.exception("Cache get failed for key=%s", key)
            return None

    def delete(self, key: str) -> bool:
        try:
            with self._lock:
                self._records.pop(key, None)
                self._generations[key] = self._generations.get(key, 0) + 1
            return True
        except Exception:
            logger.exception("Cache delete failed for key=%s", key)
            return False

    def clear(self) -> bool:
        try:
            with self._lock:
                self._records.clear()
                self._epoch += 1
            return True
        except Exception:
            logger.exception("Cache clear failed")
            return False

    def clear_prefix(self, prefix: str) -> bool:
        """Delete every key starting with *prefix*."""
        try:
            with self._lock:
                for key in [k for k in self._records if k.startswith(prefix)]:
                    del self._records[key]
                self._epoch += 1
            return True
        except Exception:
            logger.exception("Cache clear failed for prefix=%s", prefix)
            return False

    def refresh(self, key: str) -> bool:
        """Push the expiry of *key* to ``now + ttl``; content is untouched.

        A key that is absent, or already expired, is left alone.
        """
        try:
            with self._lock:
                record = self._records.get(key)
                if record is not None and self._clock() <= record.expiry:
                    record.expiry = self._clock() + self._ttl
            return True
        except Exception:
            logger.exception("Cache refresh failed for key=%s", key)
            return False


# Module-level shared cache
_sitemap_cache: Optional[TTLCache] = None
_sitemap_cache_lock = threading.Lock()


def get_sitemap_cache() -> TTLCache:
    """Return the worker's cache.  Creates it on first call, never again."""
    global _sitemap_cache  # noqa: PLW0603
    if _sitemap_cache is None:
        with _sitemap_cache_lock:
            if _sitemap_cache is None:
                _sitemap_cache = TTLCache(ttl=settings.sitemap_cache_ttl)
                logger.info(
                    "Sitemap cache created (ttl=%ss).", settings.sitemap_cache_ttl
                )
    return _sitemap_cache
