from __future__ import annotations

from datetime import datetime, timezone

from app.models.sitemap.document import SitemapEntryDocument


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_entry(url: str, **kwargs) -> SitemapEntryDocument:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    defaults = dict(
        url=url,
        changefreq="weekly",
        priority=0.5,
        is_custom=True,
        created_at=now,
        updated_at=now,
    )
    return SitemapEntryDocument(**{**defaults, **kwargs})
