"""Default static sitemap generator.

Writes the site's structural pages to ``settings.sitemap_path``.  The refresh
endpoint runs it as ``python -m app.workers.generate``; deployments with a
richer build step point ``SITEMAP_GENERATE_COMMAND`` at their own script.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from app.core.config import settings
from app.models.sitemap.urlset import SitemapDocument, SitemapUrl
from app.services.sitemap.codec import encode
from app.services.sitemap.static_file import StaticSitemapFile

logger = logging.getLogger(__name__)

# (path, changefreq, priority)
STRUCTURAL_PAGES: tuple[tuple[str, str, float], ...] = (
    ("/", "daily", 1.0),
    ("/about", "weekly", 0.8),
    ("/contact", "weekly", 0.8),
    ("/classes", "weekly", 0.9),
    ("/news", "daily", 0.9),
)


def build_document(base_url: str) -> SitemapDocument:
    base = base_url.rstrip("/")
    return SitemapDocument(
        urls=[
            SitemapUrl(loc=f"{base}{path}", changefreq=freq, priority=priority)
            for path, freq, priority in STRUCTURAL_PAGES
        ]
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate the static sitemap.")
    parser.add_argument("--output", default=settings.sitemap_path)
    parser.add_argument("--base-url", default=settings.base_url)
    args = parser.parse_args(argv)

    document = build_document(args.base_url)
    StaticSitemapFile(args.output).write(encode(document))
    # stdout only: anything on stderr marks the run as failed.
    print(f"Wrote {len(document.urls)} urls to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
