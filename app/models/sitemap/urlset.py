from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.sitemap.document import ChangeFreq


class SitemapUrl(BaseModel):
    """One ``<url>`` record of a sitemap document.

    ``attributes`` and ``extra`` hold whatever the codec does not model
    (attributes on ``<url>`` and unknown child elements, serialised as XML
    strings in source order) so that re-encoding does not lose them.
    """

    model_config = ConfigDict(use_enum_values=True)

    loc: str
    lastmod: Optional[str] = None
    changefreq: Optional[ChangeFreq] = None
    priority: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    attributes: dict[str, str] = Field(default_factory=dict)
    extra: list[str] = Field(default_factory=list)


class SitemapDocument(BaseModel):
    """An ordered ``<urlset>``; ``loc`` values are unique."""

    urls: list[SitemapUrl] = Field(default_factory=list)
    attributes: dict[str, str] = Field(default_factory=dict)

    def index_of(self, loc: str) -> int | None:
        for i, url in enumerate(self.urls):
            if url.loc == loc:
                return i
        return None
