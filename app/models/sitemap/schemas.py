from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.sitemap.document import ChangeFreq, TrimmedUrl


class SitemapEntryCreateRequest(BaseModel):
    """Request body for POST /sitemap/custom."""

    model_config = ConfigDict(use_enum_values=True)

    url: TrimmedUrl
    changefreq: ChangeFreq = ChangeFreq.WEEKLY
    priority: float = Field(default=0.5, ge=0.0, le=1.0)
    lastmod: Optional[str] = None
    title: Optional[str] = None


class SitemapEntryUpdateRequest(BaseModel):
    """Request body for PATCH /sitemap/custom.  Omitted fields are kept."""

    model_config = ConfigDict(use_enum_values=True)

    changefreq: Optional[ChangeFreq] = None
    priority: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    lastmod: Optional[str] = None
    title: Optional[str] = None


class SitemapUrlEditRequest(BaseModel):
    """Request body for PUT /sitemap/urls: an edit to one static entry."""

    model_config = ConfigDict(use_enum_values=True)

    loc: TrimmedUrl
    changefreq: Optional[ChangeFreq] = None
    priority: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class SitemapEntryResponse(BaseModel):
    url: str
    changefreq: str
    priority: float
    lastmod: Optional[str] = None
    title: Optional[str] = None
    is_custom: bool
    created_at: datetime
    updated_at: datetime


class SitemapUrlResponse(BaseModel):
    loc: str
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[float] = None


class SitemapUrlsResponse(BaseModel):
    count: int
    urls: list[SitemapUrlResponse]


class SitemapStatusResponse(BaseModel):
    """Snapshot of the served sitemap, for the admin dashboard."""

    url_count: int
    static_url_count: int
    custom_url_count: int
    file_size: int
    last_updated: Optional[datetime] = None
    cached: bool
