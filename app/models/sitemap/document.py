from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


class ChangeFreq(str, Enum):
    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"


def _trim_url(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("url must not be empty")
    return value


TrimmedUrl = Annotated[str, AfterValidator(_trim_url)]


class SitemapEntryDocument(BaseModel):
    """A sitemap entry as stored in the ``sitemap_urls`` collection.

    Admin-authored entries carry ``is_custom=True`` and are the only ones the
    composer merges into the served sitemap.
    """

    model_config = ConfigDict(use_enum_values=True)

    url: TrimmedUrl
    changefreq: ChangeFreq = ChangeFreq.WEEKLY
    priority: float = Field(default=0.5, ge=0.0, le=1.0)
    lastmod: Optional[str] = None
    title: Optional[str] = None
    is_custom: bool = False
    created_at: datetime
    updated_at: datetime

