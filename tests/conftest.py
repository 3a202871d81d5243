from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

import app.core.cache as cache_module
from app.core.config import settings
from app.main import app

IDENTITY_HEADERS = {settings.identity_header: "admin@example.com"}


@pytest.fixture(autouse=True)
def fresh_sitemap_cache():
    """Each test starts with no process-wide cache instance."""
    cache_module._sitemap_cache = None
    yield
    cache_module._sitemap_cache = None


@pytest.fixture
def client():
    """TestClient with lifespan startup/shutdown hooks fully mocked."""
    with (
        patch(
            "app.core.database.DatabaseManager.connect",
            new_callable=AsyncMock,
        ),
        patch(
            "app.core.database.DatabaseManager.disconnect",
            new_callable=AsyncMock,
        ),
        patch(
            "app.core.database.DatabaseManager.get_collection",
            return_value=MagicMock(),
        ),
        patch(
            "app.repositories.sitemap.repository.SitemapEntryRepository.ensure_indexes",
            new_callable=AsyncMock,
        ),
    ):
        with TestClient(app, headers=IDENTITY_HEADERS) as c:
            yield c
