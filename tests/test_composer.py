from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from app.core.cache import SITEMAP_MAIN_KEY, TTLCache
from app.core.exceptions import DuplicateEntryError, MalformedDocumentError, NotFoundError
from app.models.sitemap.schemas import (
    SitemapEntryCreateRequest,
    SitemapEntryUpdateRequest,
    SitemapUrlEditRequest,
)
from app.models.sitemap.urlset import SitemapDocument, SitemapUrl
from app.repositories.sitemap.repository import SitemapEntryRepository
from app.services.sitemap.codec import decode, encode
from app.services.sitemap.composer import SitemapComposer, merge
from app.services.sitemap.refresh import RefreshOrchestrator
from app.services.sitemap.static_file import StaticSitemapFile
from app.workers.regenerator import RegenerationResult
from helpers import FakeClock, make_entry

EDIT_TIME = datetime(2025, 3, 14, 9, 26, 53, tzinfo=timezone.utc)

STATIC = SitemapDocument(
    urls=[
        SitemapUrl(loc="/", changefreq="daily", priority=1.0),
        SitemapUrl(loc="/about", changefreq="weekly", priority=0.8),
    ]
)


@pytest.fixture
def static_file(tmp_path):
    sf = StaticSitemapFile(tmp_path / "public" / "sitemap.xml")
    sf.write(encode(STATIC))
    return sf


@pytest.fixture
def repo():
    repo = AsyncMock(spec=SitemapEntryRepository)
    repo.find_custom.return_value = []
    return repo


@pytest.fixture
def cache():
    return TTLCache(ttl=3600, clock=FakeClock())


@pytest.fixture
def composer(repo, static_file, cache):
    return SitemapComposer(repo, static_file, cache, clock=lambda: EDIT_TIME)


# ---------------------------------------------------------------------------
# merge / compose
# ---------------------------------------------------------------------------


class TestMerge:
    def test_custom_entries_are_appended_after_static(self):
        merged = merge(STATIC, [make_entry("/offers", priority=0.8, changefreq="daily")])
        assert [u.loc for u in merged.urls] == ["/", "/about", "/offers"]
        assert merged.urls[2].priority == 0.8
        assert merged.urls[2].changefreq == "daily"

    def test_custom_entry_wins_on_collision_and_keeps_position(self):
        merged = merge(STATIC, [make_entry("/about", priority=0.1, changefreq="never")])
        assert [u.loc for u in merged.urls] == ["/", "/about"]
        assert merged.urls[1].priority == 0.1
        assert merged.urls[1].changefreq == "never"

    def test_static_document_is_not_mutated(self):
        merge(STATIC, [make_entry("/about", priority=0.1)])
        assert STATIC.urls[1].priority == 0.8


class TestCompose:
    async def test_every_entry_exactly_once(self, composer, repo):
        repo.find_custom.return_value = [
            make_entry("/offers"),
            make_entry("/"),
            make_entry("/landing"),
        ]
        doc = await composer.compose()
        locs = [u.loc for u in doc.urls]
        assert sorted(locs) == sorted(set(locs))
        assert set(locs) == {"/", "/about", "/offers", "/landing"}

    async def test_missing_static_file_raises_not_found(self, repo, cache, tmp_path):
        composer = SitemapComposer(repo, StaticSitemapFile(tmp_path / "missing.xml"), cache)
        with pytest.raises(NotFoundError):
            await composer.compose()

    async def test_malformed_static_file_raises(self, composer, static_file):
        static_file.path.write_text("<urlset><url>", encoding="utf-8")
        with pytest.raises(MalformedDocumentError):
            await composer.compose()


class TestRender:
    async def test_second_read_is_served_from_cache(self, composer, repo, cache):
        first = await composer.render()
        second = await composer.render()
        assert first == second
        assert repo.find_custom.await_count == 1
        assert cache.get(SITEMAP_MAIN_KEY) == first

    async def test_render_output_decodes_to_composed_document(self, composer, repo):
        repo.find_custom.return_value = [make_entry("/offers")]
        assert decode(await composer.render()) == await composer.compose()


class TestRenderDuringWrite:
    """A write that lands while a read is composing must not be undone by it."""

    @pytest.fixture
    def paused_read(self, repo):
        started = asyncio.Event()
        release = asyncio.Event()

        async def find_custom():
            started.set()
            await release.wait()
            return []

        repo.find_custom.side_effect = find_custom
        return started, release

    async def test_edit_during_render_is_not_overwritten(self, composer, repo, cache, paused_read):
        started, release = paused_read
        reading = asyncio.create_task(composer.render())
        await started.wait()

        await composer.apply_edit(SitemapUrlEditRequest(loc="/about", changefreq="yearly"))
        release.set()
        stale = await reading

        assert "<changefreq>yearly</changefreq>" not in stale
        assert cache.get(SITEMAP_MAIN_KEY) is None
        repo.find_custom.side_effect = None
        assert "<changefreq>yearly</changefreq>" in await composer.render()

    async def test_refresh_during_render_is_not_overwritten(self, composer, cache, paused_read):
        started, release = paused_read
        generator = AsyncMock(return_value=RegenerationResult(0, "", ""))
        reading = asyncio.create_task(composer.render())
        await started.wait()

        await RefreshOrchestrator(cache, generator).refresh()
        release.set()
        await reading

        assert cache.get(SITEMAP_MAIN_KEY) is None

    async def test_render_without_interference_is_cached(self, composer, cache, paused_read):
        started, release = paused_read
        reading = asyncio.create_task(composer.render())
        await started.wait()
        release.set()
        assert cache.get(SITEMAP_MAIN_KEY) is None
        content = await reading
        assert cache.get(SITEMAP_MAIN_KEY) == content


# ---------------------------------------------------------------------------
# apply_edit
# ---------------------------------------------------------------------------


class TestApplyEdit:
    async def test_scenario_compose_edit_compose(self, composer, repo):
        repo.find_custom.return_value = [
            make_entry("/offers", priority=0.8, changefreq="daily")
        ]
        before = await composer.compose()
        assert [u.loc for u in before.urls] == ["/", "/about", "/offers"]

        await composer.apply_edit(
            SitemapUrlEditRequest(loc="/about", changefreq="monthly", priority=0.3)
        )

        after = await composer.compose()
        assert [u.loc for u in after.urls] == ["/", "/about", "/offers"]
        about = after.urls[1]
        assert about.changefreq == "monthly"
        assert about.priority == 0.3
        assert about.lastmod == "2025-03-14T09:26:53+00:00"

    async def test_edit_keeps_omitted_fields(self, composer, static_file):
        updated = await composer.apply_edit(SitemapUrlEditRequest(loc="/", priority=0.9))
        assert updated.changefreq == "daily"
        assert decode(static_file.read()).urls[0].priority == 0.9

    async def test_unknown_loc_leaves_file_untouched(self, composer, static_file):
        original = static_file.path.read_bytes()
        with pytest.raises(NotFoundError):
            await composer.apply_edit(SitemapUrlEditRequest(loc="/offers", priority=0.2))
        assert static_file.path.read_bytes() == original

    async def test_edit_invalidates_cached_sitemap(self, composer, cache):
        await composer.render()
        await composer.apply_edit(SitemapUrlEditRequest(loc="/about", changefreq="yearly"))
        assert cache.get(SITEMAP_MAIN_KEY) is None
        assert "<changefreq>yearly</changefreq>" in await composer.render()

    async def test_failed_edit_keeps_cache(self, composer, cache):
        rendered = await composer.render()
        with pytest.raises(NotFoundError):
            await composer.apply_edit(SitemapUrlEditRequest(loc="/nope"))
        assert cache.get(SITEMAP_MAIN_KEY) == rendered

    async def test_concurrent_edits_are_not_lost(self, composer, static_file):
        await asyncio.gather(
            composer.apply_edit(SitemapUrlEditRequest(loc="/", priority=0.1)),
            composer.apply_edit(SitemapUrlEditRequest(loc="/about", priority=0.2)),
        )
        doc = decode(static_file.read())
        assert [u.priority for u in doc.urls] == [0.1, 0.2]


# ---------------------------------------------------------------------------
# Custom entries
# ---------------------------------------------------------------------------


class TestCustomEntries:
    async def test_add_marks_entry_custom_and_invalidates(self, composer, repo, cache):
        cache.set(SITEMAP_MAIN_KEY, "stale")
        repo.insert.side_effect = lambda entry: entry

        stored = await composer.add_custom_entry(
            SitemapEntryCreateRequest(url="  /offers ", priority=0.8, changefreq="daily")
        )

        assert stored.url == "/offers"
        assert stored.is_custom is True
        assert stored.created_at == EDIT_TIME
        repo.insert.assert_awaited_once()
        assert repo.insert.await_args.args[0].updated_at == EDIT_TIME
        assert cache.get(SITEMAP_MAIN_KEY) is None

    async def test_add_duplicate_propagates(self, composer, repo, cache):
        cache.set(SITEMAP_MAIN_KEY, "cached")
        repo.insert.side_effect = DuplicateEntryError("exists")
        with pytest.raises(DuplicateEntryError):
            await composer.add_custom_entry(SitemapEntryCreateRequest(url="/offers"))
        assert cache.get(SITEMAP_MAIN_KEY) == "cached"

    async def test_update_sends_only_given_fields(self, composer, repo):
        repo.find_by_url.return_value = make_entry("/offers")
        repo.update_custom.return_value = make_entry("/offers", priority=0.9)

        result = await composer.update_custom_entry(
            "/offers", SitemapEntryUpdateRequest(priority=0.9)
        )

        repo.update_custom.assert_awaited_once_with(
            "/offers", {"priority": 0.9, "updated_at": EDIT_TIME}
        )
        assert result.priority == 0.9

    async def test_update_missing_raises_not_found(self, composer, repo):
        repo.find_by_url.return_value = None
        with pytest.raises(NotFoundError):
            await composer.update_custom_entry("/nope", SitemapEntryUpdateRequest(priority=0.1))
        repo.update_custom.assert_not_awaited()

    async def test_update_non_custom_entry_raises_not_found(self, composer, repo):
        repo.find_by_url.return_value = make_entry("/about", is_custom=False)
        with pytest.raises(NotFoundError):
            await composer.update_custom_entry("/about", SitemapEntryUpdateRequest(priority=0.1))

    async def test_delete(self, composer, repo, cache):
        cache.set(SITEMAP_MAIN_KEY, "stale")
        repo.delete_custom.return_value = True
        await composer.delete_custom_entry("/offers")
        repo.delete_custom.assert_awaited_once_with("/offers")
        assert cache.get(SITEMAP_MAIN_KEY) is None

    async def test_delete_missing_raises_not_found(self, composer, repo):
        repo.delete_custom.return_value = False
        with pytest.raises(NotFoundError):
            await composer.delete_custom_entry("/nope")


class TestStatus:
    async def test_counts_and_cache_flag(self, composer, repo, static_file):
        repo.find_custom.return_value = [make_entry("/offers"), make_entry("/about")]
        status = await composer.status()
        assert status.url_count == 3
        assert status.static_url_count == 2
        assert status.custom_url_count == 2
        assert status.file_size == static_file.path.stat().st_size
        assert status.last_updated is not None
        assert status.cached is False

        await composer.render()
        assert (await composer.status()).cached is True

    async def test_missing_static_file_reports_zero(self, repo, cache, tmp_path):
        composer = SitemapComposer(repo, StaticSitemapFile(tmp_path / "missing.xml"), cache)
        status = await composer.status()
        assert status.static_url_count == 0
        assert status.file_size == 0
        assert status.last_updated is None
