"""
Unit tests for the CatalogApp lifecycle.
"""

import pytest

from catalog_sync.constants import CREATION_SENTINEL
from catalog_sync.core.config import Settings
from catalog_sync.main import CatalogApp


@pytest.fixture
def settings():
    return Settings(_env_file=None, PAGE_STALE_TIME_SECONDS=120)


class TestCatalogApp:
    """Test CatalogApp wiring."""

    def test_requires_start(self, repository, settings):
        app = CatalogApp(repository, settings=settings)

        assert not app.started
        with pytest.raises(RuntimeError):
            app.feed

    @pytest.mark.asyncio
    async def test_start_uses_configured_ttls(self, repository, settings):
        app = CatalogApp(repository, settings=settings)
        await app.start()
        await app.start()

        assert app.started
        assert app.cache.page_ttl.seconds == 120

    @pytest.mark.asyncio
    async def test_feed_and_editor_share_cache(self, repository, settings):
        app = CatalogApp(repository, settings=settings)
        await app.start()
        await app.feed.load_more()

        session = await app.open_editor("b")
        session.set_field("title", "Renamed")
        await session.submit()

        assert app.feed.stale.value is True
        assert app.feed.products.value[1].title == "Renamed"

    @pytest.mark.asyncio
    async def test_open_editor_for_new_product(self, repository, settings):
        app = CatalogApp(repository, settings=settings)
        await app.start()

        session = await app.open_editor(CREATION_SENTINEL)

        assert session.current_draft.is_new
        assert repository.get_calls == []

    @pytest.mark.asyncio
    async def test_close_tears_everything_down(self, repository, settings):
        app = CatalogApp(repository, settings=settings)
        await app.start()
        feed = app.feed
        session = await app.open_editor("a")

        await app.close()

        assert session.closed
        assert not app.started
        assert app.store is None
        assert feed.loading.value is False

    @pytest.mark.asyncio
    async def test_from_settings_builds_api_repository(self, settings):
        app = CatalogApp.from_settings(settings)

        assert app.repository.base_url == settings.API_BASE_URL
        assert app.repository.page_size == settings.PAGE_SIZE

        await app.close()
