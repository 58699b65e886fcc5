import pytest
from unittest.mock import MagicMock

from newspulse.backend.collectors import FeedSourceResolver
from newspulse.backend.storage import NullCacheStore
from newspulse.shared.config.sources_loader import SourcesLoader


class TestFeedSourceResolver:
    @pytest.fixture(autouse=True)
    def setup_loader(self):
        self.static_loader = MagicMock()
        self.static_loader.get_urls = MagicMock(return_value=["https://static.example.com/rss"])

    @pytest.mark.asyncio
    async def test_managed_list_takes_precedence(self, store):
        store.add_feed_source("india", "https://managed.example.com/b", priority=2)
        store.add_feed_source("india", "https://managed.example.com/a", priority=1)
        store.add_feed_source("india", "https://managed.example.com/off", active=False)
        resolver = FeedSourceResolver(store, self.static_loader)

        urls = await resolver.urls_for("india")

        assert urls == ["https://managed.example.com/a", "https://managed.example.com/b"]
        self.static_loader.get_urls.assert_not_called()

    @pytest.mark.asyncio
    async def test_static_table_when_managed_list_empty(self, store):
        resolver = FeedSourceResolver(store, self.static_loader)

        assert await resolver.urls_for("india") == ["https://static.example.com/rss"]

    @pytest.mark.asyncio
    async def test_static_table_when_store_disabled(self):
        resolver = FeedSourceResolver(NullCacheStore(), self.static_loader)

        assert await resolver.urls_for("sports") == ["https://static.example.com/rss"]

    @pytest.mark.asyncio
    async def test_store_failure_is_absorbed(self):
        broken = MagicMock()
        broken.active_feed_urls = MagicMock(side_effect=RuntimeError("down"))
        resolver = FeedSourceResolver(broken, self.static_loader)

        assert await resolver.urls_for("india") == ["https://static.example.com/rss"]

    @pytest.mark.asyncio
    async def test_unknown_category_is_empty(self, store):
        resolver = FeedSourceResolver(store, SourcesLoader())

        assert await resolver.urls_for("no-such-category") == []


class TestSourcesLoader:
    def test_disabled_sources_dropped(self, tmp_path):
        (tmp_path / "india.yaml").write_text(
            "sources:\n"
            "  a:\n    url: https://a.example.com/rss\n    enabled: true\n"
            "  b:\n    url: https://b.example.com/rss\n    enabled: false\n"
        )
        loader = SourcesLoader(str(tmp_path))

        assert loader.get_urls("india") == ["https://a.example.com/rss"]

    def test_built_in_tables(self):
        loader = SourcesLoader()

        assert "hyderabad" in loader.get_categories()
        assert loader.get_urls("international")
