import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import aiohttp

from newspulse.backend.collectors.core import CollectionConfig, RelayStrategy, stable_article_id
from newspulse.backend.storage import CacheStore
from newspulse.shared.types.results import Article


SAMPLE_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Sample Feed</title>
    <item>
      <title><![CDATA[Metro rail extension approved]]></title>
      <link>https://example.com/news/metro</link>
      <description><![CDATA[<p>The cabinet cleared the <b>second phase</b>.</p><img src="https://example.com/img/metro.jpg" />]]></description>
      <pubDate>Mon, 06 Jan 2025 10:00:00 GMT</pubDate>
      <source url="https://example.com">Deccan Desk</source>
    </item>
    <item>
      <title>Monsoon arrives early</title>
      <link>https://example.com/news/monsoon</link>
      <description>Heavy rain expected across the state.</description>
      <pubDate>Mon, 06 Jan 2025 09:00:00 GMT</pubDate>
      <media:content url="https://example.com/img/rain-media.jpg" medium="image" />
      <enclosure url="https://example.com/img/rain-enclosure.jpg" type="image/jpeg" length="0" />
    </item>
  </channel>
</rss>
"""


class FakeResponse:
    def __init__(self, status=200, text="", payload=None):
        self.status = status
        self._text = text
        self._payload = payload

    async def text(self):
        return self._text

    async def json(self, content_type=None):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession; ``routes`` maps a URL prefix to a response or exception."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requested = []
        self.timeouts = []

    def get(self, url, timeout=None):
        self.requested.append(url)
        self.timeouts.append(timeout)
        for prefix, outcome in self.routes.items():
            if url.startswith(prefix):
                if isinstance(outcome, BaseException):
                    raise outcome
                return outcome
        raise aiohttp.ClientConnectionError(f"no route for {url}")


@pytest.fixture
def sample_rss():
    return SAMPLE_RSS


@pytest.fixture
def collection_config():
    return CollectionConfig(
        timeout_seconds=15,
        relays=[
            RelayStrategy("first", "https://relay-one.test/raw?url={url}"),
            RelayStrategy("second", "https://relay-two.test/?{url}"),
            RelayStrategy("third", "https://relay-three.test/proxy?quest={url}"),
        ],
        json_api_endpoint="https://json-api.test/v1?rss_url={url}",
        json_api_source_label="RSS Feed",
        default_source_label="RSS Feed",
    )


@pytest.fixture
def store(tmp_path):
    cache = CacheStore(f"sqlite:///{tmp_path / 'cache.db'}")
    yield cache
    cache.engine.dispose()


@pytest.fixture
def make_article():
    def _make(title="Headline", category="hyderabad", hours_ago=0.0, link=None, index=0):
        link = link or f"https://example.com/{category}/{index}-{title.lower().replace(' ', '-')}"
        return Article(
            id=stable_article_id(category, link),
            title=title,
            description=f"{title} description",
            content=f"{title} content",
            link=link,
            source="Test Wire",
            published_at=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
            category=category,
        )
    return _make


@pytest.fixture
def mock_tracker():
    tracker = MagicMock()
    tracker.record_call = MagicMock()
    tracker.record_cache_hit = MagicMock()
    return tracker
