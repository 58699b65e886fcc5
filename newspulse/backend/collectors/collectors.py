#!/usr/bin/env python3
"""
News Collection - relay fetching, feed parsing and per-category collection
"""

import asyncio
import logging
import xml.sax
from functools import partial
from typing import Dict, List, Optional, Any, Tuple
from urllib.parse import quote

import aiohttp
import feedparser

from newspulse.shared.types.errors import FeedFetchError
from newspulse.shared.types.results import Article
from newspulse.shared.utils.fallback import run_chain, last_error
from .core import CollectionConfig, DateUtils, TextUtils, stable_article_id

logger = logging.getLogger(__name__)


class ProxyFetcher:
    """Fetches a URL through an ordered list of relays, first success wins.

    Attempts are sequential and each one carries its own timeout. Nothing is
    remembered between calls, so every fetch starts from the first relay.
    """

    def __init__(self, session: aiohttp.ClientSession, config: CollectionConfig):
        self.session = session
        self.relays = list(config.relays)
        self.timeout = aiohttp.ClientTimeout(total=config.timeout_seconds)

    async def fetch(self, url: str) -> str:
        """Return the raw document text, or raise FeedFetchError once every relay failed."""
        strategies = [(relay.name, partial(self._fetch_via, relay, url)) for relay in self.relays]
        winner, attempts = await run_chain(strategies)
        if winner:
            logger.debug(f"Fetched {url} via {winner.strategy}")
            return winner.value

        cause = last_error(attempts)
        logger.debug(f"All {len(attempts)} relays failed for {url}: {cause}")
        raise FeedFetchError(url) from cause

    async def _fetch_via(self, relay, url: str) -> str:
        async with self.session.get(relay.wrap(url), timeout=self.timeout) as response:
            if not 200 <= response.status < 300:
                raise FeedFetchError(url, f"HTTP {response.status} via {relay.name}")
            return await response.text()


class ArticleParser:
    """Best-effort feed parser producing normalized articles."""

    def __init__(self, config: Optional[CollectionConfig] = None):
        self.config = config or CollectionConfig()

    def parse(self, document_text: str, category: str, fallback_source_label: str) -> List[Article]:
        """Parse a syndication document; a structurally broken document yields no articles."""
        if not document_text or not document_text.strip():
            return []

        feed = feedparser.parse(document_text)
        if feed.get('bozo') and isinstance(feed.get('bozo_exception'), xml.sax.SAXException):
            logger.debug(f"Malformed feed for {category}: {feed.get('bozo_exception')}")
            return []

        return [self.parse_entry(entry, category, fallback_source_label) for entry in feed.entries]

    def parse_entry(self, entry: Any, category: str, fallback_source_label: str) -> Article:
        """Map one feed entry to an Article."""
        title = TextUtils.strip_cdata(entry.get('title', '')) or "No Title"
        link = (entry.get('link') or '').strip() or '#'
        raw_description = entry.get('summary') or entry.get('description') or ''

        source = fallback_source_label
        source_info = entry.get('source')
        if isinstance(source_info, dict) and source_info.get('title'):
            source = source_info['title'].strip()

        content = TextUtils.strip_html(raw_description)

        return Article(
            id=stable_article_id(category, link),
            title=title,
            description=TextUtils.excerpt(content),
            content=content,
            link=link,
            source=source,
            published_at=DateUtils.parse_date(
                entry.get('published_parsed') or entry.get('updated_parsed') or entry.get('published')
            ),
            category=category,
            image_url=self._find_image(entry, raw_description)
        )

    @staticmethod
    def _find_image(entry: Any, raw_description: str) -> Optional[str]:
        """Media element, then enclosure, then the first <img> in the description."""
        for media in entry.get('media_content') or []:
            if media.get('url'):
                return media['url']
        for enclosure in entry.get('enclosures') or []:
            url = enclosure.get('href') or enclosure.get('url')
            if url:
                return url
        return TextUtils.find_image(raw_description)

    def parse_json_api(self, payload: Dict[str, Any], category: str) -> List[Article]:
        """Map a feed-to-JSON service envelope to articles."""
        if not isinstance(payload, dict) or payload.get('status') != 'ok':
            return []

        articles = []
        for item in payload.get('items') or []:
            if not isinstance(item, dict):
                continue
            link = (item.get('link') or '').strip() or '#'
            raw_description = item.get('description') or ''
            content = TextUtils.strip_html(raw_description)
            enclosure = item.get('enclosure') if isinstance(item.get('enclosure'), dict) else {}
            articles.append(Article(
                id=stable_article_id(category, link),
                title=TextUtils.strip_cdata(item.get('title') or '') or "No Title",
                description=TextUtils.excerpt(content),
                content=content,
                link=link,
                source=self.config.json_api_source_label,
                published_at=DateUtils.parse_date(item.get('pubDate')),
                category=category,
                image_url=item.get('thumbnail') or enclosure.get('link') or None
            ))
        return articles


class JsonFeedCollector:
    """Secondary path: asks a feed-to-JSON service for the same feed URL."""

    def __init__(self, session: aiohttp.ClientSession, parser: ArticleParser, config: CollectionConfig):
        self.session = session
        self.parser = parser
        self.endpoint = config.json_api_endpoint
        self.timeout = aiohttp.ClientTimeout(total=config.timeout_seconds)

    async def fetch(self, rss_url: str, category: str) -> List[Article]:
        """Articles from the JSON service; any failure is an empty result."""
        try:
            async with self.session.get(self.endpoint.format(url=quote(rss_url, safe='')),
                                        timeout=self.timeout) as response:
                if not 200 <= response.status < 300:
                    logger.debug(f"JSON feed API returned HTTP {response.status} for {rss_url}")
                    return []
                payload = await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.debug(f"JSON feed API timed out for {rss_url}")
            return []
        except (aiohttp.ClientError, ValueError) as e:
            logger.debug(f"JSON feed API failed for {rss_url}: {e}")
            return []

        return self.parser.parse_json_api(payload, category)


class NewsCollector:
    """Walks a category's feed URLs and returns the first non-empty parse.

    Each URL gets two strategies in order: relay fetch plus document parse,
    then the JSON service for that same URL. The chain stops at the first
    strategy that yields articles.
    """

    def __init__(self, fetcher: ProxyFetcher, parser: ArticleParser,
                 json_collector: Optional[JsonFeedCollector], config: CollectionConfig):
        self.fetcher = fetcher
        self.parser = parser
        self.json_collector = json_collector
        self.config = config

    async def collect(self, category: str, urls: List[str]) -> Tuple[List[Article], Optional[str]]:
        """
        Collect articles for a category.

        Returns:
            (articles, winning strategy name) or ([], None) when every URL failed
        """
        strategies = []
        for url in urls:
            strategies.append((f"feed:{url}", partial(self._from_document, url, category)))
            if self.json_collector is not None:
                strategies.append((f"json-api:{url}", partial(self.json_collector.fetch, url, category)))

        winner, attempts = await run_chain(strategies)
        if winner:
            logger.info(f"Collected {len(winner.value)} {category} articles from {winner.strategy}")
            return winner.value, winner.strategy

        failures = sum(1 for result in attempts if result.error is not None)
        logger.warning(f"No articles for {category}: {len(attempts)} strategies tried, {failures} errors")
        return [], None

    async def _from_document(self, url: str, category: str) -> List[Article]:
        document = await self.fetcher.fetch(url)
        return self.parser.parse(document, category, self.config.default_source_label)
