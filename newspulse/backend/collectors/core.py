#!/usr/bin/env python3
"""
News Collection Core - configuration, identity and text helpers
"""

import hashlib
import logging
import re
import time
from datetime import datetime, timezone, timedelta
from typing import List, Optional, Any
from urllib.parse import quote
from dataclasses import dataclass, field

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from newspulse.shared.config.config_loader import ConfigLoader
from newspulse.shared.types.results import Article

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_LENGTH = 150
ELLIPSIS = '...'


@dataclass
class RelayStrategy:
    """A network relay that wraps a feed URL into a relayed request URL."""
    name: str
    template: str

    def wrap(self, url: str) -> str:
        return self.template.format(url=quote(url, safe=''))


@dataclass
class CollectionConfig:
    """Settings for fetching, caching and capping category news."""
    timeout_seconds: float = 15
    user_agent: str = "NewsPulse/1.0 Feed Reader"
    relays: List[RelayStrategy] = field(default_factory=list)
    json_api_endpoint: str = "https://api.rss2json.com/v1/api.json?rss_url={url}"
    json_api_source_label: str = "RSS Feed"
    default_source_label: str = "RSS Feed"
    stale_threshold_hours: float = 6
    purge_after_hours: float = 24
    default_limit: int = 10
    high_volume_limit: int = 5
    high_volume_categories: List[str] = field(default_factory=lambda: ["international", "sports", "breaking"])
    breaking_categories: List[str] = field(default_factory=lambda: ["breaking", "hyderabad", "india"])
    breaking_limit: int = 20

    def limit_for(self, category: str) -> int:
        """Result-size cap for a category."""
        if category in self.high_volume_categories:
            return self.high_volume_limit
        return self.default_limit


class ConfigManager:
    """Builds CollectionConfig from app.yaml."""

    @staticmethod
    def load() -> CollectionConfig:
        """Load collection configuration, falling back to defaults."""
        try:
            fetch = ConfigLoader.get('fetch', {})
            cache = ConfigLoader.get('cache', {})
            news = ConfigLoader.get('news', {})
        except (FileNotFoundError, RuntimeError) as e:
            logger.warning(f"Config loader not available: {e}")
            return CollectionConfig()

        relays = [
            RelayStrategy(name=entry.get('name', f"relay-{index}"), template=entry['template'])
            for index, entry in enumerate(fetch.get('relays', []))
            if entry.get('template')
        ]
        json_api = fetch.get('json_api', {})
        breaking = news.get('breaking', {})
        defaults = CollectionConfig()

        return CollectionConfig(
            timeout_seconds=fetch.get('timeout_seconds', defaults.timeout_seconds),
            user_agent=ConfigLoader.get('app.user_agent', defaults.user_agent),
            relays=relays,
            json_api_endpoint=json_api.get('endpoint', defaults.json_api_endpoint),
            json_api_source_label=json_api.get('source_label', defaults.json_api_source_label),
            default_source_label=fetch.get('default_source_label', defaults.default_source_label),
            stale_threshold_hours=cache.get('stale_threshold_hours', defaults.stale_threshold_hours),
            purge_after_hours=cache.get('purge_after_hours', defaults.purge_after_hours),
            default_limit=news.get('default_limit', defaults.default_limit),
            high_volume_limit=news.get('high_volume_limit', defaults.high_volume_limit),
            high_volume_categories=news.get('high_volume_categories', defaults.high_volume_categories),
            breaking_categories=breaking.get('categories', defaults.breaking_categories),
            breaking_limit=breaking.get('limit', defaults.breaking_limit)
        )

    @staticmethod
    def load_fallbacks(category: str) -> List[Article]:
        """Static placeholder articles for a category (never empty)."""
        try:
            fallbacks = ConfigLoader.get('fallbacks', {}, "fallbacks")
        except (FileNotFoundError, RuntimeError) as e:
            logger.error(f"Fallback content unavailable: {e}")
            fallbacks = {}

        entries = fallbacks.get(category) or fallbacks.get('default') or []
        now = datetime.now(timezone.utc)
        articles = [
            Article(
                id=entry['id'],
                title=entry.get('title', ''),
                description=entry.get('description', ''),
                content=entry.get('content', ''),
                link=entry.get('link', '#'),
                source=entry.get('source', 'News Pulse AI'),
                published_at=now - timedelta(hours=entry.get('age_hours', 0)),
                category=category,
                image_url=entry.get('image_url')
            )
            for entry in entries
        ]
        if not articles:
            articles = [Article(
                id='fb-1', title='News Service Refreshing',
                description='We are updating the news feed. Please check back in a moment.',
                content='The news service is currently updating.', link='#', source='System',
                published_at=now, category=category
            )]
        return articles


def stable_article_id(category: str, link: Optional[str]) -> str:
    """
    Deterministic article id for (category, link).

    Re-fetches of the same item land on the same cache row and on the same
    translation and audio entries. Without a usable link there is nothing
    stable to hash, so a time-based id is returned instead.
    """
    if not link or not TextUtils.is_valid_url(link):
        logger.warning(f"No usable link for {category} article; using a time-based id")
        return f"art-t{time.time_ns() // 1_000_000}"
    digest = hashlib.md5(f"{category}|{link}".encode('utf-8')).hexdigest()
    return f"art-{digest}"


class DateUtils:
    """Date handling utilities."""

    @staticmethod
    def parse_date(date_value: Any) -> datetime:
        """Parse feed date values (struct_time, string, datetime) to an aware UTC datetime."""
        if not date_value:
            return datetime.now(timezone.utc)

        try:
            if isinstance(date_value, datetime):
                parsed = date_value
            elif isinstance(date_value, time.struct_time):
                # feedparser normalizes *_parsed values to UTC
                parsed = datetime(*date_value[:6], tzinfo=timezone.utc)
            elif isinstance(date_value, str):
                parsed = date_parser.parse(date_value)
            else:
                return datetime.now(timezone.utc)
        except (ValueError, OverflowError, TypeError):
            return datetime.now(timezone.utc)

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)


class TextUtils:
    """Text processing utilities."""

    CDATA_PATTERN = re.compile(r'<!\[CDATA\[(.*?)\]\]>', re.DOTALL)
    IMG_SRC_PATTERN = re.compile(r'<img[^>]+src=["\']([^"\'>]+)["\']', re.IGNORECASE)

    @staticmethod
    def strip_cdata(text: str) -> str:
        return TextUtils.CDATA_PATTERN.sub(r'\1', text or '').strip()

    @staticmethod
    def strip_html(content: str) -> str:
        """Remove markup and collapse whitespace."""
        if not content:
            return ''
        cleaned = BeautifulSoup(TextUtils.strip_cdata(str(content)), 'html.parser').get_text(' ')
        return re.sub(r'\s+', ' ', cleaned).strip()

    @staticmethod
    def excerpt(text: str, max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
        """Bounded excerpt; long text is cut at a word boundary and ends with an ellipsis."""
        if len(text) <= max_length:
            return text
        room = max_length - len(ELLIPSIS)
        truncated = text[:room].rsplit(' ', 1)[0].rstrip()
        if not truncated:
            truncated = text[:room]
        return truncated + ELLIPSIS

    @staticmethod
    def find_image(markup: str) -> Optional[str]:
        """First <img src> inside embedded markup."""
        if not markup:
            return None
        match = TextUtils.IMG_SRC_PATTERN.search(markup)
        return match.group(1) if match else None

    @staticmethod
    def is_valid_url(url: str) -> bool:
        """Basic URL validation."""
        return bool(url and
                   len(url) >= 10 and
                   (url.startswith('http://') or url.startswith('https://')))
