#!/usr/bin/env python3
"""
News Collection System

Relay fetching, feed parsing and source resolution for category news.
"""

from .collectors import (
    ProxyFetcher,
    ArticleParser,
    JsonFeedCollector,
    NewsCollector
)

from .core import (
    CollectionConfig,
    ConfigManager,
    RelayStrategy,
    DateUtils,
    TextUtils,
    stable_article_id
)

from .sources import FeedSourceResolver

__all__ = [
    'ProxyFetcher',
    'ArticleParser',
    'JsonFeedCollector',
    'NewsCollector',
    'CollectionConfig',
    'ConfigManager',
    'RelayStrategy',
    'DateUtils',
    'TextUtils',
    'stable_article_id',
    'FeedSourceResolver'
]
