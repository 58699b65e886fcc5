#!/usr/bin/env python3
"""
Deduplication Utilities

Merging of several category feeds into one derived view.
"""

import logging
from typing import Iterable, List

from newspulse.shared.types.results import Article

logger = logging.getLogger(__name__)


def dedupe_by_title(articles: Iterable[Article]) -> List[Article]:
    """Keep one article per exact title; a later duplicate replaces an earlier one."""
    unique = {}
    for article in articles:
        unique[article.title] = article
    return list(unique.values())


def merge_breaking_feed(feeds: Iterable[List[Article]], limit: int = 20) -> List[Article]:
    """
    Flatten category feeds, dedupe by title and sort newest first.

    Args:
        feeds: Article lists in category order (later lists win title clashes)
        limit: Maximum number of articles returned

    Returns:
        At most ``limit`` articles sorted by publish time descending
    """
    flattened = [article for feed in feeds for article in feed]
    unique = dedupe_by_title(flattened)
    unique.sort(key=lambda article: article.published_at, reverse=True)

    if len(unique) < len(flattened):
        logger.debug(f"Breaking feed: {len(flattened)} articles -> {len(unique)} unique titles")
    return unique[:limit]
