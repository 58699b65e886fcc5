#!/usr/bin/env python3
"""
Feed source resolution: managed list first, static YAML table second.
"""

import asyncio
import logging
from typing import List, Optional

from newspulse.shared.config.sources_loader import SourcesLoader, get_sources_loader

logger = logging.getLogger(__name__)


class FeedSourceResolver:
    """Ordered feed URLs for a category. Never raises; an empty list is a valid answer."""

    def __init__(self, store, static_loader: Optional[SourcesLoader] = None):
        self.store = store
        self.static_loader = static_loader or get_sources_loader()

    async def urls_for(self, category: str) -> List[str]:
        try:
            managed = await asyncio.to_thread(self.store.active_feed_urls, category)
        except Exception as e:
            logger.warning(f"Managed feed list unavailable for {category}: {e}")
            managed = []

        if managed:
            logger.debug(f"Using {len(managed)} managed feeds for {category}")
            return managed

        try:
            urls = self.static_loader.get_urls(category)
        except Exception as e:
            logger.error(f"Static feed table unavailable for {category}: {e}")
            return []
        logger.debug(f"Using {len(urls)} static feeds for {category}")
        return urls
