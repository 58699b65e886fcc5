#!/usr/bin/env python3
"""
Static feed sources loader.

Each category has one YAML file under ``sources/`` listing its feeds in
priority order. This table is the built-in fallback behind the managed
``feed_sources`` list kept in the cache store.
"""

import yaml
import logging
from typing import Dict, List, Any, Optional
from pathlib import Path
import threading

logger = logging.getLogger(__name__)

class SourcesLoader:
    """Per-category YAML feed table with lazy loading and caching."""

    def __init__(self, sources_dir: Optional[str] = None):
        if sources_dir is None:
            sources_dir = str(Path(__file__).parent / "sources")

        self.sources_dir = Path(sources_dir)
        self._cache: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

        if not self.sources_dir.exists():
            logger.warning(f"Sources directory not found: {self.sources_dir}")

    def get_categories(self) -> List[str]:
        """Categories with a feed table, discovered from the YAML file names."""
        if not self.sources_dir.exists():
            return []
        return sorted(path.stem for path in self.sources_dir.glob("*.yaml"))

    def load_category(self, category: str) -> Dict[str, Dict[str, Any]]:
        """Load enabled sources for a category, preserving file order."""
        with self._lock:
            if category in self._cache:
                return self._cache[category]

            sources_file = self.sources_dir / f"{category.lower().replace(' ', '_')}.yaml"
            if not sources_file.exists():
                logger.debug(f"No static sources for category {category}")
                self._cache[category] = {}
                return {}

            try:
                with open(sources_file, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Failed to load category {category} from {sources_file}: {e}")
                self._cache[category] = {}
                return {}

            sources = data.get("sources") or {}
            enabled_sources = {k: v for k, v in sources.items() if v.get("enabled", True)}
            self._cache[category] = enabled_sources
            logger.debug(f"Loaded {len(enabled_sources)} enabled sources from {sources_file.name}")
            return enabled_sources

    def get_urls(self, category: str) -> List[str]:
        """Ordered feed URLs for a category."""
        return [config['url'] for config in self.load_category(category).values() if config.get('url')]


_sources_loader = None

def get_sources_loader() -> SourcesLoader:
    """Get the shared sources loader instance."""
    global _sources_loader
    if _sources_loader is None:
        _sources_loader = SourcesLoader()
    return _sources_loader
