#!/usr/bin/env python3
"""
Shared cache storage for articles, translations, enhanced content and audio.
"""

from .article_store import (
    CacheStore,
    NullCacheStore,
    create_cache_store,
    is_fresh,
    text_hash
)

__all__ = [
    'CacheStore',
    'NullCacheStore',
    'create_cache_store',
    'is_fresh',
    'text_hash'
]
