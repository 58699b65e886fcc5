#!/usr/bin/env python3
"""
Article Processing Module

Feed merging and Gemini-backed content enhancement.
"""

from .deduplication_utils import dedupe_by_title, merge_breaking_feed
from .enhancement import ContentEnhancer, EnhancedContentResponse

__all__ = [
    'dedupe_by_title',
    'merge_breaking_feed',
    'ContentEnhancer',
    'EnhancedContentResponse'
]
