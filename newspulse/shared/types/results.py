#!/usr/bin/env python3
"""
Result Types - data structures shared by the feed and speech pipelines.

Articles, AI-enhanced content, tagged fallback-chain results and audio
resolutions are passed between modules as these objects rather than raw
dictionaries.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional
from datetime import datetime
from enum import Enum


@dataclass
class Article:
    """Normalized news article; ``id`` is derived from (category, link)."""
    id: str
    title: str
    description: str
    content: str
    link: str
    source: str
    published_at: datetime
    category: str
    image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for JSON output."""
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'content': self.content,
            'link': self.link,
            'source': self.source,
            'published_at': self.published_at.isoformat(),
            'category': self.category,
            'image_url': self.image_url
        }


@dataclass
class EnhancedContent:
    """AI-expanded article body with its summaries, generated once per article."""
    full_article: str
    short_summary: str
    roman_urdu_summary: str


class Outcome(str, Enum):
    """Tag carried by every fallback-chain strategy result."""
    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"


@dataclass
class StrategyResult:
    """Tagged result of one strategy in a fallback chain."""
    outcome: Outcome
    value: Any = None
    strategy: str = ""
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS


class AudioSource(str, Enum):
    """Where the audio for a chunk came from."""
    CACHE = "cache"
    REMOTE = "remote"
    DEVICE_FALLBACK = "deviceFallback"


@dataclass
class AudioResolution:
    """Resolved audio for one narration chunk; ``data`` is raw 24 kHz mono PCM."""
    source: AudioSource
    data: Optional[bytes] = None
    voice: str = ""

    @property
    def needs_device_narration(self) -> bool:
        return self.source is AudioSource.DEVICE_FALLBACK
