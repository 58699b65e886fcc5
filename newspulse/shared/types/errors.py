#!/usr/bin/env python3
"""Exceptions raised inside the News Pulse pipelines."""


class NewsPulseError(Exception):
    """Base error for the feed and speech pipelines."""


class FeedFetchError(NewsPulseError):
    """Every relay failed for a feed URL."""

    def __init__(self, url: str, message: str = "All relays failed"):
        self.url = url
        super().__init__(f"{message}: {url}")


class SynthesisUnavailableError(NewsPulseError):
    """Remote speech cannot be produced for this request."""
