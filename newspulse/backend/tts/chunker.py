#!/usr/bin/env python3
"""Sentence chunking for incremental narration."""

import re
from typing import List

# A sentence keeps its terminator and an optional closing quote; a trailing
# fragment without terminal punctuation is its own chunk.
SENTENCE_PATTERN = re.compile(r'[^.!?]+[.!?]+["\'”’]?|[^.!?]+$')


def split_into_chunks(text: str) -> List[str]:
    """Split narration text into ordered, non-empty sentence chunks."""
    if not text or not text.strip():
        return []
    chunks = SENTENCE_PATTERN.findall(text)
    if not chunks:
        chunks = [text]
    return [chunk.strip() for chunk in chunks if chunk.strip()]
