#!/usr/bin/env python3
"""
Narration Pipeline

Sentence chunking, per-chunk audio resolution and fetch-ahead playback.
"""

from .chunker import split_into_chunks
from .audio_resolver import (
    AudioSourceResolver,
    GeminiSpeechSynthesizer,
    resolve_voice
)
from .playback import (
    AudioSink,
    DeviceNarrator,
    PlaybackScheduler,
    Pyttsx3Narrator,
    WaveFileSink,
    decode_pcm
)

__all__ = [
    'split_into_chunks',
    'AudioSourceResolver',
    'GeminiSpeechSynthesizer',
    'resolve_voice',
    'AudioSink',
    'DeviceNarrator',
    'PlaybackScheduler',
    'Pyttsx3Narrator',
    'WaveFileSink',
    'decode_pcm'
]
