#!/usr/bin/env python3
"""
Chunked narration playback.

The scheduler plays chunks back to back while the next chunk's audio is
resolved in the background, one chunk ahead. Remote or cached audio is
decoded and sent to an audio sink; device-fallback chunks go to the local
narrator. Stopping is cooperative: the session flag is checked at chunk
boundaries and the active sink or narrator is told to halt immediately.
"""

import asyncio
import logging
import threading
import wave
from pathlib import Path
from typing import Callable, List, Optional

import numpy as np
import pyttsx3

from newspulse.shared.types.results import AudioResolution
from newspulse.shared.utils.logging_config import log_error
from .audio_resolver import AudioSourceResolver
from .chunker import split_into_chunks

logger = logging.getLogger(__name__)

SAMPLE_RATE = 24000
CHANNELS = 1
SAMPLE_WIDTH = 2


def decode_pcm(data: bytes) -> np.ndarray:
    """16-bit signed little-endian mono PCM to float32 samples in [-1.0, 1.0)."""
    if len(data) % SAMPLE_WIDTH:
        data = data[:-(len(data) % SAMPLE_WIDTH)]
    return np.frombuffer(data, dtype='<i2').astype(np.float32) / 32768.0


class AudioSink:
    """Output for decoded PCM; ``play`` completes when the buffer has finished or was halted."""

    async def play(self, samples: np.ndarray, sample_rate: int) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class DeviceNarrator:
    """On-device speech used when no remote audio is available for a chunk."""

    async def narrate(self, text: str, voice_tag: Optional[str]) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class WaveFileSink(AudioSink):
    """Appends played chunks to a WAV file, paced at real-time speed."""

    def __init__(self, path: str, realtime: bool = True):
        self.path = Path(path)
        self.realtime = realtime
        self._wave: Optional[wave.Wave_write] = None
        self._halt: Optional[asyncio.Event] = None

    async def play(self, samples: np.ndarray, sample_rate: int) -> None:
        halt = asyncio.Event()
        self._halt = halt
        try:
            self._write(samples, sample_rate)
            if self.realtime and len(samples):
                try:
                    await asyncio.wait_for(halt.wait(), timeout=len(samples) / sample_rate)
                except asyncio.TimeoutError:
                    pass
        finally:
            if self._halt is halt:
                self._halt = None

    def _write(self, samples: np.ndarray, sample_rate: int) -> None:
        if self._wave is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._wave = wave.open(str(self.path), "wb")
            self._wave.setnchannels(CHANNELS)
            self._wave.setsampwidth(SAMPLE_WIDTH)
            self._wave.setframerate(sample_rate)
        pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype('<i2').tobytes()
        self._wave.writeframes(pcm)

    def stop(self) -> None:
        if self._halt is not None:
            self._halt.set()

    def close(self) -> None:
        if self._wave is not None:
            self._wave.close()
            self._wave = None
            logger.info(f"Narration written to {self.path}")


class Pyttsx3Narrator(DeviceNarrator):
    """Local OS speech through pyttsx3 (SAPI5, NSSpeechSynthesizer or eSpeak)."""

    def __init__(self, rate: Optional[int] = None):
        self.rate = rate
        self._engine = None
        self._halted = threading.Event()

    def _get_engine(self):
        if self._engine is None:
            self._engine = pyttsx3.init()
            if self.rate:
                self._engine.setProperty('rate', self.rate)
        return self._engine

    async def narrate(self, text: str, voice_tag: Optional[str]) -> None:
        self._halted.clear()
        await asyncio.to_thread(self._speak_blocking, text, voice_tag)

    def _speak_blocking(self, text: str, voice_tag: Optional[str]) -> None:
        engine = self._get_engine()
        self._select_voice(engine, voice_tag)
        # stop() may land while the engine was still starting up
        if self._halted.is_set():
            return
        engine.say(text)
        engine.runAndWait()

    @staticmethod
    def _select_voice(engine, voice_tag: Optional[str]) -> None:
        if not voice_tag or '-' not in voice_tag:
            return
        language = voice_tag.split('-', 1)[0].lower()
        for voice in engine.getProperty('voices') or []:
            languages = [
                lang.decode('utf-8', 'ignore') if isinstance(lang, bytes) else str(lang)
                for lang in (getattr(voice, 'languages', None) or [])
            ]
            if any(language in lang.lower() for lang in languages):
                engine.setProperty('voice', voice.id)
                return

    def stop(self) -> None:
        self._halted.set()
        if self._engine is not None:
            self._engine.stop()


class _PlaybackSession:
    """State of one ``speak`` call."""

    def __init__(self):
        self.stop_requested = False
        self.active_output = None

    def halt(self) -> None:
        self.stop_requested = True
        output = self.active_output
        if output is not None:
            output.stop()


class PlaybackScheduler:
    """Plays narration chunk by chunk with one chunk of fetch-ahead.

    At most one session is active: ``speak`` stops the previous one first.
    """

    def __init__(self, resolver: AudioSourceResolver, sink: AudioSink,
                 narrator: Optional[DeviceNarrator] = None, sample_rate: int = SAMPLE_RATE):
        self.resolver = resolver
        self.sink = sink
        self.narrator = narrator
        self.sample_rate = sample_rate
        self._session: Optional[_PlaybackSession] = None

    @property
    def is_playing(self) -> bool:
        return self._session is not None and not self._session.stop_requested

    async def speak(self, text: str, voice_tag: Optional[str],
                    on_end: Optional[Callable[[], None]] = None) -> bool:
        """
        Narrate ``text`` and wait for the session to end.

        Returns:
            True when every chunk played; False when the session was stopped.
            ``on_end`` runs only on natural completion.
        """
        self.stop()
        session = _PlaybackSession()
        self._session = session

        try:
            completed = await self._process_queue(session, split_into_chunks(text), voice_tag)
        finally:
            if self._session is session:
                self._session = None

        if completed and on_end is not None:
            on_end()
        return completed

    def stop(self) -> None:
        """Halt the current chunk immediately and skip the rest of the session."""
        if self._session is not None:
            self._session.halt()

    async def _process_queue(self, session: _PlaybackSession, chunks: List[str],
                             voice_tag: Optional[str]) -> bool:
        if not chunks:
            return True

        total = len(chunks)
        pending: Optional[asyncio.Task] = self._prefetch(chunks[0], voice_tag)
        try:
            for index, chunk in enumerate(chunks):
                if session.stop_requested:
                    break

                current, pending = pending, None
                try:
                    resolution = await current
                except Exception as e:
                    log_error(logger, f"Could not resolve audio for chunk {index + 1}/{total}: {e}")
                    resolution = None

                # Resolve the next chunk while this one plays
                if index + 1 < total and not session.stop_requested:
                    pending = self._prefetch(chunks[index + 1], voice_tag)

                if session.stop_requested:
                    break
                if resolution is None:
                    continue

                try:
                    await self._play_unit(session, chunk, resolution, voice_tag)
                except Exception as e:
                    log_error(logger, f"Playback failed for chunk {index + 1}/{total}: {e}")
        finally:
            if pending is not None and not pending.done():
                pending.cancel()

        return not session.stop_requested

    def _prefetch(self, chunk: str, voice_tag: Optional[str]) -> asyncio.Task:
        return asyncio.create_task(self.resolver.resolve(chunk, voice_tag))

    async def _play_unit(self, session: _PlaybackSession, chunk: str,
                         resolution: AudioResolution, voice_tag: Optional[str]) -> None:
        if resolution.needs_device_narration:
            if self.narrator is None:
                logger.warning("No device narrator configured; skipping chunk")
                return
            output, unit = self.narrator, self.narrator.narrate(chunk, voice_tag)
        else:
            samples = decode_pcm(resolution.data or b'')
            output, unit = self.sink, self.sink.play(samples, self.sample_rate)

        session.active_output = output
        try:
            await unit
        finally:
            session.active_output = None
