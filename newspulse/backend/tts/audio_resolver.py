#!/usr/bin/env python3
"""
Audio source resolution for narration chunks.

Each chunk's audio comes from the first source that can provide it:
the shared audio cache, remote Gemini synthesis (retried with backoff), or
a device-fallback signal telling the player to narrate the chunk locally.
"""

import asyncio
import base64
import logging
import time
from functools import partial
from typing import Dict, Optional, Set

from google import genai
from google.genai import types

from newspulse.backend.monitoring.usage_tracker import AIUsageTracker, usage_tracker
from newspulse.shared.config.config_loader import ConfigLoader
from newspulse.shared.types.errors import SynthesisUnavailableError
from newspulse.shared.types.results import AudioResolution, AudioSource
from newspulse.shared.utils.fallback import retry_async, run_chain

logger = logging.getLogger(__name__)

DEFAULT_VOICE = "Kore"
TRANSLITERATION_TAG = "ur-ro"
VOICE_MAP: Dict[str, str] = {
    'en-IN': 'Kore',
    'hi-IN': 'Zephyr',
    'ur-IN': 'Puck',
    'te-IN': 'Fenrir',
    'en-US': 'Kore',
}


def resolve_voice(voice_tag: Optional[str]) -> str:
    """Map a locale/voice tag to a prebuilt Gemini voice.

    Unmapped tags get the baseline voice. The transliteration tag is pinned
    to the baseline voice so romanized text is read with English phonetics.
    """
    tts_config = ConfigLoader.get('tts', {}) or {}
    default_voice = tts_config.get('default_voice', DEFAULT_VOICE)
    if not voice_tag or voice_tag == tts_config.get('transliteration_tag', TRANSLITERATION_TAG):
        return default_voice
    voices = tts_config.get('voices') or VOICE_MAP
    return voices.get(voice_tag, default_voice)


class GeminiSpeechSynthesizer:
    """Single-speaker speech from the Gemini TTS model as raw 24 kHz mono PCM."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 client: Optional[genai.Client] = None, tracker: Optional[AIUsageTracker] = None):
        self.model = model or ConfigLoader.get('tts.model', 'gemini-2.5-flash-preview-tts')
        self.client = client or (genai.Client(api_key=api_key) if api_key else None)
        self.tracker = tracker or usage_tracker

    @property
    def available(self) -> bool:
        return self.client is not None

    async def synthesize(self, text: str, voice: str) -> bytes:
        if self.client is None:
            raise SynthesisUnavailableError("GEMINI_API_KEY not configured")

        start = time.time()
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=text,
                config=types.GenerateContentConfig(
                    response_modalities=["AUDIO"],
                    speech_config=types.SpeechConfig(
                        voice_config=types.VoiceConfig(
                            prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice)
                        )
                    )
                )
            )
            pcm = self._extract_pcm(response)
        except Exception as e:
            self.tracker.record_call(self.model, "tts", time.time() - start, success=False,
                                     error_message=str(e))
            raise

        self.tracker.record_call(self.model, "tts", time.time() - start)
        return pcm

    @staticmethod
    def _extract_pcm(response) -> bytes:
        if not response or not response.candidates:
            raise SynthesisUnavailableError("No TTS response received")

        candidate = response.candidates[0]
        if not candidate.content or not candidate.content.parts:
            raise SynthesisUnavailableError("No audio content in TTS response")

        audio_part = candidate.content.parts[0]
        inline_data = getattr(audio_part, 'inline_data', None)
        if inline_data is None or not inline_data.data:
            raise SynthesisUnavailableError("No inline audio data in TTS response")

        data = inline_data.data
        # Some transports hand back the base64 text instead of decoded bytes
        if isinstance(data, str):
            data = base64.b64decode(data)
        return data


class AudioSourceResolver:
    """Resolves playable audio for a chunk: cache, then remote, then device fallback."""

    def __init__(self, store, synthesizer: Optional[GeminiSpeechSynthesizer] = None,
                 retry_attempts: int = 3, retry_base_delay: float = 1.0,
                 tracker: Optional[AIUsageTracker] = None):
        self.store = store
        self.synthesizer = synthesizer
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay
        self.tracker = tracker or usage_tracker
        self._pending_writes: Set[asyncio.Task] = set()

    async def resolve(self, chunk_text: str, voice_tag: Optional[str]) -> AudioResolution:
        """Never raises; the worst case is a device-fallback resolution."""
        voice = resolve_voice(voice_tag)
        winner, attempts = await run_chain([
            ("cache", partial(self._from_cache, chunk_text, voice)),
            ("remote", partial(self._from_remote, chunk_text, voice)),
        ])
        if winner:
            return winner.value

        reasons = ", ".join(f"{result.strategy}={result.outcome.value}" for result in attempts)
        logger.info(f"Device narration for chunk ({reasons})")
        return AudioResolution(AudioSource.DEVICE_FALLBACK, voice=voice)

    async def _from_cache(self, chunk_text: str, voice: str) -> Optional[AudioResolution]:
        data = await asyncio.to_thread(self.store.get_audio, chunk_text, voice)
        if not data:
            return None
        self.tracker.record_cache_hit("tts")
        return AudioResolution(AudioSource.CACHE, data=data, voice=voice)

    async def _from_remote(self, chunk_text: str, voice: str) -> Optional[AudioResolution]:
        if self.synthesizer is None or not self.synthesizer.available:
            return None

        data = await retry_async(
            partial(self.synthesizer.synthesize, chunk_text, voice),
            attempts=self.retry_attempts,
            base_delay=self.retry_base_delay,
            description=f"TTS ({voice})"
        )
        self._persist(chunk_text, voice, data)
        return AudioResolution(AudioSource.REMOTE, data=data, voice=voice)

    def _persist(self, chunk_text: str, voice: str, data: bytes) -> None:
        """Write to the audio cache in the background; playback never waits on it."""
        task = asyncio.create_task(asyncio.to_thread(self.store.save_audio, chunk_text, voice, data))
        self._pending_writes.add(task)
        task.add_done_callback(self._write_finished)

    def _write_finished(self, task: asyncio.Task) -> None:
        self._pending_writes.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Audio cache write failed: {task.exception()}")

    async def wait_for_pending_writes(self) -> None:
        """Let background cache writes finish (shutdown and tests)."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)
