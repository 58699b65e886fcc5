import asyncio
import time
import wave
import numpy as np
import pytest
from unittest.mock import AsyncMock, MagicMock

from newspulse.backend.tts import AudioSink, PlaybackScheduler, Pyttsx3Narrator, WaveFileSink, decode_pcm
from newspulse.shared.types.results import AudioResolution, AudioSource

PCM = b"\x00\x10" * 240


class RecordingSink(AudioSink):
    def __init__(self, on_play=None):
        self.played = []
        self.stop_calls = 0
        self.on_play = on_play

    async def play(self, samples, sample_rate):
        self.played.append(len(samples))
        if self.on_play:
            self.on_play(len(self.played))
        await asyncio.sleep(0)

    def stop(self):
        self.stop_calls += 1


class BlockingSink(AudioSink):
    """First play blocks until stopped; later plays return at once."""

    def __init__(self):
        self.started = asyncio.Event()
        self.halt = asyncio.Event()
        self.plays = 0

    async def play(self, samples, sample_rate):
        self.plays += 1
        if self.plays == 1:
            self.started.set()
            await self.halt.wait()

    def stop(self):
        self.halt.set()


def _resolver(failing=()):
    resolver = MagicMock()
    calls = []

    async def resolve(chunk_text, voice_tag):
        calls.append(chunk_text)
        if chunk_text in failing:
            raise RuntimeError("resolution failed")
        return AudioResolution(AudioSource.REMOTE, data=PCM, voice="Kore")

    resolver.resolve = AsyncMock(side_effect=resolve)
    resolver.calls = calls
    return resolver


class TestPlaybackScheduler:
    @pytest.mark.asyncio
    async def test_natural_completion_calls_on_end(self):
        sink = RecordingSink()
        scheduler = PlaybackScheduler(_resolver(), sink)
        on_end = MagicMock()

        completed = await scheduler.speak("One. Two. Three.", "en-IN", on_end=on_end)

        assert completed is True
        assert len(sink.played) == 3
        on_end.assert_called_once()
        assert not scheduler.is_playing

    @pytest.mark.asyncio
    async def test_stop_during_second_chunk(self):
        resolver = _resolver()
        scheduler = None

        def stop_on_second(count):
            if count == 2:
                scheduler.stop()

        sink = RecordingSink(on_play=stop_on_second)
        scheduler = PlaybackScheduler(resolver, sink)
        on_end = MagicMock()

        completed = await scheduler.speak("One. Two. Three. Four.", "en-IN", on_end=on_end)

        assert completed is False
        assert len(sink.played) == 2
        assert sink.stop_calls == 1
        assert "Four." not in resolver.calls
        on_end.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_session_stops_previous(self):
        sink = BlockingSink()
        scheduler = PlaybackScheduler(_resolver(), sink)
        first_end = MagicMock()

        first = asyncio.create_task(scheduler.speak("One. Two.", "en-IN", on_end=first_end))
        await sink.started.wait()
        second = await scheduler.speak("Three.", "en-IN")

        assert second is True
        assert await first is False
        first_end.assert_not_called()
        assert sink.plays == 2

    @pytest.mark.asyncio
    async def test_failed_chunk_is_skipped(self):
        sink = RecordingSink()
        scheduler = PlaybackScheduler(_resolver(failing=("Two.",)), sink)

        completed = await scheduler.speak("One. Two. Three.", "en-IN")

        assert completed is True
        assert len(sink.played) == 2

    @pytest.mark.asyncio
    async def test_device_fallback_goes_to_narrator(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(return_value=AudioResolution(AudioSource.DEVICE_FALLBACK, voice="Kore"))
        narrator = MagicMock()
        narrator.narrate = AsyncMock()
        sink = RecordingSink()
        scheduler = PlaybackScheduler(resolver, sink, narrator=narrator)

        await scheduler.speak("Offline sentence.", "hi-IN")

        narrator.narrate.assert_awaited_once_with("Offline sentence.", "hi-IN")
        assert sink.played == []

    @pytest.mark.asyncio
    async def test_empty_text_completes(self):
        scheduler = PlaybackScheduler(_resolver(), RecordingSink())

        assert await scheduler.speak("   ", "en-IN") is True


class TestDecodePcm:
    def test_int16_little_endian_scaling(self):
        samples = decode_pcm(b"\x00\x80\xff\x7f\x00\x00")

        assert samples.dtype == np.float32
        assert samples[0] == -1.0
        assert samples[1] == pytest.approx(32767 / 32768)
        assert samples[2] == 0.0

    def test_odd_trailing_byte_dropped(self):
        assert len(decode_pcm(b"\x00\x00\x01")) == 1


class TestWaveFileSink:
    @pytest.mark.asyncio
    async def test_writes_mono_24khz_wav(self, tmp_path):
        path = tmp_path / "out.wav"
        sink = WaveFileSink(str(path), realtime=False)

        await sink.play(decode_pcm(PCM), 24000)
        await sink.play(decode_pcm(PCM), 24000)
        sink.close()

        with wave.open(str(path), "rb") as wav:
            assert wav.getnchannels() == 1
            assert wav.getsampwidth() == 2
            assert wav.getframerate() == 24000
            assert wav.getnframes() == 480

    @pytest.mark.asyncio
    async def test_stop_halts_realtime_playback(self, tmp_path):
        sink = WaveFileSink(str(tmp_path / "out.wav"), realtime=True)
        samples = np.zeros(24000 * 5, dtype=np.float32)

        started = time.monotonic()
        playing = asyncio.create_task(sink.play(samples, 24000))
        await asyncio.sleep(0.05)
        sink.stop()
        await playing
        sink.close()

        assert time.monotonic() - started < 2


class TestPyttsx3Narrator:
    @pytest.mark.asyncio
    async def test_narrates_through_engine(self, monkeypatch):
        engine = MagicMock()
        monkeypatch.setattr("newspulse.backend.tts.playback.pyttsx3.init", MagicMock(return_value=engine))
        narrator = Pyttsx3Narrator(rate=160)

        await narrator.narrate("Offline sentence.", None)

        engine.setProperty.assert_called_once_with('rate', 160)
        engine.say.assert_called_once_with("Offline sentence.")
        engine.runAndWait.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_while_engine_starts_skips_chunk(self, monkeypatch):
        engine = MagicMock()
        narrator = Pyttsx3Narrator()

        def init():
            narrator.stop()
            return engine

        monkeypatch.setattr("newspulse.backend.tts.playback.pyttsx3.init", init)

        await narrator.narrate("Never spoken.", None)

        engine.say.assert_not_called()
        engine.runAndWait.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_does_not_carry_into_next_chunk(self, monkeypatch):
        engine = MagicMock()
        monkeypatch.setattr("newspulse.backend.tts.playback.pyttsx3.init", MagicMock(return_value=engine))
        narrator = Pyttsx3Narrator()
        narrator.stop()

        await narrator.narrate("Next session.", None)

        engine.say.assert_called_once_with("Next session.")
