"""Test configuration and fixtures"""

import asyncio
import io
import tempfile
import wave
from pathlib import Path

import numpy as np
import pytest

from melodix.core.storage import MemoryStore
from melodix.enhancement.pipeline import EnrichmentPipeline
from melodix.enhancement.providers import EnrichmentProvider, TagSuggestion
from melodix.enhancement.queue import EnhancementTaskQueue
from melodix.enhancement.repository import TaskRepository
from melodix.library.models import Song


SAMPLE_LYRICS = "[00:01.00]Rain on the window\n[00:04.50]Midnight again\n"


class FakeProvider(EnrichmentProvider):
    """
    Scriptable enrichment provider

    Lookups can be delayed, made to fail a number of times, or held until a
    gate event is set, so tests can observe tasks while they are in flight.
    """

    def __init__(self, tags=None, lyrics=SAMPLE_LYRICS, tag_delay=0.0, lyrics_delay=0.0,
                 fail_times=0, error=None, gate=None):
        self.tags = tags if tags is not None else TagSuggestion()
        self.lyrics = lyrics
        self.tag_delay = tag_delay
        self.lyrics_delay = lyrics_delay
        self.fail_times = fail_times
        self.error = error or ConnectionError("network unreachable")
        self.gate = gate
        self.tag_calls = []
        self.lyrics_calls = []
        self.active = 0
        self.max_active = 0

    async def suggest_tags(self, song):
        self.tag_calls.append(song.id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(self.tag_delay)
            if self.fail_times != 0:
                if self.fail_times > 0:
                    self.fail_times -= 1
                raise self.error
            return self.tags
        finally:
            self.active -= 1

    async def fetch_lyrics(self, title, artist, song_id=None):
        self.lyrics_calls.append((title, artist, song_id))
        await asyncio.sleep(self.lyrics_delay)
        return self.lyrics


def make_song(song_id="song-1", title="Midnight Rain", artist="Lofi Girl", **kwargs):
    return Song(id=song_id, title=title, artist=artist, **kwargs)


def make_queue(provider, store=None, **kwargs):
    store = store if store is not None else MemoryStore()
    pipeline = EnrichmentPipeline(provider, timeout=kwargs.pop('timeout', 5.0))
    return EnhancementTaskQueue(TaskRepository(store), pipeline, **kwargs)


def wav_bytes(samples, sample_rate=8000, channels=1):
    """Encode int16 samples as a WAV file in memory"""
    data = np.asarray(samples, dtype=np.int16)
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(data.tobytes())
    return buffer.getvalue()


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def store():
    """In-memory key-value store"""
    return MemoryStore()


@pytest.fixture
def song():
    """Sample song with nothing enhanced yet"""
    return make_song()


@pytest.fixture
def sine_wav(temp_dir):
    """One second of a 440 Hz tone that fades in, as a mono WAV file"""
    sample_rate = 8000
    t = np.arange(sample_rate) / sample_rate
    envelope = np.linspace(0.0, 1.0, sample_rate)
    samples = (np.sin(2 * np.pi * 440 * t) * envelope * 20000).astype(np.int16)
    path = temp_dir / "tone.wav"
    path.write_bytes(wav_bytes(samples, sample_rate))
    return path
