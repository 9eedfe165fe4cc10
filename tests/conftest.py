"""Pytest configuration and fixtures for LiveDictate tests."""

import asyncio
import base64
import io
import logging
import wave
from typing import List, Optional

import numpy as np
import pytest

from livedictate.config import CoordinatorSettings
from livedictate.models.dictionary import DictionaryEntry, UserSettings
from livedictate.models.transcription import TranscriptionResult
from livedictate.services import SessionCoordinator, SessionRegistry
from livedictate.storage import InMemorySessionStore, StaticUserDataStore
from livedictate.transcription.base import AbstractTranscriptionBackend
from livedictate.transcription.client import TranscriptionClient


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
CHUNK_SAMPLES = 4096
CHUNK_DURATION_MS = CHUNK_SAMPLES * 1000 // SAMPLE_RATE  # 256ms


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without hardware or network")


def make_pcm(pattern: str = "sine", samples: int = CHUNK_SAMPLES, amplitude: float = 0.3,
             frequency: float = 440.0) -> bytes:
    """Generate 16-bit mono PCM.

    Args:
        pattern: 'sine', 'noise' or 'silence'
        samples: Number of samples
        amplitude: Peak level in [0, 1]
        frequency: Sine frequency in Hz

    Returns:
        bytes: Little-endian 16-bit PCM
    """
    if pattern == "sine":
        t = np.arange(samples) / SAMPLE_RATE
        wave_data = amplitude * np.sin(2 * np.pi * frequency * t)
    elif pattern == "noise":
        wave_data = np.random.default_rng(0).uniform(-amplitude, amplitude, samples)
    elif pattern == "silence":
        wave_data = np.zeros(samples)
    else:
        raise ValueError(f"Unknown pattern: {pattern}")
    return (wave_data * 32767).astype('<i2').tobytes()


def b64(pcm: bytes) -> str:
    return base64.b64encode(pcm).decode('ascii')


def wav_to_pcm(wav_audio: bytes) -> bytes:
    """Frames of a WAV payload sent to a backend."""
    with wave.open(io.BytesIO(wav_audio), 'rb') as wf:
        return wf.readframes(wf.getnframes())


class FakeBackend(AbstractTranscriptionBackend):
    """Scripted backend that records every call.

    ``responses`` items are returned in order: strings become transcription
    text, exceptions are raised. Once exhausted, calls return
    ``"segment <n>"``. With ``hold=True`` each call waits until ``release()``.
    """

    service_name = "fake"

    def __init__(self, responses: Optional[list] = None, hold: bool = False):
        self.responses = list(responses or [])
        self.hold = hold
        self.calls: List[dict] = []
        self._started: Optional[asyncio.Event] = None
        self._gate: Optional[asyncio.Event] = None

    def _events(self):
        # Created lazily so they belong to the running loop
        if self._gate is None:
            self._started = asyncio.Event()
            self._gate = asyncio.Event()
        return self._started, self._gate

    async def wait_started(self) -> None:
        started, _ = self._events()
        await started.wait()

    def release(self) -> None:
        _, gate = self._events()
        gate.set()

    async def transcribe(self, wav_audio: bytes, language: str, prompt: str = "") -> TranscriptionResult:
        self.calls.append({"pcm": wav_to_pcm(wav_audio), "language": language, "prompt": prompt})
        if self.hold:
            started, gate = self._events()
            started.set()
            await gate.wait()
        response = self.responses.pop(0) if self.responses else f"segment {len(self.calls)}"
        if isinstance(response, BaseException):
            raise response
        return TranscriptionResult(text=response, processing_time=0.0, service=self.service_name, language=language)


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records requested waits."""

    def __init__(self):
        self.waits: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


@pytest.fixture
def audio_test_data():
    """PCM generator, see ``make_pcm``."""
    return make_pcm


@pytest.fixture
def voiced_chunk():
    return make_pcm("sine")


@pytest.fixture
def silent_chunk():
    return make_pcm("silence")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def user_data():
    return StaticUserDataStore(
        settings={"alice": UserSettings(default_language="en-US", model_identifier="whisper-1")},
        dictionaries={
            "alice": [
                DictionaryEntry(phrase="kube cuddle", canonical="kubectl", priority=90),
                DictionaryEntry(phrase="Postgres", priority=50),
            ],
        },
    )


@pytest.fixture
def make_coordinator(store, user_data, clock, sleep_recorder):
    """Factory for coordinators sharing the test's store, user data and clock."""
    def factory(backend: AbstractTranscriptionBackend,
                registry: Optional[SessionRegistry] = None,
                settings: Optional[CoordinatorSettings] = None,
                session_store=None,
                on_transcript=None) -> SessionCoordinator:
        client = TranscriptionClient(backend, max_retries=2, backoff_base_seconds=1.0, sleep=sleep_recorder)
        return SessionCoordinator(
            session_store or store,
            user_data,
            client,
            registry=registry,
            settings=settings,
            clock=clock,
            on_transcript=on_transcript,
        )

    return factory
