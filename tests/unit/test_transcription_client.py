"""Unit tests for the retrying transcription client."""

import pytest

from conftest import FakeBackend, SleepRecorder
from livedictate.audio.encoding import pcm_to_wav
from livedictate.errors import RateLimitedError, TranscriptionBackendError
from livedictate.transcription.client import TranscriptionClient


async def transcribe(client, pcm):
    return await client.transcribe(pcm_to_wav(pcm), "en-US", "kubectl")


@pytest.mark.unit
class TestTranscriptionClient:

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, voiced_chunk):
        backend = FakeBackend(["hello world"])
        sleep = SleepRecorder()
        client = TranscriptionClient(backend, sleep=sleep)

        result = await transcribe(client, voiced_chunk)

        assert result.text == "hello world"
        assert result.attempts == 1
        assert sleep.waits == []
        assert backend.calls[0]["pcm"] == voiced_chunk
        assert backend.calls[0]["prompt"] == "kubectl"
        assert backend.calls[0]["language"] == "en-US"

    @pytest.mark.asyncio
    async def test_rate_limit_retried_with_exponential_backoff(self, voiced_chunk):
        backend = FakeBackend([RateLimitedError("slow down"), RateLimitedError("slow down"), "finally"])
        sleep = SleepRecorder()
        client = TranscriptionClient(backend, max_retries=2, backoff_base_seconds=1.0, sleep=sleep)

        result = await transcribe(client, voiced_chunk)

        assert result.text == "finally"
        assert result.attempts == 3
        assert sleep.waits == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_rate_limit_gives_up_after_max_retries(self, voiced_chunk):
        backend = FakeBackend([RateLimitedError("slow down")] * 3)
        sleep = SleepRecorder()
        client = TranscriptionClient(backend, max_retries=2, sleep=sleep)

        with pytest.raises(RateLimitedError):
            await transcribe(client, voiced_chunk)
        assert len(backend.calls) == 3
        assert sleep.waits == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_other_backend_errors_are_not_retried(self, voiced_chunk):
        backend = FakeBackend([TranscriptionBackendError("bad audio")])
        sleep = SleepRecorder()
        client = TranscriptionClient(backend, sleep=sleep)

        with pytest.raises(TranscriptionBackendError):
            await transcribe(client, voiced_chunk)
        assert len(backend.calls) == 1
        assert sleep.waits == []

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_are_wrapped(self, voiced_chunk):
        backend = FakeBackend([ConnectionResetError("socket closed")])
        client = TranscriptionClient(backend, sleep=SleepRecorder())

        with pytest.raises(TranscriptionBackendError) as exc_info:
            await transcribe(client, voiced_chunk)
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)
        assert exc_info.value.context["service"] == "fake"
