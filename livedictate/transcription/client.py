"""Transcription client: one backend call with bounded retry on rate limiting."""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from ..errors import RateLimitedError, TranscriptionBackendError, TranscriptionError
from ..models.transcription import TranscriptionResult
from .base import AbstractTranscriptionBackend

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class TranscriptionClient:
    """Wraps a backend with exponential backoff on ``RateLimitedError``.

    Only rate limiting is retried; every other failure propagates on the
    first attempt. ``sleep`` is injectable so tests run without real delays.
    """

    def __init__(self,
                 backend: AbstractTranscriptionBackend,
                 max_retries: int = 2,
                 backoff_base_seconds: float = 1.0,
                 sleep: SleepFunc = asyncio.sleep):
        """Initialize transcription client.

        Args:
            backend: Speech-to-text backend to call
            max_retries: Retries after the first rate-limited attempt
            backoff_base_seconds: Retry n waits ``backoff_base_seconds * 2**n``
            sleep: Coroutine used to wait between attempts
        """
        self.backend = backend
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.sleep = sleep

    async def transcribe(self, wav_audio: bytes, language: str, prompt: str = "") -> TranscriptionResult:
        """Transcribe ``wav_audio``, retrying rate-limited calls.

        Raises:
            RateLimitedError: still rate limited after ``max_retries`` retries
            TranscriptionBackendError: any other backend failure
        """
        attempt = 0
        while True:
            start_time = time.time()
            try:
                result = await self.backend.transcribe(wav_audio, language, prompt)
            except RateLimitedError:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(f"{self.backend.service_name} still rate limited after {self.max_retries} retries")
                    raise
                wait_seconds = self.backoff_base_seconds * (2 ** attempt)
                logger.info(f"Rate limit hit, waiting {wait_seconds:.1f}s before retry {attempt}/{self.max_retries}")
                await self.sleep(wait_seconds)
                continue
            except TranscriptionError:
                raise
            except Exception as e:
                raise TranscriptionBackendError(
                    f"{self.backend.service_name} failed: {e}", service=self.backend.service_name
                ) from e

            result.attempts = attempt + 1
            logger.debug(f"Transcription from {self.backend.service_name} in {time.time() - start_time:.3f}s "
                         f"({result.attempts} attempt(s)): '{result.text[:50]}'")
            return result
