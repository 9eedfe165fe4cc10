"""OpenAI Whisper transcription backend."""

import time
import logging
from typing import Optional

import aiohttp

from ..errors import RateLimitedError, TranscriptionBackendError
from ..models.transcription import TranscriptionResult
from .base import AbstractTranscriptionBackend

logger = logging.getLogger(__name__)


class OpenAIWhisperBackend(AbstractTranscriptionBackend):
    """Whisper API backend using aiohttp multipart uploads."""

    service_name = "OpenAI Whisper"

    def __init__(self,
                 api_key: str,
                 model: str = "whisper-1",
                 temperature: float = 0.2,
                 base_url: str = "https://api.openai.com/v1/audio/transcriptions",
                 timeout_seconds: float = 30.0):
        """Initialize Whisper backend.

        Args:
            api_key: OpenAI API key
            model: Whisper model identifier
            temperature: Sampling temperature; low values discourage repetition loops
            base_url: Transcriptions endpoint
            timeout_seconds: Total timeout per request
        """
        if not api_key:
            raise ValueError("OpenAI API key is required")
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.base_url = base_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(f"OpenAIWhisperBackend initialized with model: {model}")

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    @staticmethod
    def whisper_language(language: str) -> str:
        """Whisper takes ISO-639-1 codes: 'en-US' becomes 'en'."""
        return (language or "en").split('-')[0].lower() or "en"

    def _build_form(self, wav_audio: bytes, language: str, prompt: str) -> aiohttp.FormData:
        form = aiohttp.FormData()
        form.add_field("file", wav_audio, filename="audio.wav", content_type="audio/wav")
        form.add_field("model", self.model)
        form.add_field("language", self.whisper_language(language))
        form.add_field("response_format", "json")
        form.add_field("temperature", str(self.temperature))
        if prompt:
            form.add_field("prompt", prompt)
        return form

    async def transcribe(self, wav_audio: bytes, language: str, prompt: str = "") -> TranscriptionResult:
        """Send one WAV payload to the transcriptions endpoint."""
        start_time = time.time()
        headers = {"Authorization": f"Bearer {self.api_key}"}
        session = await self._get_session()

        try:
            async with session.post(self.base_url, headers=headers,
                                    data=self._build_form(wav_audio, language, prompt)) as response:
                if response.status != 200:
                    error_text = await response.text()
                    if response.status == 429 or "rate_limit_exceeded" in error_text:
                        raise RateLimitedError(f"Whisper API rate limited: {error_text[:200]}",
                                               status=response.status)
                    raise TranscriptionBackendError(f"Whisper API error: {response.status} - {error_text[:200]}",
                                                    status=response.status)
                result = await response.json()
        except aiohttp.ClientError as e:
            raise TranscriptionBackendError(f"Whisper API request failed: {e}") from e

        return TranscriptionResult(
            text=(result.get("text") or "").strip(),
            processing_time=time.time() - start_time,
            service=self.service_name,
            language=language,
        )

    async def cleanup(self) -> None:
        """Close the HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
