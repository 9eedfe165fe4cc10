"""Google Speech-to-Text transcription backend."""

import asyncio
import time
import logging
from typing import Optional, List

from .base import AbstractTranscriptionBackend
from .prompt import TERM_SEPARATOR
from ..errors import RateLimitedError, TranscriptionBackendError
from ..models.transcription import TranscriptionResult

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

logger = logging.getLogger(__name__)


class GoogleSpeechBackend(AbstractTranscriptionBackend):
    """Google Speech-to-Text API backend for transcription."""

    service_name = "Google Speech-to-Text"

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 use_enhanced: bool = True,
                 enable_automatic_punctuation: bool = True,
                 request_timeout: float = 10.0):
        """Initialize Google Speech backend.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            use_enhanced: Whether to use enhanced model (costs more but better quality)
            enable_automatic_punctuation: Enable automatic punctuation
            request_timeout: Per-request deadline in seconds
        """
        self.credentials_path = credentials_path
        if not self.credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.use_enhanced = use_enhanced
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.request_timeout = request_timeout
        self.client = None
        self.project_id = None

    async def initialize(self) -> bool:
        """Initialize Google Speech client and verify credentials."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)

        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Using Google Cloud project: {self.project_id}")

        logger.info("Google Speech-to-Text backend initialized successfully")
        return True

    def _recognition_config(self, language: str, prompt: str) -> speech.RecognitionConfig:
        # Sample rate and encoding come from the WAV header
        phrases = self._prompt_phrases(prompt)
        return speech.RecognitionConfig(
            language_code=language,
            use_enhanced=self.use_enhanced,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            speech_contexts=[speech.SpeechContext(phrases=phrases)] if phrases else [],
            model="latest_short",
        )

    @staticmethod
    def _prompt_phrases(prompt: str) -> List[str]:
        """Google takes hint phrases, not free text: keep the prompt's comma-separated terms."""
        if not prompt:
            return []
        vocabulary = prompt.rsplit(". ", 1)[-1]
        return [term.strip() for term in vocabulary.split(TERM_SEPARATOR.strip()) if term.strip()][:50]

    def _recognize(self, wav_audio: bytes, language: str, prompt: str) -> speech.RecognizeResponse:
        audio = speech.RecognitionAudio(content=wav_audio)
        try:
            return self.client.recognize(config=self._recognition_config(language, prompt), audio=audio,
                                         timeout=self.request_timeout)
        except gax_exceptions.ResourceExhausted as e:
            raise RateLimitedError(f"Google Speech quota exhausted: {e}") from e
        except gax_exceptions.DeadlineExceeded as e:
            logger.error("Google STT recognize deadline exceeded")
            raise TranscriptionBackendError(f"Google Speech recognize timeout: {e}") from e
        except gax_exceptions.ServiceUnavailable as e:
            logger.error("Google STT service unavailable")
            raise TranscriptionBackendError(f"Google Speech service unavailable: {e}") from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT API call error: {e}")
            raise TranscriptionBackendError(f"Google Speech API error: {e}") from e

    async def transcribe(self, wav_audio: bytes, language: str, prompt: str = "") -> TranscriptionResult:
        """Transcribe a WAV payload; the blocking SDK call runs in a worker thread."""
        if self.client is None:
            raise TranscriptionBackendError("Google Speech backend used before initialize()")
        start_time = time.time()
        logger.debug(f"Audio size: {len(wav_audio)} bytes; Language: {language}; Enhanced model: {self.use_enhanced}")

        response = await asyncio.to_thread(self._recognize, wav_audio, language, prompt)
        processing_time = time.time() - start_time

        # Each result covers a consecutive stretch of audio
        texts = [result.alternatives[0].transcript.strip()
                 for result in response.results if result.alternatives]
        confidences = [result.alternatives[0].confidence
                       for result in response.results if result.alternatives]
        if not texts:
            logger.debug("--- NO SPEECH DETECTED ---")

        return TranscriptionResult(
            text=" ".join(t for t in texts if t),
            processing_time=processing_time,
            service=self.service_name,
            language=language,
            confidence=min(confidences) if confidences else None,
        )

    async def cleanup(self) -> None:
        """Release the gRPC channel."""
        if self.client is not None:
            transport = getattr(self.client, "transport", None)
            if transport is not None:
                transport.close()
            self.client = None
