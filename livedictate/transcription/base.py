"""Abstract base classes for transcription backends."""

from abc import ABC, abstractmethod
import logging

from ..models.transcription import TranscriptionResult

logger = logging.getLogger(__name__)


class AbstractTranscriptionBackend(ABC):
    """A remote speech-to-text service.

    Backends are a pure request/response boundary: they never touch session
    state. Failures are reported as ``RateLimitedError`` (retryable) or
    ``TranscriptionBackendError`` (anything else).
    """

    service_name = "unknown"

    @abstractmethod
    async def transcribe(self, wav_audio: bytes, language: str, prompt: str = "") -> TranscriptionResult:
        """Transcribe a WAV-encoded mono 16kHz 16-bit PCM payload.

        Args:
            wav_audio: WAV container bytes
            language: BCP-47 language code (e.g. 'en-US')
            prompt: Context hint for the speech model, may be empty

        Returns:
            TranscriptionResult with the recognized text
        """

    async def initialize(self) -> bool:
        """Initialize backend resources and verify configuration."""
        return True

    async def cleanup(self) -> None:
        """Clean up backend resources."""
