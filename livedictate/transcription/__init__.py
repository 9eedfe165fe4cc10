"""Transcription module for LiveDictate.

Backends are imported from their own modules so that optional SDKs
(google-cloud-speech) are only loaded when selected.
"""

from .base import AbstractTranscriptionBackend
from .client import TranscriptionClient
from .hallucination import HallucinationDetector, detect_hallucination
from .prompt import build_vocabulary_prompt, build_context_prompt
from .publisher import TranscriptPublisher, TRANSCRIPT_TOPIC
from ..models.transcription import TranscriptionResult

__all__ = [
    "AbstractTranscriptionBackend",
    "TranscriptionClient",
    "HallucinationDetector",
    "detect_hallucination",
    "build_vocabulary_prompt",
    "build_context_prompt",
    "TranscriptPublisher",
    "TRANSCRIPT_TOPIC",
    "TranscriptionResult",
]
