"""Data models for the LiveDictate application."""

from .audio import AudioStats, EncodedAudioChunk
from .dictionary import DictionaryEntry, UserSettings, User
from .session import (
    SessionStatus,
    SessionRecord,
    TranscriptChunk,
    StartedSession,
    SessionView,
)
from .transcription import TranscriptionResult

__all__ = [
    "AudioStats",
    "EncodedAudioChunk",
    "DictionaryEntry",
    "UserSettings",
    "User",
    "SessionStatus",
    "SessionRecord",
    "TranscriptChunk",
    "StartedSession",
    "SessionView",
    "TranscriptionResult",
]
