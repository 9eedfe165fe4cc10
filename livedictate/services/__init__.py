"""Live session services: buffers, registry, coordinator and request handlers."""

from .session_buffer import SessionBuffer, merge_transcript
from .session_registry import SessionRegistry
from .coordinator import SessionCoordinator, LOST_AUDIO_MESSAGE
from .ingestion import ApiResponse, IngestionHandlers, TokenAuthenticator

__all__ = [
    'SessionBuffer',
    'merge_transcript',
    'SessionRegistry',
    'SessionCoordinator',
    'LOST_AUDIO_MESSAGE',
    'ApiResponse',
    'IngestionHandlers',
    'TokenAuthenticator',
]
