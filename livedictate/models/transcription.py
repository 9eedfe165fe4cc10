"""Transcription-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class TranscriptionResult:
    """Result of a transcription operation."""
    text: str
    processing_time: float
    service: str
    language: str = "en-US"
    timestamp: datetime = field(default_factory=datetime.now)
    confidence: Optional[float] = None
    attempts: int = 1  # Backend calls made, including rate-limited retries
