"""Session-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any

from .dictionary import DictionaryEntry


class SessionStatus(Enum):
    """Lifecycle status of a dictation session."""
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionStatus.STREAMING


@dataclass
class SessionRecord:
    """Durable state of a dictation session."""
    session_id: str
    user_id: str
    title: str
    language: str
    status: SessionStatus = SessionStatus.STREAMING
    content: str = ""
    normalized_content: str = ""
    duration_ms: int = 0
    dictionary_snapshot: List[DictionaryEntry] = field(default_factory=list)
    prompt_context: Optional[str] = None
    segment_count: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dictionary."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "title": self.title,
            "language": self.language,
            "status": self.status.value,
            "content": self.content,
            "normalized_content": self.normalized_content,
            "duration_ms": self.duration_ms,
            "dictionary_snapshot": [entry.to_dict() for entry in self.dictionary_snapshot],
            "prompt_context": self.prompt_context,
            "segment_count": self.segment_count,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionRecord":
        """Rebuild a record from ``to_dict`` output."""
        completed_at = data.get("completed_at")
        return cls(
            session_id=data["session_id"],
            user_id=data["user_id"],
            title=data["title"],
            language=data["language"],
            status=SessionStatus(data.get("status", SessionStatus.STREAMING.value)),
            content=data.get("content", ""),
            normalized_content=data.get("normalized_content", ""),
            duration_ms=data.get("duration_ms", 0),
            dictionary_snapshot=[DictionaryEntry.from_dict(e) for e in data.get("dictionary_snapshot", [])],
            prompt_context=data.get("prompt_context"),
            segment_count=data.get("segment_count", 0),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        )


@dataclass
class TranscriptChunk:
    """One transcribed flush, keyed by (session_id, sequence)."""
    session_id: str
    sequence: int
    text: str
    is_final: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "sequence": self.sequence,
            "text": self.text,
            "is_final": self.is_final,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptChunk":
        completed_at = data.get("completed_at")
        return cls(
            session_id=data["session_id"],
            sequence=data["sequence"],
            text=data["text"],
            is_final=data.get("is_final", False),
            created_at=datetime.fromisoformat(data["created_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        )


@dataclass
class StartedSession:
    """Result of starting a live session."""
    session_id: str
    model_identifier: str


@dataclass
class SessionView:
    """A session record together with its transcript chunks."""
    session: SessionRecord
    chunks: List[TranscriptChunk] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = self.session.to_dict()
        data["chunks"] = [chunk.to_dict() for chunk in self.chunks]
        return data
