"""Persistence gateway interface for sessions and transcript chunks."""

import random
import string
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Any

from ..models.session import SessionRecord, SessionStatus, TranscriptChunk

UPDATABLE_FIELDS = frozenset({
    "title", "status", "content", "normalized_content", "duration_ms",
    "segment_count", "completed_at", "language",
})


def generate_session_id() -> str:
    """Timestamp-based session id with a random suffix for uniqueness."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=8))
    return f"{timestamp}_{random_suffix}"


class SessionStore(ABC):
    """Durable store for session records and their transcript chunks."""

    @abstractmethod
    async def create_session(self, record: SessionRecord) -> SessionRecord:
        """Persist a new session record."""

    @abstractmethod
    async def get_session(self, session_id: str, user_id: Optional[str] = None) -> Optional[SessionRecord]:
        """Load a record; with ``user_id``, records of other users are treated as missing."""

    @abstractmethod
    async def update_session(self, session_id: str, user_id: Optional[str] = None,
                             require_status: Optional[SessionStatus] = None,
                             **changes: Any) -> Optional[SessionRecord]:
        """Apply ``changes`` to a record and bump ``updated_at``.

        With ``require_status`` the record is only changed while it still has
        that status; the check and the write happen as one step.

        Returns:
            The updated record, or None if no matching record exists or its
            status differs from ``require_status``
        """

    @abstractmethod
    async def upsert_chunk(self, chunk: TranscriptChunk) -> None:
        """Insert or replace the chunk keyed by (session_id, sequence)."""

    @abstractmethod
    async def list_chunks(self, session_id: str) -> List[TranscriptChunk]:
        """Chunks of a session ordered by sequence."""

    @abstractmethod
    async def count_sessions(self, user_id: str) -> int:
        """Number of sessions owned by ``user_id``."""

    @abstractmethod
    async def list_sessions(self, user_id: str, limit: int = 20) -> List[SessionRecord]:
        """Sessions of ``user_id``, newest first."""


def status_matches(record: SessionRecord, require_status: Optional[SessionStatus]) -> bool:
    return require_status is None or record.status is require_status


def apply_changes(record: SessionRecord, changes: dict) -> SessionRecord:
    """Apply whitelisted field changes to ``record`` in place."""
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update session fields: {sorted(unknown)}")
    for name, value in changes.items():
        setattr(record, name, value)
    record.updated_at = datetime.now()
    return record
