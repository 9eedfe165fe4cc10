"""In-process session store."""

import copy
import logging
from typing import Dict, List, Optional, Any, Tuple

from ..models.session import SessionRecord, SessionStatus, TranscriptChunk
from .base import SessionStore, apply_changes, status_matches

logger = logging.getLogger(__name__)


class InMemorySessionStore(SessionStore):
    """Keeps records in dictionaries; returns copies so callers cannot mutate stored state."""

    def __init__(self):
        self.sessions: Dict[str, SessionRecord] = {}
        self.chunks: Dict[Tuple[str, int], TranscriptChunk] = {}

    async def create_session(self, record: SessionRecord) -> SessionRecord:
        if record.session_id in self.sessions:
            raise ValueError(f"Session already exists: {record.session_id}")
        self.sessions[record.session_id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    async def get_session(self, session_id: str, user_id: Optional[str] = None) -> Optional[SessionRecord]:
        record = self.sessions.get(session_id)
        if record is None or (user_id is not None and record.user_id != user_id):
            return None
        return copy.deepcopy(record)

    async def update_session(self, session_id: str, user_id: Optional[str] = None,
                             require_status: Optional[SessionStatus] = None,
                             **changes: Any) -> Optional[SessionRecord]:
        record = self.sessions.get(session_id)
        if record is None or (user_id is not None and record.user_id != user_id):
            return None
        if not status_matches(record, require_status):
            return None
        return copy.deepcopy(apply_changes(record, changes))

    async def upsert_chunk(self, chunk: TranscriptChunk) -> None:
        self.chunks[(chunk.session_id, chunk.sequence)] = copy.deepcopy(chunk)

    async def list_chunks(self, session_id: str) -> List[TranscriptChunk]:
        found = [copy.deepcopy(c) for (sid, _), c in self.chunks.items() if sid == session_id]
        return sorted(found, key=lambda c: c.sequence)

    async def count_sessions(self, user_id: str) -> int:
        return sum(1 for record in self.sessions.values() if record.user_id == user_id)

    async def list_sessions(self, user_id: str, limit: int = 20) -> List[SessionRecord]:
        owned = [r for r in self.sessions.values() if r.user_id == user_id]
        owned.sort(key=lambda r: r.created_at, reverse=True)
        return [copy.deepcopy(r) for r in owned[:limit]]
