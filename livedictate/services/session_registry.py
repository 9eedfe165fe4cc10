"""Per-process table of live session buffers."""

import logging
from typing import Dict, List, Optional

from .session_buffer import SessionBuffer

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Maps session id to its in-memory buffer.

    Buffers are inserted when a session starts or is recovered and removed
    when it reaches a terminal state. Contents do not survive the process.
    """

    def __init__(self):
        self._buffers: Dict[str, SessionBuffer] = {}

    def register(self, buffer: SessionBuffer) -> SessionBuffer:
        """Insert ``buffer`` unless one is already registered; returns the registered buffer."""
        existing = self._buffers.get(buffer.session_id)
        if existing is not None:
            return existing
        self._buffers[buffer.session_id] = buffer
        logger.debug(f"Registered session {buffer.session_id} ({len(self._buffers)} active)")
        return buffer

    def get(self, session_id: str) -> Optional[SessionBuffer]:
        return self._buffers.get(session_id)

    def remove(self, session_id: str) -> Optional[SessionBuffer]:
        buffer = self._buffers.pop(session_id, None)
        if buffer is not None:
            logger.debug(f"Removed session {session_id} ({len(self._buffers)} active)")
        return buffer

    def session_ids(self) -> List[str]:
        return list(self._buffers)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._buffers

    def __len__(self) -> int:
        return len(self._buffers)
