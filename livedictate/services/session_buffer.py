"""In-memory state of one live session."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

logger = logging.getLogger(__name__)


def merge_transcript(existing: str, addition: str) -> str:
    """Append ``addition`` to ``existing`` separated by a single space.

    The space is added after sentence-ending punctuation too, so "one." and
    "two." merge to "one. two.". No separator is added when ``existing``
    already ends in whitespace.
    """
    if not existing:
        return addition
    if not addition:
        return existing
    if existing[-1].isspace():
        return f"{existing}{addition}"
    return f"{existing} {addition}"


@dataclass
class SessionBuffer:
    """Audio waiting for transcription plus the running transcript of a session.

    Only the coordinator mutates a buffer. ``pending_chunks`` holds audio not
    yet sent to the backend; a flush takes the whole list at once so chunks
    arriving mid-flush land in a fresh list.
    """
    session_id: str
    user_id: str
    language: str
    vocabulary_prompt: Optional[str] = None
    accumulated_transcript: str = ""
    total_duration_ms: int = 0
    sequence: int = 0  # Transcript chunks written so far
    last_flush_at: float = 0.0
    pending_chunks: List[bytes] = field(default_factory=list)
    is_flushing: bool = False
    flush_task: Optional[asyncio.Task] = None
    finalize_task: Optional[asyncio.Task] = None
    last_chunk_rms: float = 0.0
    was_silent: bool = False
    finalized: bool = False
    cancelled: bool = False
    duration_warning_level: int = 0
    pending_persist_ops: Set[asyncio.Task] = field(default_factory=set)
    persist_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def pending_bytes(self) -> int:
        return sum(len(chunk) for chunk in self.pending_chunks)

    def add_chunk(self, audio: bytes, rms: float, silence_floor: float) -> bool:
        """Queue a chunk and update pause tracking.

        Returns:
            True if this chunk resumes speech after a silent stretch
        """
        self.pending_chunks.append(audio)
        speech_resumed = self.was_silent and rms > silence_floor * 3
        self.last_chunk_rms = rms
        self.was_silent = rms < silence_floor * 2
        return speech_resumed

    def begin_flush(self) -> List[bytes]:
        """Claim the flush slot and take every pending chunk."""
        self.is_flushing = True
        snapshot = self.pending_chunks
        self.pending_chunks = []
        return snapshot

    def restore(self, snapshot: List[bytes]) -> None:
        """Put an unprocessed snapshot back ahead of newer chunks."""
        self.pending_chunks = list(snapshot) + self.pending_chunks

    def discard_pending(self) -> int:
        """Drop pending audio; returns the number of bytes dropped."""
        dropped = self.pending_bytes
        self.pending_chunks = []
        return dropped

    def append_text(self, text: str) -> str:
        self.accumulated_transcript = merge_transcript(self.accumulated_transcript, text)
        return self.accumulated_transcript

    async def drain_persist_ops(self) -> None:
        """Wait for every background write issued so far, then clear the set."""
        while self.pending_persist_ops:
            pending = list(self.pending_persist_ops)
            logger.debug(f"Waiting for {len(pending)} background writes of {self.session_id}")
            await asyncio.gather(*pending, return_exceptions=True)
            self.pending_persist_ops.difference_update(pending)
