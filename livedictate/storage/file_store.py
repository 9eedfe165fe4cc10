"""File-backed session store: one directory per session holding JSON documents."""

import asyncio
import json
import logging
import os
import shutil
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, List

from ..models.session import SessionRecord, SessionStatus, TranscriptChunk
from .base import SessionStore, apply_changes, status_matches

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"
CHUNKS_FILE = "chunks.json"


class FileSessionStore(SessionStore):
    """Stores session records and transcript chunks under ``data_dir/sessions``.

    Every write replaces the whole document through a temporary file, so a
    crash never leaves a half-written record behind. Blocking file I/O runs
    in worker threads.
    """

    def __init__(self, data_dir: str = "./data"):
        """Initialize file store with data directory.

        Args:
            data_dir: Base directory for storing all data
        """
        self.data_dir = Path(data_dir)
        self.sessions_dir = self.data_dir / "sessions"
        self._lock = threading.RLock()

        self._ensure_directories()
        logger.info(f"FileSessionStore initialized with data_dir: {self.data_dir}")

    def _ensure_directories(self) -> None:
        for directory in [self.data_dir, self.sessions_dir]:
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {directory}")

    def get_session_path(self, session_id: str) -> Path:
        """Get full path to session directory."""
        return self.sessions_dir / session_id

    # --- synchronous primitives -------------------------------------------

    def _write_json(self, path: Path, payload: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)

    def _read_json(self, path: Path, default: Any = None) -> Any:
        if not path.exists():
            return default
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _load_record(self, session_id: str) -> Optional[SessionRecord]:
        data = self._read_json(self.get_session_path(session_id) / SESSION_FILE)
        return SessionRecord.from_dict(data) if data else None

    def _save_record(self, record: SessionRecord) -> None:
        self._write_json(self.get_session_path(record.session_id) / SESSION_FILE, record.to_dict())

    def _create_sync(self, record: SessionRecord) -> SessionRecord:
        with self._lock:
            session_path = self.get_session_path(record.session_id)
            if (session_path / SESSION_FILE).exists():
                raise ValueError(f"Session already exists: {record.session_id}")
            self._save_record(record)
            logger.info(f"Created session record: {session_path}")
            return record

    def _get_sync(self, session_id: str, user_id: Optional[str]) -> Optional[SessionRecord]:
        with self._lock:
            record = self._load_record(session_id)
        if record is None or (user_id is not None and record.user_id != user_id):
            return None
        return record

    def _update_sync(self, session_id: str, user_id: Optional[str], require_status: Optional[SessionStatus],
                     changes: Dict[str, Any]) -> Optional[SessionRecord]:
        with self._lock:
            record = self._load_record(session_id)
            if record is None or (user_id is not None and record.user_id != user_id):
                return None
            if not status_matches(record, require_status):
                return None
            apply_changes(record, changes)
            self._save_record(record)
            return record

    def _upsert_chunk_sync(self, chunk: TranscriptChunk) -> None:
        with self._lock:
            path = self.get_session_path(chunk.session_id) / CHUNKS_FILE
            chunks = {c["sequence"]: c for c in self._read_json(path, [])}
            chunks[chunk.sequence] = chunk.to_dict()
            self._write_json(path, [chunks[k] for k in sorted(chunks)])

    def _list_chunks_sync(self, session_id: str) -> List[TranscriptChunk]:
        with self._lock:
            data = self._read_json(self.get_session_path(session_id) / CHUNKS_FILE, [])
        return [TranscriptChunk.from_dict(c) for c in sorted(data, key=lambda c: c["sequence"])]

    def _owned_records(self, user_id: str) -> List[SessionRecord]:
        records = []
        with self._lock:
            for path in self.sessions_dir.iterdir():
                if not (path.is_dir() and (path / SESSION_FILE).exists()):
                    continue
                try:
                    record = self._load_record(path.name)
                except (OSError, ValueError, KeyError) as e:
                    logger.error(f"Skipping unreadable session {path.name}: {e}")
                    continue
                if record and record.user_id == user_id:
                    records.append(record)
        return records

    # --- SessionStore -----------------------------------------------------

    async def create_session(self, record: SessionRecord) -> SessionRecord:
        return await asyncio.to_thread(self._create_sync, record)

    async def get_session(self, session_id: str, user_id: Optional[str] = None) -> Optional[SessionRecord]:
        return await asyncio.to_thread(self._get_sync, session_id, user_id)

    async def update_session(self, session_id: str, user_id: Optional[str] = None,
                             require_status: Optional[SessionStatus] = None,
                             **changes: Any) -> Optional[SessionRecord]:
        return await asyncio.to_thread(self._update_sync, session_id, user_id, require_status, changes)

    async def upsert_chunk(self, chunk: TranscriptChunk) -> None:
        await asyncio.to_thread(self._upsert_chunk_sync, chunk)

    async def list_chunks(self, session_id: str) -> List[TranscriptChunk]:
        return await asyncio.to_thread(self._list_chunks_sync, session_id)

    async def count_sessions(self, user_id: str) -> int:
        return len(await asyncio.to_thread(self._owned_records, user_id))

    async def list_sessions(self, user_id: str, limit: int = 20) -> List[SessionRecord]:
        records = await asyncio.to_thread(self._owned_records, user_id)
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    def cleanup_old_sessions(self, max_age_days: int = 30) -> int:
        """Delete session directories not modified within ``max_age_days``.

        Returns:
            Number of sessions cleaned up
        """
        cutoff_time = datetime.now().timestamp() - (max_age_days * 24 * 60 * 60)
        cleaned_count = 0

        with self._lock:
            for session_path in self.sessions_dir.iterdir():
                if session_path.is_dir() and session_path.stat().st_mtime < cutoff_time:
                    shutil.rmtree(session_path)
                    cleaned_count += 1
                    logger.info(f"Cleaned up old session: {session_path}")

        logger.info(f"Cleaned up {cleaned_count} old sessions")
        return cleaned_count
