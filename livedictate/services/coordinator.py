"""Live transcription session coordinator.

Owns the lifecycle of every live session: start, chunk ingestion, periodic
flushes to the speech backend, finalize, cancel and recovery after a
restart. Ingestion never waits for the backend; flushes run as background
tasks, at most one per session, and durable writes are fire-and-forget
tasks that ``finalize`` joins before marking a session completed.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from ..audio.encoding import calculate_rms, decode_audio_chunk, pcm_to_wav
from ..config import CoordinatorSettings
from ..errors import ConflictError, InternalError, NotFoundError, TranscriptionError
from ..models.audio import BYTES_PER_SECOND
from ..models.session import (
    SessionRecord,
    SessionStatus,
    SessionView,
    StartedSession,
    TranscriptChunk,
)
from ..storage.base import SessionStore, generate_session_id
from ..storage.user_data import UserDataStore
from ..transcription.client import TranscriptionClient
from ..transcription.hallucination import HallucinationDetector
from ..transcription.prompt import build_context_prompt, build_vocabulary_prompt
from .session_buffer import SessionBuffer
from .session_registry import SessionRegistry

logger = logging.getLogger(__name__)

LOST_AUDIO_MESSAGE = (
    "ERROR: Audio data was lost before transcription could be completed. "
    "This may happen if the server restarted or the session expired."
)

TranscriptCallback = Callable[[str, str, str], None]


class SessionCoordinator:
    """Drives live sessions from first chunk to final transcript."""

    def __init__(self,
                 store: SessionStore,
                 user_data: UserDataStore,
                 transcription_client: TranscriptionClient,
                 registry: Optional[SessionRegistry] = None,
                 settings: Optional[CoordinatorSettings] = None,
                 detector: Optional[HallucinationDetector] = None,
                 clock: Callable[[], float] = time.monotonic,
                 on_transcript: Optional[TranscriptCallback] = None):
        """Initialize the coordinator.

        Args:
            store: Durable session and chunk store
            user_data: Source of user settings and dictionaries
            transcription_client: Speech-to-text client with retry
            registry: Table of live buffers; a fresh one by default
            settings: Flush and prompt tunables
            detector: Hallucination detector applied to every flush result
            clock: Monotonic seconds, injectable for tests
            on_transcript: Called with (session_id, new_text, transcript) after each accepted flush
        """
        self.store = store
        self.user_data = user_data
        self.transcription_client = transcription_client
        self.registry = registry if registry is not None else SessionRegistry()
        self.settings = settings or CoordinatorSettings()
        self.detector = detector or HallucinationDetector()
        self.clock = clock
        self.on_transcript = on_transcript

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, user_id: str, title: Optional[str] = None,
                    prompt_context: Optional[str] = None) -> StartedSession:
        """Create a streaming session and register its buffer."""
        user_settings = await self.user_data.get_settings(user_id)
        dictionary = await self.user_data.list_dictionary(user_id)

        if not title:
            count = await self.store.count_sessions(user_id)
            title = f"Session #{count + 1}"

        vocabulary_prompt = build_vocabulary_prompt(dictionary, self.settings.prompt_budget_chars)
        record = SessionRecord(
            session_id=generate_session_id(),
            user_id=user_id,
            title=title,
            language=user_settings.default_language,
            dictionary_snapshot=list(dictionary),
            prompt_context=prompt_context or None,
        )
        try:
            await self.store.create_session(record)
        except Exception as e:
            raise InternalError(f"Could not create session: {e}") from e

        self.registry.register(SessionBuffer(
            session_id=record.session_id,
            user_id=user_id,
            language=record.language,
            vocabulary_prompt=vocabulary_prompt,
            last_flush_at=self.clock(),
        ))

        logger.info(f"Created transcription session {record.session_id} ({len(self.registry)} active)")
        if vocabulary_prompt:
            logger.info(f"Dictionary prompt ({len(vocabulary_prompt)}/{self.settings.prompt_budget_chars} chars): "
                        f"'{vocabulary_prompt}'")
        return StartedSession(session_id=record.session_id, model_identifier=user_settings.model_identifier)

    async def ingest(self, session_id: str, user_id: str, audio_base64: str,
                     duration_ms: Optional[int] = None, is_last_chunk: bool = False) -> None:
        """Queue one audio chunk and trigger a background flush when due.

        Raises:
            BadRequestError: malformed audio payload
            NotFoundError: unknown session or one owned by another user
            ConflictError: the session is already finalized
        """
        audio = decode_audio_chunk(audio_base64)

        buffer = await self._resolve_buffer(session_id, user_id)
        if buffer.finalized:
            logger.warning(f"Attempted to add chunk to already finalized session {session_id}")
            raise ConflictError("Transcription already finalized", session_id=session_id)

        chunk_rms = calculate_rms(audio)
        speech_resumed = buffer.add_chunk(audio, chunk_rms, self.settings.silence_floor_rms)
        if speech_resumed:
            logger.info(f"Speech resumed after pause in {session_id} (RMS: {chunk_rms:.4f})")

        if len(buffer.pending_chunks) % 10 == 0:
            logger.debug(f"Session {session_id} has {len(buffer.pending_chunks)} pending chunks")

        if duration_ms and duration_ms > 0:
            buffer.total_duration_ms += int(duration_ms)
            total = buffer.total_duration_ms
            self._persist(buffer, "duration",
                          lambda: self.store.update_session(session_id, duration_ms=total))
            self._check_recording_limit(buffer)

        reason = self._flush_reason(buffer, speech_resumed)
        if reason:
            logger.info(f"Triggering transcription for {session_id} ({reason})")
            self._schedule_flush(buffer)

        if is_last_chunk:
            logger.info(f"Last chunk received for {session_id}, initiating finalization")
            await self.finalize(session_id, user_id)

    async def finalize(self, session_id: str, user_id: str) -> None:
        """Transcribe remaining audio and mark the session completed.

        Calling it again after a terminal state is a no-op. Calls that arrive
        while a finalize is running wait for that one and share its outcome.
        A cancel that lands first wins; the session stays cancelled.

        Raises:
            NotFoundError: unknown session, or one whose in-memory audio was lost
            InternalError: the completed status could not be written
        """
        buffer = self.registry.get(session_id)
        if buffer is None:
            await self._finalize_lost_session(session_id, user_id)
            return

        if buffer.user_id != user_id:
            logger.error(f"User mismatch finalizing session {session_id}")
            raise NotFoundError("Active transcription session not found", session_id=session_id)

        if buffer.finalize_task is None:
            buffer.finalized = True
            buffer.finalize_task = asyncio.create_task(self._complete(buffer))
        else:
            logger.info(f"Session {session_id} is already finalizing, waiting for it")

        # A caller that goes away does not abort the completion
        await asyncio.shield(buffer.finalize_task)

    async def _complete(self, buffer: SessionBuffer) -> None:
        """Final flush and completed status write; runs once per finalize."""
        session_id = buffer.session_id

        await self._await_flush(buffer)
        await buffer.drain_persist_ops()
        if buffer.cancelled:
            logger.info(f"Session {session_id} was cancelled while finalizing")
            return

        if buffer.pending_chunks:
            logger.info(f"Finalizing {session_id} with {len(buffer.pending_chunks)} unprocessed chunks "
                        f"({buffer.pending_bytes} bytes)")
            await self._run_flush(buffer, buffer.begin_flush(), force=True, is_final=True)
            if buffer.pending_chunks:
                logger.warning(f"Final flush of {session_id} failed; completing with the transcript so far "
                               f"({buffer.pending_bytes} bytes untranscribed)")
            await buffer.drain_persist_ops()
            if buffer.cancelled:
                logger.info(f"Session {session_id} was cancelled while finalizing")
                return

        transcript = buffer.accumulated_transcript
        try:
            record = await self.store.update_session(
                session_id,
                require_status=SessionStatus.STREAMING,
                content=transcript,
                normalized_content=transcript,
                duration_ms=buffer.total_duration_ms,
                segment_count=buffer.sequence,
                status=SessionStatus.COMPLETED,
                completed_at=datetime.now(),
            )
        except Exception as e:
            buffer.finalized = False
            buffer.finalize_task = None
            logger.error(f"Could not mark {session_id} completed: {e}")
            raise InternalError(f"Could not complete session: {e}", session_id=session_id) from e

        self.registry.remove(session_id)
        if record is None:
            current = await self.store.get_session(session_id)
            if current is None:
                logger.error(f"Session {session_id} disappeared from the store before completion")
                raise NotFoundError("Transcription session not found", session_id=session_id)
            logger.warning(f"Session {session_id} became {current.status.value} while finalizing; "
                           f"completion not written")
            return
        logger.info(f"Completed session {session_id}: {len(transcript)} chars, {buffer.sequence} segments")

    async def cancel(self, session_id: str, user_id: str) -> None:
        """Drop a session's pending audio and mark it cancelled.

        In-flight flushes are not awaited; their writes may still land.
        """
        buffer = self.registry.get(session_id)
        owned_buffer = buffer is not None and buffer.user_id == user_id
        if owned_buffer:
            buffer.finalized = True
            buffer.cancelled = True
            dropped = buffer.discard_pending()
            self.registry.remove(session_id)
            logger.info(f"Cancelled session {session_id}, discarded {dropped} bytes of pending audio")

        try:
            record = await self.store.get_session(session_id, user_id)
            if record is None:
                if owned_buffer:
                    logger.warning(f"Cancelled session {session_id} has no durable record")
                    return
                raise NotFoundError("Transcription session not found", session_id=session_id)
            if record.status.is_terminal:
                logger.info(f"Session {session_id} already {record.status.value}, cancel ignored")
                return
            updated = await self.store.update_session(session_id, user_id,
                                                      require_status=SessionStatus.STREAMING,
                                                      status=SessionStatus.CANCELLED)
            if updated is None:
                logger.info(f"Session {session_id} reached a terminal state first, cancel ignored")
        except NotFoundError:
            raise
        except Exception as e:
            raise InternalError(f"Could not cancel session: {e}", session_id=session_id) from e

    async def get_session(self, session_id: str, user_id: str) -> SessionView:
        """Durable record and transcript chunks of a session."""
        record = await self.store.get_session(session_id, user_id)
        if record is None:
            raise NotFoundError("Transcription session not found", session_id=session_id)
        chunks = await self.store.list_chunks(session_id)
        return SessionView(session=record, chunks=chunks)

    async def list_sessions(self, user_id: str, limit: int = 20) -> List[SessionRecord]:
        """Most recent sessions of a user; ``limit`` is clamped to 1-100."""
        return await self.store.list_sessions(user_id, max(1, min(limit, 100)))

    async def drain(self, session_id: str) -> None:
        """Wait for a session's in-flight flush and background writes."""
        buffer = self.registry.get(session_id)
        if buffer is None:
            return
        await self._await_flush(buffer)
        await buffer.drain_persist_ops()

    async def shutdown(self) -> None:
        """Drain every live session. Buffers stay registered."""
        session_ids = self.registry.session_ids()
        logger.info(f"Draining {len(session_ids)} live sessions")
        for session_id in session_ids:
            await self.drain(session_id)

    # ------------------------------------------------------------------
    # Buffers and recovery
    # ------------------------------------------------------------------

    async def _resolve_buffer(self, session_id: str, user_id: str) -> SessionBuffer:
        buffer = self.registry.get(session_id)
        if buffer is None:
            buffer = await self._recover_buffer(session_id, user_id)
        if buffer is None or buffer.user_id != user_id:
            logger.error(f"Session not found for {session_id}, user {user_id}")
            raise NotFoundError("Active transcription session not found", session_id=session_id)
        return buffer

    async def _recover_buffer(self, session_id: str, user_id: str) -> Optional[SessionBuffer]:
        """Rebuild a buffer for a session that is streaming in the store but unknown in memory.

        Audio received before the restart and not yet transcribed is gone.
        """
        record = await self.store.get_session(session_id, user_id)
        if record is None:
            return None
        if record.status.is_terminal:
            raise ConflictError("Transcription already finalized", session_id=session_id)

        logger.warning(f"DATA LOSS: session {session_id} was not in memory; restoring from store. "
                       f"Audio received since its last transcription is unrecoverable "
                       f"(transcript so far: {len(record.content)} chars)")
        buffer = SessionBuffer(
            session_id=session_id,
            user_id=record.user_id,
            language=record.language,
            vocabulary_prompt=build_vocabulary_prompt(record.dictionary_snapshot,
                                                      self.settings.prompt_budget_chars),
            accumulated_transcript=record.content,
            total_duration_ms=record.duration_ms,
            sequence=record.segment_count,
            last_flush_at=self.clock(),
        )
        return self.registry.register(buffer)

    async def _finalize_lost_session(self, session_id: str, user_id: str) -> None:
        record = await self.store.get_session(session_id, user_id)
        if record is None:
            raise NotFoundError("Active transcription session not found", session_id=session_id)
        if record.status.is_terminal:
            logger.info(f"Session {session_id} already {record.status.value}, skipping finalize")
            return

        logger.error(f"CRITICAL: cannot finalize {session_id} - session not in memory, its audio is lost")
        content = f"{record.content}\n\n{LOST_AUDIO_MESSAGE}" if record.content else LOST_AUDIO_MESSAGE
        await self.store.update_session(
            session_id,
            user_id,
            require_status=SessionStatus.STREAMING,
            status=SessionStatus.FAILED,
            content=content,
            normalized_content=content,
            completed_at=datetime.now(),
        )
        raise NotFoundError("Transcription session lost - audio data not available", session_id=session_id)

    def _check_recording_limit(self, buffer: SessionBuffer) -> None:
        limit = self.settings.max_recording_ms
        if buffer.total_duration_ms >= limit and buffer.duration_warning_level < 2:
            buffer.duration_warning_level = 2
            logger.warning(f"Recording {buffer.session_id} has reached maximum duration "
                           f"({buffer.total_duration_ms}ms / {limit}ms)")
        elif buffer.total_duration_ms >= limit * 0.9 and buffer.duration_warning_level < 1:
            buffer.duration_warning_level = 1
            logger.info(f"Recording {buffer.session_id} is at "
                        f"{round(buffer.total_duration_ms / limit * 100)}% of maximum duration")

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def _flush_reason(self, buffer: SessionBuffer, speech_resumed: bool) -> Optional[str]:
        """Why a flush should start now, or None."""
        if buffer.is_flushing or not buffer.pending_chunks:
            return None
        chunk_count = len(buffer.pending_chunks)
        if speech_resumed and chunk_count >= self.settings.resume_min_chunks:
            return f"speech resumed, {chunk_count} chunks"
        if chunk_count >= self.settings.backlog_ceiling:
            return f"{chunk_count} chunks accumulated"
        elapsed = self.clock() - buffer.last_flush_at
        if elapsed >= self.settings.flush_interval_seconds:
            return f"{elapsed * 1000:.0f}ms since last flush"
        return None

    def _schedule_flush(self, buffer: SessionBuffer) -> None:
        snapshot = buffer.begin_flush()
        buffer.flush_task = asyncio.create_task(self._run_flush(buffer, snapshot))

    async def _await_flush(self, buffer: SessionBuffer) -> None:
        task = buffer.flush_task
        if task is not None and not task.done():
            logger.debug(f"Waiting for in-flight flush of {buffer.session_id}")
            await task

    async def _run_flush(self, buffer: SessionBuffer, snapshot: List[bytes],
                         force: bool = False, is_final: bool = False) -> bool:
        """Transcribe ``snapshot`` and merge the result into the session transcript.

        The caller has already claimed the flush slot. Audio goes back into
        the buffer when it is too short or the backend fails; silent audio
        is discarded.

        Args:
            buffer: Session being flushed
            snapshot: Chunks taken from the buffer by ``begin_flush``
            force: Skip the minimum-duration guard (used by finalize)
            is_final: Mark the resulting transcript chunk as final

        Returns:
            True if text was appended to the transcript
        """
        session_id = buffer.session_id
        appended = False
        try:
            audio = b"".join(snapshot)
            min_seconds = (self.settings.min_audio_seconds_after_pause if buffer.was_silent
                           else self.settings.min_audio_seconds)
            required_bytes = int(min_seconds * BYTES_PER_SECOND)
            if not force and len(audio) < required_bytes:
                logger.debug(f"Skipping flush of {session_id}: {len(audio)} bytes (need {required_bytes})")
                buffer.restore(snapshot)
                return False

            audio_rms = calculate_rms(audio)
            if audio_rms < self.settings.silence_floor_rms:
                logger.info(f"Discarding silent audio for {session_id} (RMS: {audio_rms:.5f})")
                buffer.last_flush_at = self.clock()
                return False

            prompt = build_context_prompt(
                buffer.accumulated_transcript,
                buffer.vocabulary_prompt,
                self.detector,
                budget=self.settings.prompt_budget_chars,
                tail_chars=self.settings.context_tail_chars,
                scan_chars=self.settings.hallucination_scan_chars,
                min_vocabulary_room=self.settings.min_vocabulary_room_chars,
            )
            logger.debug(f"Transcribing {len(snapshot)} chunks ({len(audio)} bytes, RMS {audio_rms:.4f}) "
                         f"for {session_id} with prompt '{prompt[:50]}'")

            try:
                result = await self.transcription_client.transcribe(pcm_to_wav(audio), buffer.language, prompt)
            except TranscriptionError as e:
                logger.error(f"Transcription failed for {session_id}, keeping {len(audio)} bytes for retry: {e}")
                buffer.restore(snapshot)
                return False

            text = (result.text or "").strip()
            buffer.last_flush_at = self.clock()
            if not text:
                logger.info(f"Backend returned empty transcription for {session_id}")
                return False
            if self.detector.check(text):
                logger.error(f"HALLUCINATION BLOCKED for {session_id}: '{text[:100]}'")
                return False
            if buffer.cancelled:
                logger.info(f"Session {session_id} was cancelled during transcription, dropping result")
                return False

            transcript = buffer.append_text(text)
            buffer.sequence += 1
            appended = True
            logger.info(f"Transcribed for {session_id}: '{text}' (total: {len(transcript)} chars)")

            chunk = TranscriptChunk(
                session_id=session_id,
                sequence=buffer.sequence,
                text=text,
                is_final=is_final,
                completed_at=datetime.now(),
            )
            segment_count = buffer.sequence
            self._persist(buffer, f"segment {chunk.sequence}",
                          lambda: self._write_segment(chunk, transcript, segment_count))
            self._notify(session_id, text, transcript)
            return True
        except Exception as e:
            logger.error(f"Error flushing audio for {session_id}: {e}", exc_info=True)
            if not appended:
                buffer.restore(snapshot)
            return appended
        finally:
            buffer.is_flushing = False

    # ------------------------------------------------------------------
    # Background writes and notifications
    # ------------------------------------------------------------------

    async def _write_segment(self, chunk: TranscriptChunk, transcript: str, segment_count: int) -> None:
        await self.store.upsert_chunk(chunk)
        await self.store.update_session(
            chunk.session_id,
            content=transcript,
            normalized_content=transcript,
            segment_count=segment_count,
        )

    def _persist(self, buffer: SessionBuffer, label: str,
                 operation: Callable[[], Awaitable]) -> asyncio.Task:
        """Run a durable write in the background, tracked until it finishes.

        ``operation`` is called once the session's earlier writes are done,
        so writes of one session are applied in the order they were issued.
        Failures are logged and never reach the caller.
        """
        async def guarded() -> None:
            async with buffer.persist_lock:
                try:
                    await operation()
                except Exception as e:
                    logger.error(f"Background {label} write failed for {buffer.session_id}: {e}")

        task = asyncio.create_task(guarded())
        buffer.pending_persist_ops.add(task)
        task.add_done_callback(buffer.pending_persist_ops.discard)
        return task

    def _notify(self, session_id: str, text: str, transcript: str) -> None:
        if self.on_transcript is None:
            return
        try:
            self.on_transcript(session_id, text, transcript)
        except Exception as e:
            logger.error(f"Transcript listener failed for {session_id}: {e}")
