"""Unit tests for SessionBuffer, transcript merging and the session registry."""

import asyncio

import pytest

from livedictate.services.session_buffer import SessionBuffer, merge_transcript
from livedictate.services.session_registry import SessionRegistry


def make_buffer(session_id="s1"):
    return SessionBuffer(session_id=session_id, user_id="alice", language="en-US")


@pytest.mark.unit
class TestMergeTranscript:

    def test_first_segment(self):
        assert merge_transcript("", "Hello") == "Hello"

    def test_segments_joined_with_single_space(self):
        assert merge_transcript("Hello there.", "How are you?") == "Hello there. How are you?"

    def test_no_double_space_after_trailing_whitespace(self):
        assert merge_transcript("Hello there.\n", "Next line") == "Hello there.\nNext line"

    def test_empty_addition(self):
        assert merge_transcript("Hello", "") == "Hello"


@pytest.mark.unit
class TestSessionBuffer:

    def test_pause_then_speech_reports_resume(self):
        buffer = make_buffer()
        floor = 0.002

        assert buffer.add_chunk(b"\x00\x00", 0.0, floor) is False
        assert buffer.was_silent is True
        assert buffer.add_chunk(b"\x01\x00", 0.005, floor) is False  # Not above 3x floor
        assert buffer.was_silent is False
        buffer.add_chunk(b"\x00\x00", 0.001, floor)
        assert buffer.add_chunk(b"\x02\x00", 0.2, floor) is True
        assert buffer.last_chunk_rms == 0.2
        assert len(buffer.pending_chunks) == 4

    def test_begin_flush_takes_everything(self):
        buffer = make_buffer()
        buffer.pending_chunks = [b"a", b"b"]

        snapshot = buffer.begin_flush()

        assert snapshot == [b"a", b"b"]
        assert buffer.pending_chunks == []
        assert buffer.is_flushing is True

    def test_restore_puts_snapshot_ahead_of_new_chunks(self):
        buffer = make_buffer()
        buffer.pending_chunks = [b"a", b"b"]
        snapshot = buffer.begin_flush()
        buffer.pending_chunks.append(b"c")

        buffer.restore(snapshot)

        assert buffer.pending_chunks == [b"a", b"b", b"c"]

    def test_discard_pending(self):
        buffer = make_buffer()
        buffer.pending_chunks = [b"abcd", b"ef"]
        assert buffer.pending_bytes == 6
        assert buffer.discard_pending() == 6
        assert buffer.pending_chunks == []

    @pytest.mark.asyncio
    async def test_drain_persist_ops_waits_for_all_writes(self):
        buffer = make_buffer()
        written = []

        async def write(value):
            await asyncio.sleep(0)
            written.append(value)

        async def failing():
            raise RuntimeError("disk full")

        for task in (asyncio.create_task(write(1)), asyncio.create_task(failing()),
                     asyncio.create_task(write(2))):
            buffer.pending_persist_ops.add(task)

        await buffer.drain_persist_ops()

        assert sorted(written) == [1, 2]
        assert buffer.pending_persist_ops == set()


@pytest.mark.unit
class TestSessionRegistry:

    def test_register_get_remove(self):
        registry = SessionRegistry()
        buffer = make_buffer()

        assert registry.register(buffer) is buffer
        assert "s1" in registry
        assert registry.get("s1") is buffer
        assert len(registry) == 1

        assert registry.remove("s1") is buffer
        assert registry.get("s1") is None
        assert registry.remove("s1") is None
        assert len(registry) == 0

    def test_register_keeps_existing_buffer(self):
        registry = SessionRegistry()
        first = registry.register(make_buffer())

        assert registry.register(make_buffer()) is first

    def test_session_ids(self):
        registry = SessionRegistry()
        registry.register(make_buffer("a"))
        registry.register(make_buffer("b"))
        assert sorted(registry.session_ids()) == ["a", "b"]
