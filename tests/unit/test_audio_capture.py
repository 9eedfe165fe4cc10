"""Unit tests for AudioCapture class."""

import base64
import threading
import time
from unittest.mock import Mock, patch

import numpy as np
import pytest

pytest.importorskip("pyaudio")

from livedictate.audio.capture import AudioCapture  # noqa: E402
from livedictate.models.audio import AudioStats  # noqa: E402


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.read.return_value = b'\x00' * 8192  # One silent 4096-sample buffer
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def collected_chunks():
    chunks = []
    lock = threading.Lock()

    def callback(chunk):
        with lock:
            chunks.append(chunk)

    return chunks, callback


@pytest.mark.unit
class TestAudioCapture:
    """Test cases for AudioCapture class."""

    def test_initialization(self, collected_chunks):
        """Defaults match the transport format: 16kHz mono, 4096-sample buffers."""
        _, callback = collected_chunks
        capture = AudioCapture(callback)

        assert capture.sample_rate == 16000
        assert capture.chunk_size == 4096
        assert capture.channels == 1
        assert capture.is_recording is False
        assert capture.total_chunks == 0

    def test_start_recording(self, mock_pyaudio, collected_chunks):
        _, callback = collected_chunks
        capture = AudioCapture(callback)

        with patch.object(capture, '_record_continuously') as mock_record:
            capture.start_recording()

            assert capture.is_recording is True
            assert capture.start_time is not None
            assert capture.recording_thread.daemon is True
            capture.recording_thread.join(timeout=1.0)
            mock_record.assert_called_once()

    def test_start_recording_already_recording(self, mock_pyaudio, collected_chunks):
        _, callback = collected_chunks
        capture = AudioCapture(callback)
        capture.is_recording = True

        with patch.object(capture, '_record_continuously') as mock_record:
            capture.start_recording()
            mock_record.assert_not_called()

    def test_stop_recording_not_recording(self, mock_pyaudio, collected_chunks):
        _, callback = collected_chunks
        capture = AudioCapture(callback)

        capture.stop_recording()
        assert capture.is_recording is False

    def test_emits_encoded_chunks_and_flags_the_last(self, mock_pyaudio, collected_chunks):
        """Every buffer is emitted as base64 PCM; the one read after stop is marked last."""
        chunks, callback = collected_chunks
        samples = (0.5 * np.sin(np.linspace(0, 40 * np.pi, 4096)) * 32767).astype('<i2')
        mock_pyaudio['stream'].read.return_value = samples.tobytes()

        capture = AudioCapture(callback)
        capture.start_recording()
        time.sleep(0.1)
        capture.stop_recording()

        assert len(chunks) >= 2
        assert [c.is_last for c in chunks].count(True) == 1
        assert chunks[-1].is_last is True
        assert [c.sequence_number for c in chunks] == list(range(1, len(chunks) + 1))

        first = chunks[0]
        assert base64.b64decode(first.data) == samples.tobytes()
        assert first.duration_ms == 256
        assert 0.3 < first.rms < 0.4  # 0.5 amplitude sine
        mock_pyaudio['stream'].stop_stream.assert_called_once()
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_get_recording_stats(self, mock_pyaudio, collected_chunks):
        _, callback = collected_chunks
        capture = AudioCapture(callback)

        stats = capture.get_recording_stats()

        assert isinstance(stats, AudioStats)
        assert stats.is_recording is False
        assert stats.duration_seconds == 0.0
        assert stats.sample_rate == 16000
        assert stats.chunk_size == 4096
        assert stats.total_chunks == 0
