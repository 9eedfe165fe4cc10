"""Audio-related data models."""

from dataclasses import dataclass

SAMPLE_RATE = 16000
CHANNELS = 1
SAMPLE_WIDTH_BYTES = 2  # 16-bit PCM
BYTES_PER_SECOND = SAMPLE_RATE * CHANNELS * SAMPLE_WIDTH_BYTES
CHUNK_SAMPLES = 4096


@dataclass
class AudioStats:
    """Audio recording statistics."""
    is_recording: bool
    duration_seconds: float
    sample_rate: int
    chunk_size: int
    total_chunks: int


@dataclass
class EncodedAudioChunk:
    """A client-side audio buffer ready for transport."""
    sequence_number: int
    data: str  # base64 little-endian 16-bit PCM
    rms: float
    duration_ms: int
    timestamp: float  # Unix timestamp when the buffer was captured
    is_last: bool = False

    def to_payload(self) -> dict:
        """Body of a chunk ingestion request."""
        return {"data": self.data, "durationMs": self.duration_ms, "isLast": self.is_last}
