"""PCM helpers shared by the client-side encoder and the server-side coordinator."""

import base64
import binascii
import io
import time
import wave

import numpy as np

from ..errors import BadRequestError
from ..models.audio import EncodedAudioChunk, SAMPLE_RATE, CHANNELS, SAMPLE_WIDTH_BYTES


def float32_to_int16(samples: np.ndarray) -> np.ndarray:
    """Clip float samples to [-1, 1] and scale them to 16-bit integers."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    return (clipped * 32767).astype(np.int16)


def int16_to_base64(samples: np.ndarray) -> str:
    """Encode 16-bit samples as base64 little-endian PCM."""
    return base64.b64encode(np.asarray(samples, dtype='<i2').tobytes()).decode('ascii')


def float32_to_base64(samples: np.ndarray) -> str:
    return int16_to_base64(float32_to_int16(samples))


def calculate_rms(pcm: bytes) -> float:
    """Root-mean-square loudness of 16-bit PCM, normalized to [0, 1].

    Empty input has zero loudness.
    """
    if len(pcm) < SAMPLE_WIDTH_BYTES:
        return 0.0
    usable = len(pcm) - (len(pcm) % SAMPLE_WIDTH_BYTES)
    samples = np.frombuffer(pcm[:usable], dtype='<i2').astype(np.float64) / 32768.0
    return float(np.sqrt(np.mean(samples * samples)))


def decode_audio_chunk(audio_base64: str) -> bytes:
    """Decode a base64 PCM chunk, rejecting anything that is not 16-bit PCM.

    Raises:
        BadRequestError: empty payload, invalid base64, or an odd byte count
    """
    if not isinstance(audio_base64, str) or not audio_base64:
        raise BadRequestError("Missing audio data")
    try:
        audio = base64.b64decode(audio_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise BadRequestError(f"Audio data is not valid base64: {e}") from e
    if not audio:
        raise BadRequestError("Audio data is empty")
    if len(audio) % SAMPLE_WIDTH_BYTES:
        raise BadRequestError(f"Audio data has odd length {len(audio)}; expected 16-bit PCM")
    return audio


def pcm_to_wav(pcm: bytes, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> bytes:
    """Wrap raw 16-bit PCM in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(SAMPLE_WIDTH_BYTES)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buffer.getvalue()


def pcm_duration_ms(pcm_length: int, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> int:
    """Duration in milliseconds of ``pcm_length`` bytes of 16-bit PCM."""
    return int(pcm_length * 1000 / (sample_rate * channels * SAMPLE_WIDTH_BYTES))


def encode_pcm_chunk(pcm: bytes, sequence_number: int, is_last: bool = False,
                     sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> EncodedAudioChunk:
    """Package one buffer of 16-bit PCM for transport."""
    return EncodedAudioChunk(
        sequence_number=sequence_number,
        data=base64.b64encode(pcm).decode('ascii'),
        rms=calculate_rms(pcm),
        duration_ms=pcm_duration_ms(len(pcm), sample_rate, channels),
        timestamp=time.time(),
        is_last=is_last,
    )
