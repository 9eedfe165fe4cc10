"""Audio encoding and publishing.

``AudioCapture`` lives in ``livedictate.audio.capture`` and is imported
explicitly, since it needs PortAudio at import time.
"""

from .encoding import (
    calculate_rms,
    decode_audio_chunk,
    encode_pcm_chunk,
    float32_to_base64,
    pcm_to_wav,
)
from .audio_pub import AudioPublisher

__all__ = [
    'calculate_rms',
    'decode_audio_chunk',
    'encode_pcm_chunk',
    'float32_to_base64',
    'pcm_to_wav',
    'AudioPublisher',
]
