"""Audio helpers: PCM16 codec and loudness."""

from .conversion import (
    as_frame,
    decode_pcm16,
    duration_seconds,
    encode_pcm16,
    float32_to_pcm16,
    pcm16_to_float32,
    rms_level,
)

__all__ = [
    "as_frame",
    "decode_pcm16",
    "duration_seconds",
    "encode_pcm16",
    "float32_to_pcm16",
    "pcm16_to_float32",
    "rms_level",
]
