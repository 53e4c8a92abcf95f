"""Audio conversion helpers for PCM scaling.

The recognition engines consume mono 16 kHz audio either as float32 samples in
[-1.0, 1.0] (in-process engines) or as a raw signed 16-bit little-endian byte
stream (spawned engine process). Positive samples scale by 32767 and negative
samples by 32768 so that both ends of the range map exactly.
"""

from typing import cast

import numpy as np

PCM16_POSITIVE_SCALE = 32767.0
PCM16_NEGATIVE_SCALE = 32768.0
PCM16_DTYPE = np.dtype("<i2")


def pcm16_to_float32(audio: np.ndarray) -> np.ndarray:
    """Convert int16 PCM to float32 in [-1.0, 1.0]."""
    if audio.dtype == np.int16:
        pcm = audio.astype(np.float32)
        return cast(
            "np.ndarray",
            np.where(pcm >= 0, pcm / PCM16_POSITIVE_SCALE, pcm / PCM16_NEGATIVE_SCALE).astype(np.float32),
        )
    return audio.astype(np.float32)


def float32_to_pcm16(audio: np.ndarray) -> np.ndarray:
    """Convert float PCM in [-1.0, 1.0] to int16, clamping out-of-range samples."""
    if audio.dtype == np.int16:
        return audio
    audio_f32 = np.nan_to_num(audio.astype(np.float32), nan=0.0, posinf=1.0, neginf=-1.0)
    clipped = np.clip(audio_f32, -1.0, 1.0)
    scaled = np.where(clipped >= 0, clipped * PCM16_POSITIVE_SCALE, clipped * PCM16_NEGATIVE_SCALE)
    # astype truncates toward zero
    return cast("np.ndarray", scaled.astype(np.int16))


def encode_pcm16(samples) -> bytes:
    """Encode float samples as a raw s16le byte stream (no header, no framing)."""
    frame = as_frame(samples)
    return float32_to_pcm16(frame).astype(PCM16_DTYPE, copy=False).tobytes()


def decode_pcm16(data: bytes) -> np.ndarray:
    """Decode a raw s16le byte stream back to float32 samples."""
    if len(data) % 2:
        raise ValueError(f"PCM16 data must have an even number of bytes, got {len(data)}")
    pcm = np.frombuffer(data, dtype=PCM16_DTYPE).astype(np.int16)
    return pcm16_to_float32(pcm)


def as_frame(samples) -> np.ndarray:
    """Normalize caller input to a 1-D float32 frame.

    Accepts numpy arrays (float or int16) and plain sequences of floats.
    """
    if isinstance(samples, np.ndarray):
        array = samples
    else:
        array = np.asarray(samples, dtype=np.float32)
    if array.ndim != 1:
        array = array.reshape(-1)
    return pcm16_to_float32(array)


def rms_level(samples: np.ndarray) -> float:
    """Root-mean-square level of a frame; 0.0 for empty input."""
    if samples.size == 0:
        return 0.0
    audio = samples.astype(np.float64, copy=False)
    return float(np.sqrt(np.mean(np.square(audio))))


def duration_seconds(samples: np.ndarray, sample_rate: int = 16000) -> float:
    return samples.size / float(sample_rate)


__all__ = [
    "as_frame",
    "decode_pcm16",
    "duration_seconds",
    "encode_pcm16",
    "float32_to_pcm16",
    "pcm16_to_float32",
    "rms_level",
]
