"""Audio buffering and window emission.

Provides:
- AudioBuffer: bounded rolling buffer of float32 samples
- AudioAccumulator: decides when buffered audio becomes an AudioWindow
"""

import logging
import time
from collections.abc import Callable

import numpy as np

from ...audio.conversion import as_frame, rms_level
from .config import ChunkingPolicy
from .types import AudioWindow

logger = logging.getLogger(__name__)


class AudioBuffer:
    """Rolling audio buffer with a hard size cap.

    Trims the oldest audio when ``max_seconds`` is exceeded and tracks how
    much audio has been trimmed from the start.

    Example:
        buffer = AudioBuffer(max_seconds=15.0, sample_rate=16000)
        buffer.append(audio_chunk)
        audio = buffer.get_audio()
        buffer.trim_to_seconds(10.0)

    """

    def __init__(self, max_seconds: float, sample_rate: int = 16000):
        """Initialize audio buffer.

        Args:
            max_seconds: Maximum buffer duration in seconds
            sample_rate: Audio sample rate in Hz

        """
        self.max_seconds = max_seconds
        self.sample_rate = sample_rate
        self.max_samples = int(max_seconds * sample_rate)

        self._buffer: np.ndarray = np.array([], dtype=np.float32)
        self._offset_samples: int = 0
        self._total_samples: int = 0

    @property
    def offset_seconds(self) -> float:
        """Audio trimmed from the start, in seconds."""
        return self._offset_samples / self.sample_rate

    @property
    def duration_seconds(self) -> float:
        return len(self._buffer) / self.sample_rate

    @property
    def total_duration_seconds(self) -> float:
        """Total audio received, including trimmed audio."""
        return self._total_samples / self.sample_rate

    @property
    def samples_in_buffer(self) -> int:
        return len(self._buffer)

    def append(self, audio_chunk: np.ndarray) -> int:
        """Append audio, trimming the oldest samples past the cap.

        Returns:
            Number of samples trimmed (0 if no trimming occurred)

        """
        audio_chunk = as_frame(audio_chunk)
        self._buffer = np.concatenate([self._buffer, audio_chunk])
        self._total_samples += len(audio_chunk)

        trimmed = 0
        if len(self._buffer) > self.max_samples:
            trimmed = len(self._buffer) - self.max_samples
            self._buffer = self._buffer[-self.max_samples :]
            self._offset_samples += trimmed
            logger.debug("Buffer cap reached: trimmed %d samples", trimmed)

        return trimmed

    def get_audio(self) -> np.ndarray:
        """Copy of the buffered audio."""
        return self._buffer.copy()

    def trim_to_seconds(self, keep_seconds: float) -> int:
        """Keep only the last ``keep_seconds`` of audio.

        Returns:
            Number of samples trimmed

        """
        keep_samples = max(0, int(keep_seconds * self.sample_rate))
        if len(self._buffer) <= keep_samples:
            return 0

        trimmed = len(self._buffer) - keep_samples
        self._buffer = self._buffer[len(self._buffer) - keep_samples :]
        self._offset_samples += trimmed
        return trimmed

    def reset(self) -> None:
        """Fully reset buffer including offset tracking."""
        self._buffer = np.array([], dtype=np.float32)
        self._offset_samples = 0
        self._total_samples = 0


class AudioAccumulator:
    """Collects frames and decides when to emit a recognition window.

    Thresholds are measured on "new" audio, i.e. audio that has not yet been
    part of an emitted window. A window is due when:

    - new audio >= ``min_window_seconds`` and at least ``min_interval_seconds``
      passed since the last emission, or
    - new audio >= ``max_window_seconds``, or
    - there is any new audio and ``stale_seconds`` passed since the last
      emission.

    A due window whose new audio is quieter than ``min_audio_level`` and
    shorter than ``silence_gate_seconds`` is dropped but still counts as
    processed. After every emission or drop only the last
    ``context_seconds`` of audio are retained.

    Not thread-safe; the owning session serializes access.
    """

    def __init__(
        self,
        policy: ChunkingPolicy,
        sample_rate: int = 16000,
        max_buffer_seconds: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.policy = policy
        self.sample_rate = sample_rate
        self._clock = clock
        self._buffer = AudioBuffer(max_seconds=max(max_buffer_seconds, policy.max_window_seconds), sample_rate=sample_rate)
        self._pending_samples = 0
        self._last_processed_at = clock()
        self.windows_emitted = 0
        self.windows_dropped = 0

    @property
    def buffered_seconds(self) -> float:
        return self._buffer.duration_seconds

    @property
    def pending_seconds(self) -> float:
        return self._pending_samples / self.sample_rate

    @property
    def last_processed_at(self) -> float:
        return self._last_processed_at

    def reset(self) -> None:
        """Clear all audio and restart the emission timer."""
        self._buffer.reset()
        self._pending_samples = 0
        self._last_processed_at = self._clock()

    def append(self, frame) -> int:
        """Buffer a frame without checking whether a window is due.

        Returns the number of samples appended.
        """
        frame = as_frame(frame)
        if frame.size:
            self._buffer.append(frame)
            self._pending_samples = min(self._pending_samples + frame.size, self._buffer.samples_in_buffer)
        return frame.size

    def submit(self, frame) -> AudioWindow | None:
        """Append a frame; return a window when one is due."""
        if self.append(frame) == 0:
            return None

        now = self._clock()
        reason = self._due_reason(now)
        if reason is None:
            return None
        return self._emit(reason, now)

    def flush(self) -> AudioWindow | None:
        """Emit whatever new audio exists, regardless of timing."""
        if self._pending_samples == 0:
            return None
        return self._emit("flush", self._clock())

    def _due_reason(self, now: float) -> str | None:
        policy = self.policy
        pending = self.pending_seconds
        since_last = now - self._last_processed_at

        if pending >= policy.max_window_seconds:
            return "max_window"
        if pending >= policy.min_window_seconds and since_last >= policy.min_interval_seconds:
            return "interval"
        if pending > 0 and since_last >= policy.stale_seconds:
            return "stale"
        return None

    def _emit(self, reason: str, now: float) -> AudioWindow | None:
        audio = self._buffer.get_audio()
        pending = self._pending_samples
        new_audio = audio[audio.size - pending :]
        level = rms_level(new_audio)
        new_seconds = pending / self.sample_rate
        context_seconds = (audio.size - pending) / self.sample_rate

        self._last_processed_at = now
        self._pending_samples = 0
        self._buffer.trim_to_seconds(self.policy.context_seconds)

        if level < self.policy.min_audio_level and new_seconds < self.policy.silence_gate_seconds:
            self.windows_dropped += 1
            logger.debug("Dropping quiet window (rms=%.4f, %.2fs)", level, new_seconds)
            return None

        self.windows_emitted += 1
        return AudioWindow(
            samples=audio,
            sample_rate=self.sample_rate,
            rms=level,
            new_seconds=new_seconds,
            context_seconds=context_seconds,
            reason=reason,
        )


__all__ = ["AudioAccumulator", "AudioBuffer"]
