"""Type definitions for streaming transcription.

Provides:
- RecordingState / ProcessState / BackendKind: lifecycle enums
- AudioWindow: a unit of audio handed to a backend
- StreamingMetrics: per-session counters
- StreamingError: base of the error taxonomy
"""

from dataclasses import dataclass, field
from enum import Enum

import numpy as np


class RecordingState(Enum):
    """Recording state, driven only by the caller."""

    IDLE = "idle"
    RECORDING = "recording"


class BackendKind(Enum):
    """How the recognition engine is reached."""

    NATIVE_BINDING = "native_binding"
    LINKED_LIBRARY = "linked_library"
    SPAWNED_PROCESS = "spawned_process"

    @classmethod
    def parse(cls, value: "str | BackendKind") -> "BackendKind":
        """Accept an enum member or its config value (``native_binding`` ...)."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        for kind in cls:
            if kind.value == normalized or kind.name.lower() == normalized:
                return kind
        valid = ", ".join(kind.value for kind in cls)
        raise ValueError(f"Unknown backend kind: {value!r} (expected one of: {valid})")


class ProcessState(Enum):
    """State of a spawned engine process session."""

    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    TERMINATED = "terminated"
    CRASHED = "crashed"
    DISABLED = "disabled"


@dataclass(frozen=True)
class AudioWindow:
    """Audio submitted to a backend in one recognition pass.

    ``samples`` holds the retained context followed by the newly buffered
    audio. ``rms`` is measured on the new part only.
    """

    samples: np.ndarray = field(repr=False)
    sample_rate: int
    rms: float
    new_seconds: float
    context_seconds: float = 0.0
    reason: str = "interval"

    @property
    def duration_seconds(self) -> float:
        return self.samples.size / float(self.sample_rate)

    @property
    def new_samples(self) -> np.ndarray:
        """Only the audio that was not part of an earlier window."""
        count = int(round(self.new_seconds * self.sample_rate))
        if count <= 0:
            return self.samples[:0]
        return self.samples[-count:]


@dataclass
class StreamingMetrics:
    """Counters for a streaming session.

    Used for monitoring and debugging streaming behaviour.
    """

    # Audio stats
    chunks_received: int = 0
    audio_seconds_received: float = 0.0

    # Window stats
    windows_submitted: int = 0
    windows_dropped_silent: int = 0
    windows_discarded_stale: int = 0
    chunks_held_backlog: int = 0
    submission_errors: int = 0

    # Output stats
    segments_delivered: int = 0
    segments_rejected_duplicate: int = 0

    recordings_started: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "chunks_received": self.chunks_received,
            "audio_seconds_received": round(self.audio_seconds_received, 3),
            "windows_submitted": self.windows_submitted,
            "windows_dropped_silent": self.windows_dropped_silent,
            "windows_discarded_stale": self.windows_discarded_stale,
            "chunks_held_backlog": self.chunks_held_backlog,
            "submission_errors": self.submission_errors,
            "segments_delivered": self.segments_delivered,
            "segments_rejected_duplicate": self.segments_rejected_duplicate,
            "recordings_started": self.recordings_started,
        }


class StreamingError(Exception):
    """Base exception for streaming errors."""


class BackendUnavailable(StreamingError):
    """Raised when no usable backend could be constructed.

    ``reasons`` maps a backend name to why it was skipped or failed.
    """

    def __init__(self, message: str, reasons: dict[str, str] | None = None):
        self.reasons = dict(reasons or {})
        if self.reasons:
            details = "; ".join(f"{name}: {reason}" for name, reason in self.reasons.items())
            message = f"{message} ({details})"
        super().__init__(message)


class ProcessStartFailed(StreamingError):
    """Raised when the engine executable is missing or cannot be spawned."""

    def __init__(self, executable: str, reason: str):
        self.executable = executable
        self.reason = reason
        super().__init__(f"Failed to start {executable}: {reason}")


class UnsupportedStreamingMode(StreamingError):
    """Raised when the engine cannot stream from stdin, or streaming was disabled."""


class WriteFailed(StreamingError):
    """Raised when audio could not be written to the engine process.

    Retriable: the next window starts a fresh process session.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class ProcessCrashed(StreamingError):
    """Describes an engine process that exited with a non-zero status."""

    def __init__(self, returncode: int | None, uptime_seconds: float):
        self.returncode = returncode
        self.uptime_seconds = uptime_seconds
        super().__init__(f"Engine process exited with code {returncode} after {uptime_seconds:.2f}s")


__all__ = [
    "AudioWindow",
    "BackendKind",
    "BackendUnavailable",
    "ProcessCrashed",
    "ProcessStartFailed",
    "ProcessState",
    "RecordingState",
    "StreamingError",
    "StreamingMetrics",
    "UnsupportedStreamingMode",
    "WriteFailed",
]
