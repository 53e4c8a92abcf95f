"""Streaming transcription framework.

Turns a live stream of 16 kHz mono frames into cleaned, deduplicated text
through whichever recognition backend is available.

Public API:
- StreamingSession: Main orchestrator for a recording session
- create_transcriber(): Factory function to create sessions
- StreamingConfig / TranscriberConfig: Configuration from config.toml
- StreamingError: Base of the error taxonomy
"""

from .buffer import AudioAccumulator, AudioBuffer
from .config import ChunkingPolicy, ProcessConfig, StreamingConfig, TranscriberConfig
from .dedup import SegmentDeduplicator
from .factory import create_transcriber
from .session import StreamingSession
from .types import (
    AudioWindow,
    BackendKind,
    BackendUnavailable,
    ProcessCrashed,
    ProcessStartFailed,
    ProcessState,
    RecordingState,
    StreamingError,
    StreamingMetrics,
    UnsupportedStreamingMode,
    WriteFailed,
)

__all__ = [
    # Main API
    "StreamingSession",
    "create_transcriber",
    # Configuration
    "ChunkingPolicy",
    "ProcessConfig",
    "StreamingConfig",
    "TranscriberConfig",
    # Types
    "AudioWindow",
    "BackendKind",
    "ProcessState",
    "RecordingState",
    "StreamingMetrics",
    # Errors
    "BackendUnavailable",
    "ProcessCrashed",
    "ProcessStartFailed",
    "StreamingError",
    "UnsupportedStreamingMode",
    "WriteFailed",
    # Internal (for testing/extension)
    "AudioAccumulator",
    "AudioBuffer",
    "SegmentDeduplicator",
]
