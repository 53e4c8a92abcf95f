"""
Transcription backends package.

Supported backends, in selection priority order:
- native_binding: in-process faster-whisper
- linked_library: whisper.cpp shared library via pywhispercpp
- spawned_process: whisper.cpp executable fed raw PCM over stdin
"""

from .base import BackendNotAvailableError, TranscriptionBackend
from .registry import (
    ProbeResult,
    choose_backends,
    get_backend_class,
    get_backend_info,
    probe_backends,
    select_backend,
)

__all__ = [
    "BackendNotAvailableError",
    "ProbeResult",
    "TranscriptionBackend",
    "choose_backends",
    "get_backend_class",
    "get_backend_info",
    "probe_backends",
    "select_backend",
]
