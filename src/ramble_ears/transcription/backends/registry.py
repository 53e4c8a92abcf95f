"""Backend registry, availability probes and selection.

Keep backend selection logic centralized here so other modules don't need to do
import-probing or artifact checks. Probing is side-effect free; selection
constructs and loads candidates in priority order and falls through on failure.
"""

from __future__ import annotations

import importlib.util
import logging
import os
from dataclasses import dataclass

from ..streaming.config import TranscriberConfig
from ..streaming.types import BackendKind, BackendUnavailable
from .base import BackendNotAvailableError, TranscriptionBackend

logger = logging.getLogger(__name__)

PRIORITY = (BackendKind.NATIVE_BINDING, BackendKind.LINKED_LIBRARY, BackendKind.SPAWNED_PROCESS)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a side-effect free availability check."""

    kind: BackendKind
    available: bool
    reason: str = ""


def _module_available(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        return False


def _probe_native(config: TranscriberConfig) -> ProbeResult:
    kind = BackendKind.NATIVE_BINDING
    if not _module_available("faster_whisper"):
        return ProbeResult(kind, False, "faster-whisper is not installed")
    if config.native_model:
        return ProbeResult(kind, True, f"model {config.native_model}")
    if config.model_path and os.path.isdir(config.model_path):
        return ProbeResult(kind, True, f"model directory {config.model_path}")
    return ProbeResult(kind, False, "no CTranslate2 model directory or model name configured")


def _probe_library(config: TranscriberConfig) -> ProbeResult:
    kind = BackendKind.LINKED_LIBRARY
    if not _module_available("pywhispercpp"):
        return ProbeResult(kind, False, "pywhispercpp is not installed")
    if not (config.model_path and os.path.isfile(config.model_path)):
        return ProbeResult(kind, False, "no ggml model file configured")
    return ProbeResult(kind, True, f"model file {config.model_path}")


def _probe_process(config: TranscriberConfig) -> ProbeResult:
    kind = BackendKind.SPAWNED_PROCESS
    exe = config.executable_path
    if not exe:
        return ProbeResult(kind, False, "no engine executable configured")
    if not os.path.isfile(exe):
        return ProbeResult(kind, False, f"executable not found: {exe}")
    if not os.access(exe, os.X_OK):
        return ProbeResult(kind, False, f"file is not executable: {exe}")
    if not (config.model_path and os.path.isfile(config.model_path)):
        return ProbeResult(kind, False, "no ggml model file configured")
    return ProbeResult(kind, True, f"executable {exe}")


_PROBES = {
    BackendKind.NATIVE_BINDING: _probe_native,
    BackendKind.LINKED_LIBRARY: _probe_library,
    BackendKind.SPAWNED_PROCESS: _probe_process,
}


def probe_backends(config: TranscriberConfig) -> dict[BackendKind, ProbeResult]:
    """Check every backend kind without loading anything."""
    return {kind: _PROBES[kind](config) for kind in PRIORITY}


def choose_backends(
    probes: dict[BackendKind, ProbeResult],
    preferred: BackendKind | None = None,
) -> list[BackendKind]:
    """Candidate kinds in priority order, filtered to successful probes."""
    order = [preferred] if preferred is not None else list(PRIORITY)
    return [kind for kind in order if kind in probes and probes[kind].available]


def get_backend_class(kind: BackendKind | str) -> type[TranscriptionBackend]:
    """Factory function to get the backend class for a kind."""
    kind = BackendKind.parse(kind)

    if kind is BackendKind.NATIVE_BINDING:
        from .internal.faster_whisper import FasterWhisperBackend

        return FasterWhisperBackend

    if kind is BackendKind.LINKED_LIBRARY:
        from .internal.whisper_cpp import WhisperCppBackend

        return WhisperCppBackend

    from .internal.process import ProcessBackend

    return ProcessBackend


def select_backend(config: TranscriberConfig) -> TranscriptionBackend:
    """Construct and load the first backend that works.

    Each candidate is tried at most once. Raises BackendUnavailable with
    the reason for every backend that was skipped or failed.
    """
    probes = probe_backends(config)
    preferred = config.preferred_kind
    reasons = {kind.value: probe.reason for kind, probe in probes.items() if not probe.available}
    if preferred is not None:
        reasons = {preferred.value: reasons[preferred.value]} if preferred.value in reasons else {}

    for kind in choose_backends(probes, preferred):
        backend_class = get_backend_class(kind)
        try:
            backend = backend_class(config)
            backend.load()
        except Exception as e:
            logger.warning("Backend %s failed to initialize: %s", kind.value, e)
            reasons[kind.value] = str(e)
            continue
        logger.info("Using %s backend (%s)", kind.value, backend.name)
        return backend

    if preferred is not None:
        raise BackendNotAvailableError(f"Requested backend {preferred.value} is not available", reasons)
    raise BackendUnavailable("No transcription backend available", reasons)


def get_backend_info(config: TranscriberConfig) -> dict[str, dict]:
    """Return detailed info about all backends."""
    probes = probe_backends(config)
    descriptions = {
        BackendKind.NATIVE_BINDING: ("In-process faster-whisper (CTranslate2)", "Included by default"),
        BackendKind.LINKED_LIBRARY: ("whisper.cpp shared library via pywhispercpp", "pip install ramble-ears[whispercpp]"),
        BackendKind.SPAWNED_PROCESS: ("whisper.cpp executable streaming over stdin", "Provide a whisper.cpp build"),
    }
    info = {}
    for kind in PRIORITY:
        description, install = descriptions[kind]
        info[kind.value] = {
            "available": probes[kind].available,
            "reason": probes[kind].reason,
            "description": description,
            "install": install,
        }
    return info


__all__ = [
    "PRIORITY",
    "ProbeResult",
    "choose_backends",
    "get_backend_class",
    "get_backend_info",
    "probe_backends",
    "select_backend",
]
