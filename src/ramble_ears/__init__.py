"""Ramble Ears - streaming transcription orchestration engine."""

from importlib import import_module, metadata
from pathlib import Path
from typing import TYPE_CHECKING

import tomllib


def _get_version() -> str:
    try:
        return metadata.version("ramble-ears")
    except metadata.PackageNotFoundError:
        pass

    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
        return str(data["project"]["version"])
    except (OSError, KeyError, tomllib.TOMLDecodeError):
        return "unknown"


__version__ = _get_version()

if TYPE_CHECKING:
    from .core.config import ConfigLoader, get_config
    from .text_formatting.normalizer import TextNormalizer
    from .transcription.backends.registry import get_backend_info, probe_backends, select_backend
    from .transcription.streaming import (
        BackendKind,
        BackendUnavailable,
        StreamingConfig,
        StreamingError,
        StreamingSession,
        TranscriberConfig,
        create_transcriber,
    )

_LAZY_EXPORTS = {
    "ConfigLoader": (".core.config", "ConfigLoader"),
    "get_config": (".core.config", "get_config"),
    "TextNormalizer": (".text_formatting.normalizer", "TextNormalizer"),
    "BackendKind": (".transcription.streaming", "BackendKind"),
    "BackendUnavailable": (".transcription.streaming", "BackendUnavailable"),
    "StreamingConfig": (".transcription.streaming", "StreamingConfig"),
    "StreamingError": (".transcription.streaming", "StreamingError"),
    "StreamingSession": (".transcription.streaming", "StreamingSession"),
    "TranscriberConfig": (".transcription.streaming", "TranscriberConfig"),
    "create_transcriber": (".transcription.streaming", "create_transcriber"),
    "get_backend_info": (".transcription.backends.registry", "get_backend_info"),
    "probe_backends": (".transcription.backends.registry", "probe_backends"),
    "select_backend": (".transcription.backends.registry", "select_backend"),
}


def __getattr__(name):
    if name in {"audio", "core", "text_formatting", "transcription"}:
        module = import_module(f".{name}", __name__)
        globals()[name] = module
        return module

    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


__all__ = [
    "__version__",
    "BackendKind",
    "BackendUnavailable",
    "ConfigLoader",
    "StreamingConfig",
    "StreamingError",
    "StreamingSession",
    "TextNormalizer",
    "TranscriberConfig",
    "create_transcriber",
    "get_backend_info",
    "get_config",
    "probe_backends",
    "select_backend",
]
