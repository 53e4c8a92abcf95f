"""Configuration loader that reads from config files."""

import logging
import os
from pathlib import Path
from typing import Any

import tomllib

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "transcription": {
        # auto | native_binding | linked_library | spawned_process
        "backend": "auto",
        # Resolved by the provisioning layer; never discovered or downloaded here.
        "model_path": "",
        "executable_path": "",
        # Optional faster-whisper model name or CTranslate2 directory.
        "native_model": "",
        "language": "en",
        "threads": 4,
        "device": "auto",
        "compute_type": "auto",
        "beam_size": 5,
        "debug": False,
    },
    "streaming": {
        "sample_rate": 16000,
        "max_buffer_seconds": 15.0,
        # Chunking policies per backend kind. Empirically tuned; calibrate
        # against real latency/accuracy before changing.
        "policies": {
            "native_binding": {
                "min_window_seconds": 1.0,
                "min_interval_seconds": 1.2,
                "max_window_seconds": 3.0,
                "stale_seconds": 2.0,
                "context_seconds": 10.0,
                "min_audio_level": 0.01,
                "silence_gate_seconds": 1.0,
            },
            "linked_library": {
                "min_window_seconds": 1.2,
                "min_interval_seconds": 2.5,
                "max_window_seconds": 6.0,
                "stale_seconds": 2.0,
                "context_seconds": 10.0,
                "min_audio_level": 0.01,
                "silence_gate_seconds": 1.0,
            },
            "spawned_process": {
                "min_window_seconds": 0.1,
                "min_interval_seconds": 0.1,
                "max_window_seconds": 0.5,
                "stale_seconds": 0.25,
                "context_seconds": 0.0,
                "min_audio_level": 0.0,
                "silence_gate_seconds": 0.0,
            },
        },
    },
    "dedup": {
        "history_size": 10,
        "similarity_threshold": 0.6,
        "containment_threshold": 0.7,
        "short_phrase_words": 3,
        "min_containment_words": 4,
        "short_phrase_similarity": 0.4,
    },
    "process": {
        "max_restarts": 3,
        "rapid_exit_seconds": 0.5,
        "restart_delay_seconds": 0.2,
        "stop_grace_seconds": 1.0,
        "probe_timeout_seconds": 1.0,
        "write_timeout_seconds": 0.5,
        "output_timeout_seconds": 10.0,
        "unavailable_warning_interval_seconds": 10.0,
    },
}


class ConfigLoader:
    """Load configuration from config files."""

    def __init__(self, config_path: str | Path | None = None) -> None:
        if config_path is None:
            config_path = self._default_config_path()

        self.config_file = str(config_path)
        config_path = Path(config_path)
        if config_path.exists():
            with open(config_path, "rb") as f:
                full_config = tomllib.load(f)
            ears_config = full_config.get("ears", {})
            logger.debug("Loaded configuration from %s", config_path)
        else:
            ears_config = {}

        self._config = self._merge_dicts(DEFAULT_CONFIG, ears_config)

    def _default_config_path(self) -> Path:
        env_path = os.environ.get("RAMBLE_CONFIG")
        if env_path:
            return Path(env_path)
        return Path.home() / ".ramble" / "config.toml"

    def _merge_dicts(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        merged = base.copy()
        for key, value in override.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._merge_dicts(merged[key], value)
            else:
                merged[key] = value
        return merged

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get a value using dot notation (e.g., 'process.max_restarts')"""
        keys = key_path.split(".")
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    @property
    def transcription_backend(self) -> str:
        """Backend to use; ``auto`` walks the priority order.

        Prioritizes the ``RAMBLE_BACKEND`` environment variable if set.
        """
        env_backend = os.environ.get("RAMBLE_BACKEND")
        if env_backend:
            return env_backend
        return str(self.get("transcription.backend", "auto"))

    @property
    def model_path(self) -> str:
        env_model = os.environ.get("RAMBLE_MODEL_PATH")
        if env_model:
            return env_model
        return str(self.get("transcription.model_path", ""))

    @property
    def executable_path(self) -> str:
        env_exe = os.environ.get("RAMBLE_EXECUTABLE")
        if env_exe:
            return env_exe
        return str(self.get("transcription.executable_path", ""))

    @property
    def language(self) -> str:
        env_language = os.environ.get("RAMBLE_LANGUAGE")
        if env_language:
            return env_language
        return str(self.get("transcription.language", "en"))

    @property
    def sample_rate(self) -> int:
        return int(self.get("streaming.sample_rate", 16000))

    @property
    def debug(self) -> bool:
        return bool(self.get("transcription.debug", False))

    def detect_cuda_support(self) -> tuple[bool, str]:
        """Detect if CUDA is available and supported by CTranslate2.

        Returns:
            (cuda_available, reason): Boolean indicating CUDA availability and reason string

        """
        try:
            import ctranslate2

            cuda_device_count = ctranslate2.get_cuda_device_count()
            if cuda_device_count > 0:
                return True, f"CUDA available with {cuda_device_count} device(s)"
            return False, "CUDA not available (no devices detected)"
        except ImportError:
            return False, "CTranslate2 not installed"
        except AttributeError:
            return False, "CTranslate2 version does not support CUDA detection"
        except Exception as e:
            return False, f"CUDA detection failed: {e!s}"

    @property
    def whisper_device_auto(self) -> str:
        """Auto-detect the best device for faster-whisper."""
        configured_device = self.get("transcription.device", "auto")
        if configured_device != "auto":
            return str(configured_device)

        cuda_available, reason = self.detect_cuda_support()
        logger.debug("CUDA detection: %s", reason)
        return "cuda" if cuda_available else "cpu"

    @property
    def whisper_compute_type_auto(self) -> str:
        """Auto-detect the best compute type based on device."""
        configured_compute_type = self.get("transcription.compute_type", "auto")
        if configured_compute_type != "auto":
            return str(configured_compute_type)
        return "float16" if self.whisper_device_auto == "cuda" else "int8"


# Global loader, created lazily; sessions copy what they need into dataclasses.
_config_loader: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Get the global config loader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def reset_config() -> None:
    """Forget the cached loader so the next get_config() re-reads the file."""
    global _config_loader
    _config_loader = None

