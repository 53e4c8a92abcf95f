"""Streaming configuration from the ``[ears]`` config table.

Provides typed views over ConfigLoader:
- ChunkingPolicy: when the accumulator emits a window, per backend kind
- StreamingConfig: policies, buffer cap and dedup thresholds
- TranscriberConfig: artifacts and engine options for backend construction
- ProcessConfig: restart and timeout settings for the spawned engine
"""

from dataclasses import dataclass, field
from typing import Any

from ...core.config import DEFAULT_CONFIG, ConfigLoader, get_config
from .types import BackendKind


@dataclass(frozen=True)
class ChunkingPolicy:
    """Windowing thresholds for one backend kind (seconds, RMS level)."""

    min_window_seconds: float
    min_interval_seconds: float
    max_window_seconds: float
    stale_seconds: float
    context_seconds: float
    min_audio_level: float
    silence_gate_seconds: float = 0.0

    def __post_init__(self):
        for name in ("min_window_seconds", "min_interval_seconds", "max_window_seconds", "stale_seconds"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.max_window_seconds < self.min_window_seconds:
            raise ValueError("max_window_seconds must be >= min_window_seconds")
        if self.context_seconds < 0:
            raise ValueError("context_seconds must be non-negative")

    @classmethod
    def from_dict(cls, values: dict[str, Any]) -> "ChunkingPolicy":
        return cls(
            min_window_seconds=float(values["min_window_seconds"]),
            min_interval_seconds=float(values["min_interval_seconds"]),
            max_window_seconds=float(values["max_window_seconds"]),
            stale_seconds=float(values["stale_seconds"]),
            context_seconds=float(values.get("context_seconds", 0.0)),
            min_audio_level=float(values.get("min_audio_level", 0.0)),
            silence_gate_seconds=float(values.get("silence_gate_seconds", 0.0)),
        )


def _default_policies() -> dict[BackendKind, ChunkingPolicy]:
    policies = DEFAULT_CONFIG["streaming"]["policies"]
    return {kind: ChunkingPolicy.from_dict(policies[kind.value]) for kind in BackendKind}


@dataclass
class StreamingConfig:
    """Configuration for streaming sessions.

    Loaded from ``[ears.streaming]`` and ``[ears.dedup]`` with defaults.
    """

    sample_rate: int = 16000
    max_buffer_seconds: float = 15.0
    policies: dict[BackendKind, ChunkingPolicy] = field(default_factory=_default_policies)

    # Deduplication
    history_size: int = 10
    similarity_threshold: float = 0.6
    containment_threshold: float = 0.7
    short_phrase_words: int = 3
    min_containment_words: int = 4
    short_phrase_similarity: float = 0.4

    @classmethod
    def from_config(cls, config: ConfigLoader | None = None) -> "StreamingConfig":
        """Load streaming config from the config file."""
        config = config or get_config()
        defaults = _default_policies()
        configured = config.get("streaming.policies", {}) or {}

        policies = {}
        for kind in BackendKind:
            overrides = configured.get(kind.value) or {}
            base = DEFAULT_CONFIG["streaming"]["policies"][kind.value]
            policies[kind] = ChunkingPolicy.from_dict({**base, **overrides}) if overrides else defaults[kind]

        return cls(
            sample_rate=int(config.get("streaming.sample_rate", 16000)),
            max_buffer_seconds=float(config.get("streaming.max_buffer_seconds", 15.0)),
            policies=policies,
            history_size=int(config.get("dedup.history_size", 10)),
            similarity_threshold=float(config.get("dedup.similarity_threshold", 0.6)),
            containment_threshold=float(config.get("dedup.containment_threshold", 0.7)),
            short_phrase_words=int(config.get("dedup.short_phrase_words", 3)),
            min_containment_words=int(config.get("dedup.min_containment_words", 4)),
            short_phrase_similarity=float(config.get("dedup.short_phrase_similarity", 0.4)),
        )

    def policy_for(self, kind: BackendKind) -> ChunkingPolicy:
        return self.policies[kind]


@dataclass
class ProcessConfig:
    """Restart and timing settings for the spawned engine process."""

    max_restarts: int = 3
    rapid_exit_seconds: float = 0.5
    restart_delay_seconds: float = 0.2
    stop_grace_seconds: float = 1.0
    probe_timeout_seconds: float = 1.0
    write_timeout_seconds: float = 0.5
    output_timeout_seconds: float = 10.0
    unavailable_warning_interval_seconds: float = 10.0

    @classmethod
    def from_config(cls, config: ConfigLoader | None = None) -> "ProcessConfig":
        config = config or get_config()
        section = config.get("process", {}) or {}
        defaults = cls()
        return cls(
            max_restarts=int(section.get("max_restarts", defaults.max_restarts)),
            rapid_exit_seconds=float(section.get("rapid_exit_seconds", defaults.rapid_exit_seconds)),
            restart_delay_seconds=float(section.get("restart_delay_seconds", defaults.restart_delay_seconds)),
            stop_grace_seconds=float(section.get("stop_grace_seconds", defaults.stop_grace_seconds)),
            probe_timeout_seconds=float(section.get("probe_timeout_seconds", defaults.probe_timeout_seconds)),
            write_timeout_seconds=float(section.get("write_timeout_seconds", defaults.write_timeout_seconds)),
            output_timeout_seconds=float(section.get("output_timeout_seconds", defaults.output_timeout_seconds)),
            unavailable_warning_interval_seconds=float(
                section.get(
                    "unavailable_warning_interval_seconds",
                    defaults.unavailable_warning_interval_seconds,
                )
            ),
        )


@dataclass
class TranscriberConfig:
    """Everything needed to probe and build a backend.

    ``model_path`` and ``executable_path`` are resolved by the provisioning
    layer; this package never discovers or downloads artifacts.
    """

    backend: str = "auto"
    model_path: str = ""
    executable_path: str = ""
    native_model: str = ""
    language: str = "en"
    threads: int = 4
    device: str = "cpu"
    compute_type: str = "int8"
    beam_size: int = 5
    debug: bool = False
    process: ProcessConfig = field(default_factory=ProcessConfig)

    @classmethod
    def from_config(cls, config: ConfigLoader | None = None) -> "TranscriberConfig":
        """Load transcriber config, applying environment overrides."""
        config = config or get_config()
        return cls(
            backend=config.transcription_backend,
            model_path=config.model_path,
            executable_path=config.executable_path,
            native_model=str(config.get("transcription.native_model", "") or ""),
            language=config.language,
            threads=int(config.get("transcription.threads", 4)),
            device=config.whisper_device_auto,
            compute_type=config.whisper_compute_type_auto,
            beam_size=int(config.get("transcription.beam_size", 5)),
            debug=config.debug,
            process=ProcessConfig.from_config(config),
        )

    @property
    def preferred_kind(self) -> BackendKind | None:
        """Forced backend kind, or None for automatic selection."""
        if not self.backend or self.backend.strip().lower() == "auto":
            return None
        return BackendKind.parse(self.backend)

    @property
    def model_name(self) -> str:
        """Model identifier shown to users (path or native model name)."""
        return self.model_path or self.native_model


__all__ = [
    "ChunkingPolicy",
    "ProcessConfig",
    "StreamingConfig",
    "TranscriberConfig",
]
