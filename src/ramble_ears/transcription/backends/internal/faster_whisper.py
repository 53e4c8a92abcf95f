import logging

from ...streaming.config import TranscriberConfig
from ...streaming.types import AudioWindow, BackendKind
from ..base import BackendNotAvailableError, TranscriptionBackend

logger = logging.getLogger(__name__)


class FasterWhisperBackend(TranscriptionBackend):
    """In-process backend using faster-whisper (CTranslate2).

    Each window is transcribed as a numpy array, primed with the previously
    accepted text so recognition stays consistent across windows.
    """

    kind = BackendKind.NATIVE_BINDING
    name = "faster-whisper"
    uses_context_prompt = True

    def __init__(self, config: TranscriberConfig):
        self.model_source = config.native_model or config.model_path
        self.device = config.device
        self.compute_type = config.compute_type
        self.beam_size = config.beam_size
        self.threads = config.threads
        self.language = None if config.language in ("", "auto") else config.language
        self.model = None

    def load(self) -> None:
        """Load the faster-whisper model."""
        if not self.model_source:
            raise BackendNotAvailableError("No faster-whisper model configured")
        try:
            from faster_whisper import WhisperModel
        except ImportError as e:
            raise BackendNotAvailableError(
                "faster-whisper is not installed. Please install it or use a different backend."
            ) from e

        logger.info(
            "Loading faster-whisper model %s on %s with %s...", self.model_source, self.device, self.compute_type
        )
        try:
            self.model = WhisperModel(
                self.model_source,
                device=self.device,
                compute_type=self.compute_type,
                cpu_threads=self.threads,
            )
        except Exception as e:
            logger.exception("Failed to load faster-whisper model: %s", e)
            raise
        logger.info("faster-whisper model %s loaded successfully", self.model_source)

    def submit(self, window: AudioWindow, prompt: str = "") -> None:
        if self.model is None:
            raise RuntimeError("Model not loaded")

        segments, _info = self.model.transcribe(
            window.samples,
            beam_size=self.beam_size,
            language=self.language,
            initial_prompt=prompt or None,
            condition_on_previous_text=False,
        )
        # segments is a lazy generator; iterating runs the decoder
        for segment in segments:
            self._emit(segment.text)

    @property
    def is_ready(self) -> bool:
        return self.model is not None

    def close(self) -> None:
        self.model = None

    def describe(self) -> dict:
        info = super().describe()
        info.update({"model": self.model_source, "device": self.device, "compute_type": self.compute_type})
        return info
