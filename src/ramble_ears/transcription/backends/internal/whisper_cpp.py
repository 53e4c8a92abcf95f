import logging
import os

from ...streaming.config import TranscriberConfig
from ...streaming.types import AudioWindow, BackendKind
from ..base import BackendNotAvailableError, TranscriptionBackend

logger = logging.getLogger(__name__)


class WhisperCppBackend(TranscriptionBackend):
    """Backend calling the whisper.cpp shared library through pywhispercpp."""

    kind = BackendKind.LINKED_LIBRARY
    name = "whisper.cpp library"
    uses_context_prompt = True

    def __init__(self, config: TranscriberConfig):
        self.model_path = config.model_path
        self.threads = config.threads
        self.language = "" if config.language in ("", "auto") else config.language
        self.debug = config.debug
        self.model = None

    def load(self) -> None:
        """Load the ggml model through the linked library."""
        if not os.path.isfile(self.model_path):
            raise BackendNotAvailableError(f"Model file not found: {self.model_path or '(not configured)'}")
        try:
            from pywhispercpp.model import Model
        except ImportError as e:
            raise BackendNotAvailableError(
                "pywhispercpp is not installed. Install the [whispercpp] extra or use a different backend."
            ) from e

        logger.info("Loading whisper.cpp model %s with %d threads...", self.model_path, self.threads)
        try:
            self.model = Model(
                self.model_path,
                n_threads=self.threads,
                print_progress=False,
                print_realtime=False,
                redirect_whispercpp_logs_to=False if self.debug else None,
            )
        except Exception as e:
            logger.exception("Failed to load whisper.cpp model: %s", e)
            raise
        logger.info("whisper.cpp model loaded successfully")

    def submit(self, window: AudioWindow, prompt: str = "") -> None:
        if self.model is None:
            raise RuntimeError("Model not loaded")

        params = {}
        if prompt:
            params["initial_prompt"] = prompt
        if self.language:
            params["language"] = self.language

        for segment in self.model.transcribe(window.samples, **params):
            self._emit(segment.text)

    @property
    def is_ready(self) -> bool:
        return self.model is not None

    def close(self) -> None:
        self.model = None

    def describe(self) -> dict:
        info = super().describe()
        info["model_path"] = self.model_path
        return info
