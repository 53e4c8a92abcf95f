from abc import ABC, abstractmethod
from collections.abc import Callable

from ..streaming.types import AudioWindow, BackendKind, BackendUnavailable

TextSink = Callable[[str], None]
RecordingProbe = Callable[[], bool]


class BackendNotAvailableError(BackendUnavailable):
    """Raised when a requested backend cannot be used in this environment."""


class TranscriptionBackend(ABC):
    """Abstract base class for recognition backends.

    Backends recognize one AudioWindow at a time and hand raw recognizer text
    to the sink registered by ``begin_recording``. Cleanup, deduplication and
    delivery are handled by the streaming session.

    ``submit`` may block and is always called from the session's worker
    thread, never from the audio-capture thread. The sink may be called from
    any thread.
    """

    kind: BackendKind
    name: str = "backend"

    # In-process engines can be primed with previously recognized text.
    uses_context_prompt: bool = False

    @abstractmethod
    def load(self) -> None:
        """Fully initialize the engine; raises on failure."""

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """Check if the backend is ready/loaded."""

    def begin_recording(self, sink: TextSink, is_recording: RecordingProbe) -> None:
        """Attach the text sink for a new recording."""
        self._sink = sink
        self._is_recording = is_recording

    @abstractmethod
    def submit(self, window: AudioWindow, prompt: str = "") -> None:
        """Recognize one window and pass raw text to the sink."""

    def end_recording(self) -> Callable[[], None] | None:
        """Detach per-recording resources without blocking.

        Returns the blocking release step (run by the caller off any lock),
        or None when there is nothing to release.
        """
        return None

    def close(self) -> None:
        """Release the engine. Safe to call more than once."""

    def describe(self) -> dict:
        """Short description for logs and the CLI."""
        return {"kind": self.kind.value, "name": self.name, "ready": self.is_ready}

    def _emit(self, text: str) -> None:
        sink = getattr(self, "_sink", None)
        if sink is not None and text:
            sink(text)
