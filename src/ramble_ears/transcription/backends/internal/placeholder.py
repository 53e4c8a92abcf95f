from __future__ import annotations

import logging

from ...streaming.types import AudioWindow, BackendKind
from ..base import TranscriptionBackend

logger = logging.getLogger(__name__)


class PlaceholderBackend(TranscriptionBackend):
    """Backend used when no recognition engine is usable.

    Accepts audio and produces no text, so the capture pipeline keeps
    running while the user is told transcription is unavailable.
    """

    kind = BackendKind.SPAWNED_PROCESS
    name = "placeholder"

    def __init__(self, *, reason: str = "no transcription backend available") -> None:
        self._ready = False
        self.reason = reason

    def load(self) -> None:
        self._ready = True

    def submit(self, window: AudioWindow, prompt: str = "") -> None:
        logger.debug("Placeholder backend ignoring %.2fs of audio", window.new_seconds)

    @property
    def is_ready(self) -> bool:
        return self._ready

    def describe(self) -> dict:
        return {"kind": "placeholder", "name": self.name, "ready": False, "reason": self.reason}
