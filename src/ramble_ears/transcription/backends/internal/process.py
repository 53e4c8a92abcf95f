import logging
import os
import time
from collections.abc import Callable

from ....audio.conversion import encode_pcm16
from ...streaming.config import TranscriberConfig
from ...streaming.types import AudioWindow, BackendKind, UnsupportedStreamingMode
from ..base import BackendNotAvailableError, RecordingProbe, TextSink, TranscriptionBackend
from .supervisor import ProcessSupervisor, check_executable

logger = logging.getLogger(__name__)


def build_engine_command(config: TranscriberConfig) -> list[str]:
    """Command line for a whisper.cpp build reading raw PCM from stdin."""
    command = [
        config.executable_path,
        "-m",
        config.model_path,
        "-t",
        str(config.threads),
        "-ml",
        "1",
        "-su",
        "-otxt",
        "-nt",
        "--stdin",
    ]
    language = (config.language or "").strip()
    if language and language != "auto":
        command.extend(["-l", language])
    return command


class ProcessBackend(TranscriptionBackend):
    """Backend that streams raw PCM into a spawned whisper.cpp process.

    The engine process is started lazily by the first window of a recording
    and stopped when the recording ends. Every stdout content line is
    reported to the sink.
    """

    kind = BackendKind.SPAWNED_PROCESS
    name = "whisper.cpp process"

    def __init__(
        self,
        config: TranscriberConfig,
        *,
        supervisor_factory: Callable[..., ProcessSupervisor] = ProcessSupervisor,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.executable_path = config.executable_path
        self.model_path = config.model_path
        self._supervisor_factory = supervisor_factory
        self._clock = clock
        self._supervisor: ProcessSupervisor | None = None
        self._recording_probe: RecordingProbe = lambda: False
        self._last_unavailable_warning: float | None = None

    @property
    def supervisor(self) -> ProcessSupervisor | None:
        return self._supervisor

    def load(self) -> None:
        check_executable(self.executable_path)
        if not os.path.isfile(self.model_path):
            raise BackendNotAvailableError(f"Model file not found: {self.model_path or '(not configured)'}")

        self._supervisor = self._supervisor_factory(
            build_engine_command(self.config),
            on_output=self._emit,
            is_recording=lambda: self._recording_probe(),
            config=self.config.process,
        )
        logger.info("Spawned-process backend ready: %s", self.executable_path)

    @property
    def is_ready(self) -> bool:
        return self._supervisor is not None

    def begin_recording(self, sink: TextSink, is_recording: RecordingProbe) -> None:
        super().begin_recording(sink, is_recording)
        self._recording_probe = is_recording
        if self._supervisor is not None:
            self._supervisor.reset()

    def submit(self, window: AudioWindow, prompt: str = "") -> None:
        supervisor = self._supervisor
        if supervisor is None:
            raise RuntimeError("Backend not loaded")

        if supervisor.is_disabled:
            self._warn_unavailable(supervisor.disabled_reason)
            return

        try:
            if not supervisor.is_active:
                if not self._recording_probe():
                    return
                supervisor.start()
                if not supervisor.is_active:
                    logger.debug("Engine not running yet, dropping %.2fs of audio", window.new_seconds)
                    return
            supervisor.send(encode_pcm16(window.new_samples))
        except UnsupportedStreamingMode as e:
            self._warn_unavailable(str(e))

    def _warn_unavailable(self, reason: str) -> None:
        now = self._clock()
        last = self._last_unavailable_warning
        if last is not None and now - last < self.config.process.unavailable_warning_interval_seconds:
            return
        self._last_unavailable_warning = now
        logger.warning("Real-time streaming is unavailable (%s); audio is being dropped", reason)

    def end_recording(self) -> Callable[[], None] | None:
        if self._supervisor is None:
            return None
        return self._supervisor.detach()

    def close(self) -> None:
        if self._supervisor is not None:
            self._supervisor.stop()

    def describe(self) -> dict:
        info = super().describe()
        info.update(
            {
                "executable": self.executable_path,
                "model_path": self.model_path,
            }
        )
        if self._supervisor is not None:
            info["process_state"] = self._supervisor.state.value
            info["restart_count"] = self._supervisor.restart_count
            info["restart_pending"] = self._supervisor.restart_pending
        return info
