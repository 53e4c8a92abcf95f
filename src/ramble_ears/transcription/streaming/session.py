"""Streaming session orchestrator.

StreamingSession coordinates the streaming pipeline:
- Receives audio frames from the capture thread without blocking it
- Decides when buffered audio becomes a window (AudioAccumulator)
- Runs windows through the backend on a single worker thread
- Cleans and deduplicates recognizer text, then calls the registered callback
- Tears down per-recording backend resources when recording stops
"""

import concurrent.futures
import logging
import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from ...audio.conversion import as_frame
from ...text_formatting.normalizer import TextNormalizer
from .buffer import AudioAccumulator
from .config import StreamingConfig, TranscriberConfig
from .dedup import SegmentDeduplicator
from .types import AudioWindow, BackendKind, RecordingState, StreamingMetrics

if TYPE_CHECKING:
    from ..backends.base import TranscriptionBackend

logger = logging.getLogger(__name__)

TextCallback = Callable[[str], None]

PROMPT_MAX_CHARS = 200

# One window being recognized plus one waiting for the worker
MAX_QUEUED_WINDOWS = 2


class StreamingSession:
    """Real-time transcription session over one backend.

    Manages a single caller-driven recording lifecycle:
    1. ``set_recording_state(True)`` resets buffers and history
    2. ``process_audio_chunk`` appends audio and schedules due windows
    3. Recognized text is cleaned, deduplicated and passed to the callback
    4. ``set_recording_state(False)`` tears down engine resources in the
       background

    ``process_audio_chunk`` never waits for recognition and always returns
    an empty string; text is delivered through the callback only. When the
    engine falls behind, new audio stays in the accumulator (bounded by
    ``max_buffer_seconds``) until the worker has room for another window.

    Example:
        with create_transcriber() as session:
            session.set_streaming_callback(print)
            session.set_recording_state(True)
            for frame in frames:
                session.process_audio_chunk(frame)
            session.set_recording_state(False)

    """

    def __init__(
        self,
        backend: "TranscriptionBackend",
        config: StreamingConfig | None = None,
        *,
        transcriber_config: TranscriberConfig | None = None,
        normalizer: TextNormalizer | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize streaming session.

        Args:
            backend: Loaded recognition backend
            config: Streaming configuration (defaults if None)
            transcriber_config: Used by ``reconfigure`` and ``model_info``
            normalizer: Text cleanup applied to every recognizer line
            clock: Monotonic clock for the accumulator

        """
        self.config = config or StreamingConfig()
        self._transcriber_config = transcriber_config
        self._normalizer = normalizer or TextNormalizer()
        self._clock = clock

        # Guards everything the capture thread touches; never held across backend calls
        self._lock = threading.RLock()
        # Serializes recording transitions, reconfigure and close
        self._transition_lock = threading.RLock()

        self._backend = backend
        self._accumulator = self._new_accumulator(backend.kind)
        self._dedup = SegmentDeduplicator.from_config(self.config)
        self._previous_text = ""
        self._state = RecordingState.IDLE
        self._recording = False
        self._generation = 0
        self._callback: TextCallback | None = None
        self._closed = False
        self._last_text_at = 0.0

        self._metrics = StreamingMetrics()
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="ramble-window")
        self._pending: set[concurrent.futures.Future] = set()
        self._idle = threading.Condition(self._lock)
        self._teardown_threads: list[threading.Thread] = []

        logger.info("StreamingSession created with %s backend", backend.kind.value)

    def _new_accumulator(self, kind: BackendKind) -> AudioAccumulator:
        return AudioAccumulator(
            self.config.policy_for(kind),
            sample_rate=self.config.sample_rate,
            max_buffer_seconds=self.config.max_buffer_seconds,
            clock=self._clock,
        )

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def backend(self) -> "TranscriptionBackend":
        return self._backend

    @property
    def backend_kind(self) -> BackendKind:
        return self._backend.kind

    @property
    def metrics(self) -> StreamingMetrics:
        return self._metrics

    @property
    def pending_windows(self) -> int:
        """Windows scheduled on the worker and not yet finished."""
        with self._lock:
            return len(self._pending)

    @property
    def history(self) -> list[str]:
        with self._lock:
            return self._dedup.history.as_list()

    def model_info(self) -> tuple[str, str]:
        """(backend kind, model identifier)."""
        model = ""
        if self._transcriber_config is not None:
            model = self._transcriber_config.model_name
        return self._backend.kind.value, model

    def set_streaming_callback(self, callback: TextCallback | None) -> None:
        with self._lock:
            self._callback = callback

    def process_audio_chunk(self, frame) -> str:
        """Buffer a frame and schedule recognition when a window is due.

        Returns:
            Always ``""``; text arrives through the streaming callback.

        """
        frame = as_frame(frame)
        with self._lock:
            if self._closed:
                return ""
            self._metrics.chunks_received += 1
            self._metrics.audio_seconds_received += frame.size / self.config.sample_rate

            if self._recording and len(self._pending) >= MAX_QUEUED_WINDOWS:
                self._accumulator.append(frame)
                self._metrics.chunks_held_backlog += 1
                return ""

            window = self._accumulator.submit(frame)
            self._metrics.windows_dropped_silent = self._accumulator.windows_dropped
            if window is None or not self._recording:
                return ""
            self._schedule_locked(window)
        return ""

    def flush(self) -> None:
        """Schedule any buffered audio that has not been recognized yet."""
        with self._lock:
            if self._closed or not self._recording:
                return
            window = self._accumulator.flush()
            self._metrics.windows_dropped_silent = self._accumulator.windows_dropped
            if window is not None:
                self._schedule_locked(window)

    def _schedule_locked(self, window: AudioWindow) -> None:
        prompt = self._previous_text[-PROMPT_MAX_CHARS:] if self._backend.uses_context_prompt else ""
        future = self._executor.submit(self._run_window, window, prompt, self._generation, self._backend)
        self._pending.add(future)
        future.add_done_callback(self._window_done)

    def _window_done(self, future: concurrent.futures.Future) -> None:
        with self._lock:
            self._pending.discard(future)
            if not self._pending:
                self._idle.notify_all()

    def _run_window(self, window: AudioWindow, prompt: str, generation: int, backend: "TranscriptionBackend") -> None:
        with self._lock:
            current = self._recording and generation == self._generation and backend is self._backend
            if current:
                self._metrics.windows_submitted += 1
            else:
                self._metrics.windows_discarded_stale += 1
        if not current:
            return

        try:
            backend.submit(window, prompt)
        except Exception as e:
            with self._lock:
                interrupted = not self._recording or generation != self._generation
                if not interrupted:
                    self._metrics.submission_errors += 1
            if interrupted:
                logger.debug("Window interrupted by end of recording: %s", e)
            else:
                logger.warning("Recognition failed for %.2fs window: %s", window.duration_seconds, e)

    def _make_sink(self, generation: int) -> Callable[[str], None]:
        def sink(raw: str) -> None:
            self._handle_text(raw, generation)

        return sink

    def _handle_text(self, raw: str, generation: int) -> None:
        self._last_text_at = time.monotonic()
        text = self._normalizer.normalize(raw)
        if not text:
            return

        with self._lock:
            if generation != self._generation or not self._recording:
                return
            if not self._dedup.accept(text):
                self._metrics.segments_rejected_duplicate += 1
                return
            self._previous_text = f"{self._previous_text} {text}".strip()[-PROMPT_MAX_CHARS * 2 :]
            self._metrics.segments_delivered += 1
            callback = self._callback

        if callback is None:
            return
        try:
            callback(text)
        except Exception:
            logger.exception("Streaming callback failed")

    def _recording_probe(self, generation: int) -> Callable[[], bool]:
        return lambda: self._recording and self._generation == generation

    def set_recording_state(self, is_recording: bool) -> None:
        """Start or stop a recording.

        Starting clears buffered audio, duplicate history and prompt context.
        Stopping releases per-recording engine resources on a background
        thread, exactly once per recording. Backend hooks run outside the
        lock the capture thread uses.
        """
        with self._transition_lock:
            with self._lock:
                if self._closed or is_recording == self._recording:
                    return
                backend = self._backend
                generation = self._generation + 1

            if is_recording:
                backend.begin_recording(self._make_sink(generation), self._recording_probe(generation))
                with self._lock:
                    self._generation = generation
                    self._recording = True
                    self._state = RecordingState.RECORDING
                    self._accumulator.reset()
                    self._dedup.clear()
                    self._previous_text = ""
                    self._metrics.recordings_started += 1
                logger.debug("Recording started")
                return

            with self._lock:
                self._recording = False
                self._state = RecordingState.IDLE
                self._dedup.clear()
                self._previous_text = ""
            release = backend.end_recording()
            logger.debug("Recording stopped")
            if release is not None:
                self._spawn_teardown(release)

    def _spawn_teardown(self, release: Callable[[], None]) -> None:
        def run() -> None:
            try:
                release()
            except Exception:
                logger.exception("Engine teardown failed")

        thread = threading.Thread(target=run, name="ramble-teardown", daemon=True)
        with self._lock:
            self._teardown_threads = [t for t in self._teardown_threads if t.is_alive()]
            self._teardown_threads.append(thread)
        thread.start()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait until every scheduled window has been processed."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            while self._pending:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def wait_quiet(self, quiet_seconds: float, timeout: float | None = None) -> bool:
        """Wait until the backend has reported no text for ``quiet_seconds``.

        Engines that run in their own process keep producing text after the
        last window was written. Returns False if ``timeout`` expires first.
        """
        started = time.monotonic()
        deadline = None if timeout is None else started + timeout
        while True:
            now = time.monotonic()
            if now - max(self._last_text_at, started) >= quiet_seconds:
                return True
            if deadline is not None and now >= deadline:
                return False
            time.sleep(min(0.05, quiet_seconds))

    def reconfigure(self, config: TranscriberConfig) -> None:
        """Select a new backend for ``config`` and retire the current one.

        Raises BackendUnavailable, leaving the current backend in place,
        when no backend can be built for the new configuration.
        """
        from ..backends.registry import select_backend

        new_backend = select_backend(config)
        with self._transition_lock:
            was_recording = self.is_recording
            if was_recording:
                self.set_recording_state(False)
            self.wait_idle()

            with self._lock:
                old_backend = self._backend
                self._backend = new_backend
                self._transcriber_config = config
                self._accumulator = self._new_accumulator(new_backend.kind)

            logger.info("Switched backend %s -> %s", old_backend.kind.value, new_backend.kind.value)
            self._join_teardown()
            old_backend.close()

            if was_recording:
                self.set_recording_state(True)

    def _join_teardown(self, timeout: float | None = None) -> None:
        with self._lock:
            threads = list(self._teardown_threads)
            self._teardown_threads = []
        for thread in threads:
            thread.join(timeout)

    def close(self) -> None:
        """Stop recording and release everything. Safe to call more than once."""
        with self._transition_lock:
            self.set_recording_state(False)
            with self._lock:
                if self._closed:
                    return
                self._closed = True
            self._executor.shutdown(wait=True)
            self._join_teardown()
            self._backend.close()
        logger.info("StreamingSession closed: %s", self._metrics.to_dict())

    def __enter__(self) -> "StreamingSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["StreamingSession"]
