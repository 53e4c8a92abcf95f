"""Lifecycle of a spawned recognition engine process.

ProcessSupervisor owns at most one engine process at a time. It spawns the
process with three pipes, reads stdout/stderr on daemon threads, watches for
exit on a third thread and decides whether a crash is worth a restart.

State machine::

    IDLE -> STARTING -> ACTIVE -> TERMINATED | CRASHED
    any  -> DISABLED   (unsupported engine, rapid exit, restarts exhausted)

DISABLED persists until ``reset()``. A negative streaming probe is cached for
the supervisor's lifetime, so a reset never re-enables an engine that cannot
read audio from stdin.

The supervisor lock only guards bookkeeping. Probing, spawning, writing and
waiting on the process happen outside it, so ``detach()`` and ``reset()``
never wait on engine I/O. Every ``detach()`` or ``reset()`` starts a new
epoch; a start or restart begun in an earlier epoch is abandoned.
"""

import functools
import itertools
import logging
import os
import selectors
import subprocess
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ....text_formatting.normalizer import is_diagnostic_line
from ...streaming.config import ProcessConfig
from ...streaming.types import (
    ProcessCrashed,
    ProcessStartFailed,
    ProcessState,
    UnsupportedStreamingMode,
    WriteFailed,
)

logger = logging.getLogger(__name__)

UNSUPPORTED_MARKERS = ("unknown argument", "unrecognized option", "invalid option")
STDIN_FLAGS = ("--stdin", "-stdin")
DIAGNOSTIC_TAIL_LINES = 20


@dataclass
class ProcessSession:
    """One spawned engine process and its reader threads."""

    process: Any
    session_id: int
    started_at: float
    state: ProcessState = ProcessState.STARTING
    stopping: bool = False
    audio_started_at: float | None = None
    last_output_at: float | None = None
    bytes_sent: int = 0
    no_output_reported: bool = False
    diagnostics: deque = field(default_factory=lambda: deque(maxlen=DIAGNOSTIC_TAIL_LINES))
    threads: list = field(default_factory=list)


def check_executable(path: str) -> None:
    """Raise ProcessStartFailed unless ``path`` is an executable file."""
    if not path:
        raise ProcessStartFailed(path, "no executable configured")
    if not os.path.isfile(path):
        raise ProcessStartFailed(path, "executable not found")
    if not os.access(path, os.X_OK):
        raise ProcessStartFailed(path, "file is not executable")


class ProcessSupervisor:
    """Spawn, feed, monitor and restart the engine process.

    Args:
        command: Full engine command line; ``command[0]`` is the executable.
        on_output: Called with every content line of the current session.
        is_recording: Consulted before restarting a crashed process.
        config: Restart and timeout settings.
        popen / run / clock / sleep: Injectable for tests.

    """

    def __init__(
        self,
        command: list[str],
        on_output: Callable[[str], None],
        is_recording: Callable[[], bool],
        config: ProcessConfig | None = None,
        *,
        popen: Callable[..., Any] = subprocess.Popen,
        run: Callable[..., Any] = subprocess.run,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.executable = self.command[0]
        self.config = config or ProcessConfig()
        self._on_output = on_output
        self._is_recording = is_recording
        self._popen = popen
        self._run = run
        self._clock = clock
        self._sleep = sleep

        self._lock = threading.Lock()
        self._session: ProcessSession | None = None
        self._session_ids = itertools.count(1)
        self._last_state = ProcessState.IDLE
        self._epoch = 0
        self._starting_epoch: int | None = None
        self._restart_pending = False

        self._starts = 0
        self.restart_count = 0
        self._disabled = False
        self._disabled_reason = ""
        self._streaming_supported: bool | None = None

        self.output_timeouts = 0

    @property
    def state(self) -> ProcessState:
        with self._lock:
            if self._disabled:
                return ProcessState.DISABLED
            if self._session is not None:
                return self._session.state
            return self._last_state

    @property
    def is_active(self) -> bool:
        return self.state is ProcessState.ACTIVE

    @property
    def is_disabled(self) -> bool:
        with self._lock:
            return self._disabled

    @property
    def restart_pending(self) -> bool:
        """A crashed engine is waiting out the restart delay."""
        with self._lock:
            return self._restart_pending

    @property
    def disabled_reason(self) -> str:
        return self._disabled_reason

    def diagnostics(self) -> list[str]:
        """Recent stderr/diagnostic lines of the current session."""
        with self._lock:
            if self._session is None:
                return []
            return list(self._session.diagnostics)

    def reset(self) -> None:
        """Forget restarts and re-enable, unless stdin streaming is unsupported."""
        with self._lock:
            self._epoch += 1
            self._restart_pending = False
            self._starts = 0
            self.restart_count = 0
            self._disabled = self._streaming_supported is False
            if not self._disabled:
                self._disabled_reason = ""
                if self._session is None:
                    self._last_state = ProcessState.IDLE

    def _disable(self, reason: str) -> None:
        # Caller holds the lock
        self._disabled = True
        self._disabled_reason = reason
        self._last_state = ProcessState.DISABLED
        logger.warning("Real-time streaming disabled: %s", reason)

    def start(self) -> None:
        """Spawn the engine unless a session is active or already starting.

        Returns without spawning while a crash restart is pending; the exit
        monitor performs that restart after ``restart_delay_seconds``.

        Raises:
            UnsupportedStreamingMode: streaming is disabled or unsupported
            ProcessStartFailed: the executable is missing or cannot be spawned

        """
        self._start(restart=False)

    def _start(self, restart: bool) -> None:
        with self._lock:
            if self._disabled:
                raise UnsupportedStreamingMode(self._disabled_reason or "streaming disabled")
            if self._session is not None and self._session.state is ProcessState.ACTIVE:
                return
            if self._starting_epoch == self._epoch:
                return
            if self._restart_pending:
                if not restart:
                    return
                self._restart_pending = False

            if self._starts > 0:
                if self.restart_count >= self.config.max_restarts:
                    self._disable(f"engine restarted {self.restart_count} times")
                    raise UnsupportedStreamingMode(self._disabled_reason)
                self.restart_count += 1
                logger.info("Restarting engine process (%d/%d)", self.restart_count, self.config.max_restarts)
            self._starts += 1

            epoch = self._epoch
            self._starting_epoch = epoch
            self._last_state = ProcessState.STARTING
            needs_probe = self._streaming_supported is None

        try:
            self._spawn(epoch, needs_probe)
        finally:
            with self._lock:
                if self._starting_epoch == epoch:
                    self._starting_epoch = None
                idle = self._starting_epoch is None and self._session is None
                if idle and self._last_state is ProcessState.STARTING:
                    self._last_state = ProcessState.IDLE

    def _spawn(self, epoch: int, needs_probe: bool) -> None:
        check_executable(self.executable)

        if needs_probe:
            supported = self._probe_streaming()
            with self._lock:
                self._streaming_supported = supported
                if not supported:
                    self._disable(f"{self.executable} does not support reading audio from stdin")
                    raise UnsupportedStreamingMode(self._disabled_reason)
                if epoch != self._epoch:
                    logger.debug("Engine start abandoned after probe")
                    return

        logger.debug("Starting engine process: %s", " ".join(self.command))
        try:
            process = self._popen(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessStartFailed(self.executable, str(e)) from e

        session = ProcessSession(
            process=process,
            session_id=next(self._session_ids),
            started_at=self._clock(),
        )
        session.threads = [
            threading.Thread(
                target=self._read_stdout,
                args=(session,),
                name=f"engine-stdout-{session.session_id}",
                daemon=True,
            ),
            threading.Thread(
                target=self._read_stderr,
                args=(session,),
                name=f"engine-stderr-{session.session_id}",
                daemon=True,
            ),
            threading.Thread(
                target=self._monitor,
                args=(session,),
                name=f"engine-monitor-{session.session_id}",
                daemon=True,
            ),
        ]

        with self._lock:
            abandoned = epoch != self._epoch or self._disabled
            if abandoned:
                session.stopping = True
                session.state = ProcessState.TERMINATED
            else:
                session.state = ProcessState.ACTIVE
                self._session = session

        if abandoned:
            logger.debug("Engine start abandoned, stopping session %d", session.session_id)
            self._release(session)
            return

        for thread in session.threads:
            thread.start()
        logger.info("Engine process started (session %d)", session.session_id)

    def _probe_streaming(self) -> bool:
        """Ask the executable whether it accepts audio on stdin."""
        name = os.path.basename(self.executable).lower()
        if "stream" in name:
            logger.debug("%s is a streaming build, skipping stdin probe", name)
            return True

        for flag in STDIN_FLAGS:
            try:
                result = self._run(
                    [self.executable, flag, "--help"],
                    capture_output=True,
                    text=True,
                    timeout=self.config.probe_timeout_seconds,
                    check=False,
                )
            except subprocess.TimeoutExpired:
                # Hung on --help means the flag was accepted
                return True
            except OSError as e:
                raise ProcessStartFailed(self.executable, str(e)) from e

            output = f"{result.stdout or ''}{result.stderr or ''}".lower()
            if not any(marker in output for marker in UNSUPPORTED_MARKERS):
                logger.debug("Engine accepts %s", flag)
                return True

        logger.error("The engine executable (%s) does not support stdin streaming", self.executable)
        return False

    def send(self, data: bytes) -> None:
        """Write raw audio to the current session's stdin.

        Raises:
            WriteFailed: no active session, the pipe is not writable in time,
                or the write failed. The session is stopped first.

        """
        with self._lock:
            session = self._session
            if session is None or session.state is not ProcessState.ACTIVE:
                raise WriteFailed("no active engine process")
            stdin = session.process.stdin

        try:
            if not self._wait_writable(stdin):
                raise TimeoutError(f"stdin not writable within {self.config.write_timeout_seconds}s")
            stdin.write(data)
            stdin.flush()
        except (OSError, ValueError) as e:
            logger.warning("Failed to write audio to engine process: %s", e)
            self._stop_session(session)
            raise WriteFailed("failed to write audio data to engine process", cause=e) from e

        self._note_audio_sent(session, len(data))

    def _wait_writable(self, stream) -> bool:
        if os.name != "posix" or self.config.write_timeout_seconds <= 0:
            return True
        try:
            fd = stream.fileno()
        except (AttributeError, OSError, ValueError):
            return True
        if not isinstance(fd, int):
            return True
        with selectors.DefaultSelector() as selector:
            selector.register(fd, selectors.EVENT_WRITE)
            return bool(selector.select(self.config.write_timeout_seconds))

    def _note_audio_sent(self, session: ProcessSession, size: int) -> None:
        now = self._clock()
        with self._lock:
            session.bytes_sent += size
            if session.audio_started_at is None:
                session.audio_started_at = now
                return
            if session.no_output_reported or session.last_output_at is not None:
                return
            if now - session.audio_started_at < self.config.output_timeout_seconds:
                return
            session.no_output_reported = True
            self.output_timeouts += 1
            tail = list(session.diagnostics)[-3:]

        logger.warning(
            "No transcription output after %.1fs of audio (session %d)%s",
            now - session.audio_started_at,
            session.session_id,
            f"; last engine messages: {tail}" if tail else "",
        )

    def detach(self) -> Callable[[], None] | None:
        """Mark the current session stopped and return its blocking release step.

        Also abandons a start or restart that is still in progress.
        """
        with self._lock:
            self._epoch += 1
            self._restart_pending = False
            session = self._session
            if session is None:
                return None
            self._detach_locked(session)
        return functools.partial(self._release, session)

    def stop(self) -> None:
        """Detach and release the current session. Safe from any thread."""
        release = self.detach()
        if release is not None:
            release()

    def _stop_session(self, session: ProcessSession) -> None:
        with self._lock:
            if session.stopping:
                return
            self._detach_locked(session)
        self._release(session)

    def _detach_locked(self, session: ProcessSession) -> None:
        session.stopping = True
        session.state = ProcessState.TERMINATED
        if self._session is session:
            self._session = None
            self._last_state = ProcessState.TERMINATED if not self._disabled else ProcessState.DISABLED

    def _release(self, session: ProcessSession) -> None:
        process = session.process
        logger.debug("Stopping engine process (session %d)", session.session_id)
        try:
            if process.stdin is not None:
                try:
                    process.stdin.close()
                except OSError as e:
                    logger.debug("Closing engine stdin failed: %s", e)

            try:
                process.wait(timeout=self.config.stop_grace_seconds)
            except subprocess.TimeoutExpired:
                logger.debug("Engine process did not exit in time, killing it")
                process.kill()
                process.wait()
        finally:
            self._close_output(session)

    def _close_output(self, session: ProcessSession) -> None:
        current = threading.current_thread()
        try:
            for thread in session.threads:
                if thread is current or thread.ident is None:
                    continue
                if thread.name.startswith(("engine-stdout", "engine-stderr")):
                    thread.join(timeout=self.config.stop_grace_seconds)
        finally:
            for stream in (session.process.stdout, session.process.stderr):
                if stream is None:
                    continue
                try:
                    stream.close()
                except OSError as e:
                    logger.debug("Closing engine pipe failed: %s", e)

    def _is_current(self, session: ProcessSession) -> bool:
        with self._lock:
            return self._session is session and session.state is ProcessState.ACTIVE

    def _read_stdout(self, session: ProcessSession) -> None:
        stream = session.process.stdout
        if stream is None:
            return
        try:
            for raw in iter(stream.readline, b""):
                line = raw.decode("utf-8", errors="replace").strip() if isinstance(raw, bytes) else raw.strip()
                if not self._is_current(session):
                    continue
                if is_diagnostic_line(line):
                    if line:
                        logger.debug("Engine output: %s", line)
                    continue

                with self._lock:
                    session.last_output_at = self._clock()
                try:
                    self._on_output(line)
                except Exception:
                    logger.exception("Output handler failed")
        except (OSError, ValueError) as e:
            logger.debug("Engine stdout closed: %s", e)

    def _read_stderr(self, session: ProcessSession) -> None:
        stream = session.process.stderr
        if stream is None:
            return
        try:
            for raw in iter(stream.readline, b""):
                line = raw.decode("utf-8", errors="replace").strip() if isinstance(raw, bytes) else raw.strip()
                if not line:
                    continue
                session.diagnostics.append(line)
                logger.debug("Engine stderr: %s", line)
        except (OSError, ValueError) as e:
            logger.debug("Engine stderr closed: %s", e)

    def _monitor(self, session: ProcessSession) -> None:
        returncode = session.process.wait()

        with self._lock:
            if session.stopping or self._session is not session:
                logger.debug("Engine session %d exited after stop (code %s)", session.session_id, returncode)
                return

            uptime = self._clock() - session.started_at
            self._session = None
            session.stopping = True
            recording = self._is_recording()
            restart = False

            if uptime < self.config.rapid_exit_seconds:
                session.state = ProcessState.CRASHED
                self._disable(
                    f"engine exited {uptime:.2f}s after start (code {returncode}); "
                    "it probably cannot stream from stdin"
                )
            elif returncode == 0:
                session.state = ProcessState.TERMINATED
                self._last_state = ProcessState.TERMINATED
                logger.info("Engine process exited normally (session %d)", session.session_id)
            else:
                session.state = ProcessState.CRASHED
                self._last_state = ProcessState.CRASHED
                logger.warning("%s", ProcessCrashed(returncode, uptime))
                restart = recording and self.restart_count < self.config.max_restarts
                if restart:
                    self._restart_pending = True
                elif recording:
                    self._disable(f"engine crashed {self.restart_count + 1} times")
            epoch = self._epoch

        self._close_output(session)

        if not restart:
            return

        self._sleep(self.config.restart_delay_seconds)
        with self._lock:
            proceed = self._restart_pending and epoch == self._epoch
            if not proceed:
                return
            if not self._is_recording():
                self._restart_pending = False
                logger.debug("Recording stopped during restart delay, not restarting")
                return
        try:
            self._start(restart=True)
        except (ProcessStartFailed, UnsupportedStreamingMode) as e:
            logger.warning("Engine restart failed: %s", e)


__all__ = ["ProcessSession", "ProcessSupervisor", "check_executable"]
