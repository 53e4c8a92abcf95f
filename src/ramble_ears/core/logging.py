"""Logging setup for Ramble Ears.

Every module logs through ``logging.getLogger(__name__)``. The CLI calls
:func:`setup_logging` once; records then travel through a queue to a
background listener, so the capture thread and the engine pipe readers never
wait on file or console writes.
"""

import atexit
import logging
import os
import sys
import threading
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import SimpleQueue

ROOT_LOGGER_NAME = "ramble_ears"
LOG_FILE_NAME = "ramble-ears.log"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3

_listener_lock = threading.Lock()
_log_queue: SimpleQueue | None = None
_listener: QueueListener | None = None


def _stop_listener() -> None:
    global _listener
    if _listener is not None:
        _listener.stop()
        _listener = None


def logs_dir() -> Path:
    """``$RAMBLE_LOG_DIR`` or ``~/.ramble/logs``."""
    env_dir = os.environ.get("RAMBLE_LOG_DIR")
    return Path(env_dir) if env_dir else Path.home() / ".ramble" / "logs"


def _build_handlers(level: int, include_console: bool, include_file: bool) -> list[logging.Handler]:
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handlers: list[logging.Handler] = []

    if include_file:
        directory = logs_dir()
        try:
            directory.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(directory / LOG_FILE_NAME, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
            )
        except OSError as e:
            print(f"ramble-ears: file logging disabled ({e})", file=sys.stderr)

    if include_console:
        handlers.append(logging.StreamHandler(sys.stderr))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging(
    log_level: str = "INFO",
    include_console: bool | None = None,
    include_file: bool = True,
) -> logging.Logger:
    """Route every ``ramble_ears.*`` logger through the shared queue.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        include_console: Log to stderr. If None, uses RAMBLE_CONSOLE_LOGS
            ("1"/"true"/"yes" enables).
        include_file: Log to the rotating file under :func:`logs_dir`

    Returns:
        The package root logger

    """
    global _log_queue, _listener

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    level = getattr(logging, log_level.upper())
    logger.setLevel(level)

    if include_console is None:
        include_console = os.environ.get("RAMBLE_CONSOLE_LOGS", "").strip().lower() in {"1", "true", "yes"}

    with _listener_lock:
        # Already configured by an earlier call
        if logger.handlers:
            return logger

        logger.propagate = False
        handlers = _build_handlers(level, include_console, include_file)
        if not handlers:
            logger.addHandler(logging.NullHandler())
            return logger

        _log_queue = SimpleQueue()
        _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
        _listener.start()
        atexit.register(_stop_listener)
        logger.addHandler(QueueHandler(_log_queue))

    return logger


__all__ = ["ROOT_LOGGER_NAME", "logs_dir", "setup_logging"]
