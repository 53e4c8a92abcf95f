"""Unit tests for the queue-based logging setup."""

import logging
import logging.handlers

import pytest

from ramble_ears.core import logging as log_setup
from ramble_ears.core.logging import ROOT_LOGGER_NAME, setup_logging


@pytest.fixture
def root_logger():
    """Give each test an unconfigured package logger."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    saved = (list(logger.handlers), logger.propagate, logger.level)
    logger.handlers.clear()
    yield logger
    log_setup._stop_listener()
    logger.handlers[:] = saved[0]
    logger.propagate = saved[1]
    logger.setLevel(saved[2])


class TestSetupLogging:
    def test_records_reach_log_file(self, root_logger, tmp_path, monkeypatch):
        monkeypatch.setenv("RAMBLE_LOG_DIR", str(tmp_path / "logs"))

        setup_logging(log_level="DEBUG", include_console=False)
        logging.getLogger("ramble_ears.transcription.streaming.session").debug("window scheduled")
        log_setup._stop_listener()

        content = (tmp_path / "logs" / log_setup.LOG_FILE_NAME).read_text()
        assert "window scheduled" in content
        assert root_logger.propagate is False

    def test_second_call_adds_no_handlers(self, root_logger):
        setup_logging(include_console=False)
        setup_logging(include_console=False)

        assert len(root_logger.handlers) == 1

    def test_no_sinks_installs_null_handler(self, root_logger):
        setup_logging(log_level="warning", include_console=False, include_file=False)

        assert isinstance(root_logger.handlers[0], logging.NullHandler)
        assert root_logger.level == logging.WARNING

    def test_console_from_environment(self, root_logger, monkeypatch):
        monkeypatch.setenv("RAMBLE_CONSOLE_LOGS", "yes")

        setup_logging(include_file=False)

        assert isinstance(root_logger.handlers[0], logging.handlers.QueueHandler)
