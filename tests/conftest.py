"""Shared pytest fixtures."""

import os

import pytest

from ramble_ears.core.config import reset_config


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep user config, env overrides and log files out of the tests."""
    for name in list(os.environ):
        if name.startswith("RAMBLE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("RAMBLE_CONFIG", str(tmp_path / "missing-config.toml"))
    monkeypatch.setenv("RAMBLE_LOG_DIR", str(tmp_path / "logs"))
    reset_config()
    yield
    reset_config()
