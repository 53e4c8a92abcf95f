"""Unit tests for backend probing and selection."""

from unittest.mock import patch

import pytest

from ramble_ears.transcription.backends import registry
from ramble_ears.transcription.backends.base import BackendNotAvailableError, TranscriptionBackend
from ramble_ears.transcription.backends.registry import ProbeResult, choose_backends
from ramble_ears.transcription.streaming.config import TranscriberConfig
from ramble_ears.transcription.streaming.types import BackendKind, BackendUnavailable

NATIVE = BackendKind.NATIVE_BINDING
LIBRARY = BackendKind.LINKED_LIBRARY
PROCESS = BackendKind.SPAWNED_PROCESS


def probes(native=True, library=True, process=True):
    return {
        NATIVE: ProbeResult(NATIVE, native, "" if native else "faster-whisper is not installed"),
        LIBRARY: ProbeResult(LIBRARY, library, "" if library else "pywhispercpp is not installed"),
        PROCESS: ProbeResult(PROCESS, process, "" if process else "no engine executable configured"),
    }


def make_backend_class(kind, fail_with=None):
    class FakeBackend(TranscriptionBackend):
        loaded = []

        def __init__(self, config):
            self.config = config
            self._ready = False

        def load(self):
            FakeBackend.loaded.append(kind)
            if fail_with is not None:
                raise fail_with
            self._ready = True

        @property
        def is_ready(self):
            return self._ready

        def submit(self, window, prompt=""):
            pass

    FakeBackend.kind = kind
    FakeBackend.name = kind.value
    return FakeBackend


class TestChooseBackends:
    def test_priority_order(self):
        assert choose_backends(probes()) == [NATIVE, LIBRARY, PROCESS]

    def test_unavailable_are_skipped(self):
        assert choose_backends(probes(native=False)) == [LIBRARY, PROCESS]

    def test_preferred_only(self):
        assert choose_backends(probes(), PROCESS) == [PROCESS]
        assert choose_backends(probes(process=False), PROCESS) == []


class TestProbes:
    def test_process_probe_needs_executable(self):
        result = registry.probe_backends(TranscriberConfig())[PROCESS]

        assert not result.available
        assert "executable" in result.reason

    def test_process_probe_with_artifacts(self, tmp_path):
        exe = tmp_path / "whisper-stream"
        exe.write_text("")
        exe.chmod(0o755)
        model = tmp_path / "ggml.bin"
        model.write_bytes(b"ggml")

        result = registry.probe_backends(TranscriberConfig(executable_path=str(exe), model_path=str(model)))[PROCESS]

        assert result.available

    def test_native_probe_needs_model(self):
        with patch.object(registry, "_module_available", return_value=True):
            assert not registry.probe_backends(TranscriberConfig())[NATIVE].available
            assert registry.probe_backends(TranscriberConfig(native_model="base"))[NATIVE].available

    def test_library_probe_needs_package(self, tmp_path):
        model = tmp_path / "ggml.bin"
        model.write_bytes(b"ggml")
        with patch.object(registry, "_module_available", return_value=False):
            result = registry.probe_backends(TranscriberConfig(model_path=str(model)))[LIBRARY]

        assert not result.available
        assert "pywhispercpp" in result.reason


class TestSelectBackend:
    """Test fall-through selection."""

    def _select(self, config, probe_results, classes):
        with patch.object(registry, "probe_backends", return_value=probe_results), patch.object(
            registry, "get_backend_class", side_effect=lambda kind: classes[kind]
        ):
            return registry.select_backend(config)

    def test_first_available_wins(self):
        classes = {kind: make_backend_class(kind) for kind in registry.PRIORITY}

        backend = self._select(TranscriberConfig(), probes(), classes)

        assert backend.kind is NATIVE
        assert backend.is_ready

    def test_load_failure_falls_through(self):
        classes = {
            NATIVE: make_backend_class(NATIVE, RuntimeError("CUDA out of memory")),
            LIBRARY: make_backend_class(LIBRARY),
            PROCESS: make_backend_class(PROCESS),
        }

        backend = self._select(TranscriberConfig(), probes(), classes)

        assert backend.kind is LIBRARY
        assert classes[NATIVE].loaded == [NATIVE]

    def test_nothing_available_lists_reasons(self):
        classes = {
            NATIVE: make_backend_class(NATIVE),
            LIBRARY: make_backend_class(LIBRARY, BackendNotAvailableError("model unreadable")),
            PROCESS: make_backend_class(PROCESS),
        }

        with pytest.raises(BackendUnavailable) as excinfo:
            self._select(TranscriberConfig(), probes(native=False, process=False), classes)

        reasons = excinfo.value.reasons
        assert set(reasons) == {"native_binding", "linked_library", "spawned_process"}
        assert reasons["linked_library"] == "model unreadable"

    def test_forced_backend_is_not_substituted(self):
        classes = {kind: make_backend_class(kind) for kind in registry.PRIORITY}

        with pytest.raises(BackendNotAvailableError) as excinfo:
            self._select(TranscriberConfig(backend="spawned_process"), probes(process=False), classes)

        assert list(excinfo.value.reasons) == ["spawned_process"]
        assert classes[NATIVE].loaded == []

    def test_forced_backend_is_used(self):
        classes = {kind: make_backend_class(kind) for kind in registry.PRIORITY}

        backend = self._select(TranscriberConfig(backend="linked-library"), probes(), classes)

        assert backend.kind is LIBRARY


class TestBackendInfo:
    def test_all_kinds_reported(self):
        info = registry.get_backend_info(TranscriberConfig())

        assert list(info) == ["native_binding", "linked_library", "spawned_process"]
        assert info["spawned_process"]["available"] is False
        assert "install" in info["linked_library"]
