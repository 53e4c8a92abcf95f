"""Unit tests for the in-process backends.

The faster-whisper and pywhispercpp libraries are mocked so these tests only
verify the wrapper logic.
"""

import sys
from unittest.mock import MagicMock, Mock, patch

import numpy as np
import pytest

from ramble_ears.transcription.backends.base import BackendNotAvailableError
from ramble_ears.transcription.backends.internal.faster_whisper import FasterWhisperBackend
from ramble_ears.transcription.backends.internal.placeholder import PlaceholderBackend
from ramble_ears.transcription.backends.internal.whisper_cpp import WhisperCppBackend
from ramble_ears.transcription.streaming.config import TranscriberConfig
from ramble_ears.transcription.streaming.types import AudioWindow, BackendKind


def make_window(seconds: float = 1.0) -> AudioWindow:
    samples = np.zeros(int(seconds * 16000), dtype=np.float32)
    return AudioWindow(samples=samples, sample_rate=16000, rms=0.0, new_seconds=seconds)


def segment(text: str) -> Mock:
    seg = Mock()
    seg.text = text
    return seg


class TestFasterWhisperBackend:
    """Test suite for FasterWhisperBackend."""

    @pytest.fixture(autouse=True)
    def fake_library(self):
        module = MagicMock()
        with patch.dict(sys.modules, {"faster_whisper": module}):
            yield module

    def test_load_uses_config(self, fake_library):
        config = TranscriberConfig(native_model="base.en", device="cpu", compute_type="int8", threads=2)
        backend = FasterWhisperBackend(config)

        backend.load()

        fake_library.WhisperModel.assert_called_once_with("base.en", device="cpu", compute_type="int8", cpu_threads=2)
        assert backend.is_ready
        assert backend.kind is BackendKind.NATIVE_BINDING

    def test_model_path_used_without_native_model(self, fake_library):
        backend = FasterWhisperBackend(TranscriberConfig(model_path="/models/ct2-small"))

        backend.load()

        assert fake_library.WhisperModel.call_args[0][0] == "/models/ct2-small"

    def test_load_without_model_fails(self):
        backend = FasterWhisperBackend(TranscriberConfig())

        with pytest.raises(BackendNotAvailableError):
            backend.load()

    def test_submit_emits_each_segment(self, fake_library):
        model = fake_library.WhisperModel.return_value
        model.transcribe.return_value = (iter([segment(" Hello"), segment(" world")]), Mock())
        backend = FasterWhisperBackend(TranscriberConfig(native_model="base", language="auto"))
        backend.load()
        received = []
        backend.begin_recording(received.append, lambda: True)

        backend.submit(make_window(), prompt="earlier text")

        assert received == [" Hello", " world"]
        kwargs = model.transcribe.call_args.kwargs
        assert kwargs["initial_prompt"] == "earlier text"
        assert kwargs["language"] is None
        assert kwargs["condition_on_previous_text"] is False

    def test_submit_before_load_raises(self):
        backend = FasterWhisperBackend(TranscriberConfig(native_model="base"))

        with pytest.raises(RuntimeError):
            backend.submit(make_window())

    def test_close_unloads(self, fake_library):
        backend = FasterWhisperBackend(TranscriberConfig(native_model="base"))
        backend.load()

        backend.close()
        backend.close()

        assert not backend.is_ready


class TestWhisperCppBackend:
    """Test suite for WhisperCppBackend."""

    @pytest.fixture
    def fake_library(self):
        model_module = MagicMock()
        package = MagicMock()
        package.model = model_module
        with patch.dict(sys.modules, {"pywhispercpp": package, "pywhispercpp.model": model_module}):
            yield model_module

    @pytest.fixture
    def model_file(self, tmp_path):
        path = tmp_path / "ggml-base.en.bin"
        path.write_bytes(b"ggml")
        return str(path)

    def test_missing_model_file(self, fake_library, tmp_path):
        backend = WhisperCppBackend(TranscriberConfig(model_path=str(tmp_path / "missing.bin")))

        with pytest.raises(BackendNotAvailableError, match="Model file not found"):
            backend.load()
        fake_library.Model.assert_not_called()

    def test_load_silences_library_logs(self, fake_library, model_file):
        backend = WhisperCppBackend(TranscriberConfig(model_path=model_file, threads=3))

        backend.load()

        kwargs = fake_library.Model.call_args.kwargs
        assert kwargs["n_threads"] == 3
        assert kwargs["redirect_whispercpp_logs_to"] is None
        assert backend.is_ready

    def test_debug_keeps_library_logs(self, fake_library, model_file):
        backend = WhisperCppBackend(TranscriberConfig(model_path=model_file, debug=True))

        backend.load()

        assert fake_library.Model.call_args.kwargs["redirect_whispercpp_logs_to"] is False

    def test_submit_passes_prompt_and_language(self, fake_library, model_file):
        model = fake_library.Model.return_value
        model.transcribe.return_value = [segment("bonjour")]
        backend = WhisperCppBackend(TranscriberConfig(model_path=model_file, language="fr"))
        backend.load()
        received = []
        backend.begin_recording(received.append, lambda: True)

        backend.submit(make_window(), prompt="salut")

        assert received == ["bonjour"]
        kwargs = model.transcribe.call_args.kwargs
        assert kwargs == {"initial_prompt": "salut", "language": "fr"}

    def test_submit_without_prompt(self, fake_library, model_file):
        model = fake_library.Model.return_value
        model.transcribe.return_value = []
        backend = WhisperCppBackend(TranscriberConfig(model_path=model_file, language="auto"))
        backend.load()

        backend.submit(make_window())

        assert model.transcribe.call_args.kwargs == {}


class TestPlaceholderBackend:
    def test_produces_no_text(self):
        backend = PlaceholderBackend(reason="nothing installed")
        backend.load()
        received = []
        backend.begin_recording(received.append, lambda: True)

        backend.submit(make_window())

        assert received == []
        assert backend.is_ready
        assert backend.describe() == {
            "kind": "placeholder",
            "name": "placeholder",
            "ready": False,
            "reason": "nothing installed",
        }
