"""Unit tests for streaming types."""

import numpy as np
import pytest

from ramble_ears.transcription.backends.base import BackendNotAvailableError
from ramble_ears.transcription.streaming.types import (
    AudioWindow,
    BackendKind,
    BackendUnavailable,
    ProcessCrashed,
    ProcessStartFailed,
    StreamingError,
    StreamingMetrics,
    UnsupportedStreamingMode,
    WriteFailed,
)


class TestBackendKind:
    """Test parsing of backend names from configuration."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("native_binding", BackendKind.NATIVE_BINDING),
            ("LINKED_LIBRARY", BackendKind.LINKED_LIBRARY),
            ("spawned-process", BackendKind.SPAWNED_PROCESS),
            (BackendKind.SPAWNED_PROCESS, BackendKind.SPAWNED_PROCESS),
        ],
    )
    def test_parse(self, value, expected):
        assert BackendKind.parse(value) is expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown backend kind"):
            BackendKind.parse("cloud")


class TestAudioWindow:
    """Test AudioWindow helpers."""

    def test_duration_and_new_samples(self):
        samples = np.arange(32000, dtype=np.float32)
        window = AudioWindow(samples=samples, sample_rate=16000, rms=0.1, new_seconds=0.5, context_seconds=1.5)

        assert window.duration_seconds == pytest.approx(2.0)
        assert window.new_samples.size == 8000
        assert window.new_samples[0] == 24000

    def test_no_new_samples(self):
        window = AudioWindow(samples=np.zeros(10, dtype=np.float32), sample_rate=16000, rms=0.0, new_seconds=0.0)
        assert window.new_samples.size == 0


class TestStreamingMetrics:
    """Test StreamingMetrics serialization."""

    def test_to_dict(self):
        metrics = StreamingMetrics(chunks_received=3, audio_seconds_received=1.23456, segments_delivered=2)
        data = metrics.to_dict()

        assert data["chunks_received"] == 3
        assert data["audio_seconds_received"] == 1.235
        assert data["segments_delivered"] == 2
        assert data["windows_dropped_silent"] == 0


class TestErrors:
    """Test the error taxonomy."""

    @pytest.mark.parametrize(
        "error",
        [
            BackendUnavailable("none"),
            ProcessStartFailed("/bin/whisper", "missing"),
            UnsupportedStreamingMode("no stdin"),
            WriteFailed("broken pipe"),
            ProcessCrashed(1, 5.0),
            BackendNotAvailableError("missing"),
        ],
    )
    def test_all_are_streaming_errors(self, error):
        assert isinstance(error, StreamingError)

    def test_backend_unavailable_lists_reasons(self):
        error = BackendUnavailable("No backend", {"native_binding": "not installed"})
        assert error.reasons == {"native_binding": "not installed"}
        assert "native_binding: not installed" in str(error)

    def test_process_crashed_message(self):
        error = ProcessCrashed(3, 5.0)
        assert error.returncode == 3
        assert "code 3" in str(error)

    def test_write_failed_keeps_cause(self):
        cause = BrokenPipeError()
        assert WriteFailed("failed", cause=cause).cause is cause
