"""Unit tests for create_transcriber."""

from unittest.mock import patch

import pytest

from ramble_ears.transcription.backends.internal.placeholder import PlaceholderBackend
from ramble_ears.transcription.streaming.config import StreamingConfig, TranscriberConfig
from ramble_ears.transcription.streaming.factory import create_transcriber
from ramble_ears.transcription.streaming.types import BackendUnavailable

SELECT = "ramble_ears.transcription.backends.registry.select_backend"


class TestCreateTranscriber:
    def test_unavailable_propagates(self):
        error = BackendUnavailable("No transcription backend available", {"spawned_process": "no executable"})

        with patch(SELECT, side_effect=error), pytest.raises(BackendUnavailable):
            create_transcriber(TranscriberConfig())

    def test_placeholder_fallback(self):
        error = BackendUnavailable("No transcription backend available")

        with patch(SELECT, side_effect=error):
            session = create_transcriber(TranscriberConfig(), fallback_to_placeholder=True)

        with session:
            assert isinstance(session.backend, PlaceholderBackend)
            assert session.backend.is_ready
            assert "No transcription backend available" in session.backend.reason

    def test_selected_backend_is_wrapped(self):
        backend = PlaceholderBackend()
        backend.load()
        streaming = StreamingConfig(history_size=3)
        config = TranscriberConfig(model_path="/models/ggml.bin")

        with patch(SELECT, return_value=backend) as select:
            session = create_transcriber(config, streaming_config=streaming)

        with session:
            select.assert_called_once_with(config)
            assert session.backend is backend
            assert session.config is streaming
            assert session.model_info() == ("spawned_process", "/models/ggml.bin")
