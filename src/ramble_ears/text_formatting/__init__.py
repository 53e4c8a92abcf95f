"""Cleanup of raw recognizer output."""

from .normalizer import (
    NON_SPEECH_MARKERS,
    TextNormalizer,
    is_diagnostic_line,
    normalize_transcription_text,
)

__all__ = ["NON_SPEECH_MARKERS", "TextNormalizer", "is_diagnostic_line", "normalize_transcription_text"]
