"""Streaming transcription: backends and the session façade."""
