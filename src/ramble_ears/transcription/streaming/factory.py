"""Factory for creating streaming sessions.

Provides create_transcriber() that:
- Resolves transcriber and streaming configuration
- Selects and loads the best available backend
- Returns a ready-to-use StreamingSession
"""

import logging

from ...core.config import ConfigLoader
from .config import StreamingConfig, TranscriberConfig
from .session import StreamingSession
from .types import BackendUnavailable

logger = logging.getLogger(__name__)


def create_transcriber(
    config: TranscriberConfig | ConfigLoader | None = None,
    *,
    streaming_config: StreamingConfig | None = None,
    fallback_to_placeholder: bool = False,
) -> StreamingSession:
    """Create a streaming session over the best available backend.

    Args:
        config: Transcriber config, a ConfigLoader to read it from, or None
            for the global config
        streaming_config: Optional streaming config (read from the same
            loader if None)
        fallback_to_placeholder: Use a backend that produces no text instead
            of raising when nothing is usable

    Returns:
        Configured StreamingSession

    Raises:
        BackendUnavailable: If no backend works and no fallback was requested

    """
    from ..backends.registry import select_backend

    loader = config if isinstance(config, ConfigLoader) else None
    if not isinstance(config, TranscriberConfig):
        config = TranscriberConfig.from_config(loader)
    if streaming_config is None:
        streaming_config = StreamingConfig.from_config(loader)

    try:
        backend = select_backend(config)
    except BackendUnavailable as e:
        if not fallback_to_placeholder:
            raise
        from ..backends.internal.placeholder import PlaceholderBackend

        logger.warning("Transcription unavailable, using placeholder backend: %s", e)
        backend = PlaceholderBackend(reason=str(e))
        backend.load()

    session = StreamingSession(backend, streaming_config, transcriber_config=config)
    logger.info("Created transcriber with %s backend", backend.name)
    return session


__all__ = ["create_transcriber"]
