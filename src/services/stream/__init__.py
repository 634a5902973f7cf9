"""Streaming relay between upstream generation backends and SSE clients."""

from .backends import GeminiBackend, LMStudioBackend, UpstreamBackend
from .factory import create_backend
from .relay import StreamRelay


__all__ = [
    "GeminiBackend",
    "LMStudioBackend",
    "UpstreamBackend",
    "create_backend",
    "StreamRelay",
]
