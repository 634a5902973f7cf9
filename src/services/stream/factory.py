"""Select the upstream backend from configuration.

Usage:
    from services.stream.factory import create_backend

    backend = create_backend(settings)  # None when LLM_PROVIDER=none
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.config import Settings

from .backends import GeminiBackend, LMStudioBackend, UpstreamBackend


if TYPE_CHECKING:
    from httpx import AsyncClient

logger = logging.getLogger(__name__)


def create_backend(
    settings: Settings, http_client: AsyncClient | None = None
) -> UpstreamBackend | None:
    """Build the configured backend, or None for local-only generation.

    Missing credentials are not an error here: the backend reports itself
    unconfigured when opened, and the relay falls back.
    """
    timeouts = {
        "connect_timeout": settings.UPSTREAM_CONNECT_TIMEOUT,
        "read_timeout": settings.UPSTREAM_READ_TIMEOUT,
        "first_byte_timeout": settings.UPSTREAM_FIRST_BYTE_TIMEOUT,
        "http_client": http_client,
    }

    if settings.LLM_PROVIDER == "gemini":
        if not settings.GEMINI_API_KEY:
            logger.warning("LLM_PROVIDER=gemini but GEMINI_API_KEY is not set")
        return GeminiBackend(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            base_url=settings.GEMINI_BASE_URL,
            **timeouts,
        )
    if settings.LLM_PROVIDER == "lmstudio":
        return LMStudioBackend(
            base_url=settings.LM_STUDIO_URL,
            model=settings.LM_STUDIO_MODEL,
            api_key=settings.LM_STUDIO_API_KEY,
            **timeouts,
        )
    return None
