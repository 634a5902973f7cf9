"""Per-request stream relay dependency.

Provider selection comes from the cached settings, so tests can swap the
relay (or the settings) through `app.dependency_overrides`.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from core.config import Settings, get_settings
from services.stream import StreamRelay, create_backend


def get_stream_relay(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StreamRelay:
    return StreamRelay(settings=settings, backend=create_backend(settings))
