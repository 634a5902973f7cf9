"""Shared test fixtures for pytest.

We set env defaults early so importing modules that instantiate settings
(main, core.config) never reaches a real LLM provider or an external .env
file during tests.
"""

import os
from collections.abc import AsyncGenerator, Callable, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient


os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LLM_PROVIDER", "none")
os.environ.setdefault("FALLBACK_DELAY_SECONDS", "0")

from core.config import Settings
from main import app


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.
    """
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Async client bound to the app; dependency overrides are cleared after."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build isolated Settings (no env file) with a zero fallback delay."""

    def _make(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "ENVIRONMENT": "test",
            "LLM_PROVIDER": "none",
            "FALLBACK_DELAY_SECONDS": 0.0,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)  # type: ignore[call-arg]

    return _make
