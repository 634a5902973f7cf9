"""Tests for upstream backend adapters using httpx.MockTransport."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator

import httpx
import pytest

from services.stream.backends import GeminiBackend, LMStudioBackend
from services.stream.exceptions import (
    BackendRejected,
    BackendUnavailable,
    TransportFatal,
)
from services.stream.factory import create_backend
from services.stream.models import WireShape


PROMPT = "x" * 120


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def _chunks(*parts: bytes, error: Exception | None = None) -> AsyncIterator[bytes]:
    for part in parts:
        yield part
    if error is not None:
        raise error


async def _collect(backend, prompt: str = PROMPT) -> list[bytes]:
    async with backend.open(prompt, "en") as chunks:
        return [chunk async for chunk in chunks]


@pytest.mark.asyncio
async def test_gemini_request_shape():
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=b'[{"text":"ok"}]')

    async with _client(handler) as client:
        backend = GeminiBackend(
            api_key="test-key",
            model="gemini-test",
            base_url="https://gemini.example/",
            http_client=client,
        )
        assert await _collect(backend) == [b'[{"text":"ok"}]']

    assert seen["url"] == (
        "https://gemini.example/v1beta/models/gemini-test:streamGenerateContent"
    )
    assert seen["key"] == "test-key"
    assert seen["body"] == {"contents": [{"role": "user", "parts": [{"text": PROMPT}]}]}
    assert backend.wire_shape is WireShape.JSON_ARRAY


@pytest.mark.asyncio
async def test_lmstudio_request_shape():
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=b"data: [DONE]\n\n")

    async with _client(handler) as client:
        backend = LMStudioBackend(
            base_url="http://lm.local:1234", api_key="lm-key", http_client=client
        )
        await _collect(backend)

    body = seen["body"]
    assert seen["url"] == "http://lm.local:1234/v1/chat/completions"
    assert seen["auth"] == "Bearer lm-key"
    assert body["stream"] is True
    assert body["model"] == "local-model"
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    assert body["messages"][1]["content"] == PROMPT
    assert backend.wire_shape is WireShape.EVENT_LINES


@pytest.mark.asyncio
async def test_lmstudio_without_api_key_sends_no_authorization():
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, content=b"data: [DONE]\n\n")

    async with _client(handler) as client:
        await _collect(LMStudioBackend(base_url="http://lm.local", http_client=client))

    assert seen["auth"] is None


@pytest.mark.asyncio
async def test_missing_credentials_fail_before_network():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("no request expected")

    async with _client(handler) as client:
        backend = GeminiBackend(api_key=None, http_client=client)
        with pytest.raises(BackendUnavailable) as exc_info:
            await _collect(backend)

    assert exc_info.value.reason == "missing_credentials"
    assert exc_info.value.error_code == "backend_unavailable"


@pytest.mark.asyncio
async def test_lmstudio_without_base_url_is_unconfigured():
    backend = LMStudioBackend(base_url=None)
    with pytest.raises(BackendUnavailable) as exc_info:
        await _collect(backend)
    assert exc_info.value.reason == "missing_credentials"


@pytest.mark.asyncio
async def test_connect_error_maps_to_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(BackendUnavailable) as exc_info:
            await _collect(LMStudioBackend(base_url="http://lm.local", http_client=client))

    assert exc_info.value.reason == "connect_failed"


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [400, 401, 403, 404, 429])
async def test_client_errors_map_to_rejected(status_code: int):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"error": "nope"})

    async with _client(handler) as client:
        backend = GeminiBackend(api_key="k", http_client=client)
        with pytest.raises(BackendRejected) as exc_info:
            await _collect(backend)

    assert exc_info.value.status_code == status_code
    assert exc_info.value.error_code == "backend_rejected"


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [500, 502, 503])
async def test_server_errors_map_to_unavailable(status_code: int):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code)

    async with _client(handler) as client:
        backend = GeminiBackend(api_key="k", http_client=client)
        with pytest.raises(BackendUnavailable) as exc_info:
            await _collect(backend)

    assert exc_info.value.reason == "server_error"


@pytest.mark.asyncio
async def test_empty_body_is_no_first_byte():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"")

    async with _client(handler) as client:
        backend = GeminiBackend(api_key="k", http_client=client)
        with pytest.raises(BackendUnavailable) as exc_info:
            await _collect(backend)

    assert exc_info.value.reason == "no_first_byte"


@pytest.mark.asyncio
async def test_slow_headers_hit_first_byte_timeout():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, content=b"[]")  # pragma: no cover

    async with _client(handler) as client:
        backend = GeminiBackend(api_key="k", first_byte_timeout=0.05, http_client=client)
        with pytest.raises(BackendUnavailable) as exc_info:
            await _collect(backend)

    assert exc_info.value.reason == "no_first_byte"


@pytest.mark.asyncio
async def test_slow_body_hits_first_byte_timeout():
    async def never_sends() -> AsyncIterator[bytes]:
        await asyncio.sleep(5)
        yield b"[]"  # pragma: no cover

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=never_sends())

    async with _client(handler) as client:
        backend = GeminiBackend(api_key="k", first_byte_timeout=0.05, http_client=client)
        with pytest.raises(BackendUnavailable) as exc_info:
            await _collect(backend)

    assert exc_info.value.reason == "no_first_byte"


@pytest.mark.asyncio
async def test_chunks_are_relayed_in_order():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=_chunks(b'[{"te', b'xt":"a"}', b"]"))

    async with _client(handler) as client:
        backend = GeminiBackend(api_key="k", http_client=client)
        assert await _collect(backend) == [b'[{"te', b'xt":"a"}', b"]"]


@pytest.mark.asyncio
async def test_transport_error_after_first_byte_is_fatal():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            content=_chunks(b'[{"text":"a"},', error=httpx.ReadError("connection reset")),
        )

    received: list[bytes] = []
    async with _client(handler) as client:
        backend = GeminiBackend(api_key="k", http_client=client)
        with pytest.raises(TransportFatal):
            async with backend.open(PROMPT, "en") as chunks:
                async for chunk in chunks:
                    received.append(chunk)

    assert received == [b'[{"text":"a"},']


@pytest.mark.asyncio
async def test_injected_client_is_not_closed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"[]")

    async with _client(handler) as client:
        await _collect(GeminiBackend(api_key="k", http_client=client))
        assert not client.is_closed


def test_factory_selects_backend(make_settings):
    gemini = create_backend(make_settings(LLM_PROVIDER="gemini", GEMINI_API_KEY="k"))
    lmstudio = create_backend(
        make_settings(LLM_PROVIDER="lmstudio", LM_STUDIO_URL="http://lm.local:1234")
    )

    assert isinstance(gemini, GeminiBackend)
    assert gemini.is_configured()
    assert isinstance(lmstudio, LMStudioBackend)
    assert lmstudio.base_url == "http://lm.local:1234"
    assert create_backend(make_settings(LLM_PROVIDER="none")) is None


def test_factory_passes_timeouts(make_settings):
    backend = create_backend(
        make_settings(
            LLM_PROVIDER="gemini",
            UPSTREAM_CONNECT_TIMEOUT=1.5,
            UPSTREAM_READ_TIMEOUT=9.0,
            UPSTREAM_FIRST_BYTE_TIMEOUT=2.0,
        )
    )
    assert backend is not None
    assert backend.timeout.connect == 1.5
    assert backend.timeout.read == 9.0
    assert backend.first_byte_timeout == 2.0


def test_factory_warns_on_missing_gemini_key(make_settings, caplog):
    backend = create_backend(make_settings(LLM_PROVIDER="gemini", GEMINI_API_KEY=None))
    assert backend is not None
    assert not backend.is_configured()
    assert "GEMINI_API_KEY is not set" in caplog.text
