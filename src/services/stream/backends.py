"""Upstream text-generation backends.

A backend knows how to build its HTTP request and which wire shape its
response uses; opening the stream, the first-byte guard and the mapping of
transport failures onto the upstream error taxonomy are shared.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from .exceptions import BackendRejected, BackendUnavailable, TransportFatal
from .models import WireShape


logger = logging.getLogger(__name__)

LM_STUDIO_SYSTEM_PROMPT = (
    "You are an AI that analyzes dates of birth and provides comprehensive "
    "insights. Use markdown formatting for better readability."
)


class UpstreamBackend(ABC):
    """Base class for streaming generation providers.

    `open` is an async context manager yielding an async iterator of raw byte
    chunks. It raises `BackendUnavailable` or `BackendRejected` before
    yielding, and the yielded iterator raises `TransportFatal` if the
    connection breaks after the first byte.

    An injected `http_client` is borrowed and never closed here; otherwise a
    client is created per stream and closed with it.
    """

    name: str
    wire_shape: WireShape

    def __init__(
        self,
        *,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        first_byte_timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
        self.first_byte_timeout = first_byte_timeout
        self._http_client = http_client

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials and endpoint are present."""

    @abstractmethod
    def build_request(
        self, client: httpx.AsyncClient, prompt: str, locale: str
    ) -> httpx.Request: ...

    @asynccontextmanager
    async def open(self, prompt: str, locale: str) -> AsyncIterator[AsyncIterator[bytes]]:
        if not self.is_configured():
            raise BackendUnavailable("missing_credentials")

        owns_client = self._http_client is None
        client = self._http_client or httpx.AsyncClient(timeout=self.timeout)
        response: httpx.Response | None = None
        try:
            request = self.build_request(client, prompt, locale)
            try:
                async with asyncio.timeout(self.first_byte_timeout):
                    response = await client.send(request, stream=True)
                    self._raise_for_status(response)
                    chunks = response.aiter_bytes()
                    first = await self._first_chunk(chunks)
            except TimeoutError as exc:
                raise BackendUnavailable("no_first_byte") from exc
            except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
                raise BackendUnavailable("connect_failed") from exc
            except httpx.TimeoutException as exc:
                raise BackendUnavailable("no_first_byte") from exc
            except (httpx.HTTPError, httpx.StreamError) as exc:
                raise BackendUnavailable("connect_failed") from exc

            logger.debug("Upstream %s stream opened (status %s)", self.name, response.status_code)
            yield self._iter_chunks(first, chunks)
        finally:
            if response is not None:
                await response.aclose()
            if owns_client:
                await client.aclose()

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        if status >= 500:
            raise BackendUnavailable("server_error")
        raise BackendRejected(status)

    @staticmethod
    async def _first_chunk(chunks: AsyncIterator[bytes]) -> bytes:
        async for chunk in chunks:
            if chunk:
                return chunk
        raise BackendUnavailable("no_first_byte", "Upstream closed the stream without data")

    async def _iter_chunks(
        self, first: bytes, chunks: AsyncIterator[bytes]
    ) -> AsyncIterator[bytes]:
        yield first
        try:
            async for chunk in chunks:
                if chunk:
                    yield chunk
        except (httpx.HTTPError, httpx.StreamError) as exc:
            raise TransportFatal(
                f"{self.name} stream failed after first byte: {type(exc).__name__}"
            ) from exc


class GeminiBackend(UpstreamBackend):
    """Google Gemini `streamGenerateContent` (a JSON array of candidates)."""

    name = "gemini"
    wire_shape = WireShape.JSON_ARRAY

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com",
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/") if base_url else base_url

    def is_configured(self) -> bool:
        return bool(self.api_key and self.base_url and self.model)

    def build_request(
        self, client: httpx.AsyncClient, prompt: str, locale: str
    ) -> httpx.Request:
        return client.build_request(
            "POST",
            f"{self.base_url}/v1beta/models/{self.model}:streamGenerateContent",
            headers={"x-goog-api-key": self.api_key or "", "Content-Type": "application/json"},
            json={"contents": [{"role": "user", "parts": [{"text": prompt}]}]},
            timeout=self.timeout,
        )


class LMStudioBackend(UpstreamBackend):
    """LM Studio (OpenAI-compatible chat completions over event lines)."""

    name = "lmstudio"
    wire_shape = WireShape.EVENT_LINES

    def __init__(
        self,
        *,
        base_url: str | None,
        model: str = "local-model",
        api_key: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/") if base_url else base_url
        self.model = model
        self.api_key = api_key

    def is_configured(self) -> bool:
        return bool(self.base_url)

    def build_request(
        self, client: httpx.AsyncClient, prompt: str, locale: str
    ) -> httpx.Request:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return client.build_request(
            "POST",
            f"{self.base_url}/v1/chat/completions",
            headers=headers,
            json={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": LM_STUDIO_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "stream": True,
            },
            timeout=self.timeout,
        )
