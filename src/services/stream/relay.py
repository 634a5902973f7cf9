"""Session orchestrator for the date-of-birth analysis stream.

One `StreamRelay` serves one request. It validates input, computes the fact
bundle, opens the configured backend and relays extracted fragments as SSE
frames. Any upstream failure before the stream is complete switches to the
local fallback without the client seeing an error.

Lifecycle::

    idle -> opening -> streaming -> draining -> closed
               \\          |           ^
                +--> fallback -------+

Invalid input goes straight from idle to closed with a single error frame.
Every session writes exactly one terminal frame (end or error), last.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import aclosing
from datetime import date

from core.config import Settings
from core.error_handler import StructuredLogger
from core.exceptions import InvalidInputError, PromptValidationError
from schemas.facts import FactBundle, Locale
from schemas.stream import ChunkEvent, EndEvent, ErrorEvent, StreamEvent
from services.dob_analyzer import (
    analyze_dob,
    parse_birth_date,
    parse_locale,
    today_in_offset,
)
from services.prompt_builder import build_prompt

from .backends import UpstreamBackend
from .exceptions import BackendRejected, BackendUnavailable, UpstreamError
from .extractors import create_extractor
from .fallback import FallbackGenerator
from .models import RelayState


logger = logging.getLogger(__name__)
structured_logger = StructuredLogger(__name__)

_TRANSITIONS: dict[RelayState, frozenset[RelayState]] = {
    RelayState.IDLE: frozenset({RelayState.OPENING, RelayState.CLOSED}),
    RelayState.OPENING: frozenset({RelayState.STREAMING, RelayState.FALLBACK}),
    RelayState.STREAMING: frozenset({RelayState.FALLBACK, RelayState.DRAINING}),
    RelayState.FALLBACK: frozenset({RelayState.DRAINING}),
    RelayState.DRAINING: frozenset({RelayState.CLOSED}),
    RelayState.CLOSED: frozenset(),
}


class InvalidTransition(RuntimeError):
    pass


class StreamRelay:
    def __init__(
        self,
        *,
        settings: Settings,
        backend: UpstreamBackend | None,
        today: Callable[[], date] | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.backend = backend
        self.state = RelayState.IDLE
        self.fragments_sent = 0
        self.source = "none"
        self._today = today or (lambda: today_in_offset(settings.UTC_OFFSET_HOURS))
        self._sleep = sleep

    def _transition(self, target: RelayState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"Cannot move from {self.state} to {target}")
        logger.debug("Stream relay %s -> %s", self.state, target)
        self.state = target

    def _emit(self, event: StreamEvent) -> str:
        if self.state is RelayState.CLOSED:
            raise InvalidTransition("Stream already closed")
        if isinstance(event, ChunkEvent):
            self.fragments_sent += 1
        return event.to_sse()

    def _close(self, event: StreamEvent) -> str:
        frame = self._emit(event)
        self._transition(RelayState.CLOSED)
        return frame

    async def stream(self, dob: str | None, lang: str | None) -> AsyncGenerator[str, None]:
        """Yield the SSE frames for one analysis session."""
        today = self._today()
        try:
            birth = parse_birth_date(dob, today)
            locale = parse_locale(lang, self.settings.DEFAULT_LOCALE)
        except InvalidInputError as exc:
            structured_logger.info("Rejected stream request", reason=str(exc))
            yield self._close(ErrorEvent(error=str(exc)))
            return

        facts = analyze_dob(birth, today, locale)
        self._transition(RelayState.OPENING)

        async with aclosing(self._relay_upstream(facts, locale)) as frames:
            async for frame in frames:
                yield frame

        if self.state is RelayState.OPENING:
            self._transition(RelayState.FALLBACK)
        if self.state is RelayState.FALLBACK:
            self.source = "fallback"
            generator = FallbackGenerator(
                locale,
                delay=self.settings.FALLBACK_DELAY_SECONDS,
                # The report only makes sense when nothing real was shown yet
                facts=facts if self.fragments_sent == 0 else None,
                sleep=self._sleep,
            )
            async with aclosing(generator.stream()) as fragments:
                async for fragment in fragments:
                    yield self._emit(ChunkEvent(chunk=fragment))

        self._transition(RelayState.DRAINING)
        structured_logger.info(
            "Stream session completed",
            source=self.source,
            fragments=self.fragments_sent,
            locale=locale,
        )
        yield self._close(EndEvent())

    async def _relay_upstream(
        self, facts: FactBundle, locale: Locale
    ) -> AsyncGenerator[str, None]:
        """Relay backend fragments; leaves the state at STREAMING only on success."""
        if self.backend is None:
            logger.info("No upstream backend configured; using local fallback")
            return

        try:
            prompt = build_prompt(facts, locale, min_length=self.settings.PROMPT_MIN_LENGTH)
        except PromptValidationError as exc:
            structured_logger.warning("Prompt failed sanity check", reason=str(exc))
            return

        extractor = create_extractor(
            self.backend.wire_shape,
            max_resync_bytes=self.settings.STREAM_MAX_RESYNC_BYTES,
            max_object_bytes=self.settings.STREAM_MAX_OBJECT_BYTES,
        )
        try:
            async with self.backend.open(prompt, locale) as chunks:
                self._transition(RelayState.STREAMING)
                self.source = self.backend.name
                async with aclosing(chunks):
                    async for chunk in chunks:
                        for fragment in extractor.feed(chunk):
                            yield self._emit(ChunkEvent(chunk=fragment))
                        if extractor.done:
                            break
                for fragment in extractor.finish():
                    yield self._emit(ChunkEvent(chunk=fragment))
        except UpstreamError as exc:
            self._log_upstream_failure(exc)
            self._leave_streaming()
        except Exception:
            structured_logger.exception(
                "Unexpected upstream failure", backend=self.backend.name
            )
            self._leave_streaming()

    def _leave_streaming(self) -> None:
        if self.state is RelayState.STREAMING:
            self._transition(RelayState.FALLBACK)

    def _log_upstream_failure(self, exc: UpstreamError) -> None:
        details: dict[str, object] = {
            "backend": self.backend.name if self.backend else None,
            "error_code": exc.error_code,
            "fragments_before_failure": self.fragments_sent,
        }
        if isinstance(exc, BackendUnavailable):
            details["reason"] = exc.reason
        elif isinstance(exc, BackendRejected):
            details["status_code"] = exc.status_code
        structured_logger.warning("Upstream stream failed; falling back", **details)
