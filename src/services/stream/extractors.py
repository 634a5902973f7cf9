"""Incremental frame extractors for upstream byte streams.

An extractor is fed raw chunks in arrival order and returns the complete text
fragments each chunk made available. Chunk boundaries carry no meaning: a
JSON object, an event line or a UTF-8 sequence may be split anywhere, and the
extractor holds the unconsumed remainder until more input arrives.

Two envelopes are supported:

* ``json_array``: a JSON array of partial response objects, reassembled by
  counting braces outside string literals.
* ``event_lines``: ``data: {...}`` lines terminated by ``data: [DONE]``.
"""

from __future__ import annotations

import codecs
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from .exceptions import MalformedFragment, StreamCorrupted, TransportFatal
from .models import StreamOutcome, WireShape


logger = logging.getLogger(__name__)

# C0 controls and DEL, minus tab (\x09) and newline (\x0a)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_REPLACEMENT_CHAR = "\ufffd"
_SEPARATORS = " \t\r\n,"
_WHITESPACE = " \t\r\n"
# Characters that may follow a complete array element
_OBJECT_FOLLOWERS = ",{]"
# Resync stops at the next object or at a "]" closing the array after an element
_RESYNC_STOP = re.compile(r"\{|\}[ \t\r\n]*\]")
_TRAILING_CLOSE = re.compile(r"\}[ \t\r\n]*\Z")

DONE_SENTINEL = "[DONE]"
DATA_PREFIX = "data:"

DEFAULT_MAX_RESYNC_BYTES = 64 * 1024
DEFAULT_MAX_OBJECT_BYTES = 1024 * 1024


def sanitize_fragment(text: str | None) -> str | None:
    """Clean a fragment for display; return None when nothing is left."""
    if not text:
        return None
    cleaned = _CONTROL_CHARS.sub("", text.replace(_REPLACEMENT_CHAR, "")).strip()
    return cleaned or None


def _is_json_object(text: str) -> bool:
    try:
        return isinstance(json.loads(text), dict)
    except json.JSONDecodeError:
        return False


def payload_text(payload: Any) -> str | None:
    """Pull the text delta out of one parsed response object.

    Understands the Gemini candidate shape (all text parts concatenated), the
    OpenAI-compatible ``choices[0].delta.content`` shape, and a bare
    ``{"text": ...}`` object.
    """
    if not isinstance(payload, dict):
        return None

    text = payload.get("text")
    if isinstance(text, str):
        return text

    candidates = payload.get("candidates")
    if isinstance(candidates, list) and candidates:
        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if isinstance(parts, list):
            texts = [
                p["text"]
                for p in parts
                if isinstance(p, dict) and isinstance(p.get("text"), str)
            ]
            return "".join(texts) if texts else None

    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        delta = choices[0].get("delta") or choices[0].get("message")
        if isinstance(delta, dict) and isinstance(delta.get("content"), str):
            return delta["content"]

    return None


class FrameExtractor(ABC):
    """Stateful parser shared by both wire shapes.

    `outcome` starts as CONTINUING and moves exactly once to TERMINAL or
    FATAL; after that, further input is ignored.
    """

    wire_shape: WireShape

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.outcome = StreamOutcome.CONTINUING

    @property
    def done(self) -> bool:
        return self.outcome is not StreamOutcome.CONTINUING

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one raw chunk and return the fragments it completed.

        Raises:
            TransportFatal: the stream can no longer be parsed.
        """
        if self.done or not chunk:
            return []
        return self._guarded(self._decoder.decode(chunk))

    def finish(self) -> list[str]:
        """Signal clean end-of-stream and flush whatever is complete.

        Raises:
            TransportFatal: the stream ended in the middle of a unit.
        """
        if self.done:
            return []
        fragments = self._guarded(self._decoder.decode(b"", final=True))
        if self.done:
            return fragments
        try:
            fragments.extend(self._finish())
        except TransportFatal:
            self.outcome = StreamOutcome.FATAL
            raise
        if not self.done:
            self.outcome = StreamOutcome.TERMINAL
        return fragments

    def _guarded(self, text: str) -> list[str]:
        try:
            return self._consume(text)
        except TransportFatal:
            self.outcome = StreamOutcome.FATAL
            raise

    @abstractmethod
    def _consume(self, text: str) -> list[str]: ...

    @abstractmethod
    def _finish(self) -> list[str]: ...


class JsonArrayExtractor(FrameExtractor):
    """Reassemble objects from a streamed JSON array by brace counting.

    Two depths are tracked per object. The string-aware depth decides where a
    well-formed object ends. The plain depth counts every brace and marks
    where the object would end if a stray quote had thrown off the string
    state; such a close is only trusted once the text after it holds a
    complete, parseable object.
    """

    wire_shape = WireShape.JSON_ARRAY

    def __init__(
        self,
        *,
        max_resync_bytes: int = DEFAULT_MAX_RESYNC_BYTES,
        max_object_bytes: int = DEFAULT_MAX_OBJECT_BYTES,
    ) -> None:
        super().__init__()
        self.max_resync_bytes = max_resync_bytes
        self.max_object_bytes = max_object_bytes
        self._buffer = ""
        self._entered = False
        # Scan state for the object at the head of the buffer
        self._in_object = False
        self._scan_pos = 0
        self._depth = 0
        self._in_string = False
        self._escaped = False
        self._plain_depth = 0
        # Buffer offsets of plain-depth closes: one awaiting its next
        # character, and the last one that disagreed with the string scan
        self._plain_close: int | None = None
        self._suspect_end: int | None = None
        # Discarded since the last good object; nonzero means resynchronizing
        self._resync_bytes = 0

    def _consume(self, text: str) -> list[str]:
        self._buffer += text
        fragments: list[str] = []

        while self._buffer and not self.done:
            if self._in_object:
                try:
                    raw = self._scan_object()
                except MalformedFragment as error:
                    self._resync_from_head(error)
                    continue
                if raw is None:
                    break
                fragment = self._handle_object(raw)
                if fragment is not None:
                    fragments.append(fragment)
                continue

            if self._resync_bytes:
                if not self._skip_to_next_object():
                    break
                continue

            self._buffer = self._buffer.lstrip(_SEPARATORS)
            if not self._buffer:
                break
            head = self._buffer[0]
            if head == "[" and not self._entered:
                self._entered = True
                self._buffer = self._buffer[1:]
            elif head == "]":
                self._buffer = ""
                self.outcome = StreamOutcome.TERMINAL
            elif head == "{":
                self._start_object()
            else:
                self._buffer = self._buffer[1:]

        return fragments

    def _finish(self) -> list[str]:
        fragments: list[str] = []
        # An object left open behind a plain-depth close had unbalanced quotes
        while self._in_object and self._suspect_end is not None and not self.done:
            self._resync_from_head(
                MalformedFragment("Response object with unbalanced quotes")
            )
            fragments.extend(self._consume(""))
        if self._in_object:
            raise TransportFatal("Upstream stream ended inside a response object")
        return fragments

    def _start_object(self) -> None:
        self._in_object = True
        self._scan_pos = 0
        self._depth = 0
        self._in_string = False
        self._escaped = False
        self._plain_depth = 0
        self._plain_close = None
        self._suspect_end = None

    def _scan_object(self) -> str | None:
        """Advance the brace scan; return the object text once it balances.

        Raises:
            MalformedFragment: the object at the head of the buffer can never
                balance and must be skipped.
        """
        buf = self._buffer
        for idx in range(self._scan_pos, len(buf)):
            ch = buf[idx]
            if self._plain_close is not None and ch not in _WHITESPACE:
                if ch in _OBJECT_FOLLOWERS:
                    self._check_plain_close(buf, self._plain_close)
                self._plain_close = None

            if ch == "{":
                self._plain_depth += 1
            elif ch == "}" and self._plain_depth > 0:
                self._plain_depth -= 1
                if self._plain_depth == 0:
                    self._plain_close = idx + 1

            if self._in_string:
                if self._escaped:
                    self._escaped = False
                elif ch == "\\":
                    self._escaped = True
                elif ch == '"':
                    self._in_string = False
            elif ch == '"':
                self._in_string = True
            elif ch == "{":
                self._depth += 1
            elif ch == "}":
                self._depth -= 1
                if self._depth == 0:
                    self._in_object = False
                    self._buffer = buf[idx + 1 :]
                    return buf[: idx + 1]

        self._scan_pos = len(buf)
        if len(buf) > self.max_object_bytes:
            raise StreamCorrupted(
                f"Response object exceeds {self.max_object_bytes} bytes without closing"
            )
        return None

    def _check_plain_close(self, buf: str, end: int) -> None:
        """Give up on the head object once a whole object follows a plain close."""
        if self._suspect_end is not None:
            between = buf[self._suspect_end : end].strip(_SEPARATORS)
            if _is_json_object(between):
                raise MalformedFragment(
                    f"Unbalanced quotes in response object ({self._suspect_end} chars)"
                )
        self._suspect_end = end

    def _handle_object(self, raw: str) -> str | None:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            self._buffer = raw + self._buffer
            self._resync_from_head(
                MalformedFragment(f"Unparseable response object ({len(raw)} chars)")
            )
            return None

        self._resync_bytes = 0
        return sanitize_fragment(payload_text(payload))

    def _resync_from_head(self, error: MalformedFragment) -> None:
        logger.warning("Skipping upstream object: %s", error.message)
        # Drop only the opening brace and rescan from the next byte
        self._in_object = False
        self._suspect_end = None
        self._buffer = self._buffer[1:]
        self._count_discarded("{")

    def _skip_to_next_object(self) -> bool:
        """Discard input up to the next ``{`` or the closing ``]``.

        Returns False when nothing could be discarded until more input arrives.
        """
        match = _RESYNC_STOP.search(self._buffer)
        if match is None:
            # Hold a trailing "}" back: the "]" after it may be in the next chunk
            tail = _TRAILING_CLOSE.search(self._buffer)
            keep = tail.start() if tail else len(self._buffer)
            dropped, self._buffer = self._buffer[:keep], self._buffer[keep:]
            self._count_discarded(dropped)
            return bool(dropped)

        if match.group() == "{":
            stop = match.start()
        else:
            stop = match.end() - 1
        dropped, self._buffer = self._buffer[:stop], self._buffer[stop:]
        self._count_discarded(dropped)
        if match.group() == "{":
            self._start_object()
        else:
            self._resync_bytes = 0
        return True

    def _count_discarded(self, dropped: str) -> None:
        self._resync_bytes += len(dropped.encode("utf-8"))
        if self._resync_bytes > self.max_resync_bytes:
            raise StreamCorrupted(
                f"Gave up resynchronizing after {self._resync_bytes} bytes"
            )


class EventLineExtractor(FrameExtractor):
    """Parse ``data:`` lines from an OpenAI-compatible event stream."""

    wire_shape = WireShape.EVENT_LINES

    def __init__(self) -> None:
        super().__init__()
        self._pending = ""

    def _consume(self, text: str) -> list[str]:
        self._pending += text
        *lines, self._pending = self._pending.split("\n")
        fragments: list[str] = []
        for line in lines:
            fragment = self._handle_line(line)
            if fragment is not None:
                fragments.append(fragment)
            if self.done:
                self._pending = ""
                break
        return fragments

    def _finish(self) -> list[str]:
        line, self._pending = self._pending, ""
        fragment = self._handle_line(line) if line else None
        return [fragment] if fragment is not None else []

    def _handle_line(self, line: str) -> str | None:
        if line.endswith("\r"):
            line = line[:-1]
        if not line.startswith(DATA_PREFIX):
            return None

        data = line[len(DATA_PREFIX) :].strip()
        if data == DONE_SENTINEL:
            self.outcome = StreamOutcome.TERMINAL
            return None
        if not data:
            return None

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            error = MalformedFragment(f"Unparseable event payload ({len(data)} chars)")
            logger.warning("Skipping upstream event line: %s", error.message)
            return None
        return sanitize_fragment(payload_text(payload))


def create_extractor(
    shape: WireShape,
    *,
    max_resync_bytes: int = DEFAULT_MAX_RESYNC_BYTES,
    max_object_bytes: int = DEFAULT_MAX_OBJECT_BYTES,
) -> FrameExtractor:
    if shape is WireShape.JSON_ARRAY:
        return JsonArrayExtractor(
            max_resync_bytes=max_resync_bytes, max_object_bytes=max_object_bytes
        )
    if shape is WireShape.EVENT_LINES:
        return EventLineExtractor()
    raise ValueError(f"Unsupported wire shape: {shape}")
