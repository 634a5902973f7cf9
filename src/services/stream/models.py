"""Enumerations shared by the extractors, backends and relay."""

from __future__ import annotations

from enum import Enum


class WireShape(str, Enum):
    """Envelope an upstream backend streams its response in."""

    JSON_ARRAY = "json_array"
    EVENT_LINES = "event_lines"


class StreamOutcome(str, Enum):
    CONTINUING = "continuing"
    TERMINAL = "terminal"
    FATAL = "fatal"


class RelayState(str, Enum):
    IDLE = "idle"
    OPENING = "opening"
    STREAMING = "streaming"
    FALLBACK = "fallback"
    DRAINING = "draining"
    CLOSED = "closed"
