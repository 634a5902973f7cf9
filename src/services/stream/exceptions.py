"""Upstream failure taxonomy for the streaming relay.

Every failure carries a stable `error_code` for log tagging. None of these
ever reach the client directly: the relay recovers from all of them by
switching to the local fallback stream.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class UpstreamError(Exception):
    """Base class for upstream generation errors."""

    message: str
    error_code: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class BackendUnavailable(UpstreamError):
    """The backend could not be reached or produced nothing usable."""

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(
            message=message or f"Upstream backend unavailable ({reason})",
            error_code="backend_unavailable",
        )
        self.reason = reason


class BackendRejected(UpstreamError):
    """The backend answered with a 4xx status (auth, quota, bad request)."""

    def __init__(self, status_code: int, message: str | None = None) -> None:
        super().__init__(
            message=message or f"Upstream backend rejected the request ({status_code})",
            error_code="backend_rejected",
        )
        self.status_code = status_code


class TransportFatal(UpstreamError):
    """The stream broke after it had started."""

    def __init__(self, message: str = "Upstream stream failed mid-flight") -> None:
        super().__init__(message=message, error_code="transport_fatal")


class StreamCorrupted(TransportFatal):
    """The byte stream can no longer be resynchronized."""

    def __init__(self, message: str = "Upstream stream is corrupted") -> None:
        super().__init__(message=message)
        self.error_code = "stream_corrupted"


class MalformedFragment(UpstreamError):
    """One unit of the stream could not be parsed; recovered locally."""

    def __init__(self, message: str = "Malformed upstream fragment") -> None:
        super().__init__(message=message, error_code="malformed_fragment")
