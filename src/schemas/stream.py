"""Outbound SSE event schemas for the date-of-birth analysis stream.

The client only ever sees three payload shapes, one per ``data:`` frame:

    data: {"chunk": "<text>"}
    data: {"end": true}
    data: {"error": "<message>"}

``end`` and ``error`` are terminal; a session writes exactly one of them and
it is always the final frame.
"""

from __future__ import annotations

from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field


SSE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    # Disable proxy buffering (nginx) so fragments reach the browser as produced
    "X-Accel-Buffering": "no",
}


class StreamEvent(BaseModel):
    """Base class for outbound events; `to_sse` is the only wire encoder."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    terminal: ClassVar[bool] = False

    def to_sse(self) -> str:
        """Serialize the event as one SSE frame.

        Encoding is a pure function of the field values, so the same event
        always produces byte-identical output.
        """
        return f"data: {self.model_dump_json()}\n\n"


class ChunkEvent(StreamEvent):
    """A non-empty text fragment."""

    chunk: str = Field(..., min_length=1)


class EndEvent(StreamEvent):
    """Terminal success marker."""

    end: Literal[True] = True
    terminal: ClassVar[bool] = True


class ErrorEvent(StreamEvent):
    """Terminal failure marker; mutually exclusive with `EndEvent`."""

    error: str = Field(..., min_length=1)
    terminal: ClassVar[bool] = True
