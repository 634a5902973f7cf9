"""Date-of-birth analysis endpoints: the SSE stream and the plain facts."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from core.config import Settings, get_settings
from dependencies.relay import get_stream_relay
from schemas.api import ApiResponse
from schemas.facts import FactBundle
from schemas.stream import SSE_HEADERS
from services.dob_analyzer import (
    analyze_dob,
    parse_birth_date,
    parse_locale,
    today_in_offset,
)
from services.stream import StreamRelay


router = APIRouter(tags=["dob"])


def _stream_response(relay: StreamRelay, dob: str | None, lang: str | None) -> StreamingResponse:
    return StreamingResponse(
        relay.stream(dob, lang),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get(
    "/process-dob",
    summary="Stream a date-of-birth analysis via Server-Sent Events",
)
async def process_dob(
    relay: Annotated[StreamRelay, Depends(get_stream_relay)],
    dob: Annotated[str | None, Query(description="Date of birth, YYYY-MM-DD")] = None,
    lang: Annotated[str | None, Query(description="Response language: vi or en")] = None,
) -> StreamingResponse:
    """Stream the analysis as SSE frames.

    Event JSON schema (one per `data:` line):
      {"chunk": "<text>"}   incremental text, zero or more
      {"end": true}         stream completed
      {"error": "<msg>"}    invalid input; replaces `end`
    """
    return _stream_response(relay, dob, lang)


@router.get(
    "/process-dob/{dob}",
    summary="Stream a date-of-birth analysis (date in the path)",
)
async def process_dob_path(
    dob: str,
    relay: Annotated[StreamRelay, Depends(get_stream_relay)],
    lang: Annotated[str | None, Query(description="Response language: vi or en")] = None,
) -> StreamingResponse:
    return _stream_response(relay, dob, lang)


@router.get("/dob/facts", response_model=ApiResponse[FactBundle])
async def get_dob_facts(
    settings: Annotated[Settings, Depends(get_settings)],
    dob: Annotated[str, Query(description="Date of birth, YYYY-MM-DD")],
    lang: Annotated[str | None, Query(description="Response language: vi or en")] = None,
) -> ApiResponse[FactBundle]:
    """Return the deterministic facts without generating any narrative."""
    today = today_in_offset(settings.UTC_OFFSET_HOURS)
    birth = parse_birth_date(dob, today)
    locale = parse_locale(lang, settings.DEFAULT_LOCALE)
    return ApiResponse(
        data=analyze_dob(birth, today, locale),
        message="Date of birth analyzed",
    )
