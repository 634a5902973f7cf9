"""Schemas for anonymous reader feedback on generated analyses."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


MAX_USER_AGENT_CHARS = 100
MAX_DETAILS_CHARS = 500


class FeedbackRequest(BaseModel):
    """Feedback payload posted by the browser client.

    Free-text fields are truncated rather than rejected so that a long
    user agent string never costs us the feedback itself.
    """

    type: Literal["positive", "negative", "bug", "other"]
    timestamp: str | None = None
    language: Literal["vi", "en"] | None = None
    user_agent: str | None = Field(default=None, alias="userAgent")
    details: str | None = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("user_agent")
    @classmethod
    def _truncate_user_agent(cls, v: str | None) -> str | None:
        return v[:MAX_USER_AGENT_CHARS] if v else v

    @field_validator("details")
    @classmethod
    def _truncate_details(cls, v: str | None) -> str | None:
        return v[:MAX_DETAILS_CHARS] if v else v
