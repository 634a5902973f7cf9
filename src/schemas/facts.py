"""Schemas for the deterministic facts derived from a date of birth."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


Locale = Literal["vi", "en"]
SUPPORTED_LOCALES: tuple[str, ...] = ("vi", "en")


class Age(BaseModel):
    """Calendar age broken down into whole years, months and days."""

    years: int = Field(..., ge=0)
    months: int = Field(..., ge=0, le=11)
    days: int = Field(..., ge=0, le=30)

    model_config = ConfigDict(frozen=True)


class FactBundle(BaseModel):
    """Everything the prompt and the local fallback report are built from."""

    dob: str = Field(..., description="ISO date of birth (YYYY-MM-DD)")
    locale: Locale
    age: Age
    zodiac: str
    numerology: int = Field(..., ge=1, le=9)
    numerology_fact: str
    life_stage: str
    days_old: int = Field(..., ge=0)
    famous_birthdays: str
    historical_event: str
    milestones: list[str]
    shopping_suggestions: list[str]

    model_config = ConfigDict(frozen=True)
