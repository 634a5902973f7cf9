"""Tests for the local fallback fragment generator."""

from __future__ import annotations

from datetime import date

import pytest

from services.dob_analyzer import analyze_dob
from services.stream.fallback import (
    FALLBACK_NOTICES,
    FallbackGenerator,
    render_report,
    split_words,
)


@pytest.fixture
def facts():
    return analyze_dob(date(2000, 7, 20), date(2026, 10, 19), "en")


@pytest.mark.parametrize(
    "text",
    [
        "one two  three",
        "  leading and trailing  ",
        "# Title\n\n- item\n- item two\n",
        "single",
    ],
)
def test_split_words_reproduces_text(text: str):
    fragments = split_words(text)
    assert "".join(fragments) == text
    assert all(f.strip() for f in fragments)


def test_notice_only_without_facts():
    generator = FallbackGenerator("en")
    assert "".join(generator.fragments()) == FALLBACK_NOTICES["en"]
    assert generator.fragments()[0] == "This "


def test_report_with_facts(facts):
    generator = FallbackGenerator("en", facts=facts)
    text = "".join(generator.fragments())

    assert text == render_report(facts, "en")
    assert "**Your Age:** 26 years, 2 months, and 29 days" in text
    assert "**Zodiac Sign:** Cancer" in text
    assert "Alexander the Great, Gisele Bündchen" in text
    assert "9,587 days old" in text
    assert text.endswith(f"*{FALLBACK_NOTICES['en']}*")


def test_vietnamese_report_uses_localized_lists():
    facts = analyze_dob(date(1990, 1, 1), date(2026, 10, 19), "vi")
    text = render_report(facts, "vi")
    assert "Tuổi của bạn" in text
    assert "- Xây dựng sự nghiệp" in text
    assert text.endswith(f"*{FALLBACK_NOTICES['vi']}*")


def test_fragments_are_deterministic(facts):
    first = FallbackGenerator("vi", facts=facts).fragments()
    second = FallbackGenerator("vi", facts=facts).fragments()
    assert first == second


@pytest.mark.asyncio
async def test_stream_is_paced_between_fragments():
    delays: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    generator = FallbackGenerator("en", delay=0.03, sleep=fake_sleep)
    fragments = [f async for f in generator.stream()]

    assert fragments == generator.fragments()
    assert delays == [0.03] * (len(fragments) - 1)


@pytest.mark.asyncio
async def test_zero_delay_never_sleeps():
    async def fail_sleep(seconds: float) -> None:  # pragma: no cover
        raise AssertionError("should not sleep")

    generator = FallbackGenerator("vi", delay=0, sleep=fail_sleep)
    fragments = [f async for f in generator.stream()]
    assert "".join(fragments) == FALLBACK_NOTICES["vi"]
