"""Locally synthesized stream used when no upstream backend can serve.

The fallback has the same outbound shape as a real backend: a paced sequence
of word-sized fragments whose concatenation is exactly the rendered text. It
never touches the network and cannot fail.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator, Awaitable, Callable

from schemas.facts import FactBundle, Locale


DEFAULT_DELAY_SECONDS = 0.03

FALLBACK_NOTICES: dict[str, str] = {
    "en": "This analysis was generated using local calculations while AI services are unavailable.",
    "vi": "Phân tích này được tạo ra bằng các tính toán cục bộ khi dịch vụ AI không khả dụng.",
}

# A word plus the whitespace around it; consecutive matches tile the text
_WORD_PATTERN = re.compile(r"\s*\S+\s*")

_EN_REPORT = """# Personal Insights Analysis

## Basic Information
**Your Age:** {years} years, {months} months, and {days} days
**Zodiac Sign:** {zodiac}
**Life Stage:** {life_stage}

## Personality Traits
**Zodiac:** {zodiac}
**Key Traits:** Based on your zodiac sign, you likely possess unique characteristics that define your personality.
**Numerology:** Your number is {numerology} - {numerology_fact}

## Life Cycle Analysis
**Current Stage:** {life_stage}
**Major Milestones:**
{milestones}

## Interesting Facts
You are approximately **{days_old:,} days old**.
Famous people born on your date: {famous_birthdays}
On your 10th birthday, this happened: {historical_event}

## Shopping Suggestions
**Suggestions for {zodiac}:**
{shopping}

*{notice}*"""

_VI_REPORT = """# Phân tích Thông tin Cá nhân

## Thông tin cơ bản
**Tuổi của bạn:** {years} tuổi, {months} tháng, và {days} ngày
**Cung hoàng đạo:** {zodiac}
**Giai đoạn cuộc sống:** {life_stage}

## Tính cách
**Cung hoàng đạo:** {zodiac}
**Đặc điểm chính:** Dựa trên cung hoàng đạo của bạn, bạn có khả năng sở hữu những đặc điểm độc đáo định nghĩa tính cách của mình.
**Thần số học:** Số của bạn là {numerology} - {numerology_fact}

## Phân tích Chu kỳ Cuộc sống
**Giai đoạn hiện tại:** {life_stage}
**Các cột mốc quan trọng:**
{milestones}

## Sự thật thú vị
Bạn đã sống khoảng **{days_old:,} ngày**.
Những người nổi tiếng sinh cùng ngày: {famous_birthdays}
Vào sinh nhật thứ 10 của bạn, điều này đã xảy ra: {historical_event}

## Gợi ý mua sắm
**Gợi ý cho {zodiac}:**
{shopping}

*{notice}*"""

_REPORTS: dict[str, str] = {"en": _EN_REPORT, "vi": _VI_REPORT}


def render_report(facts: FactBundle, locale: Locale) -> str:
    """Render the markdown report built purely from local facts."""
    return _REPORTS[locale].format(
        years=facts.age.years,
        months=facts.age.months,
        days=facts.age.days,
        zodiac=facts.zodiac,
        life_stage=facts.life_stage,
        numerology=facts.numerology,
        numerology_fact=facts.numerology_fact,
        milestones="\n".join(f"- {m}" for m in facts.milestones),
        days_old=facts.days_old,
        famous_birthdays=facts.famous_birthdays,
        historical_event=facts.historical_event,
        shopping="\n".join(f"- {s}" for s in facts.shopping_suggestions),
        notice=FALLBACK_NOTICES[locale],
    )


def split_words(text: str) -> list[str]:
    return _WORD_PATTERN.findall(text)


class FallbackGenerator:
    """Paced, deterministic fragment sequence for one session.

    With `facts`, the full local report is streamed (used when nothing real
    reached the client yet); without, only the short notice.
    """

    def __init__(
        self,
        locale: Locale,
        *,
        delay: float = DEFAULT_DELAY_SECONDS,
        facts: FactBundle | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.locale = locale
        self.delay = delay
        self.facts = facts
        self._sleep = sleep

    def text(self) -> str:
        if self.facts is not None:
            return render_report(self.facts, self.locale)
        return FALLBACK_NOTICES[self.locale]

    def fragments(self) -> list[str]:
        return split_words(self.text())

    async def stream(self) -> AsyncIterator[str]:
        for index, fragment in enumerate(self.fragments()):
            if index and self.delay > 0:
                await self._sleep(self.delay)
            yield fragment
