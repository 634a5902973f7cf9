"""Render a fact bundle into the per-locale generation prompt."""

from __future__ import annotations

from core.exceptions import PromptValidationError
from schemas.facts import FactBundle, Locale


_VI_TEMPLATE = """Phân tích chi tiết về ngày sinh {dob}:

**Thông tin cơ bản:**
- Tuổi: {years} tuổi, {months} tháng, {days} ngày
- Cung hoàng đạo: {zodiac}
- Giai đoạn cuộc sống: {life_stage}
- Số ngày đã sống: {days_old} ngày

**Tính cách và đặc điểm:**
- Cung hoàng đạo: {zodiac}
- Thần số học: Số {numerology}
- Đặc điểm tính cách dựa trên cung hoàng đạo và thần số học

**Phân tích chu kỳ cuộc sống:**
- Giai đoạn hiện tại: {life_stage}
- Các cột mốc quan trọng: {milestones}

**Sự thật thú vị:**
- Người nổi tiếng sinh cùng ngày: {famous_birthdays}
- Sự kiện lịch sử: {historical_event}

**Gợi ý mua sắm phù hợp:**
{shopping}

Hãy phân tích chi tiết và đưa ra những insight sâu sắc về cuộc sống, tính cách, và tiềm năng của người này. Sử dụng markdown để format đẹp mắt."""

_EN_TEMPLATE = """Analyze the date of birth {dob} in detail:

**Basic Information:**
- Age: {years} years, {months} months, {days} days
- Zodiac Sign: {zodiac}
- Life Stage: {life_stage}
- Days Lived: {days_old} days

**Personality and Characteristics:**
- Zodiac Sign: {zodiac}
- Numerology: Number {numerology}
- Personality traits based on zodiac sign and numerology

**Life Cycle Analysis:**
- Current Stage: {life_stage}
- Major Milestones: {milestones}

**Interesting Facts:**
- Famous people born on this date: {famous_birthdays}
- Historical event: {historical_event}

**Shopping Suggestions:**
{shopping}

Please provide a detailed analysis with deep insights about this person's life, personality, and potential. Use markdown formatting for better readability."""

TEMPLATES: dict[str, str] = {"vi": _VI_TEMPLATE, "en": _EN_TEMPLATE}

DEFAULT_MIN_LENGTH = 100


def validate_prompt(prompt: str | None, *, min_length: int = DEFAULT_MIN_LENGTH) -> str:
    """Reject prompts that are obviously broken before they reach a backend."""
    if not prompt or not isinstance(prompt, str):
        raise PromptValidationError("Prompt is empty")
    if len(prompt) < min_length:
        raise PromptValidationError(
            f"Prompt is too short ({len(prompt)} < {min_length} characters)"
        )
    return prompt


def build_prompt(
    facts: FactBundle, locale: Locale, *, min_length: int = DEFAULT_MIN_LENGTH
) -> str:
    template = TEMPLATES.get(locale, _EN_TEMPLATE)
    prompt = template.format(
        dob=facts.dob,
        years=facts.age.years,
        months=facts.age.months,
        days=facts.age.days,
        zodiac=facts.zodiac,
        life_stage=facts.life_stage,
        days_old=facts.days_old,
        numerology=facts.numerology,
        milestones=", ".join(facts.milestones),
        famous_birthdays=facts.famous_birthdays,
        historical_event=facts.historical_event,
        shopping="\n".join(f"- {item}" for item in facts.shopping_suggestions),
    )
    return validate_prompt(prompt, min_length=min_length)
