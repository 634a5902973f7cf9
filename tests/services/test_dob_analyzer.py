"""Tests for the deterministic date-of-birth fact computations."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from core.exceptions import InvalidInputError
from services.dob_analyzer import (
    analyze_dob,
    calculate_age,
    life_stage,
    numerology_number,
    parse_birth_date,
    parse_locale,
    today_in_offset,
    zodiac_sign,
)


TODAY = date(2026, 10, 19)


@pytest.mark.parametrize(
    ("birth", "today", "expected"),
    [
        (date(2000, 7, 20), TODAY, (26, 2, 29)),
        (date(2000, 10, 19), TODAY, (26, 0, 0)),
        (date(2000, 10, 20), TODAY, (25, 11, 29)),
        (date(1990, 12, 25), TODAY, (35, 9, 24)),
        (TODAY, TODAY, (0, 0, 0)),
        # Month-end anniversaries clamp to the last day of shorter months
        (date(2000, 1, 31), date(2000, 3, 1), (0, 1, 1)),
        (date(2004, 2, 29), date(2005, 2, 28), (1, 0, 0)),
        (date(2004, 2, 29), date(2005, 3, 1), (1, 0, 1)),
    ],
)
def test_calculate_age_reference_table(birth, today, expected):
    age = calculate_age(birth, today)
    assert (age.years, age.months, age.days) == expected


def test_age_is_consistent_over_many_dates():
    for offset in range(0, 30000, 37):
        birth = TODAY - timedelta(days=offset)
        age = calculate_age(birth, TODAY)
        assert age.years >= 0
        assert 0 <= age.months <= 11
        assert 0 <= age.days <= 30
        if (birth.month, birth.day) != (2, 29):
            had_birthday = (TODAY.month, TODAY.day) >= (birth.month, birth.day)
            assert age.years == TODAY.year - birth.year - (0 if had_birthday else 1)


def test_calculate_age_rejects_future():
    with pytest.raises(InvalidInputError):
        calculate_age(date(2030, 1, 1), TODAY)


@pytest.mark.parametrize(
    ("month", "day", "sign"),
    [
        (1, 19, "Capricorn"),
        (1, 20, "Aquarius"),
        (2, 18, "Aquarius"),
        (2, 19, "Pisces"),
        (3, 20, "Pisces"),
        (3, 21, "Aries"),
        (4, 19, "Aries"),
        (4, 20, "Taurus"),
        (5, 20, "Taurus"),
        (5, 21, "Gemini"),
        (6, 20, "Gemini"),
        (6, 21, "Cancer"),
        (7, 22, "Cancer"),
        (7, 23, "Leo"),
        (8, 22, "Leo"),
        (8, 23, "Virgo"),
        (9, 22, "Virgo"),
        (9, 23, "Libra"),
        (10, 22, "Libra"),
        (10, 23, "Scorpio"),
        (11, 21, "Scorpio"),
        (11, 22, "Sagittarius"),
        (12, 21, "Sagittarius"),
        (12, 22, "Capricorn"),
        (12, 31, "Capricorn"),
    ],
)
def test_zodiac_boundaries(month, day, sign):
    assert zodiac_sign(date(2001, month, day)) == sign


@pytest.mark.parametrize(
    ("birth", "number"),
    [
        (date(2000, 7, 20), 2),
        (date(1990, 1, 1), 3),
        (date(1999, 9, 9), 1),
        (date(2001, 1, 1), 5),
    ],
)
def test_numerology_number(birth, number):
    assert numerology_number(birth) == number


@pytest.mark.parametrize(
    ("years", "stage"),
    [
        (0, "Childhood"),
        (12, "Childhood"),
        (13, "Adolescence"),
        (19, "Adolescence"),
        (20, "Young Adult"),
        (39, "Young Adult"),
        (40, "Middle Age"),
        (59, "Middle Age"),
        (60, "Senior"),
        (101, "Senior"),
    ],
)
def test_life_stage(years, stage):
    assert life_stage(years) == stage


def test_analyze_dob_english_bundle():
    facts = analyze_dob(date(2000, 7, 20), TODAY, "en")

    assert facts.dob == "2000-07-20"
    assert facts.locale == "en"
    assert facts.zodiac == "Cancer"
    assert facts.numerology == 2
    assert facts.numerology_fact == "Harmony and partnership."
    assert facts.life_stage == "Young Adult"
    assert facts.days_old == 9587
    assert facts.famous_birthdays == "Alexander the Great, Gisele Bündchen"
    assert facts.historical_event == "Instagram was launched."
    assert facts.milestones == ["Building a career", "Seeking stability", "Personal growth"]
    assert facts.shopping_suggestions == [
        "Moonstone",
        "Family photo frame",
        "Scented candles",
        "Office decor, a watch, feng shui items for your career",
    ]


def test_analyze_dob_vietnamese_bundle():
    facts = analyze_dob(date(1990, 12, 25), TODAY, "vi")

    assert facts.zodiac == "Capricorn"
    assert facts.famous_birthdays == "Isaac Newton, Justin Trudeau"
    assert facts.historical_event == "Y2K bug was a big topic!"
    assert facts.milestones[0] == "Xây dựng sự nghiệp"
    assert facts.shopping_suggestions[0] == "Đá mã não"
    assert facts.shopping_suggestions[-1].startswith("Đồ decor văn phòng")


def test_analyze_dob_defaults_for_unknown_dates():
    facts = analyze_dob(date(1985, 3, 3), TODAY, "en")
    assert facts.famous_birthdays == "No major celebrities found"
    assert facts.historical_event == "No major event found for that year."


@pytest.mark.parametrize(
    "value",
    ["not-a-date", "2000-02-30", "2000-7-20", "20000720", "", None, "2000-07-20T00:00"],
)
def test_parse_birth_date_rejects_bad_format(value):
    with pytest.raises(InvalidInputError, match="Invalid date format"):
        parse_birth_date(value, TODAY)


def test_parse_birth_date_rejects_future():
    with pytest.raises(InvalidInputError, match="future"):
        parse_birth_date("2026-10-20", TODAY)


def test_parse_birth_date_accepts_today_and_strips_whitespace():
    assert parse_birth_date(" 2026-10-19 ", TODAY) == TODAY


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, "vi"), ("", "vi"), ("en", "en"), ("EN", "en"), ("vi", "vi")],
)
def test_parse_locale(value, expected):
    assert parse_locale(value, "vi") == expected


def test_parse_locale_rejects_unknown():
    with pytest.raises(InvalidInputError, match="Invalid language parameter"):
        parse_locale("fr", "vi")


def test_today_in_offset_crosses_midnight():
    assert today_in_offset(7, now=datetime(2026, 10, 18, 17, 0, tzinfo=UTC)) == TODAY
    assert today_in_offset(7, now=datetime(2026, 10, 18, 16, 59, tzinfo=UTC)) == date(
        2026, 10, 18
    )
