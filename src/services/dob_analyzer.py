"""Deterministic facts derived from a date of birth.

Everything here is pure: `today` is always passed in so callers (and tests)
control the reference date. `today_in_offset` gives the service's notion of
"today" in the configured fixed UTC offset.
"""

from __future__ import annotations

import calendar
from datetime import UTC, date, datetime, timedelta

from core.exceptions import InvalidInputError
from schemas.facts import SUPPORTED_LOCALES, Age, FactBundle, Locale


DATE_FORMAT = "%Y-%m-%d"

# (sign, first month, first day); a sign runs until the next entry starts
_ZODIAC_STARTS: tuple[tuple[str, int, int], ...] = (
    ("Capricorn", 1, 1),
    ("Aquarius", 1, 20),
    ("Pisces", 2, 19),
    ("Aries", 3, 21),
    ("Taurus", 4, 20),
    ("Gemini", 5, 21),
    ("Cancer", 6, 21),
    ("Leo", 7, 23),
    ("Virgo", 8, 23),
    ("Libra", 9, 23),
    ("Scorpio", 10, 23),
    ("Sagittarius", 11, 22),
    ("Capricorn", 12, 22),
)

NUMEROLOGY_FACTS: dict[int, str] = {
    1: "Leadership and independence.",
    2: "Harmony and partnership.",
    3: "Creativity and joy.",
    4: "Stability and discipline.",
    5: "Adventure and freedom.",
    6: "Care and responsibility.",
    7: "Intellect and introspection.",
    8: "Power and ambition.",
    9: "Compassion and idealism.",
}

FAMOUS_BIRTHDAYS: dict[str, str] = {
    "01-01": "Paul Revere, Verne Troyer",
    "07-20": "Alexander the Great, Gisele Bündchen",
    "12-25": "Isaac Newton, Justin Trudeau",
}
NO_FAMOUS_BIRTHDAYS = "No major celebrities found"

HISTORICAL_EVENTS: dict[int, str] = {
    2000: "Y2K bug was a big topic!",
    2010: "Instagram was launched.",
    2020: "Global COVID-19 pandemic.",
}
NO_HISTORICAL_EVENT = "No major event found for that year."
HISTORICAL_EVENT_YEARS_AFTER = 10

# Upper age bound (exclusive) per life stage; the last stage is open-ended
LIFE_STAGES: tuple[tuple[int | None, str], ...] = (
    (13, "Childhood"),
    (20, "Adolescence"),
    (40, "Young Adult"),
    (60, "Middle Age"),
    (None, "Senior"),
)

_MILESTONES: dict[str, dict[str, list[str]]] = {
    "vi": {
        "Childhood": [
            "Khám phá bản thân",
            "Học hỏi kỹ năng cơ bản",
            "Tạo dựng nền tảng gia đình",
        ],
        "Adolescence": [
            "Phát triển cá tính",
            "Tìm kiếm đam mê",
            "Kết bạn và xây dựng các mối quan hệ",
        ],
        "Young Adult": [
            "Xây dựng sự nghiệp",
            "Tìm kiếm sự ổn định",
            "Phát triển bản thân",
        ],
        "Middle Age": [
            "Ổn định tài chính",
            "Chia sẻ kinh nghiệm",
            "Chăm sóc sức khỏe",
        ],
        "Senior": [
            "Tận hưởng cuộc sống",
            "Gắn kết gia đình",
            "Truyền cảm hứng cho thế hệ sau",
        ],
    },
    "en": {
        "Childhood": [
            "Discovering yourself",
            "Learning the basics",
            "Building family foundations",
        ],
        "Adolescence": [
            "Shaping your personality",
            "Finding your passions",
            "Making friends and building relationships",
        ],
        "Young Adult": [
            "Building a career",
            "Seeking stability",
            "Personal growth",
        ],
        "Middle Age": [
            "Financial stability",
            "Sharing experience",
            "Taking care of your health",
        ],
        "Senior": [
            "Enjoying life",
            "Bonding with family",
            "Inspiring the next generation",
        ],
    },
}

_ZODIAC_SHOPPING: dict[str, dict[str, list[str]]] = {
    "vi": {
        "Aries": ["Đá ruby", "Vật phẩm màu đỏ", "Đồng hồ thể thao"],
        "Taurus": ["Đá thạch anh hồng", "Cây xanh nhỏ", "Đồ trang trí gốm"],
        "Gemini": ["Sách", "Bút ký", "Phụ kiện đa năng"],
        "Cancer": ["Đá mặt trăng", "Khung ảnh gia đình", "Nến thơm"],
        "Leo": ["Đá mắt hổ", "Trang sức vàng", "Đồ decor sang trọng"],
        "Virgo": ["Đá ngọc lục bảo", "Sổ tay", "Cây để bàn"],
        "Libra": ["Đá thạch anh tím", "Nước hoa", "Tranh nghệ thuật"],
        "Scorpio": ["Đá obsidian", "Vòng tay phong thuỷ", "Nước hoa bí ẩn"],
        "Sagittarius": ["Đá ngọc lam", "Balo du lịch", "Sách khám phá"],
        "Capricorn": ["Đá mã não", "Đồng hồ", "Vật phẩm màu nâu/xám"],
        "Aquarius": ["Đá sapphire", "Đồ công nghệ", "Phụ kiện độc lạ"],
        "Pisces": ["Đá aquamarine", "Đèn ngủ", "Đồ decor biển"],
    },
    "en": {
        "Aries": ["Ruby stone", "Red accessories", "Sports watch"],
        "Taurus": ["Rose quartz", "Small houseplant", "Ceramic decor"],
        "Gemini": ["Books", "Signature pen", "Multi-purpose gadgets"],
        "Cancer": ["Moonstone", "Family photo frame", "Scented candles"],
        "Leo": ["Tiger's eye stone", "Gold jewelry", "Luxury home decor"],
        "Virgo": ["Emerald", "Notebook", "Desk plant"],
        "Libra": ["Amethyst", "Perfume", "Art print"],
        "Scorpio": ["Obsidian", "Feng shui bracelet", "Mysterious fragrance"],
        "Sagittarius": ["Turquoise", "Travel backpack", "Exploration books"],
        "Capricorn": ["Agate", "Classic watch", "Brown or grey accessories"],
        "Aquarius": ["Sapphire", "Tech gadgets", "Quirky accessories"],
        "Pisces": ["Aquamarine", "Night lamp", "Ocean-themed decor"],
    },
}

_AGE_SHOPPING: dict[str, dict[str, str]] = {
    "vi": {
        "Childhood": "Đồ chơi giáo dục, sách tranh, vật phẩm an toàn cho trẻ nhỏ",
        "Adolescence": "Sách phát triển bản thân, phụ kiện cá tính, đồ thể thao",
        "Young Adult": "Đồ decor văn phòng, đồng hồ, vật phẩm phong thuỷ cho sự nghiệp",
        "Middle Age": "Đồ chăm sóc sức khoẻ, cây cảnh, vật phẩm thư giãn",
        "Senior": "Đồ dưỡng sinh, vật phẩm an lạc, sách truyền cảm hứng",
    },
    "en": {
        "Childhood": "Educational toys, picture books, child-safe items",
        "Adolescence": "Self-development books, personal accessories, sports gear",
        "Young Adult": "Office decor, a watch, feng shui items for your career",
        "Middle Age": "Health care products, bonsai, relaxation items",
        "Senior": "Wellness products, calming keepsakes, inspiring books",
    },
}


def today_in_offset(hours: int, *, now: datetime | None = None) -> date:
    """Return the calendar date at a fixed UTC offset (default service: GMT+7)."""
    current = now or datetime.now(UTC)
    return (current.astimezone(UTC) + timedelta(hours=hours)).date()


def parse_birth_date(value: str | None, today: date) -> date:
    """Parse a strict ``YYYY-MM-DD`` birth date that is not in the future."""
    if not value:
        raise InvalidInputError("Invalid date format")
    try:
        birth = datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError as exc:
        raise InvalidInputError("Invalid date format") from exc
    # strptime tolerates unpadded fields; the wire format does not
    if birth.isoformat() != value.strip():
        raise InvalidInputError("Invalid date format")
    if birth > today:
        raise InvalidInputError("Date of birth cannot be in the future")
    return birth


def parse_locale(value: str | None, default: Locale) -> Locale:
    if value is None or value == "":
        return default
    normalized = value.strip().lower()
    if normalized not in SUPPORTED_LOCALES:
        raise InvalidInputError("Invalid language parameter")
    return normalized  # type: ignore[return-value]


def _add_months(start: date, months: int) -> date:
    year, month_index = divmod(start.month - 1 + months, 12)
    year += start.year
    month = month_index + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_age(birth: date, today: date) -> Age:
    """Calendar age: whole months since birth, then the days left over.

    Month anniversaries that fall on a non-existent day (e.g. the 31st) are
    clamped to the last day of that month.
    """
    if birth > today:
        raise InvalidInputError("Date of birth cannot be in the future")
    total_months = (today.year - birth.year) * 12 + (today.month - birth.month)
    if _add_months(birth, total_months) > today:
        total_months -= 1
    anniversary = _add_months(birth, total_months)
    years, months = divmod(total_months, 12)
    return Age(years=years, months=months, days=(today - anniversary).days)


def zodiac_sign(birth: date) -> str:
    sign = _ZODIAC_STARTS[0][0]
    for name, month, day in _ZODIAC_STARTS:
        if (birth.month, birth.day) >= (month, day):
            sign = name
    return sign


def numerology_number(birth: date) -> int:
    """Digit sum of YYYYMMDD, reduced until a single digit remains."""
    total = sum(int(ch) for ch in birth.strftime("%Y%m%d"))
    while total > 9:
        total = sum(int(ch) for ch in str(total))
    return total


def life_stage(years: int) -> str:
    for upper, label in LIFE_STAGES:
        if upper is None or years < upper:
            return label
    return LIFE_STAGES[-1][1]


def shopping_suggestions(zodiac: str, stage: str, locale: Locale) -> list[str]:
    items = list(_ZODIAC_SHOPPING[locale].get(zodiac, []))
    items.append(_AGE_SHOPPING[locale][stage])
    return items


def analyze_dob(birth: date, today: date, locale: Locale) -> FactBundle:
    """Compute the full fact bundle for a validated birth date."""
    age = calculate_age(birth, today)
    zodiac = zodiac_sign(birth)
    number = numerology_number(birth)
    stage = life_stage(age.years)

    return FactBundle(
        dob=birth.isoformat(),
        locale=locale,
        age=age,
        zodiac=zodiac,
        numerology=number,
        numerology_fact=NUMEROLOGY_FACTS[number],
        life_stage=stage,
        days_old=(today - birth).days,
        famous_birthdays=FAMOUS_BIRTHDAYS.get(
            birth.strftime("%m-%d"), NO_FAMOUS_BIRTHDAYS
        ),
        historical_event=HISTORICAL_EVENTS.get(
            birth.year + HISTORICAL_EVENT_YEARS_AFTER, NO_HISTORICAL_EVENT
        ),
        milestones=list(_MILESTONES[locale][stage]),
        shopping_suggestions=shopping_suggestions(zodiac, stage, locale),
    )
