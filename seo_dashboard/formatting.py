from __future__ import annotations

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from seo_dashboard.models import DateRangeSelector


EMPTY_VALUE = "—"
NEUTRAL_GROWTH_VALUES = {"0%", "+0.0%", "-0.0%", EMPTY_VALUE}
DATE_RANGE_LABELS = {
    DateRangeSelector.LAST_28_DAYS: "Last 28 Days",
    DateRangeSelector.LAST_30_DAYS: "Last 30 Days",
    DateRangeSelector.LAST_3_MONTHS: "Last 3 Months",
    DateRangeSelector.LAST_6_MONTHS: "Last 6 Months",
}


def _to_fixed(value: float, digits: int) -> str:
    # Ties round away from zero on the exact binary value.
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def _plain_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_number(value: float | None) -> str:
    if value is None:
        return EMPTY_VALUE
    if float(value).is_integer():
        return f"{int(value):,}"
    text = f"{float(_to_fixed(value, 3)):,.3f}"
    return text.rstrip("0").rstrip(".")


def short_format_number(value: float | None) -> str:
    if value is None:
        return EMPTY_VALUE
    if value >= 1_000_000:
        return f"{_to_fixed(value / 1_000_000, 1)}M"
    if value >= 1_000:
        return f"{_to_fixed(value / 1_000, 1)}K"
    return _plain_number(value)


def format_percentage(value: float | None, fraction_digits: int = 2) -> str:
    if value is None:
        return EMPTY_VALUE
    return f"{_to_fixed(value * 100, fraction_digits)}%"


def format_decimal(value: float | None, fraction_digits: int = 1) -> str:
    if value is None:
        return EMPTY_VALUE
    return _to_fixed(value, fraction_digits)


def calculate_growth(current: float | None, previous: float | None) -> str:
    """Period-over-period change as a signed percentage string.

    A zero baseline cannot produce a ratio: growth from nothing reads as
    ``+100%``, no movement as ``0%`` and a negative current value as ``—``.
    """
    if current is None or previous is None:
        return EMPTY_VALUE
    if previous == 0:
        if current == 0:
            return "0%"
        return "+100%" if current > 0 else EMPTY_VALUE
    percentage = (current - previous) / previous
    formatted = format_percentage(percentage, 1)
    return f"+{formatted}" if percentage >= 0 else formatted


def get_growth_type(change: str | None) -> str:
    if change is None or change in NEUTRAL_GROWTH_VALUES:
        return "neutral"
    return "decrease" if change.startswith("-") else "increase"


def parse_date(value: str) -> date:
    """Parse GA4 ``YYYYMMDD`` or ISO ``YYYY-MM-DD`` dates."""
    text = value.strip()
    if re.fullmatch(r"\d{8}", text):
        return date(int(text[:4]), int(text[4:6]), int(text[6:8]))
    return date.fromisoformat(text[:10])


def _coerce_date(value: date | str) -> date:
    return value if isinstance(value, date) else parse_date(value)


def format_date_range(start: date | str, end: date | str) -> str:
    start_day = _coerce_date(start)
    end_day = _coerce_date(end)
    return (
        f"{start_day:%b} {start_day.day}, {start_day.year} - "
        f"{end_day:%b} {end_day.day}, {end_day.year}"
    )


def days_between(start: date | str, end: date | str) -> int:
    return abs((_coerce_date(end) - _coerce_date(start)).days)


def format_date_range_label(selector: DateRangeSelector | str) -> str:
    return DATE_RANGE_LABELS[DateRangeSelector(selector)]


def strip_markdown_emphasis(text: str) -> str:
    return re.sub(r"\*+|__", "", text or "")
