from __future__ import annotations

import calendar
from datetime import date, timedelta

from seo_dashboard.models import DateRangeSelector, DateWindow


DAY_RANGES = {
    DateRangeSelector.LAST_28_DAYS: 28,
    DateRangeSelector.LAST_30_DAYS: 30,
}
MONTH_RANGES = {
    DateRangeSelector.LAST_3_MONTHS: 3,
    DateRangeSelector.LAST_6_MONTHS: 6,
}


def _shift_months(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def compute_date_window(
    selector: DateRangeSelector | str,
    today: date | None = None,
) -> DateWindow:
    """Window for a date-range selector, ending yesterday (today is incomplete).

    Day ranges cover exactly N days. Month ranges start the day after the
    same calendar day N months before the end date.
    """
    selector = DateRangeSelector(selector)
    today = today or date.today()
    end = today - timedelta(days=1)
    if selector in DAY_RANGES:
        start = end - timedelta(days=DAY_RANGES[selector] - 1)
    else:
        start = _shift_months(end, -MONTH_RANGES[selector]) + timedelta(days=1)
    return DateWindow(start=start, end=end)


def previous_window(window: DateWindow) -> DateWindow:
    """Equal-length window immediately before ``window``, no gap or overlap."""
    end = window.start - timedelta(days=1)
    start = end - timedelta(days=window.days - 1)
    return DateWindow(start=start, end=end)


def compute_windows(
    selector: DateRangeSelector | str,
    compare_enabled: bool,
    today: date | None = None,
) -> tuple[DateWindow, DateWindow | None]:
    """Current window and, when comparing, the window right before it."""
    current = compute_date_window(selector, today)
    return current, previous_window(current) if compare_enabled else None
