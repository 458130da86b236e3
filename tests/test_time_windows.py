from datetime import date, timedelta

import pytest

from seo_dashboard.models import DateRangeSelector, DateWindow
from seo_dashboard.time_windows import compute_date_window, compute_windows, previous_window


def test_last_28_days_ends_yesterday() -> None:
    window = compute_date_window("last-28d", today=date(2024, 6, 15))

    assert window.end == date(2024, 6, 14)
    assert window.start == date(2024, 5, 18)
    assert window.days == 28


def test_last_30_days_covers_thirty_days() -> None:
    window = compute_date_window(DateRangeSelector.LAST_30_DAYS, today=date(2024, 6, 15))

    assert window.end == date(2024, 6, 14)
    assert window.days == 30


def test_month_ranges_use_calendar_months() -> None:
    three_months = compute_date_window("last-3m", today=date(2024, 6, 15))
    six_months = compute_date_window("last-6m", today=date(2024, 6, 15))

    assert three_months == DateWindow(date(2024, 3, 15), date(2024, 6, 14))
    assert six_months == DateWindow(date(2023, 12, 15), date(2024, 6, 14))


def test_month_range_clamps_short_months() -> None:
    window = compute_date_window("last-3m", today=date(2024, 6, 1))

    # End is May 31; three months earlier clamps to Feb 29 in a leap year.
    assert window.end == date(2024, 5, 31)
    assert window.start == date(2024, 3, 1)


@pytest.mark.parametrize("selector", [item.value for item in DateRangeSelector])
def test_previous_window_is_adjacent_and_equal_length(selector: str) -> None:
    current = compute_date_window(selector, today=date(2024, 6, 15))
    previous = previous_window(current)

    assert previous.days == current.days
    assert previous.end == current.start - timedelta(days=1)
    assert previous.end < current.start


def test_previous_window_for_last_28_days() -> None:
    current, previous = compute_windows("last-28d", compare_enabled=True, today=date(2024, 6, 15))

    assert current == DateWindow(date(2024, 5, 18), date(2024, 6, 14))
    assert previous == DateWindow(date(2024, 4, 20), date(2024, 5, 17))


def test_compare_disabled_has_no_previous_window() -> None:
    current, previous = compute_windows("last-28d", compare_enabled=False, today=date(2024, 6, 15))

    assert current.days == 28
    assert previous is None


def test_unknown_selector_is_rejected() -> None:
    with pytest.raises(ValueError):
        compute_date_window("last-7d", today=date(2024, 6, 15))
