from __future__ import annotations

import pytest

from seo_dashboard.models import AnalyticsProperty, FilterConfiguration, normalize_property_id


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("properties/123", "123"),
        (" 123 ", "123"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_property_id(raw, expected: str) -> None:
    assert normalize_property_id(raw) == expected


def test_property_ids_share_one_normalization() -> None:
    filters = FilterConfiguration(property_id=" properties/42 ", site_id=" https://example.com/ ")

    assert filters.property_id == "42"
    assert filters.site_id == "https://example.com/"
    assert AnalyticsProperty("properties/42", "Example").short_id == "42"
    assert AnalyticsProperty("42", "Example").short_id == "42"


def test_filter_configuration_rejects_unknown_choices() -> None:
    with pytest.raises(ValueError):
        FilterConfiguration(date_range="last-7d")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        FilterConfiguration(top_n=15)  # type: ignore[arg-type]
