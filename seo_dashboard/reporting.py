from __future__ import annotations

from typing import Any, Union

from seo_dashboard.formatting import (
    EMPTY_VALUE,
    format_date_range,
    format_decimal,
    format_number,
    format_percentage,
    short_format_number,
    strip_markdown_emphasis,
)
from seo_dashboard.models import (
    AuthorAggregate,
    DateWindow,
    DiagnosticPair,
    Kpi,
    MetricRow,
    Report,
    ValueKind,
)


DataItem = Union[MetricRow, AuthorAggregate, DiagnosticPair]

METRIC_ROW_HEADERS = ("Key", "Clicks", "Impressions", "CTR", "Avg. Position")
AUTHOR_HEADERS = ("Author", "Articles", "Total Pageviews", "Avg Pageviews/Article")
DIAGNOSTIC_HEADERS = ("Property", "Value")


def format_value(value: Any, kind: ValueKind) -> str:
    """Display string for a raw report value; ``None`` becomes ``—``."""
    if value is None:
        return EMPTY_VALUE
    if isinstance(value, DateWindow):
        return format_date_range(value.start, value.end)
    if kind is ValueKind.COUNT:
        return format_number(value)
    if kind is ValueKind.RATIO:
        return format_decimal(value, 2)
    if kind is ValueKind.PERCENTAGE:
        return format_percentage(value)
    if kind is ValueKind.POSITION:
        return format_decimal(value)
    return str(value)


def kpi_display_value(kpi: Kpi) -> str:
    if kpi.kind is ValueKind.COUNT and kpi.value is not None:
        return short_format_number(kpi.value)
    return format_value(kpi.value, kpi.kind)


def headers_for(item: DataItem) -> tuple[str, ...]:
    if isinstance(item, MetricRow):
        return METRIC_ROW_HEADERS
    if isinstance(item, AuthorAggregate):
        return AUTHOR_HEADERS
    if isinstance(item, DiagnosticPair):
        return DIAGNOSTIC_HEADERS
    raise TypeError(f"Unsupported table item: {type(item).__name__}")


def table_cells(item: DataItem) -> list[str]:
    if isinstance(item, MetricRow):
        return [
            item.key,
            format_number(item.clicks),
            format_number(item.impressions),
            format_percentage(item.ctr),
            format_decimal(item.position),
        ]
    if isinstance(item, AuthorAggregate):
        return [
            item.author,
            format_number(item.article_count),
            format_number(item.total_views),
            format_number(round(item.avg_views_per_article)),
        ]
    if isinstance(item, DiagnosticPair):
        return [item.property, format_value(item.value, item.kind)]
    raise TypeError(f"Unsupported table item: {type(item).__name__}")


def report_to_dict(report: Report) -> dict[str, Any]:
    return report.to_dict()


def insights_digest(report: Report, limit: int = 5) -> dict[str, Any]:
    """Compact slice of the report handed to the insight summarizer."""
    full = report.to_dict()
    return {
        "diagnostics": [
            {"property": item.property, "value": format_value(item.value, item.kind)}
            for item in report.diagnostics
        ],
        "topKeywords": full["web"]["keywords"][:limit],
        "topUrlsWeb": full["web"]["urls"][:limit],
        "topUrlsDiscover": full["discover"]["urls"][:limit],
        "topAuthors": full["authors"][:limit],
    }


def plain_text_insights(text: str) -> list[str]:
    """Insight lines without markdown emphasis or bullet markers."""
    lines: list[str] = []
    for raw_line in strip_markdown_emphasis(text).splitlines():
        line = raw_line.strip().lstrip("-").strip()
        if line:
            lines.append(line)
    return lines
