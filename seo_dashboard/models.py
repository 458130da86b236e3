from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any


class DateRangeSelector(str, Enum):
    LAST_28_DAYS = "last-28d"
    LAST_30_DAYS = "last-30d"
    LAST_3_MONTHS = "last-3m"
    LAST_6_MONTHS = "last-6m"


class TopN(int, Enum):
    TEN = 10
    TWENTY_FIVE = 25
    FIFTY = 50


class SearchType(str, Enum):
    WEB = "web"
    DISCOVER = "discover"


class Dimension(str, Enum):
    QUERY = "query"
    PAGE = "page"
    COUNTRY = "country"
    DEVICE = "device"
    DATE = "date"


class ValueKind(str, Enum):
    COUNT = "count"
    RATIO = "ratio"
    PERCENTAGE = "percentage"
    POSITION = "position"
    TEXT = "text"


def normalize_property_id(raw: str | None) -> str:
    """Bare GA4 property id; ``properties/123`` and ``123`` both give ``123``."""
    value = str(raw or "").strip()
    if value.startswith("properties/"):
        value = value.split("/", 1)[1]
    return value


@dataclass(frozen=True)
class DateWindow:
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    @property
    def start_iso(self) -> str:
        return self.start.isoformat()

    @property
    def end_iso(self) -> str:
        return self.end.isoformat()

    def __str__(self) -> str:
        return f"{self.start_iso} to {self.end_iso}"


@dataclass(frozen=True)
class FilterConfiguration:
    """Dashboard filter state; enum fields accept their raw string/int values."""

    date_range: DateRangeSelector = DateRangeSelector.LAST_28_DAYS
    compare_enabled: bool = True
    top_n: TopN = TopN.TEN
    author_analysis_enabled: bool = True
    property_id: str = ""
    site_id: str = ""

    def __post_init__(self) -> None:
        # Unknown selector or top-N values raise ValueError here.
        object.__setattr__(self, "date_range", DateRangeSelector(self.date_range))
        object.__setattr__(self, "top_n", TopN(self.top_n))
        object.__setattr__(self, "property_id", normalize_property_id(self.property_id))
        object.__setattr__(self, "site_id", str(self.site_id or "").strip())


@dataclass(frozen=True)
class MetricRow:
    key: str
    clicks: int
    impressions: int
    ctr: float
    position: float | None = None


@dataclass(frozen=True)
class TimePoint:
    date: date
    sessions: int | None = None
    clicks: int | None = None
    impressions: int | None = None


@dataclass(frozen=True)
class PageViewRow:
    page_path: str
    views: int


@dataclass(frozen=True)
class AuthorAggregate:
    author: str
    article_count: int
    total_views: int
    avg_views_per_article: float = field(init=False)

    def __post_init__(self) -> None:
        if self.article_count <= 0:
            raise ValueError("article_count must be positive.")
        object.__setattr__(self, "avg_views_per_article", self.total_views / self.article_count)


@dataclass(frozen=True)
class Totals:
    sessions: int = 0
    pageviews: int = 0

    @property
    def pageviews_per_session(self) -> float | None:
        if self.sessions <= 0:
            return None
        return self.pageviews / self.sessions


@dataclass(frozen=True)
class Kpi:
    label: str
    value: float | None
    kind: ValueKind = ValueKind.COUNT
    change: str | None = None
    change_type: str | None = None


@dataclass(frozen=True)
class DiagnosticPair:
    property: str
    value: str | int | float | DateWindow | None
    kind: ValueKind = ValueKind.TEXT


@dataclass(frozen=True)
class SurfaceMetrics:
    urls: tuple[MetricRow, ...] = ()
    countries: tuple[MetricRow, ...] = ()
    devices: tuple[MetricRow, ...] = ()
    keywords: tuple[MetricRow, ...] = ()


@dataclass(frozen=True)
class AnalyticsProperty:
    property_id: str
    display_name: str
    account: str = ""
    account_display_name: str = ""

    @property
    def short_id(self) -> str:
        return normalize_property_id(self.property_id)


@dataclass(frozen=True)
class UserInfo:
    sub: str
    name: str
    email: str = ""
    picture: str = ""
    is_placeholder: bool = False


@dataclass(frozen=True)
class Report:
    filters: FilterConfiguration
    current_window: DateWindow
    previous_window: DateWindow | None
    kpis: tuple[Kpi, ...]
    diagnostics: tuple[DiagnosticPair, ...]
    web: SurfaceMetrics
    discover: SurfaceMetrics
    authors: tuple[AuthorAggregate, ...] = ()
    ga4_trend: tuple[TimePoint, ...] = ()
    gsc_trend: tuple[TimePoint, ...] = ()
    highest_day: TimePoint | None = None

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))

    def kpi(self, label: str) -> Kpi | None:
        for item in self.kpis:
            if item.label == label:
                return item
        return None


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        if set(value) == {"start", "end"} and all(isinstance(item, date) for item in value.values()):
            return {"startDate": value["start"].isoformat(), "endDate": value["end"].isoformat()}
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value
