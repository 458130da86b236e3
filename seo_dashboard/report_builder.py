from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Awaitable, TypeVar

from seo_dashboard.authors import aggregate_authors
from seo_dashboard.clients.ga4_client import AnalyticsDataClient
from seo_dashboard.clients.gsc_client import SearchConsoleClient
from seo_dashboard.errors import AuthenticationError, FetchError, InvalidFilterError
from seo_dashboard.formatting import calculate_growth, get_growth_type
from seo_dashboard.models import (
    AuthorAggregate,
    DateWindow,
    DiagnosticPair,
    Dimension,
    FilterConfiguration,
    Kpi,
    MetricRow,
    PageViewRow,
    Report,
    SearchType,
    SurfaceMetrics,
    TimePoint,
    Totals,
    ValueKind,
)
from seo_dashboard.time_windows import compute_windows


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_AUTHOR_OVERFETCH_MULTIPLIER = 3


async def _resolved(value: T) -> T:
    return value


def average_position(rows: list[MetricRow]) -> float | None:
    # Rows without a position count as 0 and still weigh in the denominator.
    if not rows:
        return None
    return sum(row.position or 0.0 for row in rows) / len(rows)


def highest_point(points: list[TimePoint]) -> TimePoint | None:
    if not points:
        return None
    return max(points, key=lambda point: point.sessions or 0)


class ReportBuilder:
    """Fan out every fetch a dashboard refresh needs and assemble a ``Report``.

    The builder keeps no state between calls; reuse happens only through the
    response cache shared by the injected clients.
    """

    def __init__(
        self,
        ga4: AnalyticsDataClient,
        gsc: SearchConsoleClient,
        *,
        today: date | None = None,
        author_overfetch_multiplier: int = DEFAULT_AUTHOR_OVERFETCH_MULTIPLIER,
    ) -> None:
        self.ga4 = ga4
        self.gsc = gsc
        self.today = today
        self.author_overfetch_multiplier = max(1, int(author_overfetch_multiplier))

    @staticmethod
    def _validate(filters: FilterConfiguration) -> None:
        missing = []
        if not filters.property_id:
            missing.append("GA4 property")
        if not filters.site_id:
            missing.append("GSC site")
        if missing:
            raise InvalidFilterError(f"Missing selection: {', '.join(missing)}.")

    async def _fetch_author_rows(
        self,
        access_token: str,
        filters: FilterConfiguration,
        window: DateWindow,
    ) -> list[PageViewRow]:
        # Unattributable pages get dropped later, so ask for more than top-N.
        limit = int(filters.top_n) * self.author_overfetch_multiplier
        try:
            return await self.ga4.fetch_page_views(access_token, filters.property_id, window, limit)
        except AuthenticationError:
            raise
        except FetchError as exc:
            logger.warning("Author analysis skipped: %s", exc)
            return []

    def _surface_fetches(
        self,
        access_token: str,
        filters: FilterConfiguration,
        window: DateWindow,
        search_type: SearchType,
        dimensions: tuple[Dimension, ...],
    ) -> list[Awaitable[list[MetricRow]]]:
        return [
            self.gsc.fetch_rows(
                access_token,
                filters.site_id,
                window,
                dimension,
                search_type,
                int(filters.top_n),
            )
            for dimension in dimensions
        ]

    async def build_report(self, filters: FilterConfiguration, access_token: str) -> Report:
        self._validate(filters)
        current, previous = compute_windows(filters.date_range, filters.compare_enabled, self.today)
        logger.info(
            "Building report for %s / %s (%s, compare=%s)",
            filters.property_id,
            filters.site_id,
            current,
            previous is not None,
        )

        web_dimensions = (Dimension.QUERY, Dimension.PAGE, Dimension.COUNTRY, Dimension.DEVICE)
        discover_dimensions = (Dimension.PAGE, Dimension.COUNTRY, Dimension.DEVICE)
        (
            web_keywords,
            web_urls,
            web_countries,
            web_devices,
            discover_urls,
            discover_countries,
            discover_devices,
            current_totals,
            previous_totals,
            ga4_trend,
            gsc_trend,
            page_rows,
        ) = await asyncio.gather(
            *self._surface_fetches(access_token, filters, current, SearchType.WEB, web_dimensions),
            *self._surface_fetches(access_token, filters, current, SearchType.DISCOVER, discover_dimensions),
            self.ga4.fetch_totals(access_token, filters.property_id, current),
            (
                self.ga4.fetch_totals(access_token, filters.property_id, previous)
                if previous is not None
                else _resolved(Totals())
            ),
            self.ga4.fetch_sessions_trend(access_token, filters.property_id, current),
            self.gsc.fetch_trend(access_token, filters.site_id, current),
            (
                self._fetch_author_rows(access_token, filters, current)
                if filters.author_analysis_enabled
                else _resolved([])
            ),
        )

        authors = aggregate_authors(page_rows, int(filters.top_n)) if filters.author_analysis_enabled else []
        highest_day = highest_point(ga4_trend)
        kpis = self._build_kpis(web_keywords, current_totals, previous_totals if previous else None)
        diagnostics = self._build_diagnostics(
            filters,
            current,
            previous,
            web_keywords,
            current_totals,
            previous_totals if previous else None,
            highest_day,
            authors,
        )
        return Report(
            filters=filters,
            current_window=current,
            previous_window=previous,
            kpis=tuple(kpis),
            diagnostics=tuple(diagnostics),
            web=SurfaceMetrics(
                keywords=tuple(web_keywords),
                urls=tuple(web_urls),
                countries=tuple(web_countries),
                devices=tuple(web_devices),
            ),
            discover=SurfaceMetrics(
                urls=tuple(discover_urls),
                countries=tuple(discover_countries),
                devices=tuple(discover_devices),
            ),
            authors=tuple(authors),
            ga4_trend=tuple(ga4_trend),
            gsc_trend=tuple(gsc_trend),
            highest_day=highest_day,
        )

    @staticmethod
    def _search_totals(rows: list[MetricRow]) -> tuple[int, int, float | None]:
        clicks = sum(row.clicks for row in rows)
        impressions = sum(row.impressions for row in rows)
        ctr = clicks / impressions if impressions > 0 else None
        return clicks, impressions, ctr

    @staticmethod
    def _growth(current: int, previous: Totals | None, field_name: str) -> tuple[str | None, str | None]:
        if previous is None:
            return None, None
        change = calculate_growth(current, getattr(previous, field_name))
        return change, get_growth_type(change)

    def _build_kpis(
        self,
        web_keywords: list[MetricRow],
        current: Totals,
        previous: Totals | None,
    ) -> list[Kpi]:
        clicks, impressions, ctr = self._search_totals(web_keywords)
        sessions_change, sessions_change_type = self._growth(current.sessions, previous, "sessions")
        pageviews_change, pageviews_change_type = self._growth(current.pageviews, previous, "pageviews")
        return [
            Kpi("Sessions", current.sessions, ValueKind.COUNT, sessions_change, sessions_change_type),
            Kpi("Pageviews", current.pageviews, ValueKind.COUNT, pageviews_change, pageviews_change_type),
            Kpi("Pageviews / Session", current.pageviews_per_session, ValueKind.RATIO),
            Kpi("GSC Clicks", clicks, ValueKind.COUNT),
            Kpi("GSC Impressions", impressions, ValueKind.COUNT),
            Kpi("GSC Avg. CTR", ctr, ValueKind.PERCENTAGE),
            Kpi("GSC Avg. Position", average_position(web_keywords), ValueKind.POSITION),
        ]

    def _build_diagnostics(
        self,
        filters: FilterConfiguration,
        current_window: DateWindow,
        previous_window: DateWindow | None,
        web_keywords: list[MetricRow],
        current: Totals,
        previous: Totals | None,
        highest_day: TimePoint | None,
        authors: list[AuthorAggregate],
    ) -> list[DiagnosticPair]:
        clicks, impressions, ctr = self._search_totals(web_keywords)
        sessions_change, _ = self._growth(current.sessions, previous, "sessions")
        pageviews_change, _ = self._growth(current.pageviews, previous, "pageviews")
        diagnostics = [
            DiagnosticPair("GA4 Property", f"properties/{filters.property_id}"),
            DiagnosticPair("GSC Site", filters.site_id),
            DiagnosticPair("Date Range", current_window),
            DiagnosticPair("Comparison Period", previous_window),
            DiagnosticPair("Sessions (Period)", current.sessions, ValueKind.COUNT),
            DiagnosticPair("Pageviews (Period)", current.pageviews, ValueKind.COUNT),
            DiagnosticPair("Sessions Growth", sessions_change),
            DiagnosticPair("Pageviews Growth", pageviews_change),
            DiagnosticPair(
                "Highest Sessions Day",
                highest_day.date.isoformat() if highest_day else None,
            ),
            DiagnosticPair(
                "Highest Day Sessions",
                highest_day.sessions if highest_day else None,
                ValueKind.COUNT,
            ),
            DiagnosticPair("Pageviews / Session", current.pageviews_per_session, ValueKind.RATIO),
            DiagnosticPair("GSC Clicks (Period)", clicks, ValueKind.COUNT),
            DiagnosticPair("GSC Impressions (Period)", impressions, ValueKind.COUNT),
            DiagnosticPair("GSC Avg CTR (Period)", ctr, ValueKind.PERCENTAGE),
            DiagnosticPair("GSC Avg Position (Period)", average_position(web_keywords), ValueKind.POSITION),
        ]
        if filters.author_analysis_enabled:
            diagnostics.append(DiagnosticPair("Authors Attributed", len(authors), ValueKind.COUNT))
        return diagnostics
