from __future__ import annotations

from datetime import date
from typing import Any
from urllib.parse import quote

from seo_dashboard.clients.base import GoogleApiClient
from seo_dashboard.clients.http_client import build_signature
from seo_dashboard.models import DateWindow, Dimension, MetricRow, SearchType, TimePoint


class SearchConsoleClient(GoogleApiClient):
    """Thin async wrapper for the Search Console sites + Search Analytics API."""

    PROVIDER = "GSC API"
    API_BASE = "https://www.googleapis.com/webmasters/v3"
    AGGREGATION_TYPE = "auto"
    ROW_DIMENSIONS = {Dimension.QUERY, Dimension.PAGE, Dimension.COUNTRY, Dimension.DEVICE}

    async def list_sites(self, access_token: str) -> list[str]:
        payload = await self._call(
            build_signature("gsc:sites"),
            "GET",
            f"{self.API_BASE}/sites",
            detail="site list",
            access_token=access_token,
        )
        sites = [
            str(entry["siteUrl"])
            for entry in payload.get("siteEntry", []) or []
            if isinstance(entry, dict) and entry.get("siteUrl")
        ]
        return sorted(sites)

    async def _query(
        self,
        access_token: str,
        site_url: str,
        window: DateWindow,
        dimensions: list[str],
        search_type: SearchType,
        row_limit: int,
        *,
        detail: str,
    ) -> list[dict[str, Any]]:
        if not site_url.strip():
            raise ValueError("GSC site URL is missing.")
        body = {
            "siteUrl": site_url,
            "startDate": window.start_iso,
            "endDate": window.end_iso,
            "dimensions": dimensions,
            "searchType": search_type.value,
            "rowLimit": row_limit,
            "aggregationType": self.AGGREGATION_TYPE,
        }
        url = f"{self.API_BASE}/sites/{quote(site_url, safe='')}/searchAnalytics/query"
        signature = build_signature(
            "gsc:searchAnalytics",
            site=site_url,
            start=window.start_iso,
            end=window.end_iso,
            dimensions=dimensions,
            search_type=search_type.value,
            row_limit=row_limit,
        )
        payload = await self._call(
            signature,
            "POST",
            url,
            detail=detail,
            access_token=access_token,
            json_body=body,
        )
        rows = payload.get("rows", [])
        if not isinstance(rows, list):
            return []
        return [row for row in rows if isinstance(row, dict)]

    @staticmethod
    def _position(raw: Any) -> float | None:
        if raw in (None, ""):
            return None
        try:
            return float(raw)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _ctr(raw: Any) -> float:
        try:
            return float(raw or 0.0)
        except (TypeError, ValueError):
            return 0.0

    async def fetch_rows(
        self,
        access_token: str,
        site_url: str,
        window: DateWindow,
        dimension: Dimension | str,
        search_type: SearchType | str = SearchType.WEB,
        row_limit: int = 10,
    ) -> list[MetricRow]:
        dimension = Dimension(dimension)
        search_type = SearchType(search_type)
        if dimension not in self.ROW_DIMENSIONS:
            raise ValueError(f"Unsupported metric-row dimension: {dimension.value}")
        raw_rows = await self._query(
            access_token,
            site_url,
            window,
            [dimension.value],
            search_type,
            max(1, int(row_limit)),
            detail=f"{search_type.value} {dimension.value}",
        )
        rows: list[MetricRow] = []
        for row in raw_rows:
            keys = row.get("keys") or []
            rows.append(
                MetricRow(
                    key=str(keys[0]) if keys else "TOTAL",
                    clicks=self._int_value(row.get("clicks")),
                    impressions=self._int_value(row.get("impressions")),
                    ctr=self._ctr(row.get("ctr")),
                    position=self._position(row.get("position")),
                )
            )
        return rows

    async def fetch_trend(self, access_token: str, site_url: str, window: DateWindow) -> list[TimePoint]:
        raw_rows = await self._query(
            access_token,
            site_url,
            window,
            [Dimension.DATE.value],
            SearchType.WEB,
            window.days,
            detail="date trend",
        )
        points: list[TimePoint] = []
        for row in raw_rows:
            keys = row.get("keys") or []
            try:
                day = date.fromisoformat(str(keys[0]))
            except (IndexError, ValueError):
                continue
            points.append(
                TimePoint(
                    date=day,
                    clicks=self._int_value(row.get("clicks")),
                    impressions=self._int_value(row.get("impressions")),
                )
            )
        points.sort(key=lambda point: point.date)
        return points
