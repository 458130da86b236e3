from __future__ import annotations

from typing import Any

from seo_dashboard.clients.base import GoogleApiClient
from seo_dashboard.clients.http_client import build_signature
from seo_dashboard.formatting import parse_date
from seo_dashboard.models import AnalyticsProperty, DateWindow, PageViewRow, TimePoint, Totals, normalize_property_id


class AnalyticsDataClient(GoogleApiClient):
    """GA4 Admin (property listing) and Data API (runReport) fetchers."""

    PROVIDER = "GA4 API"
    ADMIN_API_BASE = "https://analyticsadmin.googleapis.com/v1beta"
    DATA_API_BASE = "https://analyticsdata.googleapis.com/v1beta"
    ACCOUNT_SUMMARIES_PAGE_SIZE = 200

    @staticmethod
    def _date_ranges(window: DateWindow) -> list[dict[str, str]]:
        return [{"startDate": window.start_iso, "endDate": window.end_iso}]

    async def _run_report(
        self,
        access_token: str,
        property_id: str,
        body: dict[str, Any],
        *,
        detail: str,
    ) -> dict[str, Any]:
        property_id = normalize_property_id(property_id)
        if not property_id:
            raise ValueError("GA4 property ID is missing.")
        url = f"{self.DATA_API_BASE}/properties/{property_id}:runReport"
        signature = build_signature("ga4:runReport", property_id=property_id, body=body)
        return await self._call(
            signature,
            "POST",
            url,
            detail=detail,
            access_token=access_token,
            json_body=body,
        )

    @classmethod
    def _metric_value(cls, payload: dict[str, Any], row: dict[str, Any], name: str, index: int) -> int:
        headers = payload.get("metricHeaders", [])
        if isinstance(headers, list):
            names = [header.get("name") for header in headers if isinstance(header, dict)]
            if name in names:
                index = names.index(name)
        values = row.get("metricValues", [])
        if not isinstance(values, list) or index >= len(values) or not isinstance(values[index], dict):
            return 0
        return cls._int_value(values[index].get("value"))

    @staticmethod
    def _dimension_value(row: dict[str, Any], index: int = 0) -> str:
        dims = row.get("dimensionValues", [])
        if isinstance(dims, list) and index < len(dims) and isinstance(dims[index], dict):
            return str(dims[index].get("value", "")).strip()
        return ""

    @staticmethod
    def _rows(payload: dict[str, Any]) -> list[dict[str, Any]]:
        rows = payload.get("rows", [])
        if not isinstance(rows, list):
            return []
        return [row for row in rows if isinstance(row, dict)]

    async def list_properties(self, access_token: str) -> list[AnalyticsProperty]:
        url = f"{self.ADMIN_API_BASE}/accountSummaries"
        properties: list[AnalyticsProperty] = []
        page_token = ""
        while True:
            params: dict[str, Any] = {"pageSize": self.ACCOUNT_SUMMARIES_PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token
            payload = await self._call(
                build_signature("ga4:accountSummaries", page_token=page_token),
                "GET",
                url,
                detail="property list",
                access_token=access_token,
                params=params,
            )
            for account in payload.get("accountSummaries", []) or []:
                if not isinstance(account, dict):
                    continue
                for summary in account.get("propertySummaries", []) or []:
                    if not isinstance(summary, dict) or not summary.get("property"):
                        continue
                    properties.append(
                        AnalyticsProperty(
                            property_id=str(summary["property"]),
                            display_name=str(summary.get("displayName", "")),
                            account=str(account.get("account", "")),
                            account_display_name=str(account.get("displayName", "")),
                        )
                    )
            page_token = str(payload.get("nextPageToken") or "")
            if not page_token:
                break
        return sorted(properties, key=lambda item: (item.display_name.lower(), item.property_id))

    async def fetch_totals(self, access_token: str, property_id: str, window: DateWindow) -> Totals:
        body = {
            "dateRanges": self._date_ranges(window),
            "dimensions": [],
            "metrics": [{"name": "sessions"}, {"name": "screenPageViews"}],
        }
        payload = await self._run_report(access_token, property_id, body, detail=f"totals {window}")
        totals = payload.get("totals")
        source = totals if isinstance(totals, list) and totals else self._rows(payload)
        if not source or not isinstance(source[0], dict):
            return Totals()
        row = source[0]
        return Totals(
            sessions=self._metric_value(payload, row, "sessions", 0),
            pageviews=self._metric_value(payload, row, "screenPageViews", 1),
        )

    async def fetch_sessions_trend(
        self,
        access_token: str,
        property_id: str,
        window: DateWindow,
    ) -> list[TimePoint]:
        body = {
            "dateRanges": self._date_ranges(window),
            "dimensions": [{"name": "date"}],
            "metrics": [{"name": "sessions"}],
            "orderBys": [{"dimension": {"dimensionName": "date"}}],
            "limit": window.days,
        }
        payload = await self._run_report(access_token, property_id, body, detail="sessions trend")
        points: list[TimePoint] = []
        for row in self._rows(payload):
            raw_day = self._dimension_value(row)
            try:
                day = parse_date(raw_day)
            except ValueError:
                continue
            points.append(TimePoint(date=day, sessions=self._metric_value(payload, row, "sessions", 0)))
        points.sort(key=lambda point: point.date)
        return points

    async def fetch_page_views(
        self,
        access_token: str,
        property_id: str,
        window: DateWindow,
        limit: int,
    ) -> list[PageViewRow]:
        body = {
            "dateRanges": self._date_ranges(window),
            "dimensions": [{"name": "pagePath"}],
            "metrics": [{"name": "screenPageViews"}],
            "orderBys": [{"metric": {"metricName": "screenPageViews"}, "desc": True}],
            "limit": max(1, int(limit)),
        }
        payload = await self._run_report(access_token, property_id, body, detail="page views by path")
        out: list[PageViewRow] = []
        for row in self._rows(payload):
            page_path = self._dimension_value(row)
            if not page_path:
                continue
            out.append(PageViewRow(page_path=page_path, views=self._metric_value(payload, row, "screenPageViews", 0)))
        return out
