from __future__ import annotations

import argparse
import asyncio
import json
import logging
import re
import sys
from dataclasses import replace
from datetime import date
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from seo_dashboard.auth import resolve_access_token
from seo_dashboard.clients.ga4_client import AnalyticsDataClient
from seo_dashboard.clients.gsc_client import SearchConsoleClient
from seo_dashboard.clients.http_client import ApiHttpClient, ResponseCache
from seo_dashboard.clients.identity_client import IdentityClient
from seo_dashboard.config import DashboardConfig
from seo_dashboard.errors import AuthenticationError, CredentialsError, FetchError, InvalidFilterError
from seo_dashboard.formatting import format_date_range_label
from seo_dashboard.models import DateRangeSelector, FilterConfiguration, Report, TopN
from seo_dashboard.report_builder import ReportBuilder
from seo_dashboard.reporting import kpi_display_value, report_to_dict


logger = logging.getLogger(__name__)

EXIT_FETCH_FAILED = 1
EXIT_AUTH_FAILED = 2


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _run_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from exc


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="GA4 + Search Console dashboard report")
    parser.add_argument(
        "--list-sources",
        action="store_true",
        help="List the GA4 properties and GSC sites available to the token and exit.",
    )
    parser.add_argument("--property", dest="property_id", help="GA4 property id (default: GA4_PROPERTY_ID)")
    parser.add_argument("--site", dest="site_id", help="GSC site URL (default: GSC_SITE_URL)")
    parser.add_argument(
        "--date-range",
        choices=[item.value for item in DateRangeSelector],
        help="Reporting window (default: DATE_RANGE or last-28d)",
    )
    parser.add_argument(
        "--top-n",
        type=int,
        choices=[item.value for item in TopN],
        help="Rows per table (default: TOP_N or 10)",
    )
    compare_group = parser.add_mutually_exclusive_group()
    compare_group.add_argument("--compare", dest="compare_enabled", action="store_true")
    compare_group.add_argument("--no-compare", dest="compare_enabled", action="store_false")
    authors_group = parser.add_mutually_exclusive_group()
    authors_group.add_argument("--authors", dest="author_analysis_enabled", action="store_true")
    authors_group.add_argument("--no-authors", dest="author_analysis_enabled", action="store_false")
    parser.set_defaults(compare_enabled=None, author_analysis_enabled=None)
    parser.add_argument(
        "--run-date",
        dest="run_date",
        type=_run_date,
        help="Treat this YYYY-MM-DD date as today (default: today)",
    )
    parser.add_argument("--output", help="Report JSON path (default: OUTPUT_DIR/<site>_<start>_<end>.json)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def _build_http(config: DashboardConfig) -> ApiHttpClient:
    return ApiHttpClient(
        ResponseCache(ttl_sec=config.cache_ttl_sec),
        max_retries=config.http_max_retries,
        transport_backoff_sec=config.http_transport_backoff_sec,
        rate_limit_backoff_sec=config.http_rate_limit_backoff_sec,
        timeout_sec=config.http_timeout_sec,
    )


def _default_output_path(config: DashboardConfig, report: Report) -> Path:
    site = re.sub(r"^(https?://|sc-domain:)", "", report.filters.site_id)
    site = re.sub(r"[^a-zA-Z0-9_.-]+", "_", site).strip("_") or "site"
    window = report.current_window
    return Path(config.output_dir) / f"{site}_{window.start_iso}_{window.end_iso}.json"


def _print_report_summary(report: Report) -> None:
    label = format_date_range_label(report.filters.date_range)
    print(f"Report: {report.filters.site_id} | {label} ({report.current_window})")
    for kpi in report.kpis:
        change = f" ({kpi.change})" if kpi.change else ""
        print(f"- {kpi.label}: {kpi_display_value(kpi)}{change}")
    if report.authors:
        print(f"Top author: {report.authors[0].author} ({report.authors[0].total_views} views)")


async def _list_sources(http: ApiHttpClient, access_token: str) -> None:
    user, properties, sites = await asyncio.gather(
        IdentityClient(http).fetch_user_info(access_token),
        AnalyticsDataClient(http).list_properties(access_token),
        SearchConsoleClient(http).list_sites(access_token),
    )
    print(f"Signed in as: {user.name}" + (f" <{user.email}>" if user.email else ""))
    print("GA4 properties:")
    for item in properties:
        print(f"- {item.short_id}: {item.display_name}")
    print("GSC sites:")
    for site in sites:
        print(f"- {site}")


async def _resolve_selection(
    http: ApiHttpClient,
    access_token: str,
    filters: FilterConfiguration,
) -> FilterConfiguration:
    # Pre-select the first available property/site when none is configured.
    if not filters.property_id:
        properties = await AnalyticsDataClient(http).list_properties(access_token)
        if properties:
            filters = replace(filters, property_id=properties[0].short_id)
    if not filters.site_id:
        sites = await SearchConsoleClient(http).list_sites(access_token)
        if sites:
            filters = replace(filters, site_id=sites[0])
    return filters


async def _run(args: argparse.Namespace, config: DashboardConfig) -> int:
    access_token = resolve_access_token(config)
    http = _build_http(config)
    try:
        if args.list_sources:
            await _list_sources(http, access_token)
            return 0

        filters = config.filters(
            property_id=args.property_id,
            site_id=args.site_id,
            date_range=args.date_range,
            top_n=args.top_n,
            compare_enabled=args.compare_enabled,
            author_analysis_enabled=args.author_analysis_enabled,
        )
        filters = await _resolve_selection(http, access_token, filters)
        builder = ReportBuilder(
            AnalyticsDataClient(http),
            SearchConsoleClient(http),
            today=args.run_date,
            author_overfetch_multiplier=config.author_overfetch_multiplier,
        )
        report = await builder.build_report(filters, access_token)

        output_path = Path(args.output) if args.output else _default_output_path(config, report)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(report_to_dict(report), ensure_ascii=False, indent=2), encoding="utf-8")
        _print_report_summary(report)
        print(f"Report written: {output_path}")
        return 0
    finally:
        http.sign_out()
        await http.aclose()


def main(argv: list[str] | None = None) -> int:
    load_dotenv(find_dotenv(usecwd=True))
    args = _parse_args(argv)
    setup_logging(args.verbose)
    config = DashboardConfig.from_env()
    try:
        return asyncio.run(_run(args, config))
    except (AuthenticationError, CredentialsError) as exc:
        logger.error("Authentication failed, sign in again: %s", exc)
        return EXIT_AUTH_FAILED
    except (FetchError, InvalidFilterError) as exc:
        logger.error("Report build failed: %s", exc)
        return EXIT_FETCH_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
