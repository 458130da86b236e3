from __future__ import annotations

import os
from dataclasses import dataclass

from seo_dashboard.models import DateRangeSelector, FilterConfiguration, TopN, normalize_property_id


def _env(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default.strip()
    value = raw.strip()
    placeholder = f"{name}="
    unquoted = value.strip("'\"").strip()
    if unquoted.lower() == placeholder.lower():
        return default.strip()
    return unquoted if unquoted else default.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    return int(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if not raw:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class DashboardConfig:
    ga4_property_id: str
    gsc_site_url: str
    date_range: DateRangeSelector
    top_n: TopN
    compare_enabled: bool
    author_analysis_enabled: bool
    author_overfetch_multiplier: int

    cache_ttl_sec: float
    http_max_retries: int
    http_timeout_sec: float
    http_transport_backoff_sec: float
    http_rate_limit_backoff_sec: float

    output_dir: str
    google_access_token: str
    google_oauth_client_secret_path: str
    google_oauth_refresh_token: str
    google_oauth_token_uri: str

    @classmethod
    def from_env(cls) -> "DashboardConfig":
        return cls(
            ga4_property_id=normalize_property_id(_env("GA4_PROPERTY_ID")),
            gsc_site_url=_env("GSC_SITE_URL"),
            date_range=DateRangeSelector(_env("DATE_RANGE", DateRangeSelector.LAST_28_DAYS.value)),
            top_n=TopN(_env_int("TOP_N", 10)),
            compare_enabled=_env_bool("COMPARE_ENABLED", True),
            author_analysis_enabled=_env_bool("AUTHOR_ANALYSIS_ENABLED", True),
            author_overfetch_multiplier=max(1, _env_int("AUTHOR_OVERFETCH_MULTIPLIER", 3)),
            cache_ttl_sec=max(0.0, _env_float("CACHE_TTL_SEC", 300.0)),
            http_max_retries=max(1, _env_int("HTTP_MAX_RETRIES", 3)),
            http_timeout_sec=_env_float("HTTP_TIMEOUT_SEC", 30.0),
            http_transport_backoff_sec=_env_float("HTTP_TRANSPORT_BACKOFF_SEC", 1.0),
            http_rate_limit_backoff_sec=_env_float("HTTP_RATE_LIMIT_BACKOFF_SEC", 2.0),
            output_dir=_env("OUTPUT_DIR", "reports"),
            google_access_token=_env("GOOGLE_ACCESS_TOKEN"),
            google_oauth_client_secret_path=_env("GOOGLE_OAUTH_CLIENT_SECRET_PATH"),
            google_oauth_refresh_token=_env("GOOGLE_OAUTH_REFRESH_TOKEN"),
            google_oauth_token_uri=_env("GOOGLE_OAUTH_TOKEN_URI", "https://oauth2.googleapis.com/token"),
        )

    def filters(self, **overrides: object) -> FilterConfiguration:
        values: dict[str, object] = {
            "date_range": self.date_range,
            "compare_enabled": self.compare_enabled,
            "top_n": self.top_n,
            "author_analysis_enabled": self.author_analysis_enabled,
            "property_id": self.ga4_property_id,
            "site_id": self.gsc_site_url,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return FilterConfiguration(**values)  # type: ignore[arg-type]
