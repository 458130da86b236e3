from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest
from google.auth.exceptions import RefreshError

from seo_dashboard import auth
from seo_dashboard.config import DashboardConfig
from seo_dashboard.errors import CredentialsError


def _config(**overrides: object) -> DashboardConfig:
    base = DashboardConfig(
        ga4_property_id="123",
        gsc_site_url="https://example.com/",
        date_range="last-28d",  # type: ignore[arg-type]
        top_n=10,  # type: ignore[arg-type]
        compare_enabled=True,
        author_analysis_enabled=True,
        author_overfetch_multiplier=3,
        cache_ttl_sec=300.0,
        http_max_retries=3,
        http_timeout_sec=30.0,
        http_transport_backoff_sec=1.0,
        http_rate_limit_backoff_sec=2.0,
        output_dir="reports",
        google_access_token="",
        google_oauth_client_secret_path="",
        google_oauth_refresh_token="",
        google_oauth_token_uri="https://oauth2.googleapis.com/token",
    )
    return replace(base, **overrides)


def test_ready_access_token_is_used_without_bearer_prefix() -> None:
    assert auth.resolve_access_token(_config(google_access_token="Bearer ya29.abc")) == "ya29.abc"
    assert auth.resolve_access_token(_config(google_access_token="ya29.xyz")) == "ya29.xyz"


def test_missing_credentials_raise() -> None:
    with pytest.raises(CredentialsError, match="Missing Google credentials"):
        auth.resolve_access_token(_config())


def test_missing_client_file_raises(tmp_path: Path) -> None:
    with pytest.raises(CredentialsError, match="not found"):
        auth.resolve_access_token(_config(google_oauth_client_secret_path=str(tmp_path / "missing.json")))


def test_credentials_accept_installed_or_web_sections() -> None:
    for section in ("installed", "web"):
        payload = {section: {"client_id": "cid", "client_secret": "secret"}}
        credentials = auth.oauth_credentials_from_payload(payload, "refresh")
        assert credentials.client_id == "cid"
        assert credentials.refresh_token == "refresh"
        assert credentials.token_uri == "https://oauth2.googleapis.com/token"


def test_credentials_require_refresh_token() -> None:
    payload = {"installed": {"client_id": "cid", "client_secret": "secret"}}
    with pytest.raises(CredentialsError, match="GOOGLE_OAUTH_REFRESH_TOKEN"):
        auth.oauth_credentials_from_payload(payload, "")


def test_refresh_exchanges_token(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client_file = tmp_path / "client.json"
    client_file.write_text(json.dumps({"installed": {"client_id": "cid", "client_secret": "secret"}}), encoding="utf-8")

    def fake_refresh(self, request) -> None:
        self.token = "fresh-token"

    monkeypatch.setattr(auth.UserCredentials, "refresh", fake_refresh)

    token = auth.resolve_access_token(
        _config(google_oauth_client_secret_path=str(client_file), google_oauth_refresh_token="refresh")
    )

    assert token == "fresh-token"


def test_refresh_failure_is_credentials_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client_file = tmp_path / "client.json"
    client_file.write_text(json.dumps({"web": {"client_id": "cid", "client_secret": "secret"}}), encoding="utf-8")

    def failing_refresh(self, request) -> None:
        raise RefreshError("invalid_grant")

    monkeypatch.setattr(auth.UserCredentials, "refresh", failing_refresh)

    with pytest.raises(CredentialsError, match="invalid_grant"):
        auth.resolve_access_token(
            _config(google_oauth_client_secret_path=str(client_file), google_oauth_refresh_token="revoked")
        )
