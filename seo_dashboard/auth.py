from __future__ import annotations

import json
from pathlib import Path

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials as UserCredentials

from seo_dashboard.config import DashboardConfig
from seo_dashboard.errors import CredentialsError


SCOPES = [
    "https://www.googleapis.com/auth/analytics.readonly",
    "https://www.googleapis.com/auth/webmasters.readonly",
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


def _load_json(path_value: str) -> dict:
    path = Path(path_value)
    if not path.exists():
        raise CredentialsError(f"OAuth client file not found: {path_value}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise CredentialsError(f"Invalid JSON in OAuth client file: {path_value}") from exc


def oauth_credentials_from_payload(
    payload: dict,
    refresh_token: str,
    token_uri: str = "https://oauth2.googleapis.com/token",
) -> UserCredentials:
    # OAuth JSON can be either {"installed": {...}} or {"web": {...}}.
    client_section = payload.get("installed") or payload.get("web") or payload
    client_id = client_section.get("client_id")
    client_secret = client_section.get("client_secret")
    if not (client_id and client_secret):
        raise CredentialsError("OAuth client JSON is missing client_id/client_secret.")
    if not refresh_token:
        raise CredentialsError("Missing GOOGLE_OAUTH_REFRESH_TOKEN for OAuth credentials.")
    return UserCredentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=client_section.get("token_uri") or token_uri,
        client_id=client_id,
        client_secret=client_secret,
        scopes=SCOPES,
    )


def resolve_access_token(config: DashboardConfig) -> str:
    """Bearer token for this session.

    A ready token in ``GOOGLE_ACCESS_TOKEN`` wins; otherwise the OAuth client
    JSON plus refresh token are exchanged for a fresh access token.
    """
    if config.google_access_token:
        token = config.google_access_token
        if token.lower().startswith("bearer "):
            token = token[7:].strip()
        return token

    if not config.google_oauth_client_secret_path:
        raise CredentialsError(
            "Missing Google credentials. Set GOOGLE_ACCESS_TOKEN or "
            "GOOGLE_OAUTH_CLIENT_SECRET_PATH + GOOGLE_OAUTH_REFRESH_TOKEN."
        )
    credentials = oauth_credentials_from_payload(
        _load_json(config.google_oauth_client_secret_path),
        config.google_oauth_refresh_token,
        config.google_oauth_token_uri,
    )
    try:
        credentials.refresh(Request())
    except RefreshError as exc:
        raise CredentialsError(f"Could not refresh Google OAuth token: {exc}") from exc
    if not credentials.token:
        raise CredentialsError("Google OAuth refresh returned no access token.")
    return str(credentials.token)
