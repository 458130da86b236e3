from __future__ import annotations

from functools import partial
from typing import Any

from seo_dashboard.clients.http_client import ApiHttpClient, build_signature, resolve_with_fallbacks
from seo_dashboard.errors import FetchError
from seo_dashboard.models import UserInfo


PLACEHOLDER_USER = UserInfo(sub="", name="Google User", is_placeholder=True)


class IdentityClient:
    """Profile lookup for the signed-in Google identity.

    Profile data only decorates the header, so a failure here never aborts
    anything: every endpoint variant is tried and a placeholder is returned
    when all of them fail.
    """

    USER_INFO_ENDPOINTS = (
        "https://www.googleapis.com/oauth2/v3/userinfo",
        "https://openidconnect.googleapis.com/v1/userinfo",
        "https://www.googleapis.com/oauth2/v2/userinfo",
    )

    def __init__(self, http: ApiHttpClient) -> None:
        self.http = http

    @staticmethod
    def _parse_user_info(payload: dict[str, Any]) -> UserInfo:
        sub = str(payload.get("sub") or payload.get("id") or "").strip()
        email = str(payload.get("email") or "").strip()
        name = str(payload.get("name") or "").strip()
        if not (sub or email):
            raise FetchError("User Info API", "profile", "response has neither sub nor email.")
        return UserInfo(
            sub=sub,
            name=name or email,
            email=email,
            picture=str(payload.get("picture") or "").strip(),
        )

    async def _fetch_from(self, endpoint: str, access_token: str) -> UserInfo:
        payload = await self.http.request(
            build_signature("userinfo", endpoint=endpoint),
            "GET",
            endpoint,
            access_token=access_token,
        )
        return self._parse_user_info(payload)

    async def fetch_user_info(self, access_token: str) -> UserInfo:
        return await resolve_with_fallbacks(
            [partial(self._fetch_from, endpoint, access_token) for endpoint in self.USER_INFO_ENDPOINTS],
            lambda: PLACEHOLDER_USER,
            label="User info lookup",
        )
