from __future__ import annotations

from typing import Any

import httpx

from seo_dashboard.clients.http_client import ApiHttpClient
from seo_dashboard.errors import ApiResponseError, AuthenticationError, FetchError


class GoogleApiClient:
    """Shared plumbing for fetchers that go through ``ApiHttpClient``.

    Failures are re-raised tagged with the provider name and the requested
    dimension/resource.
    """

    PROVIDER = "Google API"

    def __init__(self, http: ApiHttpClient) -> None:
        self.http = http

    async def _call(
        self,
        signature: str,
        method: str,
        url: str,
        *,
        detail: str,
        access_token: str,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            return await self.http.request(
                signature,
                method,
                url,
                access_token=access_token,
                json_body=json_body,
                params=params,
            )
        except AuthenticationError as exc:
            raise AuthenticationError(self.PROVIDER, detail, exc.status_code, exc.reason) from exc
        except ApiResponseError as exc:
            raise FetchError(self.PROVIDER, detail, exc.message or str(exc)) from exc
        except httpx.HTTPError as exc:
            raise FetchError(self.PROVIDER, detail, f"request failed: {exc}") from exc

    @staticmethod
    def _int_value(raw: Any) -> int:
        if raw in (None, ""):
            return 0
        try:
            return int(float(raw))
        except (TypeError, ValueError):
            return 0
