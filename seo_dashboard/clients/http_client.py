from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Sequence, TypeVar

import httpx

from seo_dashboard.errors import ApiResponseError, AuthenticationError, DashboardError


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_TTL_SEC = 300.0


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    stored_at: float


class ResponseCache:
    """Session-lifetime response cache with lazy TTL eviction.

    Entries are replaced whole on write; stale entries are dropped when read.
    """

    def __init__(
        self,
        ttl_sec: float = DEFAULT_CACHE_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_sec = float(ttl_sec)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, signature: str) -> CacheEntry | None:
        entry = self._entries.get(signature)
        if entry is None:
            return None
        if self._clock() - entry.stored_at < self.ttl_sec:
            return entry
        del self._entries[signature]
        return None

    def set(self, signature: str, payload: Any) -> CacheEntry:
        entry = CacheEntry(payload=payload, stored_at=self._clock())
        self._entries[signature] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, signature: object) -> bool:
        return signature in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def build_signature(namespace: str, **params: Any) -> str:
    """Deterministic cache key from a request's semantic parameters."""
    encoded = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    return f"{namespace}:{encoded}"


class ApiHttpClient:
    """Async HTTP access for every Google API call, with retry and caching."""

    AUTH_ERROR_CODES = {401, 403}
    RATE_LIMIT_CODE = 429
    USER_AGENT = "seo-dashboard/0.1"

    def __init__(
        self,
        cache: ResponseCache | None = None,
        *,
        max_retries: int = 3,
        transport_backoff_sec: float = 1.0,
        rate_limit_backoff_sec: float = 2.0,
        timeout_sec: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cache = cache if cache is not None else ResponseCache()
        self.max_retries = max(1, int(max_retries))
        self.transport_backoff_sec = transport_backoff_sec
        self.rate_limit_backoff_sec = rate_limit_backoff_sec
        self.timeout_sec = timeout_sec
        self._sleep = sleep or asyncio.sleep
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_sec,
                transport=self._transport,
                headers={"User-Agent": self.USER_AGENT, "Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def sign_out(self) -> None:
        self.cache.clear()

    @staticmethod
    def auth_headers(access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    @staticmethod
    def _retry_after_seconds(response: httpx.Response) -> float | None:
        raw = response.headers.get("Retry-After", "").strip()
        if not raw:
            return None
        try:
            return max(0.0, float(raw))
        except ValueError:
            pass
        try:
            retry_at = parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            return None
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=timezone.utc)
        return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())

    @staticmethod
    def response_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict):
                message = error.get("message")
                if isinstance(message, str) and message.strip():
                    return message.strip()

        text = response.text.strip()
        if text:
            if len(text) > 400:
                return text[:397] + "..."
            return text
        return response.reason_phrase or f"HTTP {response.status_code}"

    async def fetch_with_retry(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request, retrying transport failures, 429s and other non-2xx.

        401/403 responses are returned as-is without retrying. After the last
        attempt the transport error is re-raised, or an ``ApiResponseError``
        is built from the final response body.
        """
        attempt = 0
        while True:
            attempt += 1
            is_last_attempt = attempt >= self.max_retries
            try:
                response = await self.client.request(
                    method,
                    url,
                    headers=headers,
                    json=json_body,
                    params=params,
                )
            except httpx.RequestError as exc:
                logger.warning(
                    "%s %s failed (attempt %d/%d): %s",
                    method,
                    url,
                    attempt,
                    self.max_retries,
                    exc,
                )
                if is_last_attempt:
                    raise
                await self._sleep(self.transport_backoff_sec * attempt)
                continue

            if response.is_success or response.status_code in self.AUTH_ERROR_CODES:
                return response

            if response.status_code == self.RATE_LIMIT_CODE:
                delay = self._retry_after_seconds(response)
                if delay is None:
                    delay = self.rate_limit_backoff_sec * attempt
            else:
                delay = self.transport_backoff_sec * attempt
            logger.info(
                "%s %s returned %d (attempt %d/%d)",
                method,
                url,
                response.status_code,
                attempt,
                self.max_retries,
            )
            if is_last_attempt:
                raise ApiResponseError(
                    response.status_code,
                    self.response_message(response),
                    url=url,
                )
            await self._sleep(delay)

    async def request(
        self,
        signature: str,
        method: str,
        url: str,
        *,
        access_token: str,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        entry = self.cache.get(signature)
        if entry is not None:
            logger.debug("Cache hit for %s", signature)
            return entry.payload

        response = await self.fetch_with_retry(
            method,
            url,
            headers=self.auth_headers(access_token),
            json_body=json_body,
            params=params,
        )
        if response.status_code in self.AUTH_ERROR_CODES:
            raise AuthenticationError(
                "Google API",
                url,
                response.status_code,
                self.response_message(response),
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiResponseError(
                response.status_code,
                f"Invalid JSON body: {self.response_message(response)}",
                url=url,
            ) from exc
        if not isinstance(payload, dict):
            raise ApiResponseError(response.status_code, "Non-object JSON payload.", url=url)

        self.cache.set(signature, payload)
        return payload


async def resolve_with_fallbacks(
    candidates: Sequence[Callable[[], Awaitable[T]]],
    fallback: Callable[[], T],
    *,
    label: str = "lookup",
) -> T:
    """Return the first candidate that succeeds, else ``fallback()``.

    Candidates are tried in order; every failure is logged the same way.
    """
    for index, candidate in enumerate(candidates, start=1):
        try:
            return await candidate()
        except (DashboardError, httpx.HTTPError, ValueError) as exc:
            logger.warning("%s candidate %d/%d failed: %s", label, index, len(candidates), exc)
    logger.warning("%s: all %d candidates failed, using fallback.", label, len(candidates))
    return fallback()
