from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest

from seo_dashboard.clients import http_client
from seo_dashboard.clients.http_client import (
    ApiHttpClient,
    ResponseCache,
    build_signature,
    resolve_with_fallbacks,
)
from seo_dashboard.errors import ApiResponseError, AuthenticationError, FetchError

API_URL = "https://www.googleapis.com/webmasters/v3/sites"


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _build_client(
    handler: Callable[[httpx.Request], httpx.Response],
    cache: ResponseCache | None = None,
    **kwargs: object,
) -> tuple[ApiHttpClient, list[float]]:
    sleeps: list[float] = []

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    client = ApiHttpClient(
        cache or ResponseCache(),
        sleep=fake_sleep,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )
    return client, sleeps


def _sequence(*responses: httpx.Response | Exception) -> tuple[Callable[[httpx.Request], httpx.Response], list[httpx.Request]]:
    calls: list[httpx.Request] = []
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    return handler, calls


def test_cache_returns_value_until_ttl_expires() -> None:
    clock = FakeClock(1000.0)
    cache = ResponseCache(ttl_sec=300, clock=clock)
    cache.set("sig", {"rows": [1]})

    clock.now = 1299.9
    entry = cache.get("sig")
    assert entry is not None
    assert entry.payload == {"rows": [1]}
    assert entry.stored_at == 1000.0

    clock.now = 1300.0
    assert cache.get("sig") is None
    assert "sig" not in cache
    assert len(cache) == 0


def test_cache_write_replaces_entry_and_clear_empties() -> None:
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    cache.set("a", {"v": 1})
    clock.now = 10.0
    cache.set("a", {"v": 2})
    cache.set("b", {"v": 3})

    assert cache.get("a").payload == {"v": 2}
    assert cache.get("a").stored_at == 10.0
    cache.clear()
    assert len(cache) == 0


def test_build_signature_is_order_independent() -> None:
    first = build_signature("gsc", site="https://example.com/", dimensions=["query"], row_limit=10)
    second = build_signature("gsc", row_limit=10, dimensions=["query"], site="https://example.com/")

    assert first == second
    assert first != build_signature("gsc", site="https://example.com/", dimensions=["page"], row_limit=10)


def test_rate_limit_honors_retry_after_header() -> None:
    handler, calls = _sequence(
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(200, json={"ok": True}),
    )
    client, sleeps = _build_client(handler)

    response = asyncio.run(client.fetch_with_retry("GET", API_URL))

    assert response.status_code == 200
    assert len(calls) == 2
    assert sleeps == [2.0]


class FixedDatetime(datetime):
    @classmethod
    def now(cls, tz=None) -> datetime:
        return datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("retry_after", "expected_sleep"),
    [
        ("Sat, 15 Jun 2024 12:00:05 GMT", 5.0),
        ("Sat, 15 Jun 2024 11:59:00 GMT", 0.0),
        ("soon", 2.0),
    ],
)
def test_rate_limit_retry_after_http_date(
    monkeypatch: pytest.MonkeyPatch,
    retry_after: str,
    expected_sleep: float,
) -> None:
    monkeypatch.setattr(http_client, "datetime", FixedDatetime)
    handler, calls = _sequence(
        httpx.Response(429, headers={"Retry-After": retry_after}),
        httpx.Response(200, json={}),
    )
    client, sleeps = _build_client(handler)

    response = asyncio.run(client.fetch_with_retry("GET", API_URL))

    assert response.status_code == 200
    assert len(calls) == 2
    assert sleeps == [expected_sleep]


def test_rate_limit_without_header_uses_linear_backoff() -> None:
    handler, calls = _sequence(
        httpx.Response(429),
        httpx.Response(429),
        httpx.Response(200, json={}),
    )
    client, sleeps = _build_client(handler)

    response = asyncio.run(client.fetch_with_retry("GET", API_URL))

    assert response.status_code == 200
    assert sleeps == [2.0, 4.0]


@pytest.mark.parametrize("status_code", [401, 403])
def test_auth_failures_are_not_retried(status_code: int) -> None:
    handler, calls = _sequence(httpx.Response(status_code, json={"error": {"message": "denied"}}))
    client, sleeps = _build_client(handler)

    response = asyncio.run(client.fetch_with_retry("GET", API_URL))

    assert response.status_code == status_code
    assert len(calls) == 1
    assert sleeps == []


def test_transport_errors_are_retried_then_succeed() -> None:
    handler, calls = _sequence(
        httpx.ConnectError("connection reset"),
        httpx.ConnectError("connection reset"),
        httpx.Response(200, json={}),
    )
    client, sleeps = _build_client(handler)

    response = asyncio.run(client.fetch_with_retry("GET", API_URL))

    assert response.status_code == 200
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


def test_transport_errors_propagate_after_exhaustion() -> None:
    handler, calls = _sequence(httpx.ConnectError("down"))
    client, sleeps = _build_client(handler, max_retries=3)

    with pytest.raises(httpx.ConnectError):
        asyncio.run(client.fetch_with_retry("GET", API_URL))

    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


def test_server_error_surfaces_json_error_message() -> None:
    handler, calls = _sequence(httpx.Response(500, json={"error": {"message": "Backend exploded"}}))
    client, _ = _build_client(handler)

    with pytest.raises(ApiResponseError) as error:
        asyncio.run(client.fetch_with_retry("POST", API_URL, json_body={}))

    assert error.value.status_code == 500
    assert error.value.message == "Backend exploded"
    assert len(calls) == 3


def test_server_error_falls_back_to_text_then_reason_phrase() -> None:
    handler, _ = _sequence(httpx.Response(502, text="Bad gateway upstream"))
    client, _ = _build_client(handler, max_retries=1)
    with pytest.raises(ApiResponseError) as error:
        asyncio.run(client.fetch_with_retry("GET", API_URL))
    assert error.value.message == "Bad gateway upstream"

    handler, _ = _sequence(httpx.Response(503))
    client, _ = _build_client(handler, max_retries=1)
    with pytest.raises(ApiResponseError) as error:
        asyncio.run(client.fetch_with_retry("GET", API_URL))
    assert error.value.message == "Service Unavailable"


def test_request_serves_second_call_from_cache() -> None:
    handler, calls = _sequence(httpx.Response(200, json={"siteEntry": []}))
    client, _ = _build_client(handler)

    async def run() -> tuple[dict, dict]:
        first = await client.request("sites", "GET", API_URL, access_token="tok")
        second = await client.request("sites", "GET", API_URL, access_token="tok")
        return first, second

    first, second = asyncio.run(run())

    assert first == second == {"siteEntry": []}
    assert len(calls) == 1
    assert calls[0].headers["Authorization"] == "Bearer tok"


def test_request_raises_authentication_error_and_caches_nothing() -> None:
    handler, calls = _sequence(httpx.Response(401, json={"error": {"message": "Invalid Credentials"}}))
    cache = ResponseCache()
    client, sleeps = _build_client(handler, cache=cache)

    with pytest.raises(AuthenticationError) as error:
        asyncio.run(client.request("sites", "GET", API_URL, access_token="expired"))

    assert error.value.status_code == 401
    assert "Invalid Credentials" in str(error.value)
    assert len(calls) == 1
    assert sleeps == []
    assert len(cache) == 0


def test_sign_out_clears_cache() -> None:
    handler, calls = _sequence(httpx.Response(200, json={"a": 1}))
    client, _ = _build_client(handler)

    async def run() -> None:
        await client.request("sig", "GET", API_URL, access_token="tok")
        client.sign_out()
        await client.request("sig", "GET", API_URL, access_token="tok")

    asyncio.run(run())

    assert len(calls) == 2


def test_resolve_with_fallbacks_returns_first_success() -> None:
    attempted: list[str] = []

    async def failing() -> str:
        attempted.append("first")
        raise FetchError("User Info API", "profile", "boom")

    async def working() -> str:
        attempted.append("second")
        return "ok"

    async def never() -> str:
        attempted.append("third")
        return "unused"

    result = asyncio.run(resolve_with_fallbacks([failing, working, never], lambda: "fallback"))

    assert result == "ok"
    assert attempted == ["first", "second"]


def test_resolve_with_fallbacks_uses_fallback_when_all_fail() -> None:
    async def failing() -> str:
        raise httpx.ConnectError("offline")

    result = asyncio.run(resolve_with_fallbacks([failing, failing], lambda: "placeholder"))

    assert result == "placeholder"
