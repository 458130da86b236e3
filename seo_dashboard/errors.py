from __future__ import annotations


class DashboardError(RuntimeError):
    """Base class for errors raised while building dashboard data."""


class ApiResponseError(DashboardError):
    def __init__(self, status_code: int, message: str, url: str = "") -> None:
        self.status_code = status_code
        self.message = message
        self.url = url
        super().__init__(f"HTTP {status_code}: {message}")


class FetchError(DashboardError):
    """A provider fetch failed after the retry layer gave up.

    ``provider`` names the upstream API and ``detail`` the dimension or
    resource that was requested, so callers can tell which panel is broken.
    """

    def __init__(self, provider: str, detail: str, reason: str) -> None:
        self.provider = provider
        self.detail = detail
        self.reason = reason
        super().__init__(f"{provider} error ({detail}): {reason}")


class AuthenticationError(FetchError):
    """401/403 from an upstream API; the caller should re-authenticate."""

    def __init__(self, provider: str, detail: str, status_code: int, reason: str = "") -> None:
        self.status_code = status_code
        super().__init__(
            provider,
            detail,
            reason or f"access token rejected with HTTP {status_code}",
        )


class InvalidFilterError(ValueError):
    pass


class CredentialsError(DashboardError):
    """No usable Google credentials could be resolved for the session."""
