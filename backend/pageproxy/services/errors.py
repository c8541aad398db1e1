"""Errors surfaced by the proxy to its callers."""
from __future__ import annotations


class ProxyError(RuntimeError):
    """Base class for failures reported to the client as plain text."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingTargetUrl(ProxyError):
    """Raised when the ``url`` query parameter is absent or empty."""

    status_code = 400

    def __init__(self) -> None:
        super().__init__("Missing url")


class InvalidTargetUrl(ProxyError):
    """Raised when the target does not parse as an absolute http(s) URL."""

    status_code = 400

    def __init__(self) -> None:
        super().__init__("Invalid url")


class RateLimitExceeded(ProxyError):
    status_code = 429

    def __init__(self) -> None:
        super().__init__(
            "Rate limit exceeded for this URL. Please wait before retrying."
        )


class UpstreamFetchError(ProxyError):
    """Raised when the upstream request fails below the HTTP layer."""

    status_code = 500

    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to fetch: {reason}")
        self.reason = reason


__all__ = [
    "ProxyError",
    "MissingTargetUrl",
    "InvalidTargetUrl",
    "RateLimitExceeded",
    "UpstreamFetchError",
]
