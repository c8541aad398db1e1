"""FastAPI dependency helpers."""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from pageproxy.core.config import Settings, get_settings
from pageproxy.services.fetcher import FetchDispatcher
from pageproxy.services.rate_limit import RateConfig, RateLimiter


@lru_cache
def _create_rate_limiter(window_ms: int, max_requests: int, max_keys: int) -> RateLimiter:
    return RateLimiter(
        RateConfig(window_ms=window_ms, max_requests=max_requests, max_keys=max_keys)
    )


def get_rate_limiter(settings: Settings = Depends(get_settings)) -> RateLimiter:
    """Return the process-wide limiter for the configured window."""

    return _create_rate_limiter(
        settings.rate_window_ms, settings.rate_max_requests, settings.rate_max_keys
    )


def get_fetch_dispatcher(settings: Settings = Depends(get_settings)) -> FetchDispatcher:
    """Provide an upstream dispatcher configured from settings."""

    return FetchDispatcher.from_settings(settings)
