"""Proxy endpoint: fetch a target URL and rewrite it to browse through this server."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from pageproxy.core.config import Settings, get_settings
from pageproxy.deps import get_fetch_dispatcher, get_rate_limiter
from pageproxy.services.errors import RateLimitExceeded
from pageproxy.services.fetcher import FetchDispatcher
from pageproxy.services.rate_limit import RateKey, RateLimiter
from pageproxy.services.rewrite import RewriteContext
from pageproxy.services.urls import PROXY_PATH, build_proxy_base, parse_target

logger = logging.getLogger(__name__)

router = APIRouter(prefix=PROXY_PATH, tags=["proxy"])


def client_identity(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def proxy_base_for(request: Request) -> str:
    """Prefix that routes a rewritten reference back through this server."""

    host = request.headers.get("host") or request.url.netloc
    return build_proxy_base(request.url.scheme, host)


@router.get("", summary="Fetch a URL and rewrite it for browsing through the proxy")
async def proxy_target(
    request: Request,
    url: Optional[str] = Query(default=None, description="Absolute http(s) URL to fetch"),
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
    dispatcher: FetchDispatcher = Depends(get_fetch_dispatcher),
) -> Response:
    """Fetch ``url`` upstream and return it rewritten to route through here.

    The upstream status code is forwarded unchanged (a 404 page comes back
    as 404, not 200) and error pages are rewritten the same way as
    successful ones. Invalid or throttled requests never reach upstream.
    """

    target = parse_target(url)
    client = client_identity(request)

    if not limiter.admit(RateKey(client=client, target=target.normalized)):
        logger.warning(
            "Rate limit exceeded",
            extra={"client": client, "target": target.normalized},
        )
        raise RateLimitExceeded()

    if settings.log_requests:
        logger.info(
            "[PROXY] %s (normalized: %s)",
            target.raw,
            target.normalized,
            extra={"client": client},
        )

    ctx = RewriteContext(base_url=target.raw, proxy_base=proxy_base_for(request))
    result = await dispatcher.fetch(target.raw, ctx)

    headers = {"content-type": result.content_type} if result.content_type else None
    return Response(content=result.body, status_code=result.status_code, headers=headers)
