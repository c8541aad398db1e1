"""Upstream fetch and content-type dispatch for proxied responses."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional

import httpx

from pageproxy.core.config import Settings
from pageproxy.services.errors import UpstreamFetchError
from pageproxy.services.rewrite import RewriteContext, rewrite_css, rewrite_html

logger = logging.getLogger(__name__)

ContentKind = Literal["html", "css", "javascript", "wasm", "binary"]

WASM_CONTENT_TYPE = "application/wasm"


def classify_content_type(content_type: str) -> ContentKind:
    """Map a declared content type to the way its body is handled."""

    lowered = content_type.lower()
    if "text/html" in lowered:
        return "html"
    if "text/css" in lowered:
        return "css"
    if "application/javascript" in lowered or "text/javascript" in lowered:
        return "javascript"
    if WASM_CONTENT_TYPE in lowered:
        return "wasm"
    return "binary"


@dataclass(frozen=True, slots=True)
class ProxiedResponse:
    status_code: int
    content_type: str
    body: bytes
    kind: ContentKind


class FetchDispatcher:
    """Fetch a target with a plain GET and rewrite the body by content type.

    Only the dispatcher's own client is affected by ``verify_tls``; nothing
    process-wide is changed. ``timeout_seconds=None`` waits indefinitely.
    """

    def __init__(
        self,
        *,
        user_agent: str = "Mozilla/5.0",
        timeout_seconds: Optional[float] = 30.0,
        verify_tls: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._user_agent = user_agent
        self._timeout = httpx.Timeout(timeout_seconds)
        self._verify_tls = verify_tls
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "FetchDispatcher":
        return cls(
            user_agent=settings.upstream_user_agent,
            timeout_seconds=settings.upstream_timeout_seconds,
            verify_tls=settings.upstream_verify_tls,
        )

    async def fetch(self, target: str, ctx: RewriteContext) -> ProxiedResponse:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                verify=self._verify_tls,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    target, headers={"User-Agent": self._user_agent}
                )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            reason = str(exc) or exc.__class__.__name__
            logger.error(
                "Upstream fetch failed",
                extra={"target": target, "reason": reason},
            )
            raise UpstreamFetchError(reason) from exc

        content_type = response.headers.get("content-type", "")
        kind = classify_content_type(content_type)
        logger.debug(
            "Upstream response received",
            extra={
                "target": target,
                "status_code": response.status_code,
                "content_type": content_type,
                "kind": kind,
                "bytes": len(response.content),
            },
        )
        return ProxiedResponse(
            status_code=response.status_code,
            content_type=WASM_CONTENT_TYPE if kind == "wasm" else content_type,
            body=_render_body(response, kind, ctx),
            kind=kind,
        )


def _render_body(response: httpx.Response, kind: ContentKind, ctx: RewriteContext) -> bytes:
    if kind == "html":
        return _encode(rewrite_html(response.text, ctx), response, "xmlcharrefreplace")
    if kind == "css":
        return _encode(rewrite_css(response.text, ctx), response, "replace")
    return response.content


def _encode(text: str, response: httpx.Response, errors: str) -> bytes:
    # Same charset the body was decoded with, so the forwarded header stays true.
    return text.encode(response.encoding or "utf-8", errors=errors)


__all__ = [
    "ContentKind",
    "FetchDispatcher",
    "ProxiedResponse",
    "classify_content_type",
]
