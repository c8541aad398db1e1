"""Pattern-based rewriting of HTML and CSS references back through the proxy.

Everything here is a pure function over text: no DOM parse, no hidden state.
Markup the patterns do not recognise is left as it was, and a reference that
cannot be resolved against the base URL is kept verbatim while the rest of the
document is still rewritten.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from pageproxy.services.interceptor import inject_interceptor
from pageproxy.services.urls import encode_uri_component, resolve_reference

_SKIPPED_ATTRIBUTE_PREFIXES = ("#", "javascript:", "data:")
_SKIPPED_CSS_PREFIXES = ("data:",)

_ATTRIBUTE_RE = re.compile(
    r"""(href|src|action)=(?:"([^"]+)"|'([^']+)')""", re.IGNORECASE
)
_STYLE_BLOCK_RE = re.compile(
    r"(<style[^>]*>)([\s\S]*?)(</style>)", re.IGNORECASE
)
_STYLE_ATTRIBUTE_RE = re.compile(
    r"""style=(?:"([^"]+)"|'([^']+)')""", re.IGNORECASE
)
_CSS_URL_RE = re.compile(
    r"""url\(\s*(?:&quot;|["'])?(.*?)(?:&quot;|["'])?\s*\)""", re.IGNORECASE
)


@dataclass(frozen=True, slots=True)
class RewriteContext:
    """Per-response inputs shared by every rewriting pass."""

    base_url: str
    proxy_base: str

    def proxied(self, value: str) -> str | None:
        """Return the proxy URL for ``value`` or ``None`` if it does not resolve."""

        absolute = resolve_reference(value, self.base_url)
        if absolute is None:
            return None
        return self.proxy_base + encode_uri_component(absolute)

    def is_proxied(self, value: str) -> bool:
        return value.strip().startswith(self.proxy_base)


def _has_prefix(value: str, prefixes: tuple[str, ...]) -> bool:
    return value.lstrip().lower().startswith(prefixes)


def rewrite_css(css: str, ctx: RewriteContext, quote: str = '"') -> str:
    """Rewrite every ``url(...)`` in ``css`` to go through the proxy.

    ``quote`` wraps the emitted URL; inline style attributes pass ``&quot;``
    so the surrounding attribute stays well-formed.
    """

    def _replace(match: re.Match[str]) -> str:
        value = match.group(1)
        if not value.strip() or _has_prefix(value, _SKIPPED_CSS_PREFIXES):
            return match.group(0)
        if ctx.is_proxied(value):
            return match.group(0)
        proxied = ctx.proxied(value)
        if proxied is None:
            return match.group(0)
        return f"url({quote}{proxied}{quote})"

    return _CSS_URL_RE.sub(_replace, css)


def _rewrite_attributes(html: str, ctx: RewriteContext) -> str:
    def _replace(match: re.Match[str]) -> str:
        attr = match.group(1)
        value = match.group(2) if match.group(2) is not None else match.group(3)
        if _has_prefix(value, _SKIPPED_ATTRIBUTE_PREFIXES) or ctx.is_proxied(value):
            return match.group(0)
        proxied = ctx.proxied(value)
        if proxied is None:
            return match.group(0)
        return f'{attr}="{proxied}"'

    return _ATTRIBUTE_RE.sub(_replace, html)


def _rewrite_style_blocks(html: str, ctx: RewriteContext) -> str:
    def _replace(match: re.Match[str]) -> str:
        opening, css, closing = match.groups()
        return f"{opening}{rewrite_css(css, ctx)}{closing}"

    return _STYLE_BLOCK_RE.sub(_replace, html)


def _rewrite_style_attributes(html: str, ctx: RewriteContext) -> str:
    def _replace(match: re.Match[str]) -> str:
        if match.group(1) is not None:
            return f'style="{rewrite_css(match.group(1), ctx, quote="&quot;")}"'
        return f"style='{rewrite_css(match.group(2), ctx, quote='&quot;')}'"

    return _STYLE_ATTRIBUTE_RE.sub(_replace, html)


def rewrite_html(html: str, ctx: RewriteContext) -> str:
    """Rewrite references in ``html`` and inject the request interceptor.

    Passes run in order: ``href``/``src``/``action`` attributes, ``<style>``
    blocks, ``style`` attributes, then interceptor injection before
    ``</body>``. Already-proxied references are left alone, so rewriting an
    already rewritten document is a no-op.
    """

    html = _rewrite_attributes(html, ctx)
    html = _rewrite_style_blocks(html, ctx)
    html = _rewrite_style_attributes(html, ctx)
    return inject_interceptor(html)


__all__ = ["RewriteContext", "rewrite_css", "rewrite_html"]
