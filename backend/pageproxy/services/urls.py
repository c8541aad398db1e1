"""URL helpers shared by the proxy route and the rewriters."""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from urllib.parse import SplitResult, quote, urljoin, urlsplit, urlunsplit

from pageproxy.services.errors import InvalidTargetUrl, MissingTargetUrl

HTTP_SCHEMES = ("http", "https")
PROXY_PATH = "/proxy"

# Characters encodeURIComponent leaves alone besides the unreserved set.
_URI_COMPONENT_SAFE = "!~*'()"

# Code points a browser refuses in a domain name (control characters are
# checked separately).
_FORBIDDEN_HOST_CHARS = frozenset(" #%/:<>?@[\\]^|\x7f")


@dataclass(frozen=True, slots=True)
class TargetUrl:
    """A validated absolute target with its fragment-free key form."""

    raw: str
    normalized: str


def _valid_host(parts: SplitResult) -> bool:
    host = parts.hostname
    if not host:
        return False
    if "[" in parts.netloc:
        try:
            ipaddress.IPv6Address(host.split("%", 1)[0])
        except ValueError:
            return False
        return True
    return not any(ch in _FORBIDDEN_HOST_CHARS or ch < " " for ch in host)


def parse_target(raw: str | None) -> TargetUrl:
    """Validate the ``url`` query parameter of a proxy request.

    Raises ``MissingTargetUrl`` for an absent or empty value and
    ``InvalidTargetUrl`` when it is not an absolute http(s) URL with a
    usable host.
    """

    if not raw:
        raise MissingTargetUrl()
    value = raw.strip()
    try:
        parts = urlsplit(value)
        parts.port  # raises on a malformed port
    except ValueError:
        raise InvalidTargetUrl() from None
    if parts.scheme.lower() not in HTTP_SCHEMES or not _valid_host(parts):
        raise InvalidTargetUrl()
    netloc = parts.netloc if "@" in parts.netloc else parts.netloc.lower()
    normalized = urlunsplit(
        (parts.scheme.lower(), netloc, parts.path or "/", parts.query, "")
    )
    return TargetUrl(raw=value, normalized=normalized)


def build_proxy_base(scheme: str, host: str) -> str:
    return f"{scheme}://{host}{PROXY_PATH}?url="


def encode_uri_component(value: str) -> str:
    """Percent-encode ``value`` the way the browser's encodeURIComponent does."""

    return quote(value, safe=_URI_COMPONENT_SAFE)


def resolve_reference(value: str, base: str) -> str | None:
    """Resolve ``value`` against ``base``; ``None`` when no http(s) URL results."""

    try:
        absolute = urljoin(base, value.strip())
        parts = urlsplit(absolute)
        parts.port
    except ValueError:
        return None
    if parts.scheme.lower() not in HTTP_SCHEMES or not _valid_host(parts):
        return None
    if not parts.path:
        absolute = urlunsplit(parts._replace(path="/"))
    return absolute


__all__ = [
    "HTTP_SCHEMES",
    "PROXY_PATH",
    "TargetUrl",
    "build_proxy_base",
    "encode_uri_component",
    "parse_target",
    "resolve_reference",
]
