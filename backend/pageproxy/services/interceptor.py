"""Client-side interceptor that routes a page's runtime requests through the proxy.

Rewriting markup only covers references present when the page is fetched.
The script below patches ``window.fetch`` and ``window.XMLHttpRequest`` so
requests the page issues later (dynamic fetches, XHR polling, SPA navigation)
are sent to ``<origin>/proxy?url=...`` as well. The proxy origin is computed
in the browser from ``location.origin``.
"""
from __future__ import annotations

import re

INTERCEPTOR_MARKER = "data-pageproxy-interceptor"

INTERCEPTOR_SCRIPT = r"""
<script data-pageproxy-interceptor="1">
(function () {
  const proxyBase = location.origin + "/proxy?url=";
  function shouldProxy(url) {
    return typeof url === "string" && !url.startsWith(proxyBase) && /^https?:\/\//i.test(url);
  }
  function toProxy(url) {
    return proxyBase + encodeURIComponent(url);
  }
  const originalFetch = window.fetch;
  window.fetch = function (resource, init) {
    try {
      if (resource instanceof Request) {
        if (shouldProxy(resource.url)) {
          resource = new Request(toProxy(resource.url), resource);
        }
      } else {
        const url = String(resource);
        if (shouldProxy(url)) {
          resource = toProxy(url);
        }
      }
    } catch (e) {}
    return originalFetch.call(this, resource, init);
  };
  const OriginalXHR = window.XMLHttpRequest;
  function ProxyXHR() {
    const xhr = new OriginalXHR();
    const open = xhr.open;
    xhr.open = function (method, url, ...args) {
      try {
        const target = String(url);
        if (shouldProxy(target)) {
          url = toProxy(target);
        }
      } catch (e) {}
      return open.call(this, method, url, ...args);
    };
    return xhr;
  }
  ProxyXHR.prototype = OriginalXHR.prototype;
  ["UNSENT", "OPENED", "HEADERS_RECEIVED", "LOADING", "DONE"].forEach(function (name) {
    ProxyXHR[name] = OriginalXHR[name];
  });
  window.XMLHttpRequest = ProxyXHR;
})();
</script>
"""

_BODY_CLOSE_RE = re.compile(r"</body>", re.IGNORECASE)


def inject_interceptor(html: str) -> str:
    """Insert the interceptor right before the first ``</body>``.

    Documents without a closing body tag, or already carrying the
    interceptor, are returned unchanged.
    """

    if INTERCEPTOR_MARKER in html:
        return html
    return _BODY_CLOSE_RE.sub(
        lambda match: INTERCEPTOR_SCRIPT + match.group(0), html, count=1
    )


__all__ = ["INTERCEPTOR_MARKER", "INTERCEPTOR_SCRIPT", "inject_interceptor"]
