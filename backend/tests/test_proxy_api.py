"""API-level tests for the /proxy endpoint."""
from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from pageproxy.core.config import Settings, get_settings
from pageproxy.deps import get_fetch_dispatcher, get_rate_limiter
from pageproxy.main import app
from pageproxy.services.errors import UpstreamFetchError
from pageproxy.services.fetcher import ProxiedResponse
from pageproxy.services.rate_limit import RateLimiter
from pageproxy.services.rewrite import RewriteContext


class _StubDispatcher:
    def __init__(self, result: ProxiedResponse | None = None, error: Exception | None = None) -> None:
        self.result = result or ProxiedResponse(
            status_code=200, content_type="text/html; charset=utf-8", body=b"<p>ok</p>", kind="html"
        )
        self.error = error
        self.calls: list[tuple[str, RewriteContext]] = []

    async def fetch(self, target: str, ctx: RewriteContext) -> ProxiedResponse:
        self.calls.append((target, ctx))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture(name="limiter")
def limiter_fixture() -> RateLimiter:
    return RateLimiter()


@pytest.fixture(name="dispatcher")
def dispatcher_fixture() -> _StubDispatcher:
    return _StubDispatcher()


@pytest.fixture(name="client")
def client_fixture(limiter: RateLimiter, dispatcher: _StubDispatcher) -> TestClient:
    app.dependency_overrides[get_settings] = lambda: Settings(log_requests=True)
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_fetch_dispatcher] = lambda: dispatcher
    with TestClient(app) as client:
        yield client


@pytest.mark.parametrize("params", [{}, {"url": ""}])
def test_missing_url_is_rejected_before_fetching(
    client: TestClient, dispatcher: _StubDispatcher, limiter: RateLimiter, params: dict
) -> None:
    response = client.get("/proxy", params=params)

    assert response.status_code == 400
    assert response.text == "Missing url"
    assert response.headers["content-type"].startswith("text/plain")
    assert dispatcher.calls == []
    assert len(limiter) == 0


@pytest.mark.parametrize(
    "url",
    [
        "not a url",
        "example.com",
        "ftp://example.com/",
        "http://[::1",
        "http://exa mple.com/",
        "http://a<b>.com/",
        "http://ex%ample.com/",
        "http://a^b.com/",
    ],
)
def test_invalid_url_is_rejected_before_fetching(
    client: TestClient, dispatcher: _StubDispatcher, limiter: RateLimiter, url: str
) -> None:
    response = client.get("/proxy", params={"url": url})

    assert response.status_code == 400
    assert response.text == "Invalid url"
    assert dispatcher.calls == []
    assert len(limiter) == 0


def test_fetches_raw_target_with_proxy_base_from_inbound_request(
    client: TestClient, dispatcher: _StubDispatcher
) -> None:
    response = client.get("/proxy", params={"url": "https://example.com/docs/#intro"})

    assert response.status_code == 200
    assert response.text == "<p>ok</p>"
    assert response.headers["content-type"] == "text/html; charset=utf-8"
    assert response.headers["access-control-allow-origin"] == "*"
    target, ctx = dispatcher.calls[0]
    assert target == "https://example.com/docs/#intro"
    assert ctx == RewriteContext(
        base_url="https://example.com/docs/#intro",
        proxy_base="http://testserver/proxy?url=",
    )


def test_wasm_is_returned_byte_identical(dispatcher: _StubDispatcher, client: TestClient) -> None:
    payload = b"\x00asm\x01\x00\x00\x00" + bytes(range(256))
    dispatcher.result = ProxiedResponse(
        status_code=200, content_type="application/wasm", body=payload, kind="wasm"
    )

    response = client.get("/proxy", params={"url": "https://example.com/mod.wasm"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/wasm"
    assert response.content == payload


def test_upstream_status_and_missing_content_type_pass_through(
    dispatcher: _StubDispatcher, client: TestClient
) -> None:
    dispatcher.result = ProxiedResponse(status_code=404, content_type="", body=b"gone", kind="binary")

    response = client.get("/proxy", params={"url": "https://example.com/missing"})

    assert response.status_code == 404
    assert response.content == b"gone"
    assert "content-type" not in response.headers


def test_upstream_failure_is_reported_as_500(dispatcher: _StubDispatcher, client: TestClient) -> None:
    dispatcher.error = UpstreamFetchError("connection refused")

    response = client.get("/proxy", params={"url": "https://unreachable.example/"})

    assert response.status_code == 500
    assert response.text == "Failed to fetch: connection refused"
    assert response.headers["access-control-allow-origin"] == "*"


def test_requests_are_logged_when_enabled(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="pageproxy.api.routes.proxy")

    client.get("/proxy", params={"url": "https://example.com/a#frag"})

    messages = [record.getMessage() for record in caplog.records]
    assert "[PROXY] https://example.com/a#frag (normalized: https://example.com/a)" in messages


def test_requests_are_not_logged_when_disabled(
    limiter: RateLimiter, dispatcher: _StubDispatcher, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO, logger="pageproxy.api.routes.proxy")
    app.dependency_overrides[get_settings] = lambda: Settings(log_requests=False)
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_fetch_dispatcher] = lambda: dispatcher
    with TestClient(app) as client:
        response = client.get("/proxy", params={"url": "https://example.com/a"})

    assert response.status_code == 200
    assert not any(record.getMessage().startswith("[PROXY]") for record in caplog.records)


def test_rate_limited_request_does_not_reach_upstream(
    client: TestClient, dispatcher: _StubDispatcher
) -> None:
    statuses = [
        client.get("/proxy", params={"url": "https://example.com/"}).status_code
        for _ in range(3)
    ]

    assert statuses == [200, 200, 429]
    assert len(dispatcher.calls) == 2
