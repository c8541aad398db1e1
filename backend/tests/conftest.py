import pytest

from pageproxy.deps import _create_rate_limiter
from pageproxy.main import app


@pytest.fixture
def anyio_backend() -> str:
    """Force anyio-based tests to run with asyncio backend only."""

    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_app_state():
    """Each test starts with fresh limiter buckets and no dependency overrides."""

    _create_rate_limiter.cache_clear()
    yield
    app.dependency_overrides.clear()
    _create_rate_limiter.cache_clear()
