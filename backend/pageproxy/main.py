"""FastAPI application entrypoint for the rewriting proxy."""
import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from pageproxy.api.routes import api_router
from pageproxy.core.config import Settings, get_settings
from pageproxy.services.errors import ProxyError

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"


def _resolve_settings(app: FastAPI) -> Settings:
    # Respect dependency override for get_settings in tests
    override = app.dependency_overrides.get(get_settings)
    return override() if callable(override) else get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fails startup when the configuration is missing or invalid
    settings = _resolve_settings(app)
    logger.info(
        "Proxy starting",
        extra={
            "log_requests": settings.log_requests,
            "rate_window_ms": settings.rate_window_ms,
            "rate_max_requests": settings.rate_max_requests,
            "upstream_verify_tls": settings.upstream_verify_tls,
        },
    )
    if not settings.upstream_verify_tls:
        logger.warning("Upstream TLS certificate verification is disabled")
    yield


app = FastAPI(title="pageproxy", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1024)


class HealthResponse(BaseModel):
    status: str = "ok"


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check() -> HealthResponse:
    """Return service health information for monitoring and load-balancers."""
    return HealthResponse()


@app.exception_handler(ProxyError)
async def proxy_error_handler(request: Request, exc: ProxyError) -> PlainTextResponse:
    return PlainTextResponse(exc.message, status_code=exc.status_code)


@app.middleware("http")
async def relaxed_cors_middleware(request: Request, call_next):
    response = await call_next(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Headers"] = "*"
    return response


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    # Correlation id
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    started = time.perf_counter()
    response = await call_next(request)
    logger.debug(
        "Request handled",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": str(request.url.path),
            "status_code": response.status_code,
            "duration_ms": (time.perf_counter() - started) * 1000.0,
            "ip": request.client.host if request.client else None,
        },
    )
    # Propagate request id to client
    response.headers["X-Request-Id"] = request_id
    return response


app.include_router(api_router)
app.mount("/", StaticFiles(directory=STATIC_DIR, html=True, check_dir=False), name="static")
