"""FastAPI application factory for the wallet analytics API."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.settings import settings
from src.analytics.exceptions import (
    AnalyticsError,
    UpstreamUnavailableError,
    ValidationError,
)
from src.api.middleware import SecurityHeadersMiddleware
from src.db.redis import close_redis
from src.models.responses import ErrorResponse
from src.services.analytics import WalletAnalyticsService

VERSION = "0.1.0"

# Rate limiter (shared instance)
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.api_rate_limit])


def _error(status_code: int, error: str, details: object = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, str(exc), {"field": exc.field})


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid request parameters", {"fields": fields})


async def _upstream_error(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
    return _error(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Chain data unavailable",
        {"chains": {str(cid): reason for cid, reason in exc.errors.items()}},
    )


async def _analytics_error(request: Request, exc: AnalyticsError) -> JSONResponse:
    logger.error(f"[API] {request.url.path}: {type(exc).__name__}: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Computation failed", type(exc).__name__)


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"[API] unhandled error on {request.url.path}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    owned = app.state.service is None
    if owned:
        from src.api.dependencies import build_service

        app.state.service = await build_service(settings)
    try:
        yield
    finally:
        if owned:
            close = getattr(app.state.service.provider, "close", None)
            if close is not None:
                await close()
            await close_redis()


def create_app(service: WalletAnalyticsService | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    A pre-built ``service`` is used as-is; otherwise one is wired from
    settings on startup and torn down on shutdown.
    """
    app = FastAPI(
        title="Wallet Analytics API",
        version=VERSION,
        docs_url="/api/docs" if settings.api_debug else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if settings.api_debug else None,
        lifespan=_lifespan,
    )
    app.state.service = service

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware)

    # Error mapping: 400 validation, 503 upstream, 500 everything else
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(UpstreamUnavailableError, _upstream_error)
    app.add_exception_handler(AnalyticsError, _analytics_error)
    app.add_exception_handler(Exception, _unexpected_error)

    # Import and include routers
    from src.api.routers.eligibility import router as eligibility_router
    from src.api.routers.health import router as health_router
    from src.api.routers.trending import router as trending_router
    from src.api.routers.wallets import router as wallets_router

    app.include_router(health_router)
    app.include_router(eligibility_router)
    app.include_router(trending_router)
    app.include_router(wallets_router)

    return app
