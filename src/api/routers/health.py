"""Health check — service status, cache and operation counters."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from config.settings import settings
from src.api.app import VERSION
from src.api.dependencies import get_service
from src.db.redis import ping_redis
from src.models.responses import ServiceHealthResponse
from src.services.analytics import WalletAnalyticsService

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=ServiceHealthResponse)
async def health_check(
    service: WalletAnalyticsService = Depends(get_service),
) -> ServiceHealthResponse:
    """Check Redis connectivity (when enabled) and report runtime counters."""
    redis_ok = await ping_redis() if settings.enable_redis_cache else None
    summary = service.metrics.get_summary()
    return ServiceHealthResponse(
        status="degraded" if redis_ok is False else "ok",
        version=VERSION,
        uptime_sec=summary.get("uptime_sec", 0),
        redis_ok=redis_ok,
        projects=len(service.registry),
        cache={**service.cache.stats.as_dict(), "inflight": service.cache.inflight},
        operations=summary["operations"],
    )
