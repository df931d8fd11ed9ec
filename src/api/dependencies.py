"""FastAPI dependency injection — analytics service and its wiring."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from config.settings import Settings
from src.analytics.chaindata.client import GoldRushClient
from src.analytics.registry import ProjectRegistry
from src.db.cache import MemoryCacheStore, RedisCacheStore, ResultCache
from src.db.redis import get_redis
from src.services.analytics import WalletAnalyticsService


async def build_service(settings: Settings) -> WalletAnalyticsService:
    """Wire the production service: GoldRush provider, JSON registry, cache store."""
    provider = GoldRushClient(
        settings.goldrush_api_key,
        base_url=settings.goldrush_base_url,
        max_rps=settings.goldrush_max_rps,
        page_size=settings.goldrush_page_size,
        timeout=settings.chain_data_timeout_sec,
    )
    registry = ProjectRegistry.from_file(settings.project_registry_path)
    store = (
        RedisCacheStore(await get_redis())
        if settings.enable_redis_cache
        else MemoryCacheStore()
    )
    return WalletAnalyticsService.from_settings(settings, provider, registry, ResultCache(store))


def get_service(request: Request) -> WalletAnalyticsService:
    """Return the service attached to the running app."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialised",
        )
    return service
