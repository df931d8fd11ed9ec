"""Trending airdrops endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_service
from src.models.responses import TrendingResponse
from src.services.analytics import WalletAnalyticsService

router = APIRouter(prefix="/api/v1", tags=["trending"])


@router.get("/trending", response_model=TrendingResponse)
async def trending(
    service: WalletAnalyticsService = Depends(get_service),
    limit: int | None = Query(None, description="Clamped into [1, 10]"),
    status: str | None = Query(None, max_length=100, description="Comma-separated statuses"),
    chain: str | None = Query(None, max_length=50),
) -> TrendingResponse:
    """Projects ranked by trending score."""
    return await service.trending(limit=limit, status=status, chain=chain)
