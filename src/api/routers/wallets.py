"""Wallet relationship and health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.api.dependencies import get_service
from src.models.responses import ClusteringResponse, WalletHealthResponse
from src.services.analytics import WalletAnalyticsService

router = APIRouter(prefix="/api/v1", tags=["wallets"])


@router.get("/wallet-clustering/{address}", response_model=ClusteringResponse)
async def wallet_clustering(
    address: str,
    service: WalletAnalyticsService = Depends(get_service),
) -> ClusteringResponse:
    """Related wallets, clusters and the reconstructed funding tree."""
    return await service.wallet_clustering(address)


@router.get("/wallet-health/{address}", response_model=WalletHealthResponse)
async def wallet_health(
    address: str,
    service: WalletAnalyticsService = Depends(get_service),
) -> WalletHealthResponse:
    """Composite health score with recommendations and risk factors."""
    return await service.wallet_health(address)
