"""Airdrop eligibility endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.api.dependencies import get_service
from src.models.responses import EligibilityResponse
from src.services.analytics import WalletAnalyticsService

router = APIRouter(prefix="/api/v1", tags=["eligibility"])


@router.get("/eligibility/{address}", response_model=EligibilityResponse)
async def eligibility(
    address: str,
    service: WalletAnalyticsService = Depends(get_service),
) -> EligibilityResponse:
    """Per-project eligibility scores for a wallet across supported chains."""
    return await service.eligibility(address)
