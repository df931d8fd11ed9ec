"""Shared test fixtures."""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.analytics.chaindata.models import TransactionPage
from src.analytics.metrics import AnalyticsMetrics
from src.analytics.registry import ProjectRegistry
from src.db.cache import MemoryCacheStore, ResultCache
from src.models.project import Criterion, Project, ProjectStatus
from src.services.analytics import WalletAnalyticsService

WALLET = "0x" + "ab" * 20
NOW = datetime(2026, 10, 1, tzinfo=UTC)


@pytest.fixture
def provider() -> AsyncMock:
    """Chain-data provider with an empty wallet on every chain."""
    p = AsyncMock()
    p.get_transactions.return_value = TransactionPage(items=[], has_more=False)
    p.get_balances.return_value = []
    p.get_approvals.return_value = []
    p.get_gas_median.return_value = 20 * 10**9
    return p


@pytest.fixture
def projects() -> list[Project]:
    return [
        Project(
            id="alpha",
            name="Alpha",
            status=ProjectStatus.CONFIRMED,
            chains=["ethereum"],
            estimated_value=Decimal("1000"),
            snapshot_date=datetime(2026, 9, 25, tzinfo=UTC),
            criteria=[Criterion(type="tx_count_min", params={"min": 5})],
        ),
        Project(
            id="beta",
            name="Beta",
            status=ProjectStatus.RUMORED,
            chains=["base"],
            estimated_value=Decimal("500"),
            snapshot_date=datetime(2026, 9, 1, tzinfo=UTC),
            criteria=[Criterion(type="chain_count_min", params={"min": 1})],
        ),
        Project(
            id="gamma",
            name="Gamma",
            status=ProjectStatus.CONFIRMED,
            chains=["ethereum", "arbitrum"],
            criteria=[Criterion(type="wallet_age_min", params={"days": 30})],
        ),
        Project(
            id="omega",
            name="Omega",
            status=ProjectStatus.EXPIRED,
            chains=["ethereum"],
            estimated_value=Decimal("9999"),
            criteria=[Criterion(type="tx_count_min", params={"min": 1})],
        ),
    ]


@pytest.fixture
def registry(projects: list[Project]) -> ProjectRegistry:
    return ProjectRegistry(projects)


@pytest.fixture
def service(provider: AsyncMock, registry: ProjectRegistry) -> WalletAnalyticsService:
    """Service over an in-memory cache, two chains and a fixed clock."""
    return WalletAnalyticsService(
        provider,
        registry,
        ResultCache(MemoryCacheStore()),
        chain_ids=[1, 10],
        metrics=AnalyticsMetrics(),
        clock=lambda: NOW,
    )
