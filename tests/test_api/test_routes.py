"""Tests for the HTTP surface — status codes, camelCase payloads, error mapping."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from src.analytics.chaindata.exceptions import ChainDataApiError
from src.analytics.exceptions import ComputationError
from src.api.app import create_app, limiter
from src.services.analytics import WalletAnalyticsService

WALLET = "0x" + "ab" * 20


@pytest_asyncio.fixture
async def client(service: WalletAnalyticsService) -> AsyncGenerator[httpx.AsyncClient, None]:
    limiter.reset()
    app = create_app(service)
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestEligibilityRoute:
    @pytest.mark.asyncio
    async def test_invalid_address_is_400_without_upstream_calls(
        self, client: httpx.AsyncClient, provider: AsyncMock
    ) -> None:
        resp = await client.get("/api/v1/eligibility/invalid-address")
        assert resp.status_code == 400
        body = resp.json()
        assert "Invalid address" in body["error"]
        assert body["details"] == {"field": "address"}
        provider.get_transactions.assert_not_awaited()
        provider.get_balances.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_39_hex_digit_address_rejected(self, client: httpx.AsyncClient) -> None:
        resp = await client.get("/api/v1/eligibility/0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb")
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_camel_case_payload(self, client: httpx.AsyncClient) -> None:
        resp = await client.get(f"/api/v1/eligibility/{WALLET}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["address"] == WALLET
        assert body["overallScore"] == 0
        assert body["degradedChains"] == []
        airdrop = body["airdrops"][0]
        assert {"project", "projectId", "status", "score", "matchedCriteria", "totalCriteria",
                "criteria"} <= set(airdrop)

    @pytest.mark.asyncio
    async def test_upstream_down_is_503(self, client: httpx.AsyncClient, provider: AsyncMock) -> None:
        provider.get_balances.side_effect = ChainDataApiError("HTTP 503 key=secret")
        resp = await client.get(f"/api/v1/eligibility/{WALLET}")
        assert resp.status_code == 503
        body = resp.json()
        assert body["details"]["chains"] == {"1": "ChainDataApiError", "10": "ChainDataApiError"}
        assert "secret" not in resp.text

    @pytest.mark.asyncio
    async def test_computation_error_is_500(
        self, client: httpx.AsyncClient, service: WalletAnalyticsService
    ) -> None:
        service.eligibility = AsyncMock(side_effect=ComputationError("negative weight"))
        resp = await client.get(f"/api/v1/eligibility/{WALLET}")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Computation failed", "details": "ComputationError"}

    @pytest.mark.asyncio
    async def test_unexpected_error_hides_internals(
        self, client: httpx.AsyncClient, service: WalletAnalyticsService
    ) -> None:
        service.eligibility = AsyncMock(side_effect=RuntimeError("api_key=secret"))
        resp = await client.get(f"/api/v1/eligibility/{WALLET}")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error", "details": None}


class TestTrendingRoute:
    @pytest.mark.asyncio
    async def test_confirmed_limit_five(self, client: httpx.AsyncClient) -> None:
        resp = await client.get("/api/v1/trending", params={"limit": 5, "status": "confirmed"})
        assert resp.status_code == 200
        body = resp.json()
        assert len(body["trending"]) <= 5
        assert all(p["status"] == "confirmed" for p in body["trending"])
        assert {"rank", "projectId", "trendingScore"} <= set(body["trending"][0])
        assert body["cached"] is False
        assert "generatedAt" in body

    @pytest.mark.asyncio
    async def test_comma_separated_statuses(self, client: httpx.AsyncClient) -> None:
        resp = await client.get("/api/v1/trending", params={"status": "rumored, confirmed"})
        statuses = {p["status"] for p in resp.json()["trending"]}
        assert statuses == {"rumored", "confirmed"}

    @pytest.mark.asyncio
    async def test_bad_params_are_400(self, client: httpx.AsyncClient) -> None:
        assert (await client.get("/api/v1/trending", params={"status": "hyped"})).status_code == 400
        assert (await client.get("/api/v1/trending", params={"limit": "many"})).status_code == 400


class TestWalletRoutes:
    @pytest.mark.asyncio
    async def test_health_payload(self, client: httpx.AsyncClient) -> None:
        resp = await client.get(f"/api/v1/wallet-health/{WALLET}")
        assert resp.status_code == 200
        body = resp.json()
        assert set(body) >= {"address", "healthScore", "recommendations", "riskFactors", "degradedChains"}
        assert len(body["healthScore"]["metrics"]) == 5

    @pytest.mark.asyncio
    async def test_clustering_payload(self, client: httpx.AsyncClient) -> None:
        resp = await client.get(f"/api/v1/wallet-clustering/{WALLET}")
        assert resp.status_code == 200
        body = resp.json()
        assert set(body) >= {"address", "relatedWallets", "clusters", "fundingTree"}
        assert body["fundingTree"]["root"] == WALLET
        assert body["fundingTree"]["nodeCount"] == 1

    @pytest.mark.asyncio
    async def test_invalid_address(self, client: httpx.AsyncClient) -> None:
        assert (await client.get("/api/v1/wallet-health/nope")).status_code == 400
        assert (await client.get("/api/v1/wallet-clustering/nope")).status_code == 400


class TestServiceHealth:
    @pytest.mark.asyncio
    async def test_reports_counters(self, client: httpx.AsyncClient) -> None:
        await client.get("/api/v1/trending")
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["projects"] == 4
        assert body["cache"]["computes"] == 1
        assert body["operations"]["trending"]["runs"] == 1

    @pytest.mark.asyncio
    async def test_security_headers(self, client: httpx.AsyncClient) -> None:
        resp = await client.get("/api/v1/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"


class TestErrorShape:
    @pytest.mark.asyncio
    async def test_service_not_ready_is_503_error_body(self) -> None:
        limiter.reset()
        # ASGITransport does not run the lifespan, so no service is wired.
        transport = httpx.ASGITransport(app=create_app())
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            resp = await c.get(f"/api/v1/wallet-health/{WALLET}")
        assert resp.status_code == 503
        assert resp.json() == {"error": "Service not initialised", "details": None}

    @pytest.mark.asyncio
    async def test_unknown_route_uses_error_body(self, client: httpx.AsyncClient) -> None:
        resp = await client.get("/api/v1/nope")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Not Found", "details": None}
