"""GoldRush (Covalent) API client — per-address transactions, balances, approvals."""

import asyncio
from typing import Any, Protocol

import httpx
from loguru import logger

from src.analytics.chaindata.exceptions import (
    ChainDataApiError,
    ChainDataError,
    ChainDataRateLimitError,
    UnsupportedChainError,
)
from src.analytics.chaindata.models import (
    RawApproval,
    RawBalance,
    RawTransaction,
    TransactionPage,
)
from src.analytics.rate_limiter import RateLimiter

MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]

# EVM chain id → GoldRush chain name
GOLDRUSH_CHAINS: dict[int, str] = {
    1: "eth-mainnet",
    10: "optimism-mainnet",
    56: "bsc-mainnet",
    137: "matic-mainnet",
    324: "zksync-mainnet",
    8453: "base-mainnet",
    42161: "arbitrum-mainnet",
    59144: "linea-mainnet",
}


class ChainDataProvider(Protocol):
    """Contract of the external chain-data collaborator.

    Every call may fail (ChainDataError) or hang; callers bound it with a timeout.
    """

    async def get_transactions(
        self, chain_id: int, address: str, *, page: int = 0
    ) -> TransactionPage: ...

    async def get_balances(self, chain_id: int, address: str) -> list[RawBalance]: ...

    async def get_approvals(self, chain_id: int, address: str) -> list[RawApproval]: ...

    async def get_gas_median(self, chain_id: int) -> int | None: ...


class GoldRushClient:
    """Async HTTP client for the GoldRush Foundational API."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.covalenthq.com/v1",
        max_rps: float = 4.0,
        page_size: int = 100,
        timeout: float = 5.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._page_size = page_size
        self._rate_limiter = RateLimiter(max_rps)
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"} if api_key else {},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def get_transactions(
        self, chain_id: int, address: str, *, page: int = 0
    ) -> TransactionPage:
        chain = _chain_name(chain_id)
        data = await self._get(
            f"/{chain}/address/{address}/transactions_v3/page/{page}/",
            {"page-size": self._page_size, "no-logs": "true"},
        )
        items = [RawTransaction.model_validate(tx) for tx in data.get("items") or []]
        links = data.get("links") or {}
        pagination = data.get("pagination") or {}
        has_more = bool(links.get("prev")) or bool(pagination.get("has_more"))
        return TransactionPage(items=items, page_number=page, has_more=has_more)

    async def get_balances(self, chain_id: int, address: str) -> list[RawBalance]:
        chain = _chain_name(chain_id)
        data = await self._get(
            f"/{chain}/address/{address}/balances_v2/",
            {"nft": "true", "no-nft-fetch": "true"},
        )
        balances: list[RawBalance] = []
        for item in data.get("items") or []:
            balance = RawBalance.model_validate(item)
            if balance.type == "nft":
                balance.nft_count = len(item.get("nft_data") or []) or balance.balance
            balances.append(balance)
        return balances

    async def get_approvals(self, chain_id: int, address: str) -> list[RawApproval]:
        chain = _chain_name(chain_id)
        data = await self._get(f"/{chain}/approvals/{address}/", {})
        approvals: list[RawApproval] = []
        for token in data.get("items") or []:
            for spender in token.get("spenders") or []:
                allowance = spender.get("allowance")
                approvals.append(RawApproval(
                    token_address=token.get("token_address", ""),
                    token_symbol=token.get("ticker_symbol"),
                    spender_address=spender.get("spender_address", ""),
                    spender_label=spender.get("spender_address_label"),
                    allowance=allowance,
                    is_unlimited=str(allowance).upper() == "UNLIMITED",
                ))
        return approvals

    async def get_gas_median(self, chain_id: int) -> int | None:
        """Median network gas price (wei) from the nativetokens gas oracle."""
        chain = _chain_name(chain_id)
        data = await self._get(f"/{chain}/event/nativetokens/gasprices/", {})
        prices = sorted(
            int(item["gas_price"])
            for item in data.get("items") or []
            if item.get("gas_price") is not None
        )
        if not prices:
            return None
        return prices[len(prices) // 2]

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        for attempt in range(MAX_RETRIES + 1):
            try:
                await self._rate_limiter.acquire()
                resp = await self._client.get(url, params=params)

                if resp.status_code == 429:
                    if attempt < MAX_RETRIES:
                        await asyncio.sleep(RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)])
                        continue
                    raise ChainDataRateLimitError(f"Rate limited on {path}")
                if resp.status_code != 200:
                    logger.debug(f"[GOLDRUSH] HTTP {resp.status_code} for {path}")
                    raise ChainDataApiError(f"HTTP {resp.status_code}")

                body = resp.json()
                if body.get("error"):
                    raise ChainDataApiError(str(body.get("error_message") or "API error"))
                return body.get("data") or {}

            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)])
                else:
                    logger.warning(f"[GOLDRUSH] {path.split('/')[1]} request failed: {type(e).__name__}")
                    raise ChainDataError(f"{type(e).__name__} after {MAX_RETRIES + 1} attempts") from e

        raise ChainDataError("retries exhausted")


def _chain_name(chain_id: int) -> str:
    name = GOLDRUSH_CHAINS.get(chain_id)
    if name is None:
        raise UnsupportedChainError(f"Chain {chain_id} is not supported")
    return name
