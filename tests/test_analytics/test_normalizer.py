"""Tests for the data normalizer — raw per-chain fetches into a WalletProfile."""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from src.analytics.chaindata.exceptions import ChainDataApiError
from src.analytics.chaindata.models import (
    RawApproval,
    RawBalance,
    RawChainActivity,
    RawTransaction,
    TransactionPage,
)
from src.analytics.exceptions import UpstreamUnavailableError
from src.analytics.normalizer import (
    build_wallet_profile,
    collect_wallet_profile,
    fetch_chain_activity,
)

WALLET = "0x" + "ab" * 20
ROUTER = "0x" + "c0" * 20
FRIEND = "0x" + "f1" * 20


def _tx(tx_hash: str, ts: int, *, frm: str = WALLET, to: str | None = ROUTER, value: int = 0,
        label: str | None = None, gas_price: int = 10**9) -> RawTransaction:
    return RawTransaction(
        tx_hash=tx_hash,
        block_signed_at=datetime.fromtimestamp(ts, tz=UTC),
        from_address=frm,
        to_address=to,
        to_address_label=label,
        value=value,
        gas_price=gas_price,
    )


class TestBuildWalletProfile:
    def test_dedupes_and_sorts_transactions(self) -> None:
        raw = RawChainActivity(
            chain_id=1,
            transactions=[
                _tx("0xBB", 200),
                _tx("0xaa", 100),
                _tx("0xbb", 200),  # duplicate across overlapping pages
            ],
        )
        profile = build_wallet_profile(WALLET, {1: raw})
        chain = profile.chains[1]
        assert chain.tx_count == 2
        assert [t.tx_hash for t in chain.transactions] == ["0xaa", "0xbb"]
        assert chain.first_activity == 100
        assert chain.last_activity == 200

    def test_chains_ordered_by_id(self) -> None:
        profile = build_wallet_profile(
            WALLET,
            {137: RawChainActivity(chain_id=137), 1: RawChainActivity(chain_id=1)},
        )
        assert list(profile.chains) == [1, 137]

    def test_protocols_from_outgoing_targets_and_labels(self) -> None:
        raw = RawChainActivity(
            chain_id=1,
            transactions=[
                _tx("0x1", 100, label="Uniswap V3"),
                _tx("0x2", 110, frm=FRIEND, to=WALLET),
            ],
        )
        profile = build_wallet_profile(WALLET, {1: raw})
        assert profile.interacted_protocols == frozenset({ROUTER, "uniswap v3"})

    def test_balances_in_minor_units_and_dust_dropped(self) -> None:
        raw = RawChainActivity(
            chain_id=1,
            balances=[
                RawBalance(contract_address="0xEEEE", contract_ticker_symbol="ETH",
                           balance="1000000000000000000000000"),
                RawBalance(contract_address="0xdust", contract_ticker_symbol="SCAM", type="dust",
                           balance=5),
                RawBalance(contract_address="0xNFT", contract_ticker_symbol="PUNK", type="nft",
                           balance=2, nft_count=2),
            ],
        )
        profile = build_wallet_profile(WALLET, {1: raw})
        assert profile.balance("eth") == 10**24
        assert profile.balance("SCAM") == 0
        assert profile.nft_count() == 2
        assert profile.nft_count("punk") == 2

    def test_zero_allowance_approvals_dropped(self) -> None:
        raw = RawChainActivity(
            chain_id=1,
            approvals=[
                RawApproval(token_address="0xT1", spender_address="0xS1", allowance="UNLIMITED",
                            is_unlimited=True),
                RawApproval(token_address="0xT2", spender_address="0xS2", allowance=0),
            ],
        )
        profile = build_wallet_profile(WALLET, {1: raw})
        assert len(profile.approvals) == 1
        assert profile.approvals[0].allowance == 2**256 - 1
        assert profile.approvals[0].is_unlimited

    def test_failed_chain_is_degraded(self) -> None:
        profile = build_wallet_profile(
            WALLET,
            {1: RawChainActivity(chain_id=1), 10: asyncio.TimeoutError()},
        )
        assert profile.degraded_chains == (10,)
        assert profile.chains[10].error == "timeout"
        assert profile.is_degraded

    def test_error_text_is_class_name_only(self) -> None:
        profile = build_wallet_profile(
            WALLET, {1: ChainDataApiError("https://api?key=secret")}
        )
        assert profile.chains[1].error == "ChainDataApiError"

    def test_pure(self) -> None:
        raw = {1: RawChainActivity(chain_id=1, transactions=[_tx("0x1", 100)])}
        assert build_wallet_profile(WALLET, raw) == build_wallet_profile(WALLET, raw)


class TestFetchChainActivity:
    @pytest.mark.asyncio
    async def test_follows_pages_until_exhausted(self) -> None:
        provider = AsyncMock()
        provider.get_transactions.side_effect = [
            TransactionPage(items=[_tx("0x1", 100)], page_number=0, has_more=True),
            TransactionPage(items=[_tx("0x2", 200)], page_number=1, has_more=False),
        ]
        provider.get_balances.return_value = []
        provider.get_approvals.return_value = []
        provider.get_gas_median.return_value = 5

        raw = await fetch_chain_activity(provider, 1, WALLET, max_pages=5)
        assert [t.tx_hash for t in raw.transactions] == ["0x1", "0x2"]
        assert provider.get_transactions.await_count == 2
        assert raw.gas_median_wei == 5

    @pytest.mark.asyncio
    async def test_page_cap(self) -> None:
        provider = AsyncMock()
        provider.get_transactions.return_value = TransactionPage(items=[], has_more=True)
        provider.get_balances.return_value = []
        provider.get_approvals.return_value = []
        provider.get_gas_median.return_value = None

        await fetch_chain_activity(provider, 1, WALLET, max_pages=3)
        assert provider.get_transactions.await_count == 3

    @pytest.mark.asyncio
    async def test_gas_oracle_failure_tolerated(self) -> None:
        provider = AsyncMock()
        provider.get_transactions.return_value = TransactionPage()
        provider.get_balances.return_value = []
        provider.get_approvals.return_value = []
        provider.get_gas_median.side_effect = ChainDataApiError("HTTP 500")

        raw = await fetch_chain_activity(provider, 1, WALLET)
        assert raw.gas_median_wei is None


class TestCollectWalletProfile:
    @pytest.mark.asyncio
    async def test_partial_failure_degrades(self, provider: AsyncMock) -> None:
        async def balances(chain_id: int, address: str) -> list:
            if chain_id == 10:
                raise ChainDataApiError("HTTP 502")
            return []

        provider.get_balances.side_effect = balances
        profile = await collect_wallet_profile(provider, WALLET, [10, 1])
        assert list(profile.chains) == [1, 10]
        assert profile.degraded_chains == (10,)
        assert not profile.chains[1].degraded

    @pytest.mark.asyncio
    async def test_timeout_degrades(self, provider: AsyncMock) -> None:
        async def slow(chain_id: int, address: str) -> list:
            if chain_id == 1:
                await asyncio.sleep(1)
            return []

        provider.get_balances.side_effect = slow
        profile = await collect_wallet_profile(provider, WALLET, [1, 10], timeout=0.01)
        assert profile.degraded_chains == (1,)
        assert profile.chains[1].error == "timeout"

    @pytest.mark.asyncio
    async def test_all_chains_failing_is_unavailable(self, provider: AsyncMock) -> None:
        provider.get_balances.side_effect = ChainDataApiError("HTTP 503")
        with pytest.raises(UpstreamUnavailableError) as exc:
            await collect_wallet_profile(provider, WALLET, [1, 10])
        assert exc.value.errors == {1: "ChainDataApiError", 10: "ChainDataApiError"}
