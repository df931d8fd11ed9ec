"""Data normalizer — raw per-chain fetches into one canonical WalletProfile.

Per-chain fetches fan out concurrently and are joined in ascending chain id.
A failed or timed-out chain is recorded as degraded instead of failing the
request; only when every chain fails is the request unavailable.
"""

import asyncio
from collections.abc import Mapping

from loguru import logger

from src.analytics.address import short
from src.analytics.chaindata.client import ChainDataProvider
from src.analytics.chaindata.models import RawChainActivity, RawTransaction
from src.analytics.exceptions import UpstreamUnavailableError
from src.models.wallet import (
    ChainActivity,
    TokenApproval,
    TokenBalance,
    Transaction,
    WalletProfile,
)

DEFAULT_TIMEOUT_SEC = 5.0
DEFAULT_MAX_PAGES = 5


def build_wallet_profile(
    address: str,
    fetches: Mapping[int, RawChainActivity | BaseException],
) -> WalletProfile:
    """Merge per-chain fetch results into a WalletProfile.

    ``address`` must already be normalized. Pure: identical input gives an
    identical profile.
    """
    chains: dict[int, ChainActivity] = {}
    for chain_id in sorted(fetches):
        fetched = fetches[chain_id]
        if isinstance(fetched, BaseException):
            chains[chain_id] = ChainActivity(
                chain_id=chain_id,
                degraded=True,
                error=_describe_error(fetched),
            )
            continue
        chains[chain_id] = _normalize_chain(address, fetched)
    return WalletProfile(address=address, chains=chains)


def _normalize_chain(address: str, raw: RawChainActivity) -> ChainActivity:
    transactions = _dedupe_transactions(address, raw.chain_id, raw.transactions)

    protocols: set[str] = set()
    for tx in transactions:
        if tx.from_address == address and tx.to_address:
            protocols.add(tx.to_address)
        if tx.protocol:
            protocols.add(tx.protocol)

    balances = tuple(sorted(
        (
            TokenBalance(
                chain_id=raw.chain_id,
                contract_address=b.contract_address.lower(),
                symbol=b.contract_ticker_symbol,
                amount=b.balance,
                decimals=b.contract_decimals if b.contract_decimals is not None else 18,
                is_nft=b.type == "nft",
                nft_count=b.nft_count if b.type == "nft" else 0,
            )
            for b in raw.balances
            if b.type != "dust"
        ),
        key=lambda b: (b.contract_address, b.symbol or ""),
    ))

    approvals = tuple(sorted(
        (
            TokenApproval(
                chain_id=raw.chain_id,
                token_address=a.token_address.lower(),
                spender_address=a.spender_address.lower(),
                allowance=a.allowance,
                is_unlimited=a.is_unlimited,
            )
            for a in raw.approvals
            if a.allowance > 0
        ),
        key=lambda a: (a.token_address, a.spender_address),
    ))

    timestamps = [tx.timestamp for tx in transactions if tx.timestamp > 0]
    return ChainActivity(
        chain_id=raw.chain_id,
        tx_count=len(transactions),
        first_activity=min(timestamps) if timestamps else None,
        last_activity=max(timestamps) if timestamps else None,
        balances=balances,
        protocols=frozenset(protocols),
        transactions=transactions,
        approvals=approvals,
        gas_median_wei=raw.gas_median_wei,
    )


def _dedupe_transactions(
    address: str, chain_id: int, raw_txs: list[RawTransaction]
) -> tuple[Transaction, ...]:
    """Drop repeated hashes (overlapping pages); first occurrence wins."""
    by_hash: dict[str, Transaction] = {}
    for raw in raw_txs:
        tx_hash = raw.tx_hash.lower()
        if not tx_hash or tx_hash in by_hash:
            continue
        by_hash[tx_hash] = Transaction(
            tx_hash=tx_hash,
            chain_id=chain_id,
            timestamp=raw.timestamp,
            from_address=raw.from_address.lower(),
            to_address=raw.to_address.lower() if raw.to_address else None,
            value=raw.value,
            gas_price=raw.gas_price,
            successful=raw.successful,
            protocol=raw.to_address_label.lower() if raw.to_address_label else None,
        )
    return tuple(sorted(by_hash.values(), key=lambda t: (t.timestamp, t.tx_hash)))


def _describe_error(exc: BaseException) -> str:
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return "timeout"
    # Class name only: upstream messages may echo request URLs or credentials.
    return type(exc).__name__


async def fetch_chain_activity(
    provider: ChainDataProvider,
    chain_id: int,
    address: str,
    *,
    timeout: float = DEFAULT_TIMEOUT_SEC,
    max_pages: int = DEFAULT_MAX_PAGES,
) -> RawChainActivity:
    """Fetch one chain's raw records. Each upstream call is time-bounded."""
    transactions: list[RawTransaction] = []
    for page in range(max_pages):
        result = await asyncio.wait_for(
            provider.get_transactions(chain_id, address, page=page), timeout
        )
        transactions.extend(result.items)
        if not result.has_more:
            break

    balances = await asyncio.wait_for(provider.get_balances(chain_id, address), timeout)
    approvals = await asyncio.wait_for(provider.get_approvals(chain_id, address), timeout)

    # Gas oracle is auxiliary: its failure never degrades the chain.
    try:
        gas_median = await asyncio.wait_for(provider.get_gas_median(chain_id), timeout)
    except Exception as e:
        logger.debug(f"[NORMALIZE] gas median unavailable for chain {chain_id}: {type(e).__name__}")
        gas_median = None

    return RawChainActivity(
        chain_id=chain_id,
        transactions=transactions,
        balances=balances,
        approvals=approvals,
        gas_median_wei=gas_median,
    )


async def collect_wallet_profile(
    provider: ChainDataProvider,
    address: str,
    chain_ids: list[int],
    *,
    timeout: float = DEFAULT_TIMEOUT_SEC,
    max_pages: int = DEFAULT_MAX_PAGES,
) -> WalletProfile:
    """Fetch all requested chains concurrently and build the profile.

    Raises UpstreamUnavailableError only when every chain failed.
    """
    unique_chains = sorted(set(chain_ids))
    results = await asyncio.gather(
        *[
            fetch_chain_activity(provider, cid, address, timeout=timeout, max_pages=max_pages)
            for cid in unique_chains
        ],
        return_exceptions=True,
    )
    fetches: dict[int, RawChainActivity | BaseException] = dict(zip(unique_chains, results))

    failures = {
        cid: _describe_error(r) for cid, r in fetches.items() if isinstance(r, BaseException)
    }
    for cid, reason in failures.items():
        logger.warning(f"[NORMALIZE] {short(address)} chain {cid} degraded: {reason}")

    if unique_chains and len(failures) == len(unique_chains):
        raise UpstreamUnavailableError(
            f"All {len(unique_chains)} chain data sources failed", errors=failures
        )

    profile = build_wallet_profile(address, fetches)
    logger.debug(
        f"[NORMALIZE] {short(address)}: {profile.tx_count} txs on "
        f"{len(profile.active_chains)} chains, degraded={list(profile.degraded_chains)}"
    )
    return profile
