"""Canonical per-request wallet profile built by the normalizer."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class Transaction:
    """Deduplicated transaction touching the profiled wallet."""

    tx_hash: str
    chain_id: int
    timestamp: int  # unix seconds
    from_address: str
    to_address: str | None
    value: int  # wei
    gas_price: int  # wei
    successful: bool = True
    protocol: str | None = None

    def counterparty(self, address: str) -> str | None:
        if self.from_address == address:
            return self.to_address
        return self.from_address


@dataclass(frozen=True)
class TokenBalance:
    """Balance in integer minor units."""

    chain_id: int
    contract_address: str
    symbol: str | None
    amount: int
    decimals: int = 18
    is_nft: bool = False
    nft_count: int = 0


@dataclass(frozen=True)
class TokenApproval:
    chain_id: int
    token_address: str
    spender_address: str
    allowance: int
    is_unlimited: bool = False


@dataclass(frozen=True)
class ChainActivity:
    """Activity of one wallet on one chain. ``degraded`` when the source failed."""

    chain_id: int
    tx_count: int = 0
    first_activity: int | None = None
    last_activity: int | None = None
    balances: tuple[TokenBalance, ...] = ()
    protocols: frozenset[str] = frozenset()
    transactions: tuple[Transaction, ...] = ()
    approvals: tuple[TokenApproval, ...] = ()
    gas_median_wei: int | None = None
    degraded: bool = False
    error: str | None = None


@dataclass(frozen=True)
class WalletProfile:
    """Immutable summary of an address's on-chain activity across chains."""

    address: str
    chains: Mapping[int, ChainActivity] = field(default_factory=dict)

    def __post_init__(self) -> None:
        ordered = {cid: self.chains[cid] for cid in sorted(self.chains)}
        object.__setattr__(self, "chains", MappingProxyType(ordered))

    @property
    def tx_count(self) -> int:
        return sum(c.tx_count for c in self.chains.values())

    @property
    def interacted_protocols(self) -> frozenset[str]:
        protocols: set[str] = set()
        for c in self.chains.values():
            protocols |= c.protocols
        return frozenset(protocols)

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return tuple(tx for c in self.chains.values() for tx in c.transactions)

    @property
    def balances(self) -> tuple[TokenBalance, ...]:
        return tuple(b for c in self.chains.values() for b in c.balances)

    @property
    def approvals(self) -> tuple[TokenApproval, ...]:
        return tuple(a for c in self.chains.values() for a in c.approvals)

    @property
    def active_chains(self) -> tuple[int, ...]:
        return tuple(cid for cid, c in self.chains.items() if c.tx_count > 0)

    @property
    def degraded_chains(self) -> tuple[int, ...]:
        return tuple(cid for cid, c in self.chains.items() if c.degraded)

    @property
    def is_degraded(self) -> bool:
        return any(c.degraded for c in self.chains.values())

    @property
    def first_activity(self) -> int | None:
        stamps = [c.first_activity for c in self.chains.values() if c.first_activity]
        return min(stamps) if stamps else None

    @property
    def last_activity(self) -> int | None:
        stamps = [c.last_activity for c in self.chains.values() if c.last_activity]
        return max(stamps) if stamps else None

    @property
    def counterparties(self) -> frozenset[str]:
        peers = {tx.counterparty(self.address) for tx in self.transactions}
        peers.discard(None)
        peers.discard(self.address)
        return frozenset(p for p in peers if p)

    def balance(self, token: str, chain_id: int | None = None) -> int:
        """Summed balance of a token matched by symbol or contract address."""
        needle = token.lower()
        total = 0
        for b in self.balances:
            if b.is_nft or (chain_id is not None and b.chain_id != chain_id):
                continue
            if b.contract_address == needle or (b.symbol or "").lower() == needle:
                total += b.amount
        return total

    def nft_count(self, collection: str | None = None) -> int:
        needle = collection.lower() if collection else None
        total = 0
        for b in self.balances:
            if not b.is_nft:
                continue
            if needle and b.contract_address != needle and (b.symbol or "").lower() != needle:
                continue
            total += b.nft_count
        return total
