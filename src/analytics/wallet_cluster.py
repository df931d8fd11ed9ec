"""Wallet clustering — expand the transfer neighbourhood and analyse it.

Expansion walks counterparties breadth-first through the chain-data provider.
Each frontier level is fetched concurrently and joined in ascending
(chain id, address) order so the resulting edge list never depends on
completion order. Individual wallet fetch failures are skipped.
"""

import asyncio
import math
from dataclasses import dataclass
from datetime import UTC, datetime

from loguru import logger

from src.analytics.address import is_valid_address, short
from src.analytics.chaindata.client import ChainDataProvider
from src.analytics.funding_graph import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_NODES,
    DEFAULT_RELATED_HOPS,
    FundingGraph,
    build_funding_tree,
    derive_clusters,
    find_funding_root,
    related_wallets,
)
from src.models.graph import ClusteringResult, TransferEdge
from src.models.wallet import Transaction, WalletProfile

SECONDS_PER_DAY = 86_400
DEFAULT_FETCH_CONCURRENCY = 8


@dataclass(frozen=True)
class ClusteringParams:
    dust_threshold: int = 0
    max_depth: int = DEFAULT_MAX_DEPTH
    max_nodes: int = DEFAULT_MAX_NODES
    lookback_days: int = 365
    min_volume: int = 0
    min_shared_counterparties: int = 1
    related_hops: int = DEFAULT_RELATED_HOPS
    expansion_depth: int = 2
    fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY


def fetch_concurrency(max_rps: float, timeout: float) -> int:
    """Neighbour fetches that may be in flight at once.

    A fetch queued behind the provider rate limiter must still get through
    within half of its ``timeout``, leaving the other half for the call.
    """
    if max_rps <= 0:
        return DEFAULT_MAX_NODES
    return max(1, math.floor(max_rps * timeout / 2))


def edges_from_transactions(transactions: list[Transaction] | tuple[Transaction, ...]) -> list[TransferEdge]:
    return [
        TransferEdge(
            source=tx.from_address,
            target=tx.to_address,
            amount=tx.value,
            timestamp=tx.timestamp,
            chain_id=tx.chain_id,
            tx_hash=tx.tx_hash,
        )
        for tx in transactions
        if tx.successful and tx.to_address and tx.value > 0
    ]


def _sorted_unique(edges: list[TransferEdge]) -> list[TransferEdge]:
    unique: dict[tuple[int, str, str, str], TransferEdge] = {}
    for e in edges:
        unique.setdefault((e.chain_id, e.tx_hash, e.source, e.target), e)
    return sorted(
        unique.values(),
        key=lambda e: (e.chain_id, e.source, e.target, e.timestamp, e.tx_hash),
    )


async def expand_transfer_graph(
    provider: ChainDataProvider,
    profile: WalletProfile,
    *,
    depth: int = 2,
    max_nodes: int = DEFAULT_MAX_NODES,
    dust_threshold: int = 0,
    timeout: float = 5.0,
    concurrency: int = DEFAULT_FETCH_CONCURRENCY,
) -> list[TransferEdge]:
    """Collect transfer edges around the profiled wallet.

    Level 0 comes from the profile itself. Every further level fetches the
    first transaction page of each unseen counterparty on the chains that
    were healthy for the profile, until ``depth`` levels or ``max_nodes``
    wallets have been visited. At most ``concurrency`` fetches run at once and
    only a running fetch counts against ``timeout``.
    """
    chain_ids = [cid for cid, c in profile.chains.items() if not c.degraded]
    edges = edges_from_transactions(profile.transactions)
    visited = {profile.address}
    frontier = {profile.address}

    for level in range(1, depth):
        next_frontier = sorted({
            peer
            for e in edges
            if e.amount >= dust_threshold and (e.source in frontier or e.target in frontier)
            for peer in (e.source, e.target)
            if peer not in visited and is_valid_address(peer)
        })
        budget = max_nodes - len(visited)
        if budget <= 0 or not next_frontier:
            break
        next_frontier = next_frontier[:budget]
        visited.update(next_frontier)

        jobs = [(cid, addr) for cid in chain_ids for addr in next_frontier]
        semaphore = asyncio.Semaphore(max(1, min(len(jobs), concurrency)))

        async def _fetch(chain_id: int, address: str) -> list[TransferEdge]:
            async with semaphore:
                page = await asyncio.wait_for(
                    provider.get_transactions(chain_id, address, page=0), timeout
                )
            return [
                TransferEdge(
                    source=tx.from_address.lower(),
                    target=tx.to_address.lower(),
                    amount=tx.value,
                    timestamp=tx.timestamp,
                    chain_id=chain_id,
                    tx_hash=tx.tx_hash.lower(),
                )
                for tx in page.items
                if tx.successful and tx.to_address and tx.value > 0
            ]

        results = await asyncio.gather(
            *[_fetch(cid, addr) for cid, addr in jobs], return_exceptions=True
        )
        failed = 0
        for (cid, addr), result in zip(jobs, results):
            if isinstance(result, BaseException):
                failed += 1
                logger.debug(
                    f"[CLUSTER] expansion skip {short(addr)} on chain {cid}: {type(result).__name__}"
                )
                continue
            edges.extend(result)
        if failed:
            logger.info(f"[CLUSTER] level {level}: {failed}/{len(jobs)} neighbour fetches failed")
        frontier = set(next_frontier)

    return _sorted_unique(edges)


def analyze_wallet_cluster(
    address: str,
    edges: list[TransferEdge],
    params: ClusteringParams,
    *,
    now: int | None = None,
) -> ClusteringResult:
    """Funding tree, clusters and related wallets for ``address``. Pure."""
    now = now if now is not None else int(datetime.now(UTC).timestamp())
    graph = FundingGraph.from_edges(edges, dust_threshold=params.dust_threshold)

    root = find_funding_root(
        graph,
        address,
        lookback_cutoff=now - params.lookback_days * SECONDS_PER_DAY,
        max_depth=params.max_depth,
    )
    tree = build_funding_tree(
        graph, root, max_depth=params.max_depth, max_nodes=params.max_nodes
    )
    clusters = derive_clusters(
        graph,
        min_volume=params.min_volume,
        min_shared_counterparties=params.min_shared_counterparties,
    )
    related = related_wallets(graph, address, hops=params.related_hops)

    if tree.dropped_back_edges or tree.dropped_cross_edges:
        logger.debug(
            f"[CLUSTER] {short(address)}: tree root={short(root)} nodes={len(tree.nodes)} "
            f"back_edges={tree.dropped_back_edges} cross_edges={tree.dropped_cross_edges}"
        )
    return ClusteringResult(
        address=address,
        related_wallets=tuple(related),
        clusters=tuple(clusters),
        funding_tree=tree,
    )
