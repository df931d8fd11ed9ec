"""Funding graph — directed transfer graph, funding tree and wallet clusters.

The transfer graph is a ``networkx.DiGraph`` keyed by address and may contain
cycles and diamonds. Cycle breaking happens only while building the funding
tree: an edge back into the current root-to-node path is dropped, and a node
reachable by two paths keeps the first one in BFS order.
"""

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

import networkx as nx

from src.models.graph import (
    Cluster,
    FundingTree,
    RelatedWallet,
    TransferEdge,
    WalletNode,
)

DEFAULT_MAX_DEPTH = 5
DEFAULT_MAX_NODES = 200
DEFAULT_RELATED_HOPS = 2


@dataclass
class EdgeStats:
    """Aggregated transfers from one wallet to another."""

    volume: int = 0
    count: int = 0
    transfers: list[tuple[int, int]] = field(default_factory=list)  # (timestamp, amount)

    def volume_since(self, cutoff: int) -> int:
        # Unknown timestamps (0) count as inside any window.
        return sum(amount for ts, amount in self.transfers if ts == 0 or ts >= cutoff)


class FundingGraph:
    """Directed graph of value transfers above the dust threshold.

    Each edge carries its ``EdgeStats`` under the ``stats`` attribute.
    Built once through ``from_edges``; read-only afterwards.
    """

    def __init__(self) -> None:
        self._g = nx.DiGraph()

    @classmethod
    def from_edges(cls, edges: Iterable[TransferEdge], *, dust_threshold: int = 0) -> "FundingGraph":
        graph = cls()
        for edge in edges:
            if edge.amount < dust_threshold or edge.amount <= 0:
                continue
            if edge.source == edge.target or not edge.source or not edge.target:
                continue
            graph._add(edge)
        return graph

    def _add(self, edge: TransferEdge) -> None:
        data = self._g.get_edge_data(edge.source, edge.target)
        if data is None:
            stats = EdgeStats()
            self._g.add_edge(edge.source, edge.target, stats=stats)
        else:
            stats = data["stats"]
        stats.volume += edge.amount
        stats.count += 1
        stats.transfers.append((edge.timestamp, edge.amount))

    def __contains__(self, address: object) -> bool:
        return address in self._g

    def __len__(self) -> int:
        return self._g.number_of_nodes()

    @property
    def nodes(self) -> list[str]:
        return sorted(self._g.nodes)

    def undirected(self) -> nx.Graph:
        """Read-only undirected view, direction ignored."""
        return self._g.to_undirected(as_view=True)

    def successors(self, address: str) -> list[str]:
        return sorted(self._g.successors(address)) if address in self._g else []

    def predecessors(self, address: str) -> list[str]:
        return sorted(self._g.predecessors(address)) if address in self._g else []

    def neighbors(self, address: str) -> set[str]:
        if address not in self._g:
            return set()
        return set(self._g.successors(address)) | set(self._g.predecessors(address))

    def edge(self, source: str, target: str) -> EdgeStats | None:
        data = self._g.get_edge_data(source, target)
        return data["stats"] if data else None

    def received(self, address: str) -> int:
        if address not in self._g:
            return 0
        return sum(stats.volume for _, _, stats in self._g.in_edges(address, data="stats"))

    def sent(self, address: str) -> int:
        if address not in self._g:
            return 0
        return sum(stats.volume for _, _, stats in self._g.out_edges(address, data="stats"))

    def volume(self, address: str) -> int:
        return self.received(address) + self.sent(address)

    def pair_volume(self, a: str, b: str) -> int:
        forward = self.edge(a, b)
        backward = self.edge(b, a)
        return (forward.volume if forward else 0) + (backward.volume if backward else 0)

    def undirected_pairs(self) -> list[tuple[str, str]]:
        return sorted({(s, t) if s < t else (t, s) for s, t in self._g.edges})


def find_funding_root(
    graph: FundingGraph,
    address: str,
    *,
    lookback_cutoff: int = 0,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> str:
    """Walk backwards along the strongest in-window funder.

    The queried address is its own root when nothing funded it inside the
    lookback window. Stops on a revisit or after ``max_depth`` steps.
    """
    current = address
    visited = {address}
    for _ in range(max_depth):
        best: tuple[int, str] | None = None
        for funder in graph.predecessors(current):
            stats = graph.edge(funder, current)
            window_volume = stats.volume_since(lookback_cutoff) if stats else 0
            if window_volume <= 0:
                continue
            # Highest volume first; ascending address breaks ties.
            if best is None or window_volume > best[0]:
                best = (window_volume, funder)
        if best is None or best[1] in visited:
            break
        current = best[1]
        visited.add(current)
    return current


def build_funding_tree(
    graph: FundingGraph,
    root: str,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_nodes: int = DEFAULT_MAX_NODES,
) -> FundingTree:
    """Breadth-first funding tree from ``root`` over outgoing transfers.

    Children are expanded in ascending address order. Edges into the current
    root-to-node path are back-edges and dropped; edges to a node already in
    the tree are cross-edges and dropped, so every node has one parent.
    """
    nodes: dict[str, WalletNode] = {
        root: WalletNode(
            address=root, parent=None, depth=0,
            received=graph.received(root), sent=graph.sent(root),
        )
    }
    path_members: dict[str, frozenset[str]] = {root: frozenset({root})}
    queue: deque[str] = deque([root])
    back_edges = 0
    cross_edges = 0
    truncated = False

    while queue:
        current = queue.popleft()
        depth = nodes[current].depth
        if depth >= max_depth:
            if any(s not in nodes for s in graph.successors(current)):
                truncated = True
            continue
        for child in graph.successors(current):
            if child in path_members[current]:
                back_edges += 1
                continue
            if child in nodes:
                cross_edges += 1
                continue
            if len(nodes) >= max_nodes:
                truncated = True
                continue
            nodes[child] = WalletNode(
                address=child, parent=current, depth=depth + 1,
                received=graph.received(child), sent=graph.sent(child),
            )
            path_members[child] = path_members[current] | {child}
            queue.append(child)

    return FundingTree(
        root=root,
        nodes=nodes,
        dropped_back_edges=back_edges,
        dropped_cross_edges=cross_edges,
        truncated=truncated,
    )


def _shared_counterparties(graph: FundingGraph, a: str, b: str) -> int:
    return len((graph.neighbors(a) & graph.neighbors(b)) - {a, b})


def derive_clusters(
    graph: FundingGraph,
    *,
    min_volume: int,
    min_shared_counterparties: int,
) -> list[Cluster]:
    """Connected components over links that meet a similarity threshold.

    A directly connected pair is linked when its two-way volume reaches
    ``min_volume`` or it shares at least ``min_shared_counterparties``
    counterparties. Singletons are not clusters.
    """
    links = nx.Graph()
    for a, b in graph.undirected_pairs():
        volume = graph.pair_volume(a, b)
        linked = volume >= min_volume or (
            min_shared_counterparties > 0
            and _shared_counterparties(graph, a, b) >= min_shared_counterparties
        )
        if linked:
            links.add_edge(a, b, volume=volume)

    components = sorted(nx.connected_components(links), key=lambda c: (-len(c), min(c)))
    return [
        Cluster(
            id=f"cluster-{i + 1}",
            members=frozenset(group),
            volume=int(links.subgraph(group).size(weight="volume")),
        )
        for i, group in enumerate(components)
    ]


def related_wallets(
    graph: FundingGraph, address: str, *, hops: int = DEFAULT_RELATED_HOPS
) -> list[RelatedWallet]:
    """Wallets within ``hops`` undirected steps, heaviest aggregate volume first."""
    if address not in graph or hops <= 0:
        return []
    distance = nx.single_source_shortest_path_length(graph.undirected(), address, cutoff=hops)

    related = [
        RelatedWallet(
            address=peer,
            hops=d,
            volume=graph.volume(peer),
            relationship=_relationship(graph, address, peer, d),
        )
        for peer, d in distance.items()
        if peer != address
    ]
    related.sort(key=lambda r: (-r.volume, r.address))
    return related


def _relationship(graph: FundingGraph, address: str, peer: str, hops: int) -> str:
    if hops != 1:
        return "shared_activity"
    incoming = graph.edge(peer, address)
    outgoing = graph.edge(address, peer)
    in_volume = incoming.volume if incoming else 0
    out_volume = outgoing.volume if outgoing else 0
    return "funded_by" if in_volume >= out_volume else "funding"
