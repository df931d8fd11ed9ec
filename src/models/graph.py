"""Funding graph value objects: edges, tree nodes, clusters."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from src.analytics.exceptions import ComputationError


@dataclass(frozen=True)
class TransferEdge:
    """A single value transfer between two wallets (minor units)."""

    source: str
    target: str
    amount: int
    timestamp: int = 0
    chain_id: int = 0
    tx_hash: str = ""


@dataclass(frozen=True)
class WalletNode:
    """Funding tree node. ``parent`` is an address reference, not ownership."""

    address: str
    parent: str | None
    depth: int
    received: int = 0
    sent: int = 0


@dataclass(frozen=True)
class FundingTree:
    """Single-parent, acyclic funding forest. Validated on construction."""

    root: str
    nodes: Mapping[str, WalletNode] = field(default_factory=dict)
    dropped_back_edges: int = 0
    dropped_cross_edges: int = 0
    truncated: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", MappingProxyType(dict(self.nodes)))
        self._validate()

    def _validate(self) -> None:
        if self.nodes and self.root not in self.nodes:
            raise ComputationError(f"Funding tree root {self.root} missing from nodes")
        for address, node in self.nodes.items():
            if node.address != address:
                raise ComputationError(f"Node key mismatch for {address}")
            if node.parent is None:
                if node.depth != 0:
                    raise ComputationError(f"Root node {address} has depth {node.depth}")
                continue
            parent = self.nodes.get(node.parent)
            if parent is None:
                raise ComputationError(f"Node {address} references unknown parent")
            if node.depth != parent.depth + 1:
                raise ComputationError(f"Node {address} depth is inconsistent with its parent")
        # Depth strictly increases along parent links, so the walk below is bounded.
        for address in self.nodes:
            seen: set[str] = set()
            current: str | None = address
            while current is not None:
                if current in seen:
                    raise ComputationError(f"Cycle through {current} in funding tree")
                seen.add(current)
                current = self.nodes[current].parent

    def children(self, address: str) -> list[WalletNode]:
        return sorted(
            (n for n in self.nodes.values() if n.parent == address),
            key=lambda n: n.address,
        )

    def path_to_root(self, address: str) -> list[str]:
        path: list[str] = []
        current: str | None = address
        while current is not None and current in self.nodes:
            path.append(current)
            current = self.nodes[current].parent
        return path

    def to_nested(self, address: str | None = None) -> dict[str, Any]:
        """Nested dict representation for the wire format."""
        if not self.nodes:
            return {}
        start = self.nodes[address or self.root]
        return {
            "address": start.address,
            "depth": start.depth,
            "received": start.received,
            "sent": start.sent,
            "children": [self.to_nested(child.address) for child in self.children(start.address)],
        }


@dataclass(frozen=True)
class Cluster:
    id: str
    members: frozenset[str]
    volume: int = 0  # aggregate volume on qualifying intra-cluster links

    @property
    def size(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class RelatedWallet:
    address: str
    hops: int
    volume: int
    relationship: str  # "funded_by" | "funding" | "shared_activity"


@dataclass(frozen=True)
class ClusteringResult:
    address: str
    related_wallets: tuple[RelatedWallet, ...]
    clusters: tuple[Cluster, ...]
    funding_tree: FundingTree
