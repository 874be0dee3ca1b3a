"""
Mermaid Graph Builder

Builds an immutable directed multigraph from an edge list. Nodes are derived
solely from edges, so a node that is declared but never connected is not part
of the graph.

Adjacency lists keep edge insertion order per node. Depth-first algorithms
visit children in that order, which makes their tie-breaks deterministic.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

import networkx as nx

from mermaid_edges import Edge, extract_edges

log = logging.getLogger(__name__)

_NO_NEIGHBOURS: tuple[str, ...] = ()


@dataclass(frozen=True)
class Graph:
    """Directed multigraph with forward and reverse adjacency views."""

    nodes: tuple[str, ...]
    edges: tuple[Edge, ...]
    forward: Mapping[str, tuple[str, ...]]
    reverse: Mapping[str, tuple[str, ...]]

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def children(self, node: str) -> tuple[str, ...]:
        return self.forward.get(node, _NO_NEIGHBOURS)

    def parents(self, node: str) -> tuple[str, ...]:
        return self.reverse.get(node, _NO_NEIGHBOURS)

    def out_degree(self, node: str) -> int:
        return len(self.children(node))

    def in_degree(self, node: str) -> int:
        return len(self.parents(node))

    def to_networkx(self) -> nx.MultiDiGraph:
        """Export as a networkx multigraph (parallel edges preserved)."""
        G = nx.MultiDiGraph()
        G.add_nodes_from(self.nodes)
        for edge in self.edges:
            G.add_edge(edge.source, edge.target, label=edge.label, arrow=edge.arrow)
        return G


def build_graph(edges: Iterable[Edge]) -> Graph:
    """Build a :class:`Graph` from edges in a single pass."""
    edge_list = tuple(edges)
    nodes: dict[str, None] = {}
    forward: dict[str, list[str]] = {}
    reverse: dict[str, list[str]] = {}

    for edge in edge_list:
        nodes.setdefault(edge.source)
        nodes.setdefault(edge.target)
        forward.setdefault(edge.source, []).append(edge.target)
        reverse.setdefault(edge.target, []).append(edge.source)

    log.debug("Built graph with %d nodes and %d edges", len(nodes), len(edge_list))

    return Graph(
        nodes=tuple(nodes),
        edges=edge_list,
        forward=MappingProxyType({k: tuple(v) for k, v in forward.items()}),
        reverse=MappingProxyType({k: tuple(v) for k, v in reverse.items()}),
    )


def graph_from_text(content: str) -> Graph:
    """Extract edges from diagram source and build the graph."""
    return build_graph(extract_edges(content))
