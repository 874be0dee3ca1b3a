#!/usr/bin/env python3
# /// script
# requires-python = ">=3.12"
# dependencies = ["pytest>=8.0", "pytest-cov>=4.0", "networkx>=3.0"]
# ///
"""Tests for mermaid_graph."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from mermaid_edges import Edge
from mermaid_graph import build_graph, graph_from_text

# ============================================================================
# build_graph
# ============================================================================


class TestBuildGraph:
    def test_first_seen_node_order(self) -> None:
        graph = build_graph([Edge("C", "A"), Edge("A", "B"), Edge("B", "C")])
        assert graph.nodes == ("C", "A", "B")

    def test_adjacency_in_edge_order(self) -> None:
        graph = build_graph([Edge("A", "C"), Edge("A", "B"), Edge("D", "B")])
        assert graph.children("A") == ("C", "B")
        assert graph.parents("B") == ("A", "D")

    def test_missing_node_has_no_neighbours(self) -> None:
        graph = build_graph([Edge("A", "B")])
        assert graph.children("B") == ()
        assert graph.parents("A") == ()
        assert graph.children("nope") == ()

    def test_parallel_edges_counted(self) -> None:
        graph = build_graph([Edge("A", "B"), Edge("A", "B", "again")])
        assert graph.out_degree("A") == 2
        assert graph.in_degree("B") == 2
        assert graph.nodes == ("A", "B")

    def test_self_loop(self) -> None:
        graph = build_graph([Edge("A", "A")])
        assert graph.nodes == ("A",)
        assert graph.children("A") == ("A",)
        assert graph.parents("A") == ("A",)

    def test_empty(self) -> None:
        graph = build_graph([])
        assert graph.is_empty
        assert graph.nodes == ()
        assert graph.edges == ()

    def test_accepts_generator(self) -> None:
        graph = build_graph(Edge(s, t) for s, t in [("A", "B"), ("B", "C")])
        assert len(graph.edges) == 2

    def test_frozen(self) -> None:
        graph = build_graph([Edge("A", "B")])
        with pytest.raises(AttributeError):
            graph.nodes = ("X",)  # type: ignore[misc]
        with pytest.raises(TypeError):
            graph.forward["X"] = ()  # type: ignore[index]


class TestGraphFromText:
    def test_isolated_nodes_invisible(self) -> None:
        graph = graph_from_text("graph TD\n  Lonely[Nobody links here]\n  A --> B")
        assert graph.nodes == ("A", "B")

    def test_bidirectional(self) -> None:
        graph = graph_from_text("A <-->|sync| B")
        assert graph.children("A") == ("B",)
        assert graph.children("B") == ("A",)


# ============================================================================
# networkx export
# ============================================================================


class TestToNetworkx:
    def test_multigraph_preserves_parallel_edges(self) -> None:
        graph = graph_from_text("A -->|one| B\nA -.->|two| B\nB --> C")
        G = graph.to_networkx()
        assert list(G.nodes) == ["A", "B", "C"]
        assert G.number_of_edges("A", "B") == 2
        labels = sorted(d["label"] for _, _, d in G.edges("A", data=True))
        assert labels == ["one", "two"]
        arrows = {d["arrow"] for _, _, d in G.edges("A", data=True)}
        assert arrows == {"solid", "dotted"}

    def test_empty(self) -> None:
        G = build_graph([]).to_networkx()
        assert G.number_of_nodes() == 0


# ============================================================================
# PEP-723 entry point
# ============================================================================

if __name__ == "__main__":  # pragma: no cover
    script_dir = str(Path(__file__).parent.resolve())
    base_args = [__file__, "-v", "--rootdir", script_dir, "-o", "addopts="]
    extra_args = sys.argv[1:]
    sys.exit(pytest.main(base_args + extra_args))
