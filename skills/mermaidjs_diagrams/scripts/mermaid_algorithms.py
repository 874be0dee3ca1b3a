"""
Graph algorithms for Mermaid structure analysis.

Every function is a pure, terminating computation over an immutable
:class:`~mermaid_graph.Graph`, including graphs with cycles and the empty
graph. Traversals use explicit stacks rather than recursion so that very long
chains cannot exhaust the interpreter stack; each stack-based walk visits
children in adjacency-list order so tie-breaks match a recursive depth-first
search.

Three notions of "main path" are provided and they are not interchangeable:

- spine: longest path that only extends through nodes with at most two
  children (branching nodes end a candidate but still count);
- linear chain: longest run of nodes with at most one parent and one child;
- longest path: longest simple path, ignoring branching and merging.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

import networkx as nx

from mermaid_graph import Graph

log = logging.getLogger(__name__)

LINEAR_RATIO = 0.6  # Path covering more than this share of nodes is "linear"
SPINE_MAX_CHILDREN = 2

# ============================================================================
# Result Types
# ============================================================================


@dataclass(frozen=True)
class SpineResult:
    """Longest low-branching path."""

    length: int = 0
    path: list[str] = field(default_factory=list)
    ratio: float = 0.0


@dataclass(frozen=True)
class ChainResult(SpineResult):
    """Longest strictly linear chain."""

    is_linear: bool = False


@dataclass(frozen=True)
class PathResult(ChainResult):
    """Longest simple path through branches and merges."""


def _ratio(length: int, graph: Graph) -> float:
    return length / len(graph.nodes) if graph.nodes else 0.0


# ============================================================================
# Node Classification
# ============================================================================


def find_roots(graph: Graph) -> list[str]:
    """Nodes without incoming edges."""
    return [n for n in graph.nodes if not graph.parents(n)]


def find_leaves(graph: Graph) -> list[str]:
    """Nodes without outgoing edges."""
    return [n for n in graph.nodes if not graph.children(n)]


def is_linear_node(graph: Graph, node: str) -> bool:
    """A node with at most one parent and at most one child."""
    return graph.in_degree(node) <= 1 and graph.out_degree(node) <= 1


def average_children(graph: Graph) -> float:
    """Mean out-degree over all nodes (0 for the empty graph)."""
    if graph.is_empty:
        return 0.0
    return len(graph.edges) / len(graph.nodes)


def max_branch_width(graph: Graph) -> tuple[int, str | None]:
    """Return ``(max out-degree, first node reaching it)``."""
    width = 0
    widest: str | None = None
    for node in graph.nodes:
        degree = graph.out_degree(node)
        if degree > width:
            width = degree
            widest = node
    return width, widest


def merge_points(graph: Graph) -> list[str]:
    """Nodes with more than one incoming edge."""
    return [n for n in graph.nodes if graph.in_degree(n) > 1]


# ============================================================================
# Depth, Components, Cycles
# ============================================================================


def max_depth_from(graph: Graph, start: str) -> int:
    """Maximum DFS-discovery distance reachable from ``start``.

    Nodes are never re-entered once visited, so on graphs with merge points
    the result depends on child order, exactly like a recursive DFS.
    """
    visited: set[str] = set()
    deepest = 0
    stack: list[tuple[str, int]] = [(start, 0)]
    while stack:
        node, depth = stack.pop()
        if node in visited:
            continue
        visited.add(node)
        deepest = max(deepest, depth)
        for child in reversed(graph.children(node)):
            if child not in visited:
                stack.append((child, depth + 1))
    return deepest


def max_depth(graph: Graph) -> int:
    """Deepest level of the diagram measured from its roots.

    Without roots (every node sits on or below a cycle) every node is tried
    as a start.
    """
    starts = find_roots(graph) or list(graph.nodes)
    return max((max_depth_from(graph, s) for s in starts), default=0)


def find_components(graph: Graph) -> list[list[str]]:
    """Partition nodes into weakly connected components (discovery order)."""
    visited: set[str] = set()
    components: list[list[str]] = []

    for root in graph.nodes:
        if root in visited:
            continue
        component: list[str] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node in visited:
                continue
            visited.add(node)
            component.append(node)
            neighbours = graph.children(node) + graph.parents(node)
            stack.extend(n for n in reversed(neighbours) if n not in visited)
        components.append(component)

    return components


def has_cycles(graph: Graph) -> bool:
    """True if any directed cycle (including a self-loop) exists."""
    state: dict[str, int] = {}  # 1 = on stack, 2 = done
    for root in graph.nodes:
        if root in state:
            continue
        state[root] = 1
        stack = [(root, iter(graph.children(root)))]
        while stack:
            node, children = stack[-1]
            child = next(children, None)
            if child is None:
                state[node] = 2
                stack.pop()
                continue
            mark = state.get(child)
            if mark == 1:
                return True
            if mark is None:
                state[child] = 1
                stack.append((child, iter(graph.children(child))))
    return False


# ============================================================================
# Longest Walks
# ============================================================================


def _strong_components(graph: Graph, extends: Callable[[str], bool]) -> dict[str, int]:
    """Map each node to the index of its strongly connected component."""
    digraph = nx.DiGraph()
    digraph.add_nodes_from(graph.nodes)
    digraph.add_edges_from(
        (node, child)
        for node in graph.nodes
        if extends(node)
        for child in graph.children(node)
    )
    return {
        node: index
        for index, members in enumerate(nx.strongly_connected_components(digraph))
        for node in members
    }


def _cyclic_longest(
    graph: Graph, starts: Iterable[str], extends: Callable[[str], bool]
) -> list[str]:
    """Longest simple path on a graph with cycles.

    A simple path may leave a strongly connected component but can never
    come back to it, so only the nodes already used inside the current
    component constrain the rest of the path. The best continuation from a
    node is memoised on the component nodes still reachable from it: the
    search stays exhaustive inside a component and linear across them.

    Children are tried in adjacency order and only a strictly longer
    continuation replaces the current one, so the first path found at the
    maximum length by a plain depth-first enumeration is the one returned.
    """
    component = _strong_components(graph, extends)
    memo: dict[tuple[str, frozenset[str]], tuple[str, ...]] = {}

    def successors(node: str) -> Iterable[str]:
        return graph.children(node) if extends(node) else ()

    def memo_key(node: str, used: frozenset[str]) -> tuple[str, frozenset[str]]:
        home = component[node]
        reachable: set[str] = set()
        stack = [node]
        while stack:
            current = stack.pop()
            for child in successors(current):
                if component[child] != home or child in used or child in reachable:
                    continue
                reachable.add(child)
                stack.append(child)
        return node, frozenset(reachable)

    def solve(start: str) -> tuple[str, ...]:
        used = frozenset((start,))
        key = memo_key(start, used)
        if key in memo:
            return memo[key]

        # Frame: node, nodes used in its component, memo key, children, best tail
        stack: list[list] = [[start, used, key, iter(successors(start)), ()]]
        result: tuple[str, ...] = ()
        while stack:
            frame = stack[-1]
            node, used, key, children, tail = frame
            child = next(children, None)
            if child is None:
                result = (node,) + tail
                memo[key] = result
                stack.pop()
                if stack and len(result) > len(stack[-1][4]):
                    stack[-1][4] = result
                continue

            if component[child] == component[node]:
                if child in used:
                    continue
                child_used = used | {child}
            else:
                child_used = frozenset((child,))
            child_key = memo_key(child, child_used)
            cached = memo.get(child_key)
            if cached is None:
                stack.append([child, child_used, child_key, iter(successors(child)), ()])
            elif len(cached) > len(tail):
                frame[4] = cached
        return result

    best: tuple[str, ...] = ()
    for start in starts:
        path = solve(start)
        if len(path) > len(best):
            best = path
        if len(best) == len(graph.nodes):
            break
    return list(best)


def _dag_longest(
    graph: Graph, starts: Iterable[str], extends: Callable[[str], bool]
) -> list[str]:
    """Longest path on an acyclic graph by post-order dynamic programming.

    Picks the first child (and the first start) achieving the maximum, which
    selects the same path as a depth-first enumeration without its
    exponential cost on chains of diamonds.
    """
    length: dict[str, int] = {}
    successor: dict[str, str | None] = {}

    for root in graph.nodes:
        if root in length:
            continue
        stack = [(root, False)]
        while stack:
            node, expanded = stack.pop()
            if node in length:
                continue
            children = graph.children(node) if extends(node) else ()
            if not expanded:
                stack.append((node, True))
                stack.extend((c, False) for c in children if c not in length)
                continue
            best_len, best_child = 0, None
            for child in children:
                if length[child] > best_len:
                    best_len, best_child = length[child], child
            length[node] = best_len + 1
            successor[node] = best_child

    head: str | None = None
    for start in starts:
        if head is None or length[start] > length[head]:
            head = start

    path: list[str] = []
    while head is not None:
        path.append(head)
        head = successor[head]
    return path


def _longest_walk(
    graph: Graph, starts: list[str], extends: Callable[[str], bool]
) -> list[str]:
    if not starts:
        return []
    if has_cycles(graph):
        return _cyclic_longest(graph, starts, extends)
    return _dag_longest(graph, starts, extends)


def calculate_spine(graph: Graph) -> SpineResult:
    """Longest path extending only through nodes with at most two children.

    Starts from every root, or from the first node when the graph has no
    roots at all.
    """
    if graph.is_empty:
        return SpineResult()
    starts = find_roots(graph) or [graph.nodes[0]]
    path = _longest_walk(
        graph, starts, lambda n: graph.out_degree(n) <= SPINE_MAX_CHILDREN
    )
    log.debug("Spine: %d/%d nodes", len(path), len(graph.nodes))
    return SpineResult(length=len(path), path=path, ratio=_ratio(len(path), graph))


def calculate_longest_linear_chain(graph: Graph) -> ChainResult:
    """Longest run of linear nodes joined by single-parent, single-child links.

    Each start walks forward while the current node is linear, has exactly
    one child, and that child has exactly one parent. A per-walk visited set
    stops a fully circular chain after one lap.
    """
    if graph.is_empty:
        return ChainResult()

    longest: list[str] = []
    for start in graph.nodes:
        if not is_linear_node(graph, start):
            continue

        chain: list[str] = []
        seen: set[str] = set()
        current: str | None = start
        while current is not None and current not in seen:
            if not is_linear_node(graph, current):
                break
            chain.append(current)
            seen.add(current)
            children = graph.children(current)
            if len(children) == 1 and graph.in_degree(children[0]) == 1:
                current = children[0]
            else:
                current = None

        if len(chain) > len(longest):
            longest = chain

    ratio = _ratio(len(longest), graph)
    return ChainResult(
        length=len(longest), path=longest, ratio=ratio, is_linear=ratio > LINEAR_RATIO
    )


def calculate_longest_path(graph: Graph) -> PathResult:
    """Longest simple path, passing through decision and merge nodes.

    Acyclic graphs are solved in linear time. Cyclic graphs are searched
    exhaustively inside each strongly connected component, started from
    every root and then every other node, so that paths living entirely
    inside a cycle are still found.

    ``is_linear`` additionally requires every node on the path to be linear:
    a path that crosses a branch or a merge point is never linear.
    """
    if graph.is_empty:
        return PathResult()

    roots = find_roots(graph)
    root_set = set(roots)
    starts = roots + [n for n in graph.nodes if n not in root_set]
    path = _longest_walk(graph, starts, lambda n: True)

    ratio = _ratio(len(path), graph)
    straight = all(is_linear_node(graph, n) for n in path)
    log.debug("Longest path: %d/%d nodes", len(path), len(graph.nodes))
    return PathResult(
        length=len(path),
        path=path,
        ratio=ratio,
        is_linear=ratio > LINEAR_RATIO and straight,
    )
