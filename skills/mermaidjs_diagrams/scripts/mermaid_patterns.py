"""
Structural pattern detection for Mermaid diagrams.

Each detector looks at the graph independently and either returns a
:class:`Pattern` or ``None``. Detected patterns are ranked by confidence but
never merged; several may hold at once (a pipeline can be both sequential and
reconvergent).

Confidence formulas (all capped at 1.0):

    sequential      spine ratio                 when ratio > 0.6
    hierarchical    avg children / 3            single root, avg > 0.8, depth > 2
    wide-branching  max children / 10          when max children > 5
    reconvergence   merge-node fraction × 2     when fraction > 0.2
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

from mermaid_algorithms import (
    average_children,
    calculate_spine,
    find_roots,
    max_branch_width,
    max_depth_from,
    merge_points,
)
from mermaid_graph import Graph

log = logging.getLogger(__name__)

PatternType = Literal["sequential", "hierarchical", "wide-branching", "reconvergence"]

# ============================================================================
# Data Structures
# ============================================================================


@dataclass(frozen=True)
class PatternThresholds:
    """Trigger thresholds for the pattern detectors."""

    sequential_ratio: float = 0.6  # Spine must cover more than this share
    hierarchical_avg_children: float = 0.8
    hierarchical_min_depth: int = 2  # Depth must exceed this
    wide_branching_children: int = 5  # Out-degree must exceed this
    reconvergence_ratio: float = 0.2  # Merge-node share must exceed this


@dataclass
class Pattern:
    """A detected structural pattern with supporting evidence."""

    type: PatternType
    confidence: float
    evidence: list[str] = field(default_factory=list)
    recommendation: str = ""
    example: str | None = None


@dataclass
class LayoutRecommendation:
    """Suggested layout direction and the patterns behind it."""

    current: str | None
    recommended: str
    reason: str
    confidence: float
    patterns: list[Pattern] = field(default_factory=list)


DEFAULT_THRESHOLDS = PatternThresholds()


def _preview(path: list[str], limit: int = 5) -> str:
    suffix = "..." if len(path) > limit else ""
    return " → ".join(path[:limit]) + suffix


# ============================================================================
# Detectors
# ============================================================================


def detect_sequential(
    graph: Graph, thresholds: PatternThresholds = DEFAULT_THRESHOLDS
) -> Pattern | None:
    """Long spine with little branching, e.g. a CI pipeline or a timeline."""
    if graph.is_empty:
        return None

    spine = calculate_spine(graph)
    if spine.ratio <= thresholds.sequential_ratio:
        return None

    return Pattern(
        type="sequential",
        confidence=min(spine.ratio, 1.0),
        evidence=[
            f"Spine length: {spine.length}/{len(graph.nodes)} nodes ({spine.ratio:.0%})",
            "Low branching factor along main path",
            f"Path: {_preview(spine.path)}",
        ],
        recommendation="Use LR (left-right) layout for this sequential flow",
        example="graph LR\n  Start --> Build --> Test --> Deploy --> End",
    )


def detect_hierarchical(
    graph: Graph, thresholds: PatternThresholds = DEFAULT_THRESHOLDS
) -> Pattern | None:
    """Single-root tree such as an org chart or a decision tree."""
    if graph.is_empty:
        return None

    roots = find_roots(graph)
    if len(roots) != 1:
        return None

    depth = max_depth_from(graph, roots[0])
    avg = average_children(graph)
    if avg <= thresholds.hierarchical_avg_children or depth <= thresholds.hierarchical_min_depth:
        return None

    return Pattern(
        type="hierarchical",
        confidence=min(avg / 3, 1.0),
        evidence=[
            f"Single root node: {roots[0]}",
            f"Max depth: {depth} levels",
            f"Average {avg:.1f} children per node",
        ],
        recommendation="Use TD (top-down) layout for this hierarchy",
        example="graph TD\n  Root --> Child1\n  Root --> Child2\n  Child1 --> GrandChild1",
    )


def detect_wide_branching(
    graph: Graph, thresholds: PatternThresholds = DEFAULT_THRESHOLDS
) -> Pattern | None:
    """A single node fanning out to many children."""
    if graph.is_empty:
        return None

    width, node = max_branch_width(graph)
    if width <= thresholds.wide_branching_children or node is None:
        return None

    return Pattern(
        type="wide-branching",
        confidence=min(width / 10, 1.0),
        evidence=[
            f"Node {node} has {width} children",
            "Consider grouping related branches",
        ],
        recommendation="Group related branches into subgraphs for better organization",
        example=f"subgraph Group1\n  {node} --> Branch1\n  {node} --> Branch2\nend",
    )


def detect_reconvergence(
    graph: Graph, thresholds: PatternThresholds = DEFAULT_THRESHOLDS
) -> Pattern | None:
    """Paths that fan out and later merge back together."""
    if graph.is_empty:
        return None

    merges = merge_points(graph)
    ratio = len(merges) / len(graph.nodes)
    if ratio <= thresholds.reconvergence_ratio:
        return None

    return Pattern(
        type="reconvergence",
        confidence=min(ratio * 2, 1.0),
        evidence=[
            f"{len(merges)} nodes with multiple incoming paths",
            f"{ratio:.0%} of nodes are merge points",
            f"Examples: {', '.join(merges[:3])}",
        ],
        recommendation="Parallel paths detected - ensure layout shows reconvergence clearly",
    )


def detect_patterns(
    graph: Graph, thresholds: PatternThresholds = DEFAULT_THRESHOLDS
) -> list[Pattern]:
    """Run every detector and rank the hits by confidence (highest first)."""
    detectors = (
        detect_sequential,
        detect_hierarchical,
        detect_wide_branching,
        detect_reconvergence,
    )
    patterns = [p for d in detectors if (p := d(graph, thresholds)) is not None]
    patterns.sort(key=lambda p: p.confidence, reverse=True)
    log.debug("Patterns: %s", [(p.type, round(p.confidence, 2)) for p in patterns])
    return patterns


# ============================================================================
# Layout Recommendation
# ============================================================================


def recommend_layout(
    patterns: list[Pattern], current: str | None = None
) -> LayoutRecommendation:
    """Pick a layout direction from the detected patterns.

    Defaults to TD at low confidence. A sequential pattern switches to LR,
    and a hierarchical pattern with even higher confidence switches back to
    TD. Wide branching is attached as supporting evidence.
    """
    by_type = {p.type: p for p in patterns}
    rec = LayoutRecommendation(
        current=current,
        recommended="TD",
        reason="Default top-down layout for general diagrams",
        confidence=0.3,
    )

    sequential = by_type.get("sequential")
    if sequential and sequential.confidence > rec.confidence:
        rec.recommended = "LR"
        rec.reason = "Sequential flow pattern detected - left-right layout improves readability"
        rec.confidence = sequential.confidence
        rec.patterns = [sequential]

    hierarchical = by_type.get("hierarchical")
    if hierarchical and hierarchical.confidence > rec.confidence:
        rec.recommended = "TD"
        rec.reason = "Hierarchical structure detected - top-down layout shows hierarchy better"
        rec.confidence = hierarchical.confidence
        rec.patterns = [hierarchical]

    wide = by_type.get("wide-branching")
    if wide:
        rec.patterns.append(wide)

    return rec
