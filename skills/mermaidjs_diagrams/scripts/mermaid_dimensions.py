"""
Rendered-size estimation for Mermaid flowcharts.

Combines label-length statistics with graph structure to predict the pixel
width and height a diagram will render at. The numbers are deterministic,
explainable estimates meant for threshold comparisons, not exact layout.

Formulas (``mean`` is the mean effective label length in characters):

    LR/RL  width  = P × mean × char_width + P × node_spacing
           height = B × (node_height + vertical_spacing)
    TD/TB  width  = B × mean × char_width + B × node_spacing
           height = D × (node_height + vertical_spacing)

where P is the longest-path node count, B the widest fan-out and D the
deepest level. In a left-right diagram parallel branches stack vertically,
so branching drives height instead of width.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Literal

from mermaid_algorithms import PathResult, calculate_longest_path, max_branch_width, max_depth
from mermaid_edges import classify_line, detect_direction
from mermaid_graph import Graph, graph_from_text

log = logging.getLogger(__name__)

HORIZONTAL_LAYOUTS = ("LR", "RL")
DEFAULT_LAYOUT = "TD"

WidthSource = Literal["sequential-chain", "branching"]

# ============================================================================
# Data Structures
# ============================================================================


@dataclass
class DimensionConfig:
    """Pixel constants for the size estimate."""

    char_width: float = 8  # Pixels per label character
    node_spacing: float = 50  # Horizontal gap between ranks
    node_height: float = 40  # Default box height
    vertical_spacing: float = 50  # Gap between layers


@dataclass
class LabelStats:
    """Node labels found in the source and their effective lengths."""

    labels: list[tuple[str, str]] = field(default_factory=list)
    mean_length: int = 0
    max_length: int = 0


@dataclass
class DimensionEstimate:
    """Predicted rendered size and the structure that drove it."""

    width: float
    height: float
    source: WidthSource
    layout: str
    path_length: int = 0
    path: list[str] = field(default_factory=list)
    max_branch_width: int = 0
    depth: int = 0
    label_stats: LabelStats | None = None


# ============================================================================
# Labels
# ============================================================================

_LABEL_PATTERNS = (
    re.compile(r"(\w+(?:-\w+)*)\[([^\]]+)\]"),  # A[label]
    re.compile(r"(\w+(?:-\w+)*)\{([^}]+)\}"),  # B{label}
    re.compile(r"(\w+(?:-\w+)*)\(\(([^)]+)\)\)"),  # C((label))
)
_LINE_BREAK_RE = re.compile(r"\n|<br\s*/?>", re.IGNORECASE)
_SHAPE_OPENERS = "[({/\\"
_SHAPE_CLOSERS = "])}/\\"


def _clean_label(raw: str) -> str:
    # Nested shapes such as A[(db)] or A[[sub]] leave their inner delimiters
    label = raw.strip()
    opened = len(label) - len(label.lstrip(_SHAPE_OPENERS))
    if opened:
        label = label[opened:].rstrip(_SHAPE_CLOSERS)
    label = label.strip()
    if len(label) >= 2 and label[0] == label[-1] == '"':
        label = label[1:-1]
    return label.strip()


def effective_length(label: str) -> int:
    """Width in characters of the widest line of a (possibly multi-line) label."""
    return max(len(line.strip()) for line in _LINE_BREAK_RE.split(label))


def extract_labels(content: str) -> LabelStats | None:
    """Collect node-definition labels; ``None`` when the diagram has none.

    The first definition of each node id wins. Comment lines are ignored.
    """
    body = "\n".join(
        "" if classify_line(line) == "comment" else line for line in content.splitlines()
    )

    found: list[tuple[int, str, str]] = []
    for pattern in _LABEL_PATTERNS:
        for m in pattern.finditer(body):
            found.append((m.start(), m.group(1), m.group(2)))
    found.sort(key=lambda item: item[0])

    labels: list[tuple[str, str]] = []
    seen: set[str] = set()
    for _, node_id, raw in found:
        label = _clean_label(raw)
        if node_id in seen or not label:
            continue
        seen.add(node_id)
        labels.append((node_id, label))

    if not labels:
        return None

    lengths = [effective_length(label) for _, label in labels]
    mean = math.floor(sum(lengths) / len(lengths) + 0.5)
    return LabelStats(labels=labels, mean_length=mean, max_length=max(lengths))


# ============================================================================
# Estimation
# ============================================================================


def estimate_dimensions(
    graph: Graph,
    labels: LabelStats,
    layout: str | None = None,
    config: DimensionConfig | None = None,
    longest: PathResult | None = None,
) -> DimensionEstimate:
    """Estimate rendered width and height for ``graph`` in ``layout``.

    Pass ``longest`` when the longest path of ``graph`` is already known.
    """
    config = config or DimensionConfig()
    layout = (layout or DEFAULT_LAYOUT).upper()
    mean = labels.mean_length
    layer_height = config.node_height + config.vertical_spacing

    if longest is None:
        longest = calculate_longest_path(graph)
    branch_width, _ = max_branch_width(graph)
    depth = max_depth(graph)

    if layout in HORIZONTAL_LAYOUTS:
        count = longest.length
        source: WidthSource = "sequential-chain"
        height = branch_width * layer_height
    else:
        count = branch_width
        source = "branching"
        height = depth * layer_height
    width = count * mean * config.char_width + count * config.node_spacing

    log.debug(
        "Estimate %s: %sx%s px (source=%s, path=%d, branch=%d, depth=%d)",
        layout, width, height, source, longest.length, branch_width, depth,
    )
    return DimensionEstimate(
        width=width,
        height=height,
        source=source,
        layout=layout,
        path_length=longest.length,
        path=longest.path,
        max_branch_width=branch_width,
        depth=depth,
        label_stats=labels,
    )


def estimate_from_text(
    content: str, layout: str | None = None, config: DimensionConfig | None = None
) -> DimensionEstimate | None:
    """Estimate straight from diagram source.

    ``layout`` defaults to the direction the diagram declares. Returns
    ``None`` when no node labels are present.
    """
    labels = extract_labels(content)
    if labels is None:
        return None
    return estimate_dimensions(
        graph_from_text(content), labels, layout or detect_direction(content), config
    )
