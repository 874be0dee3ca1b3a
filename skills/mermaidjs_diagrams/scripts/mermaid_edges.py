"""
Mermaid Edge Extractor

Turns the body of a flowchart or state diagram into a flat, source-ordered
list of directed edges. Extraction is lenient: anything that does not look
like a connection statement is skipped rather than rejected.

Recognised statements:
    A --> B                  solid arrow (also ``--->``)
    A -.-> B                 dotted arrow
    A ==> B                  thick arrow (also ``===>``)
    A <--> B                 bidirectional (also ``<-.->`` and ``<==>``)
    A -->|label| B           pipe label
    A -- label --> B         inline text label
    A --> B : label          colon label (state diagrams)
    [*] --> A / A --> [*]    anonymous start / end markers
    A[Text] --> B{Text}      node shapes are skipped over
    A --> B --> C            chains yield one edge per arrow
    A & B --> C & D          node groups yield one edge per source and target
    step-1 --> step-2        node ids may contain inner hyphens
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Literal

log = logging.getLogger(__name__)

# ============================================================================
# Data Structures
# ============================================================================

START_NODE = "__START__"
END_NODE = "__END__"
STATE_MARKER = "[*]"

ArrowKind = Literal["solid", "dotted", "thick", "bidirectional"]
LineKind = Literal[
    "blank",
    "comment",
    "header",
    "direction",
    "block_open",
    "block_close",
    "style",
    "statement",
]

DIRECTIONS = ("LR", "RL", "TD", "TB", "BT")


@dataclass(frozen=True)
class Edge:
    """A directed connection between two node ids."""

    source: str
    target: str
    label: str | None = None
    arrow: ArrowKind = "solid"


# ============================================================================
# Line Classification
# ============================================================================

_DIRECTION_TOKEN = r"(?i:LR|RL|TD|TB|BT)"

_COMMENT_RE = re.compile(r"^%%")
_HEADER_RE = re.compile(
    rf"^(?:(?:graph|flowchart)(?:\s+{_DIRECTION_TOKEN})?"
    r"|stateDiagram(?:-v2)?|sequenceDiagram|classDiagram(?:-v2)?|erDiagram"
    r"|gantt|journey|mindmap|timeline|pie(?:\s+showData)?(?:\s+title\s.*)?)\s*$"
)
_HEADER_DIRECTION_RE = re.compile(rf"^(?:graph|flowchart)\s+({_DIRECTION_TOKEN})\s*$")
_DIRECTION_RE = re.compile(rf"^direction\s+({_DIRECTION_TOKEN})\s*$")
_BLOCK_OPEN_RE = re.compile(r"^(?:subgraph\b|state\s+.*\{$)")
_BLOCK_CLOSE_RE = re.compile(r"^(?:end|\})$")
# Keyword, whitespace, then anything but the start of an arrow or a node group
_STYLE_RE = re.compile(r"^(?:classDef|class|style|linkStyle|click|note)\s+(?![\s\-=<.&])")


def classify_line(line: str) -> LineKind:
    """Classify one (already split) line of diagram source."""
    stripped = line.strip()
    if not stripped:
        return "blank"
    if _COMMENT_RE.match(stripped):
        return "comment"
    if _HEADER_RE.match(stripped):
        return "header"
    if _DIRECTION_RE.match(stripped):
        return "direction"
    if _BLOCK_OPEN_RE.match(stripped):
        return "block_open"
    if _BLOCK_CLOSE_RE.match(stripped):
        return "block_close"
    if _STYLE_RE.match(stripped):
        return "style"
    return "statement"


def split_statements(line: str) -> list[str]:
    """Split a line on ``;`` separators that sit outside labels and shapes."""
    parts: list[str] = []
    depth = 0
    in_quote = False
    in_pipe = False
    start = 0
    for i, char in enumerate(line):
        if char == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif char == "|":
            in_pipe = not in_pipe
        elif char in "[({":
            depth += 1
        elif char in "])}" and depth:
            depth -= 1
        elif char == ";" and depth == 0 and not in_pipe:
            parts.append(line[start:i])
            start = i + 1
    parts.append(line[start:])
    return [p for p in parts if p.strip()]


def detect_direction(content: str) -> str | None:
    """Return the layout direction declared in the diagram, if any.

    The header (``graph LR`` / ``flowchart TD``) wins over ``direction``
    directives; among directives the first one found is used.
    """
    directive: str | None = None
    for raw in content.splitlines():
        for part in split_statements(raw):
            stripped = part.strip()
            m = _HEADER_DIRECTION_RE.match(stripped)
            if m:
                return m.group(1).upper()
            m = _DIRECTION_RE.match(stripped)
            if m and directive is None:
                directive = m.group(1).upper()
    return directive


# ============================================================================
# Statement Tokenizer
# ============================================================================

_NODE_ID_RE = re.compile(r"\[\*\]|\w+(?:-\w+)*")
_CLASS_SHORTHAND_RE = re.compile(r":::\w+(?:-\w+)*")
_ARROW_RE = re.compile(r"<-\.->|<==>|<-->|-\.->|={2,}>|-{2,}>")
_INLINE_LABEL_RE = re.compile(
    r"(?P<open>--|==|-\.)\s+(?P<text>[^|>]+?)\s+(?P<close>-{2,}>|={2,}>|\.->)"
)
_SHAPE_OPENERS = "[({>"

_Link = tuple[str, str, str | None, ArrowKind]


def _arrow_kind(arrow: str) -> ArrowKind:
    if arrow.startswith("<"):
        return "bidirectional"
    if "." in arrow:
        return "dotted"
    if arrow.startswith("="):
        return "thick"
    return "solid"


def _skip_ws(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _shape_end(text: str, start: int) -> int:
    """Return the index just past the shape block opening at ``start``."""
    if text[start] == ">":
        close = text.find("]", start)
        return len(text) if close == -1 else close + 1

    depth = 0
    in_quote = False
    for i in range(start, len(text)):
        char = text[i]
        if char == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif char in "[({":
            depth += 1
        elif char in "])}":
            depth -= 1
            if depth == 0:
                return i + 1
    return len(text)


def _read_node(text: str, pos: int) -> tuple[str, int] | None:
    m = _NODE_ID_RE.match(text, pos)
    if not m:
        return None
    token = m.group(0)
    end = m.end()
    if token != STATE_MARKER and end < len(text) and text[end] in _SHAPE_OPENERS:
        end = _shape_end(text, end)
    shorthand = _CLASS_SHORTHAND_RE.match(text, end)
    if shorthand:
        end = shorthand.end()
    return token, end


def _read_group(text: str, pos: int) -> tuple[list[str], int] | None:
    """Read a node or an ``A & B & C`` node group."""
    node = _read_node(text, pos)
    if node is None:
        return None
    token, pos = node
    group = [token]
    while True:
        amp = _skip_ws(text, pos)
        if amp >= len(text) or text[amp] != "&":
            return group, pos
        node = _read_node(text, _skip_ws(text, amp + 1))
        if node is None:
            return group, pos
        token, pos = node
        group.append(token)


def _read_arrow(text: str, pos: int) -> tuple[ArrowKind, str | None, int] | None:
    m = _ARROW_RE.match(text, pos)
    if m:
        return _arrow_kind(m.group(0)), None, m.end()
    m = _INLINE_LABEL_RE.match(text, pos)
    if m:
        kind = _arrow_kind(m.group("open") + ">")
        return kind, m.group("text").strip() or None, m.end()
    return None


def _read_chain(text: str, pos: int) -> tuple[list[_Link], int]:
    group = _read_group(text, pos)
    if group is None:
        return [], pos
    sources, pos = group

    links: list[_Link] = []
    while True:
        pos = _skip_ws(text, pos)
        arrow = _read_arrow(text, pos)
        if arrow is None:
            break
        kind, inline_label, pos = arrow

        pos = _skip_ws(text, pos)
        pipe_label = inline_label
        if pos < len(text) and text[pos] == "|":
            close = text.find("|", pos + 1)
            if close == -1:
                break
            pipe_label = text[pos + 1 : close].strip() or None
            pos = _skip_ws(text, close + 1)

        group = _read_group(text, pos)
        if group is None:
            break
        targets, pos = group
        links.extend((src, dst, pipe_label, kind) for src in sources for dst in targets)
        sources = targets
    return links, pos


def _node_starts(text: str) -> list[int]:
    """Offsets of node ids lying outside shapes, quotes and pipe labels."""
    outside: list[bool] = []
    depth = 0
    in_quote = False
    in_pipe = False
    for char in text:
        outside.append(depth == 0 and not in_quote and not in_pipe)
        if char == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif char == "|":
            in_pipe = not in_pipe
        elif char in "[({":
            depth += 1
        elif char in "])}" and depth:
            depth -= 1
    return [m.start() for m in _NODE_ID_RE.finditer(text) if outside[m.start()]]


def parse_statement(text: str) -> list[Edge]:
    """Tokenize one connection statement into edges.

    ``A & B --> C`` groups fan out to one edge per source and target. When
    the statement does not open with a connection, tokenizing restarts at
    each later node id, so a trailing recognisable edge is still kept.
    Returns an empty list when the statement holds no recognisable arrow.
    """
    links: list[_Link] = []
    pos = 0
    for start in _node_starts(text):
        links, pos = _read_chain(text, start)
        if links:
            if text[:start].strip():
                log.debug("Skipped unrecognised prefix %r", text[:start].strip())
            break
    if not links:
        return []

    rest = text[pos:].strip()
    colon_label = None
    if rest.startswith(":"):
        colon_label = rest[1:].strip() or None

    edges: list[Edge] = []
    for src, dst, label, kind in links:
        src = START_NODE if src == STATE_MARKER else src
        dst = END_NODE if dst == STATE_MARKER else dst
        label = label or colon_label
        edges.append(Edge(src, dst, label, kind))
        if kind == "bidirectional":
            edges.append(Edge(dst, src, label, kind))
    return edges


# ============================================================================
# Extraction
# ============================================================================


def extract_edges(content: str) -> list[Edge]:
    """Extract every recognisable edge from diagram source, in source order."""
    edges: list[Edge] = []
    for lineno, raw in enumerate(content.splitlines(), start=1):
        if classify_line(raw) == "comment":
            continue
        for part in split_statements(raw):
            if classify_line(part) != "statement":
                continue
            found = parse_statement(part)
            if found:
                log.debug("line %d: %d edge(s) from %r", lineno, len(found), part.strip())
            edges.extend(found)
    return edges
