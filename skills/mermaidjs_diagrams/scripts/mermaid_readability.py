#!/usr/bin/env python3
# /// script
# requires-python = ">=3.12"
# dependencies = ["networkx>=3.0", "python-dotenv>=1.0"]
# ///
"""
Mermaid Diagram Readability Analyzer

Statically predicts how large a Mermaid flowchart or state diagram will render
and whether its structure suits its layout direction, without rendering it.
Warns when a diagram will be too wide, too tall, chained too long, split into
disconnected pieces, or laid out against its own structure.

Sources:
- ``.mmd`` files are analyzed as one diagram
- ``.md`` files contribute every ```mermaid fenced block
- directories are searched recursively for both

Configuration (in order of precedence):
1. CLI arguments (--max-width=1600)
2. Environment variables (MERMAID_READABILITY_MAX_WIDTH=1600)
3. .env file in the current directory or a parent
4. Viewport preset (default, docs, mobile, wide)

Usage:
    python mermaid_readability.py docs/diagrams/flow.mmd
    python mermaid_readability.py docs/ --preset docs
    python mermaid_readability.py README.md --json
    MERMAID_READABILITY_PRESET=mobile python mermaid_readability.py docs/
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import sys
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from textwrap import dedent
from typing import Callable, Literal

import networkx as nx
from dotenv import dotenv_values, find_dotenv

from mermaid_algorithms import (
    ChainResult,
    PathResult,
    SpineResult,
    calculate_longest_linear_chain,
    calculate_longest_path,
    calculate_spine,
    find_components,
    max_branch_width,
    max_depth,
)
from mermaid_dimensions import (
    HORIZONTAL_LAYOUTS,
    DimensionConfig,
    DimensionEstimate,
    estimate_dimensions,
    extract_labels,
)
from mermaid_edges import detect_direction
from mermaid_graph import Graph, graph_from_text
from mermaid_patterns import (
    LayoutRecommendation,
    Pattern,
    PatternThresholds,
    detect_patterns,
    recommend_layout,
)

# ============================================================================
# Configuration
# ============================================================================

SCRIPT = Path(__file__)
SCRIPT_NAME = SCRIPT.stem

ENV_PREFIX = "MERMAID_READABILITY_"

log = logging.getLogger(__name__)

Severity = Literal["info", "warning", "error"]

# Viewport presets: error thresholds equal the max size, info/warning default
# to 60% / 80% of it unless given explicitly.
PRESETS: dict[str, dict[str, int]] = {
    # Rule defaults; suits most rendered documentation sites
    "default": {
        "max_width": 2500,
        "max_height": 2000,
        "width_info": 1500,
        "width_warning": 2000,
        "height_info": 800,
        "height_warning": 1200,
    },
    # Narrow documentation column (GitHub README, MkDocs content area)
    "docs": {"max_width": 1200, "max_height": 1600},
    # Phone-sized viewport
    "mobile": {"max_width": 400, "max_height": 1000},
    # Wide monitors and slide decks
    "wide": {"max_width": 3200, "max_height": 2400},
}


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


@dataclass
class ReadabilityConfig:
    """Thresholds and pixel constants. All values are tunable."""

    # Viewport limits (error thresholds)
    max_width: int = 2500
    max_height: int = 2000

    # Progressive thresholds; 0 means "derive from the max"
    width_info: int = 1500
    width_warning: int = 2000
    height_info: int = 800
    height_warning: int = 1200

    # Pixel constants handed to the estimator
    char_width: float = 8.0
    node_spacing: float = 50.0
    node_height: float = 40.0
    vertical_spacing: float = 50.0

    # Linear chain limits per layout family
    chain_limit_horizontal: int = 8
    chain_limit_vertical: int = 12

    # Layout hint and component rules
    layout_min_confidence: float = 0.6
    component_threshold: int = 2

    # Pattern detector triggers
    sequential_ratio: float = 0.6
    hierarchical_avg_children: float = 0.8
    hierarchical_min_depth: int = 2
    wide_branching_children: int = 5
    reconvergence_ratio: float = 0.2

    # Track which preset was used (for display)
    preset_name: str = "default"

    @classmethod
    def from_preset(cls, name: str) -> ReadabilityConfig:
        """Create config from a named viewport preset."""
        name = name.lower()
        if name not in PRESETS:
            raise ValueError(f"Unknown preset '{name}'. Valid: {sorted(PRESETS)}")
        values = {"width_info": 0, "width_warning": 0, "height_info": 0, "height_warning": 0}
        values.update(PRESETS[name])
        return cls(preset_name=name, **values)

    @classmethod
    def from_env(
        cls,
        env_prefix: str = ENV_PREFIX,
        base_preset: str = "default",
        preset: str | None = None,
    ) -> ReadabilityConfig:
        """Load configuration from environment variables, starting from a preset.

        An explicit ``preset`` (from the CLI) beats ``{prefix}PRESET``, which
        beats ``base_preset``.
        """
        preset_name = preset or os.environ.get(f"{env_prefix}PRESET", base_preset)
        config = cls.from_preset(preset_name)

        for f in fields(config):
            if f.name == "preset_name":
                continue
            env_key = f"{env_prefix}{f.name.upper()}"
            if env_key not in os.environ:
                continue
            raw = os.environ[env_key]
            current = getattr(config, f.name)
            try:
                value: float = float(raw)
            except ValueError:
                raise ValueError(f"{env_key} must be a number, got {raw!r}") from None
            if isinstance(current, int):
                if not value.is_integer():
                    raise ValueError(f"{env_key} must be a whole number, got {raw!r}")
                value = int(value)
            config.override(f.name, value)
        return config

    @staticmethod
    def load_env_file(path: Path | None = None, env_prefix: str = ENV_PREFIX) -> Path | None:
        """Copy prefixed keys from a .env file into the environment.

        Real environment variables always win. Returns the file used, if any.
        """
        env_path = path if path is not None else Path(find_dotenv(usecwd=True) or ".env")
        if not env_path.is_file():
            return None
        for key, value in dotenv_values(env_path).items():
            if key.startswith(env_prefix) and value is not None:
                os.environ.setdefault(key, value)
        log.debug("Loaded %s", env_path)
        return env_path

    def override(self, name: str, value: float) -> None:
        """Set one field. Changing a max drops the preset's fixed info/warning steps."""
        setattr(self, name, value)
        if name == "max_width":
            self.width_info = self.width_warning = 0
        elif name == "max_height":
            self.height_info = self.height_warning = 0
        self.preset_name = "custom"

    def width_thresholds(self) -> tuple[int, int, int]:
        """(info, warning, error) width thresholds in pixels."""
        info = self.width_info or _round_half_up(self.max_width * 0.6)
        warning = self.width_warning or _round_half_up(self.max_width * 0.8)
        return info, warning, self.max_width

    def height_thresholds(self) -> tuple[int, int, int]:
        """(info, warning, error) height thresholds in pixels."""
        info = self.height_info or _round_half_up(self.max_height * 0.6)
        warning = self.height_warning or _round_half_up(self.max_height * 0.8)
        return info, warning, self.max_height

    def dimension_config(self) -> DimensionConfig:
        return DimensionConfig(
            char_width=self.char_width,
            node_spacing=self.node_spacing,
            node_height=self.node_height,
            vertical_spacing=self.vertical_spacing,
        )

    def pattern_thresholds(self) -> PatternThresholds:
        return PatternThresholds(
            sequential_ratio=self.sequential_ratio,
            hierarchical_avg_children=self.hierarchical_avg_children,
            hierarchical_min_depth=self.hierarchical_min_depth,
            wide_branching_children=self.wide_branching_children,
            reconvergence_ratio=self.reconvergence_ratio,
        )


# ============================================================================
# Data Structures
# ============================================================================


@dataclass
class Diagram:
    """One diagram body plus where it came from."""

    content: str
    file_path: str
    line: int = 1

    @property
    def direction(self) -> str | None:
        return detect_direction(self.content)


@dataclass
class Issue:
    """A readability problem found by one rule."""

    rule: str
    severity: Severity
    message: str
    file_path: str
    line: int
    suggestion: str = ""


@dataclass
class DiagramReport:
    """Structural analysis and issues for one diagram."""

    file_path: str
    line: int
    layout: str | None

    # Raw counts
    nodes: int
    edges: int
    components: int
    cyclomatic_complexity: int
    is_dag: bool

    # Structure
    max_depth: int
    max_branch_width: int
    spine: SpineResult
    chain: ChainResult
    longest_path: PathResult
    patterns: list[Pattern]
    layout_recommendation: LayoutRecommendation

    # Size estimate (None when the diagram has no labels)
    estimate: DimensionEstimate | None

    issues: list[Issue] = field(default_factory=list)

    @property
    def worst_severity(self) -> Severity | None:
        for level in ("error", "warning", "info"):
            if any(i.severity == level for i in self.issues):
                return level  # type: ignore[return-value]
        return None


# ============================================================================
# Sources
# ============================================================================


def extract_mermaid_fences(text: str, file_path: str) -> list[Diagram]:
    """Extract ```mermaid fenced blocks from Markdown text.

    The closing fence must use at least as many backticks as the opener.
    ``Diagram.line`` is the 1-indexed line of the opening fence.
    """
    diagrams: list[Diagram] = []
    in_fence = False
    fence_start = 0
    fence_marker = ""
    fence_lines: list[str] = []

    for i, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not in_fence:
            m = re.match(r"^(`{3,})mermaid\s*$", stripped)
            if m:
                in_fence = True
                fence_start = i
                fence_marker = m.group(1)
                fence_lines = []
        else:
            close_m = re.match(r"^(`{3,})\s*$", stripped)
            if close_m and len(close_m.group(1)) >= len(fence_marker):
                diagrams.append(Diagram("\n".join(fence_lines), file_path, fence_start))
                in_fence = False
            else:
                fence_lines.append(line)

    return diagrams


def collect_files(paths: list[str]) -> list[Path]:
    """Expand files and directories into a de-duplicated, ordered file list."""
    collected: list[Path] = []
    for path_str in paths:
        path = Path(path_str)
        if path.is_dir():
            found = list(path.rglob("*.mmd")) + list(path.rglob("*.md"))
            collected.extend(sorted(found))
        elif path.is_file():
            collected.append(path)
        else:
            log.warning("Skipping %s: no such file or directory", path)

    seen: set[Path] = set()
    unique: list[Path] = []
    for p in collected:
        resolved = p.resolve()
        if resolved not in seen:
            seen.add(resolved)
            unique.append(p)
    return unique


def load_diagrams(file_path: Path) -> list[Diagram]:
    """Read diagrams from one file; unreadable files are logged and skipped."""
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.warning("Skipping %s: %s", file_path, e)
        return []
    if file_path.suffix.lower() in (".md", ".markdown"):
        return extract_mermaid_fences(text, str(file_path))
    return [Diagram(text, str(file_path), 1)]


# ============================================================================
# Rules
# ============================================================================


def rate_severity(value: float, thresholds: tuple[int, int, int]) -> Severity | None:
    """Map a pixel value onto (info, warning, error) thresholds."""
    info, warning, error = thresholds
    if value >= error:
        return "error"
    if value >= warning:
        return "warning"
    if value >= info:
        return "info"
    return None


def _numbered(suggestions: list[str]) -> str:
    return "Suggestions:\n" + "\n\n".join(f"{i}. {s}" for i, s in enumerate(suggestions, 1))


def check_width(diagram: Diagram, report: DiagramReport, config: ReadabilityConfig) -> Issue | None:
    """horizontal-width-readability"""
    est = report.estimate
    if est is None:
        return None
    severity = rate_severity(est.width, config.width_thresholds())
    if severity is None:
        return None

    exceeds = max(0, est.width - config.max_width)
    if est.source == "sequential-chain":
        preview = " → ".join(est.path[:5]) + ("..." if len(est.path) > 5 else "")
        message = (
            f"Diagram width ({est.width:.0f}px) exceeds viewport limit due to sequential "
            f"nodes (longest path: {preview}) and label length in {est.layout} layout"
        )
        header = f"This {est.layout} layout with longest path of {est.path_length} nodes creates excessive width."
        suggestions = [
            "Convert to TD (top-down) layout for better vertical scrolling:\n\ngraph TD\n  A --> B --> C\n  ...",
            "Break into multiple sequential diagrams, each covering a specific phase",
        ]
    else:
        message = (
            f"Diagram width ({est.width:.0f}px) exceeds viewport limit due to parallel "
            f"branches and label length in {est.layout} layout"
        )
        header = f"This {est.layout} layout with {est.max_branch_width} parallel branches creates excessive width."
        suggestions = [
            "Group related branches into subgraphs to reduce width",
            "Split wide branches into separate diagrams",
            "Introduce intermediate grouping nodes",
        ]
    suggestions += ["Use shorter, more concise labels", "Use abbreviations with a legend"]

    return Issue(
        rule="horizontal-width-readability",
        severity=severity,
        message=message,
        file_path=diagram.file_path,
        line=diagram.line,
        suggestion=(
            f"{header}\nEstimated width: {est.width:.0f}px "
            f"(exceeds {config.max_width}px safe limit by {exceeds:.0f}px)\n\n{_numbered(suggestions)}"
        ),
    )


def check_height(diagram: Diagram, report: DiagramReport, config: ReadabilityConfig) -> Issue | None:
    """vertical-height-readability"""
    est = report.estimate
    if est is None:
        return None
    severity = rate_severity(est.height, config.height_thresholds())
    if severity is None:
        return None

    if est.layout in HORIZONTAL_LAYOUTS:
        cause = f"{est.max_branch_width} parallel branches"
        suggestions = [
            "Reduce the number of parallel branches from a single node",
            "Group parallel branches into subgraphs",
        ]
    else:
        cause = f"depth of {est.depth} levels"
        suggestions = [
            "Convert to LR (left-right) layout if the flow is mostly sequential",
            "Split the diagram into phases, one diagram per phase",
        ]
    suggestions.append("Collapse intermediate steps that do not add information")

    return Issue(
        rule="vertical-height-readability",
        severity=severity,
        message=(
            f"Diagram height ({est.height:.0f}px) exceeds viewport limit due to "
            f"{cause} in {est.layout} layout"
        ),
        file_path=diagram.file_path,
        line=diagram.line,
        suggestion=_numbered(suggestions),
    )


def check_chain_length(
    diagram: Diagram, report: DiagramReport, config: ReadabilityConfig
) -> Issue | None:
    """horizontal-chain-too-long"""
    layout = report.layout or "TD"
    horizontal = layout in HORIZONTAL_LAYOUTS
    limit = config.chain_limit_horizontal if horizontal else config.chain_limit_vertical
    chain = report.chain
    if chain.length <= limit:
        return None

    path = chain.path
    preview = (
        f"{' → '.join(path[:3])} ... → {path[-1]}" if len(path) > 4 else " → ".join(path)
    )
    half = (len(path) + 1) // 2
    suggestions = []
    if horizontal:
        suggestions.append(
            "Convert to TD (top-down) layout for better vertical scrolling:\n\ngraph TD\n  "
            + " --> ".join(path[:3])
            + ("\n  ..." if len(path) > 3 else "")
        )
    suggestions += [
        "Organize into logical subgraphs to break up the chain:\n\n"
        f"subgraph Phase1\n  direction TB\n  {' --> '.join(path[:half])}\nend\n\n"
        f"subgraph Phase2\n  direction TB\n  {' --> '.join(path[half:])}\nend",
        "Simplify by removing intermediate steps and focusing on key transitions",
    ]
    effect = "excessive width in horizontal layout" if horizontal else "an excessively tall diagram"

    return Issue(
        rule="horizontal-chain-too-long",
        severity="warning",
        message=(
            f"Linear chain of {chain.length} nodes in {layout} layout exceeds "
            f"{limit}-node threshold for {'horizontal' if horizontal else 'vertical'} layouts"
        ),
        file_path=diagram.file_path,
        line=diagram.line,
        suggestion=(
            f"Linear chain of {chain.length} nodes detected:\n{preview}\n\n"
            f"This creates {effect}.\n\n{_numbered(suggestions)}"
        ),
    )


def check_layout_hint(
    diagram: Diagram, report: DiagramReport, config: ReadabilityConfig
) -> Issue | None:
    """layout-hint"""
    rec = report.layout_recommendation
    if rec.confidence < config.layout_min_confidence:
        return None
    # TB is an alias of TD; an undeclared direction renders as TD
    current = "TD" if rec.current in (None, "TB") else rec.current
    if current == rec.recommended:
        return None

    if rec.current:
        message = f"{rec.reason} (current: {rec.current}, suggested: {rec.recommended})"
    else:
        message = f"{rec.reason} (suggested: {rec.recommended})"
    pattern_info = "\n".join(f"  - {p.type}: {', '.join(p.evidence)}" for p in rec.patterns)
    example = (rec.patterns[0].example if rec.patterns else None) or (
        f"graph {rec.recommended}\n  A --> B --> C"
    )

    return Issue(
        rule="layout-hint",
        severity="warning",
        message=message,
        file_path=diagram.file_path,
        line=diagram.line,
        suggestion=(
            f"Consider changing layout to {rec.recommended}:\n\n"
            f"Detected patterns:\n{pattern_info}\n\nExample:\n{example}"
        ),
    )


def check_components(
    diagram: Diagram, report: DiagramReport, config: ReadabilityConfig
) -> Issue | None:
    """disconnected-components"""
    if report.components < config.component_threshold:
        return None
    return Issue(
        rule="disconnected-components",
        severity="warning",
        message=f"Diagram contains {report.components} disconnected components",
        file_path=diagram.file_path,
        line=diagram.line,
        suggestion=(
            f"Consider splitting into {report.components} separate diagrams, each "
            "focusing on one logical concern, linked by references if related."
        ),
    )


Rule = Callable[[Diagram, DiagramReport, ReadabilityConfig], "Issue | None"]

RULES: tuple[Rule, ...] = (
    check_width,
    check_height,
    check_chain_length,
    check_layout_hint,
    check_components,
)


# ============================================================================
# Analysis
# ============================================================================


def cyclomatic_complexity(graph: Graph) -> int:
    """E - N + 2P over the diagram graph (P = weakly connected components)."""
    if graph.is_empty:
        return 0
    G = graph.to_networkx()
    components = nx.number_weakly_connected_components(G)
    return G.number_of_edges() - G.number_of_nodes() + 2 * components


def analyze_diagram(diagram: Diagram, config: ReadabilityConfig) -> DiagramReport:
    """Run the structural analysis and every rule over one diagram."""
    graph = graph_from_text(diagram.content)
    layout = diagram.direction
    patterns = detect_patterns(graph, config.pattern_thresholds())
    longest = calculate_longest_path(graph)

    labels = extract_labels(diagram.content)
    estimate = (
        estimate_dimensions(graph, labels, layout, config.dimension_config(), longest)
        if labels is not None
        else None
    )

    report = DiagramReport(
        file_path=diagram.file_path,
        line=diagram.line,
        layout=layout,
        nodes=len(graph.nodes),
        edges=len(graph.edges),
        components=len(find_components(graph)),
        cyclomatic_complexity=cyclomatic_complexity(graph),
        is_dag=nx.is_directed_acyclic_graph(graph.to_networkx()),
        max_depth=max_depth(graph),
        max_branch_width=max_branch_width(graph)[0],
        spine=calculate_spine(graph),
        chain=calculate_longest_linear_chain(graph),
        longest_path=longest,
        patterns=patterns,
        layout_recommendation=recommend_layout(patterns, layout),
        estimate=estimate,
    )
    report.issues = [i for rule in RULES if (i := rule(diagram, report, config)) is not None]
    log.debug("%s:%d -> %d issue(s)", diagram.file_path, diagram.line, len(report.issues))
    return report


def analyze_paths(paths: list[str], config: ReadabilityConfig) -> list[DiagramReport]:
    """Analyze every diagram found under ``paths``."""
    reports: list[DiagramReport] = []
    for file_path in collect_files(paths):
        diagrams = load_diagrams(file_path)
        log.info("Processing %s (%d diagram(s))", file_path, len(diagrams))
        reports.extend(analyze_diagram(d, config) for d in diagrams)
    return reports


# ============================================================================
# Output Formatting
# ============================================================================

COLOR_CODES = {
    "error": "\033[91m",
    "warning": "\033[93m",
    "info": "\033[96m",
    "ok": "\033[92m",
    "reset": "\033[0m",
    "dim": "\033[2m",
    "bold": "\033[1m",
}

SEVERITY_EMOJI = {"error": "🔴", "warning": "🟡", "info": "🔵"}


def format_report(report: DiagramReport, show_suggestions: bool = False) -> str:
    """Format one diagram report for the console."""
    r = COLOR_CODES["reset"]
    dim = COLOR_CODES["dim"]
    bold = COLOR_CODES["bold"]

    lines = [
        "",
        "=" * 70,
        f"📊 {bold}{Path(report.file_path).name}:{report.line}{r}",
        "=" * 70,
        "",
        "📈 Structure:",
        f"   Nodes:       {report.nodes:4d}",
        f"   Edges:       {report.edges:4d}",
        f"   Components:  {report.components:4d}",
        f"   Max depth:   {report.max_depth:4d}",
        f"   Max branch:  {report.max_branch_width:4d}",
        f"   Cyclomatic:  {report.cyclomatic_complexity:4d}  {dim}(E - N + 2P){r}",
        f"   Spine:       {report.spine.length:4d}  {dim}({report.spine.ratio:.0%} of nodes){r}",
        f"   Chain:       {report.chain.length:4d}  {dim}({report.chain.ratio:.0%} of nodes){r}",
        f"   Longest path:{report.longest_path.length:4d}  {dim}({report.longest_path.ratio:.0%} of nodes){r}",
    ]

    if report.patterns:
        lines.extend(["", "🧭 Patterns:"])
        for p in report.patterns:
            lines.append(f"   {p.type:<15} {p.confidence:4.2f}  {dim}{p.evidence[0]}{r}")

    rec = report.layout_recommendation
    lines.extend([
        "",
        f"📐 Layout: {report.layout or '(none declared)'} → recommended {bold}{rec.recommended}{r} "
        f"{dim}(confidence {rec.confidence:.2f}){r}",
    ])

    est = report.estimate
    if est is not None:
        lines.append(
            f"   Estimated size: {est.width:.0f} × {est.height:.0f} px  "
            f"{dim}(width from {est.source}, mean label {est.label_stats.mean_length if est.label_stats else 0} chars){r}"
        )
    else:
        lines.append(f"   {dim}Estimated size: n/a (no node labels){r}")

    if report.issues:
        lines.append("")
        for issue in report.issues:
            c = COLOR_CODES[issue.severity]
            lines.append(
                f"{SEVERITY_EMOJI[issue.severity]} {c}{bold}{issue.severity.upper()}{r} "
                f"[{issue.rule}] {issue.message}"
            )
            if show_suggestions and issue.suggestion:
                lines.extend(f"      {dim}{s}{r}" for s in issue.suggestion.splitlines())
    else:
        lines.extend(["", f"✅ {COLOR_CODES['ok']}No readability issues{r}"])

    return "\n".join(lines)


def build_summary(reports: list[DiagramReport]) -> dict:  # type: ignore[type-arg]
    """Count diagrams and issues by severity."""
    issues = [i for r in reports for i in r.issues]
    return {
        "diagrams": len(reports),
        "files": len({r.file_path for r in reports}),
        "errors": sum(1 for i in issues if i.severity == "error"),
        "warnings": sum(1 for i in issues if i.severity == "warning"),
        "infos": sum(1 for i in issues if i.severity == "info"),
    }


def format_json_report(reports: list[DiagramReport]) -> str:
    """Format reports as JSON for programmatic use."""
    return json.dumps(
        {"summary": build_summary(reports), "results": [asdict(r) for r in reports]},
        indent=2,
    )


def format_summary(reports: list[DiagramReport]) -> str:
    """Format a summary of all reports."""
    summary = build_summary(reports)
    lines = [
        "",
        "=" * 70,
        f"📊 SUMMARY: {summary['diagrams']} diagram(s) in {summary['files']} file(s)",
        "=" * 70,
        "",
        f"  🔴 Errors:   {summary['errors']:3d}",
        f"  🟡 Warnings: {summary['warnings']:3d}",
        f"  🔵 Info:     {summary['infos']:3d}",
    ]

    needs_work = [r for r in reports if r.worst_severity in ("error", "warning")]
    if needs_work:
        lines.extend(["", "📋 Diagrams needing attention:"])
        for r in needs_work:
            rules = ", ".join(sorted({i.rule for i in r.issues}))
            lines.append(f"   • {Path(r.file_path).name}:{r.line}: {rules}")

    return "\n".join(lines)


def determine_exit_code(reports: list[DiagramReport], strict: bool = False) -> int:
    """0 when clean, 1 on errors (or on warnings in strict mode)."""
    summary = build_summary(reports)
    if summary["errors"] or (strict and summary["warnings"]):
        return 1
    return 0


# ============================================================================
# Main Entry Point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=SCRIPT_NAME,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="Predict Mermaid diagram size and layout problems without rendering",
        epilog=dedent(
            """\
            Examples:
              %(prog)s diagram.mmd                      # Analyze single file
              %(prog)s docs/                            # Recursive .mmd/.md scan
              %(prog)s README.md --json                 # Output as JSON
              %(prog)s docs/ --preset docs --strict     # Fail on warnings too

            Viewport presets:
              default  2500 x 2000 px
              docs     1200 x 1600 px
              mobile    400 x 1000 px
              wide     3200 x 2400 px

            Configuration precedence: CLI args > Environment variables > .env file > Preset

            Exit codes:
              0  No errors (and no warnings with --strict)
              1  Errors found (or warnings with --strict)
              2  No diagrams found
            """
        ),
    )
    parser.add_argument("paths", nargs="+", help="Mermaid/Markdown files or directories")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--summary-only", action="store_true", help="Show only summary")
    parser.add_argument(
        "--suggestions", "-s", action="store_true", help="Show fix suggestions for each issue"
    )
    parser.add_argument("--strict", action="store_true", help="Treat warnings as errors")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Errors only")
    parser.add_argument("--preset", "-p", choices=sorted(PRESETS), help="Viewport preset")

    thresh = parser.add_argument_group("Threshold Configuration")
    thresh.add_argument("--max-width", type=int, help="Width error threshold (px)")
    thresh.add_argument("--max-height", type=int, help="Height error threshold (px)")
    thresh.add_argument("--char-width", type=float, help="Pixels per label character")
    thresh.add_argument("--node-spacing", type=float, help="Horizontal spacing between nodes")
    thresh.add_argument("--node-height", type=float, help="Node box height")
    thresh.add_argument("--vertical-spacing", type=float, help="Spacing between layers")
    thresh.add_argument(
        "--chain-limit-horizontal", type=int, help="Max linear chain length in LR/RL"
    )
    thresh.add_argument("--chain-limit-vertical", type=int, help="Max linear chain length in TD/TB")
    return parser


CLI_OVERRIDES = (
    "max_width",
    "max_height",
    "char_width",
    "node_spacing",
    "node_height",
    "vertical_spacing",
    "chain_limit_horizontal",
    "chain_limit_vertical",
)


def main(argv: list[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.ERROR if args.quiet else logging.INFO,
        format="%(asctime)s|%(name)s|%(levelname)s|%(filename)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Lowest priority: .env file
    ReadabilityConfig.load_env_file()
    try:
        config = ReadabilityConfig.from_env(preset=args.preset)
    except ValueError as e:
        parser.error(str(e))

    for name in CLI_OVERRIDES:
        value = getattr(args, name, None)
        if value is not None:
            config.override(name, value)

    reports = analyze_paths(args.paths, config)
    if not reports:
        print("❌ No Mermaid diagrams found", file=sys.stderr)
        return 2

    if args.json:
        print(format_json_report(reports))
    elif args.summary_only:
        print(format_summary(reports))
    else:
        if not args.quiet:
            info, warning, error = config.width_thresholds()
            print(f"\n🔧 Using preset: {config.preset_name}")
            print(f"   Width: {info}/{warning}/{error}px, Height: "
                  f"{'/'.join(str(t) for t in config.height_thresholds())}px")
            for report in reports:
                print(format_report(report, show_suggestions=args.suggestions))
        print(format_summary(reports))

    return determine_exit_code(reports, strict=args.strict)


if __name__ == "__main__":
    sys.exit(main())
