#!/usr/bin/env python3
# /// script
# requires-python = ">=3.12"
# dependencies = ["pytest>=8.0", "pytest-cov>=4.0", "networkx>=3.0", "python-dotenv>=1.0"]
# ///
"""Tests for mermaid_readability."""

from __future__ import annotations

import json
import logging
import os
import sys
import tempfile
from dataclasses import fields, replace
from pathlib import Path

import pytest

from mermaid_graph import graph_from_text
from mermaid_patterns import LayoutRecommendation
from mermaid_readability import (
    ENV_PREFIX,
    Diagram,
    DiagramReport,
    Issue,
    ReadabilityConfig,
    analyze_diagram,
    analyze_paths,
    check_layout_hint,
    collect_files,
    cyclomatic_complexity,
    determine_exit_code,
    extract_mermaid_fences,
    format_json_report,
    format_report,
    format_summary,
    load_diagrams,
    main,
    rate_severity,
)

# ============================================================================
# Fixtures
# ============================================================================

CLEAN = "graph LR\n  A[Start] --> B[End]"
# 12 nodes, every label 20 characters: 12 * 20 * 8 + 12 * 50 = 2520px wide
WIDE_LR = "\n".join(
    ["graph LR"]
    + [f"  N{i:02d}[Stage {i:02d} of the flow] --> N{i + 1:02d}" for i in range(11)]
    + ["  N11[Stage 11 of the flow]"]
)
# 13 nodes in a straight line: depth 12 * 90 = 1080px tall
TALL_TD = "\n".join(
    ["graph TD"]
    + [f"  N{i:02d}[S{i:02d}] --> N{i + 1:02d}" for i in range(12)]
    + ["  N12[S12]"]
)
SPLIT = "graph TD\n  A --> B\n  C --> D"

MARKDOWN = """# Design notes

```mermaid
graph LR
  A[Start] --> B[End]
```

Prose in between.

````mermaid
graph TD
  A --> B
  ```
  C --> D
````
"""


@pytest.fixture
def temp_dir() -> Path:
    """Isolated temporary directory for each test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> pytest.MonkeyPatch:
    """No MERMAID_READABILITY_* variables and no .env above the working directory."""
    names = [f.name.upper() for f in fields(ReadabilityConfig)] + ["PRESET"]
    for name in names:
        # setenv first so teardown removes anything written during the test
        monkeypatch.setenv(f"{ENV_PREFIX}{name}", "")
        monkeypatch.delenv(f"{ENV_PREFIX}{name}")
    monkeypatch.chdir(temp_dir)
    return monkeypatch


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def rules_of(content: str, config: ReadabilityConfig | None = None) -> list[str]:
    report = analyze_diagram(Diagram(content, "test.mmd"), config or ReadabilityConfig())
    return [i.rule for i in report.issues]


# ============================================================================
# Configuration
# ============================================================================


class TestReadabilityConfig:
    def test_default_thresholds(self) -> None:
        config = ReadabilityConfig.from_preset("default")
        assert config.width_thresholds() == (1500, 2000, 2500)
        assert config.height_thresholds() == (800, 1200, 2000)

    def test_derived_thresholds(self) -> None:
        config = ReadabilityConfig.from_preset("docs")
        assert config.width_thresholds() == (720, 960, 1200)
        assert config.height_thresholds() == (960, 1280, 1600)

    def test_preset_name_case_insensitive(self) -> None:
        assert ReadabilityConfig.from_preset("MOBILE").max_width == 400

    def test_unknown_preset(self) -> None:
        with pytest.raises(ValueError, match="Unknown preset 'huge'"):
            ReadabilityConfig.from_preset("huge")

    def test_override_max_drops_fixed_steps(self) -> None:
        config = ReadabilityConfig.from_preset("default")
        config.override("max_width", 1000)
        assert config.width_thresholds() == (600, 800, 1000)
        assert config.height_thresholds() == (800, 1200, 2000)
        assert config.preset_name == "custom"

    def test_dimension_and_pattern_configs(self) -> None:
        config = ReadabilityConfig(char_width=9, wide_branching_children=3)
        assert config.dimension_config().char_width == 9
        assert config.pattern_thresholds().wide_branching_children == 3


class TestFromEnv:
    def test_preset_from_env(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv(f"{ENV_PREFIX}PRESET", "mobile")
        config = ReadabilityConfig.from_env()
        assert config.max_width == 400
        assert config.preset_name == "mobile"

    def test_base_preset_used_without_env(self, clean_env: pytest.MonkeyPatch) -> None:
        assert ReadabilityConfig.from_env(base_preset="wide").max_width == 3200

    def test_explicit_preset_beats_env(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv(f"{ENV_PREFIX}PRESET", "mobile")
        assert ReadabilityConfig.from_env(preset="wide").max_width == 3200

    def test_numeric_overrides(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv(f"{ENV_PREFIX}MAX_WIDTH", "1000")
        clean_env.setenv(f"{ENV_PREFIX}CHAR_WIDTH", "7.5")
        config = ReadabilityConfig.from_env()
        assert config.max_width == 1000
        assert isinstance(config.max_width, int)
        assert config.char_width == 7.5
        assert config.width_thresholds() == (600, 800, 1000)
        assert config.preset_name == "custom"

    def test_explicit_step_survives_max_override(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv(f"{ENV_PREFIX}MAX_WIDTH", "1000")
        clean_env.setenv(f"{ENV_PREFIX}WIDTH_INFO", "500")
        assert ReadabilityConfig.from_env().width_thresholds() == (500, 800, 1000)

    def test_bad_value_names_variable(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv(f"{ENV_PREFIX}MAX_HEIGHT", "tall")
        with pytest.raises(ValueError, match=f"{ENV_PREFIX}MAX_HEIGHT"):
            ReadabilityConfig.from_env()

    def test_whole_number_with_point_accepted(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv(f"{ENV_PREFIX}MAX_WIDTH", "1600.0")
        config = ReadabilityConfig.from_env()
        assert config.max_width == 1600
        assert isinstance(config.max_width, int)

    def test_fractional_integer_field_rejected(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv(f"{ENV_PREFIX}MAX_WIDTH", "1600.9")
        with pytest.raises(ValueError, match=f"{ENV_PREFIX}MAX_WIDTH must be a whole number"):
            ReadabilityConfig.from_env()

    def test_bad_preset(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv(f"{ENV_PREFIX}PRESET", "nope")
        with pytest.raises(ValueError, match="Unknown preset"):
            ReadabilityConfig.from_env()


class TestLoadEnvFile:
    def test_loads_prefixed_keys_only(self, clean_env: pytest.MonkeyPatch, temp_dir: Path) -> None:
        clean_env.setenv("UNRELATED_SETTING", "keep")
        env_file = write(
            temp_dir / ".env",
            f"{ENV_PREFIX}MAX_HEIGHT=900\nUNRELATED_SETTING=changed\n",
        )
        assert ReadabilityConfig.load_env_file(env_file) == env_file
        assert os.environ[f"{ENV_PREFIX}MAX_HEIGHT"] == "900"
        assert os.environ["UNRELATED_SETTING"] == "keep"

    def test_real_environment_wins(self, clean_env: pytest.MonkeyPatch, temp_dir: Path) -> None:
        clean_env.setenv(f"{ENV_PREFIX}MAX_HEIGHT", "1500")
        env_file = write(temp_dir / ".env", f"{ENV_PREFIX}MAX_HEIGHT=900\n")
        ReadabilityConfig.load_env_file(env_file)
        assert os.environ[f"{ENV_PREFIX}MAX_HEIGHT"] == "1500"

    def test_discovered_from_working_directory(
        self, clean_env: pytest.MonkeyPatch, temp_dir: Path
    ) -> None:
        write(temp_dir / ".env", f"{ENV_PREFIX}PRESET=docs\n")
        assert ReadabilityConfig.load_env_file() is not None
        assert ReadabilityConfig.from_env().max_width == 1200

    def test_missing_file(self, clean_env: pytest.MonkeyPatch, temp_dir: Path) -> None:
        assert ReadabilityConfig.load_env_file(temp_dir / "absent.env") is None


# ============================================================================
# Sources
# ============================================================================


class TestExtractMermaidFences:
    def test_fence_lines_and_bodies(self) -> None:
        diagrams = extract_mermaid_fences(MARKDOWN, "doc.md")
        assert [d.line for d in diagrams] == [3, 10]
        assert diagrams[0].content == "graph LR\n  A[Start] --> B[End]"
        # A shorter inner fence does not close a four-backtick block
        assert diagrams[1].content.endswith("C --> D")
        assert all(d.file_path == "doc.md" for d in diagrams)

    def test_direction_property(self) -> None:
        diagrams = extract_mermaid_fences(MARKDOWN, "doc.md")
        assert [d.direction for d in diagrams] == ["LR", "TD"]

    def test_other_languages_ignored(self) -> None:
        assert extract_mermaid_fences("```python\nA --> B\n```\n", "x.md") == []

    def test_unclosed_fence_dropped(self) -> None:
        assert extract_mermaid_fences("```mermaid\ngraph TD\nA --> B\n", "x.md") == []


class TestCollectAndLoad:
    def test_directory_recursion(self, temp_dir: Path) -> None:
        write(temp_dir / "a.mmd", CLEAN)
        write(temp_dir / "sub" / "b.md", MARKDOWN)
        write(temp_dir / "notes.txt", "not a diagram")
        files = collect_files([str(temp_dir)])
        assert [f.relative_to(temp_dir).as_posix() for f in files] == ["a.mmd", "sub/b.md"]

    def test_deduplicates(self, temp_dir: Path) -> None:
        mmd = write(temp_dir / "a.mmd", CLEAN)
        assert collect_files([str(temp_dir), str(mmd)]) == [mmd]

    def test_missing_path_skipped(self, temp_dir: Path, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            assert collect_files([str(temp_dir / "missing.mmd")]) == []
        assert "no such file" in caplog.text

    def test_load_mmd(self, temp_dir: Path) -> None:
        diagrams = load_diagrams(write(temp_dir / "a.mmd", CLEAN))
        assert len(diagrams) == 1
        assert diagrams[0].line == 1
        assert diagrams[0].content == CLEAN

    def test_load_markdown(self, temp_dir: Path) -> None:
        assert len(load_diagrams(write(temp_dir / "doc.md", MARKDOWN))) == 2

    def test_undecodable_file_skipped(
        self, temp_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        bad = temp_dir / "bad.mmd"
        bad.write_bytes(b"graph TD\n\xff\xfe A --> B")
        with caplog.at_level(logging.WARNING):
            assert load_diagrams(bad) == []
        assert "Skipping" in caplog.text


# ============================================================================
# Rules
# ============================================================================


class TestRateSeverity:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(100, None), (1500, "info"), (1999, "info"), (2000, "warning"), (2500, "error")],
    )
    def test_boundaries(self, value: float, expected: str | None) -> None:
        assert rate_severity(value, (1500, 2000, 2500)) == expected


class TestRules:
    def test_clean_diagram(self) -> None:
        assert rules_of(CLEAN) == []

    def test_wide_lr_chain(self) -> None:
        report = analyze_diagram(Diagram(WIDE_LR, "wide.mmd"), ReadabilityConfig())
        assert report.estimate is not None
        assert report.estimate.width == 2520
        by_rule = {i.rule: i for i in report.issues}
        assert list(by_rule) == ["horizontal-width-readability", "horizontal-chain-too-long"]

        width = by_rule["horizontal-width-readability"]
        assert width.severity == "error"
        assert "2520px" in width.message
        assert "longest path: N00 → N01 → N02 → N03 → N04..." in width.message
        assert "exceeds 2500px safe limit by 20px" in width.suggestion

        chain = by_rule["horizontal-chain-too-long"]
        assert chain.severity == "warning"
        assert chain.message == (
            "Linear chain of 12 nodes in LR layout exceeds 8-node threshold for horizontal layouts"
        )
        assert "N00 → N01 → N02 ... → N11" in chain.suggestion
        assert "graph TD" in chain.suggestion
        assert "subgraph Phase1" in chain.suggestion
        assert "Simplify by removing intermediate steps" in chain.suggestion

    def test_tall_td_chain(self) -> None:
        report = analyze_diagram(Diagram(TALL_TD, "tall.mmd"), ReadabilityConfig())
        by_rule = {i.rule: i for i in report.issues}
        assert list(by_rule) == [
            "vertical-height-readability",
            "horizontal-chain-too-long",
            "layout-hint",
        ]
        assert by_rule["vertical-height-readability"].severity == "info"
        assert "depth of 12 levels" in by_rule["vertical-height-readability"].message
        assert by_rule["horizontal-chain-too-long"].message.endswith(
            "exceeds 12-node threshold for vertical layouts"
        )
        assert "graph TD" not in by_rule["horizontal-chain-too-long"].suggestion
        hint = by_rule["layout-hint"]
        assert hint.message.endswith("(current: TD, suggested: LR)")
        assert "sequential" in hint.suggestion

    def test_chain_limit_configurable(self) -> None:
        config = ReadabilityConfig(chain_limit_vertical=20)
        assert "horizontal-chain-too-long" not in rules_of(TALL_TD, config)

    def test_disconnected(self) -> None:
        report = analyze_diagram(Diagram(SPLIT, "split.mmd"), ReadabilityConfig())
        assert [i.rule for i in report.issues] == ["disconnected-components"]
        assert report.issues[0].message == "Diagram contains 2 disconnected components"
        assert report.estimate is None

    def test_mobile_preset_flags_small_diagram(self) -> None:
        config = ReadabilityConfig.from_preset("mobile")
        content = "graph LR\n" + "\n".join(
            f"  N{i}[A fairly long label {i}] --> N{i + 1}" for i in range(3)
        )
        assert "horizontal-width-readability" in rules_of(content, config)

    def test_issue_location(self) -> None:
        report = analyze_diagram(Diagram(SPLIT, "doc.md", line=42), ReadabilityConfig())
        assert (report.issues[0].file_path, report.issues[0].line) == ("doc.md", 42)


class TestLayoutHint:
    def base_report(self) -> DiagramReport:
        return analyze_diagram(Diagram(CLEAN, "x.mmd"), ReadabilityConfig())

    def hint(
        self, current: str | None, recommended: str, confidence: float = 0.9
    ) -> Issue | None:
        rec = LayoutRecommendation(current, recommended, "Because", confidence)
        report = replace(self.base_report(), layout_recommendation=rec)
        return check_layout_hint(Diagram(CLEAN, "x.mmd"), report, ReadabilityConfig())

    def test_tb_counts_as_td(self) -> None:
        assert self.hint("TB", "TD") is None

    def test_undeclared_counts_as_td(self) -> None:
        assert self.hint(None, "TD") is None

    def test_undeclared_sequential(self) -> None:
        issue = self.hint(None, "LR")
        assert issue is not None
        assert issue.message == "Because (suggested: LR)"

    def test_low_confidence_silent(self) -> None:
        assert self.hint("TD", "LR", confidence=0.59) is None

    def test_threshold_inclusive(self) -> None:
        assert self.hint("TD", "LR", confidence=0.6) is not None


# ============================================================================
# Analysis
# ============================================================================


class TestAnalyze:
    def test_cyclomatic_complexity(self) -> None:
        assert cyclomatic_complexity(graph_from_text("A --> B\nA --> C\nB --> D\nC --> D")) == 2
        assert cyclomatic_complexity(graph_from_text(SPLIT)) == 2
        assert cyclomatic_complexity(graph_from_text("")) == 0

    def test_report_metrics(self) -> None:
        report = analyze_diagram(Diagram(WIDE_LR, "wide.mmd"), ReadabilityConfig())
        assert (report.nodes, report.edges, report.components) == (12, 11, 1)
        assert report.is_dag is True
        assert report.layout == "LR"
        assert report.chain.length == 12
        assert report.longest_path.is_linear is True
        assert report.layout_recommendation.recommended == "LR"
        assert report.worst_severity == "error"

    def test_estimate_shares_longest_path(self) -> None:
        report = analyze_diagram(Diagram(WIDE_LR, "wide.mmd"), ReadabilityConfig())
        assert report.estimate is not None
        assert report.estimate.path == report.longest_path.path
        assert report.estimate.path_length == report.longest_path.length == 12

    def test_cycle_not_dag(self) -> None:
        report = analyze_diagram(Diagram("graph LR\nA --> B\nB --> A", "c.mmd"), ReadabilityConfig())
        assert report.is_dag is False

    def test_empty_diagram(self) -> None:
        report = analyze_diagram(Diagram("graph TD", "e.mmd"), ReadabilityConfig())
        assert report.nodes == 0
        assert report.issues == []
        assert report.worst_severity is None

    def test_analyze_paths(self, temp_dir: Path) -> None:
        write(temp_dir / "a.mmd", CLEAN)
        write(temp_dir / "doc.md", MARKDOWN)
        reports = analyze_paths([str(temp_dir)], ReadabilityConfig())
        assert [(Path(r.file_path).name, r.line) for r in reports] == [
            ("a.mmd", 1),
            ("doc.md", 3),
            ("doc.md", 10),
        ]


# ============================================================================
# Output
# ============================================================================


class TestOutput:
    def reports(self) -> list[DiagramReport]:
        config = ReadabilityConfig()
        return [
            analyze_diagram(Diagram(CLEAN, "clean.mmd"), config),
            analyze_diagram(Diagram(WIDE_LR, "wide.mmd"), config),
            analyze_diagram(Diagram(SPLIT, "split.mmd"), config),
        ]

    def test_json_report(self) -> None:
        data = json.loads(format_json_report(self.reports()))
        assert data["summary"] == {
            "diagrams": 3,
            "files": 3,
            "errors": 1,
            "warnings": 2,
            "infos": 0,
        }
        wide = data["results"][1]
        assert wide["chain"]["length"] == 12
        assert wide["estimate"]["source"] == "sequential-chain"
        assert data["results"][2]["estimate"] is None

    def test_console_report(self) -> None:
        reports = self.reports()
        clean = format_report(reports[0])
        assert "clean.mmd:1" in clean
        assert "No readability issues" in clean
        wide = format_report(reports[1], show_suggestions=True)
        assert "horizontal-width-readability" in wide
        assert "Suggestions:" in wide

    def test_summary(self) -> None:
        summary = format_summary(self.reports())
        assert "3 diagram(s) in 3 file(s)" in summary
        assert "wide.mmd:1" in summary
        assert "clean.mmd" not in summary

    def test_exit_codes(self) -> None:
        reports = self.reports()
        assert determine_exit_code(reports) == 1
        warnings_only = [r for r in reports if r.worst_severity != "error"]
        assert determine_exit_code(warnings_only) == 0
        assert determine_exit_code(warnings_only, strict=True) == 1
        assert determine_exit_code([]) == 0


# ============================================================================
# Main
# ============================================================================


class TestMain:
    def test_clean_file(
        self, clean_env: pytest.MonkeyPatch, temp_dir: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        mmd = write(temp_dir / "clean.mmd", CLEAN)
        assert main([str(mmd)]) == 0
        out = capsys.readouterr().out
        assert "Using preset: default" in out
        assert "SUMMARY" in out

    def test_errors_exit_one(self, clean_env: pytest.MonkeyPatch, temp_dir: Path) -> None:
        mmd = write(temp_dir / "wide.mmd", WIDE_LR)
        assert main([str(mmd), "-q"]) == 1

    def test_strict_promotes_warnings(self, clean_env: pytest.MonkeyPatch, temp_dir: Path) -> None:
        mmd = write(temp_dir / "tall.mmd", TALL_TD)
        assert main([str(mmd), "--summary-only"]) == 0
        assert main([str(mmd), "--summary-only", "--strict"]) == 1

    def test_no_diagrams(
        self, clean_env: pytest.MonkeyPatch, temp_dir: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main([str(temp_dir / "missing.mmd")]) == 2
        assert "No Mermaid diagrams found" in capsys.readouterr().err

    def test_json_output(
        self, clean_env: pytest.MonkeyPatch, temp_dir: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        md = write(temp_dir / "doc.md", MARKDOWN)
        assert main(["--json", str(md)]) == 0
        data = json.loads(capsys.readouterr().out)
        assert [r["line"] for r in data["results"]] == [3, 10]

    def test_cli_overrides_env_and_preset(
        self, clean_env: pytest.MonkeyPatch, temp_dir: Path
    ) -> None:
        clean_env.setenv(f"{ENV_PREFIX}MAX_WIDTH", "100")
        mmd = write(temp_dir / "clean.mmd", CLEAN)
        assert main([str(mmd), "-q"]) == 1
        assert main([str(mmd), "-q", "--max-width", "5000"]) == 0

    def test_dotenv_file_applied(self, clean_env: pytest.MonkeyPatch, temp_dir: Path) -> None:
        write(temp_dir / ".env", f"{ENV_PREFIX}PRESET=mobile\n")
        mmd = write(temp_dir / "clean.mmd", CLEAN)
        # 164px wide: below every mobile threshold
        assert main([str(mmd), "-q"]) == 0
        assert main([str(temp_dir / "clean.mmd"), "-q", "--char-width", "40"]) == 1

    def test_unknown_preset_rejected(self, clean_env: pytest.MonkeyPatch, temp_dir: Path) -> None:
        mmd = write(temp_dir / "clean.mmd", CLEAN)
        with pytest.raises(SystemExit) as exc_info:
            main([str(mmd), "--preset", "huge"])
        assert exc_info.value.code == 2

    def test_bad_env_value_rejected(
        self, clean_env: pytest.MonkeyPatch, temp_dir: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        clean_env.setenv(f"{ENV_PREFIX}NODE_SPACING", "wide")
        mmd = write(temp_dir / "clean.mmd", CLEAN)
        with pytest.raises(SystemExit) as exc_info:
            main([str(mmd)])
        assert exc_info.value.code == 2
        assert f"{ENV_PREFIX}NODE_SPACING" in capsys.readouterr().err


# ============================================================================
# PEP-723 entry point
# ============================================================================

if __name__ == "__main__":  # pragma: no cover
    script_dir = str(Path(__file__).parent.resolve())
    base_args = [__file__, "-v", "--rootdir", script_dir, "-o", "addopts="]
    extra_args = sys.argv[1:]
    sys.exit(pytest.main(base_args + extra_args))
