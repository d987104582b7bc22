"""
Tests for the per-file pipeline and the analysis worker pool.
"""

import threading

import pytest
from conftest import rule_ids
from lintcs.analyzer import (
    INTERNAL_ERROR,
    IO_ERROR,
    LEX_ERROR,
    AnalysisCancelled,
    analyze_file,
    analyze_source,
)
from lintcs.pool import AnalysisPool, analyze_paths
from lintcs.rules import get_rule
from lintcs.rules.base import LintRule
from lintcs.rules.engine import RuleEngine


BAD_CLASS = "public class item{0} {{ }}\n"


class ExplodingRule(LintRule):
    id = "Exploding"

    def check(self, unit, context):
        raise RuntimeError("boom")


class CancellingRule(LintRule):
    """Cancels the pool once it has checked a given number of files."""
    id = "Cancelling"

    def __init__(self, after):
        self.after = after
        self.checked = 0
        self.pool = None

    def check(self, unit, context):
        self.checked += 1
        if self.checked == self.after:
            self.pool.cancel()
        return []


@pytest.fixture
def many_files(tmp_path):
    paths = []
    for i in range(12):
        path = tmp_path / f"File{i:02d}.cs"
        path.write_text(BAD_CLASS.format(i), encoding="utf-8")
        paths.append(str(path))
    return paths


class TestAnalyzer:
    """Test the single-file pipeline."""

    def test_analyze_file(self, project_dir, engine):
        result = analyze_file(str(project_dir / "Orders" / "OrderService.cs"), engine)
        assert rule_ids(result.violations) == ["CamelCaseUnderscoreField"]
        assert result.violations[0].line == 8
        assert result.diagnostics == []

    def test_unterminated_string_file(self, fixtures_dir, engine):
        result = analyze_file(str(fixtures_dir / "broken" / "Unterminated.cs"), engine)
        assert rule_ids(result.violations) == [LEX_ERROR]
        assert (result.violations[0].line, result.violations[0].column) == (5, 40)
        assert not result.has_io_error

    def test_missing_file(self, tmp_path, engine):
        result = analyze_file(str(tmp_path / "Missing.cs"), engine)
        assert rule_ids(result.violations) == [IO_ERROR]
        assert result.has_io_error

    def test_parse_error_keeps_other_findings(self, engine):
        source = "class C\n{\n    public int = 5;\n    private int Count;\n}\n"
        result = analyze_source(source, "C.cs", engine)
        assert sorted(rule_ids(result.violations)) == ["CamelCaseUnderscoreField", "ParseError"]

    def test_cancelled_before_start(self, engine):
        event = threading.Event()
        event.set()
        with pytest.raises(AnalysisCancelled):
            analyze_source("class C { }", "C.cs", engine, cancel_event=event)


class TestAnalysisPool:
    """Test parallel analysis and result merging."""

    def test_all_files_analyzed(self, many_files, engine):
        run = analyze_paths(many_files, engine, num_workers=4)
        assert run.files_total == 12
        assert run.files_done == 12
        assert not run.cancelled
        assert len(run.violations) == 12
        assert [r.path for r in run.results] == sorted(many_files)

    def test_worker_count_does_not_change_results(self, many_files, engine):
        one = analyze_paths(many_files, engine, num_workers=1)
        four = analyze_paths(many_files, engine, num_workers=4)
        assert one.violations == four.violations

    def test_empty_input(self, engine):
        run = analyze_paths([], engine)
        assert run.files_done == 0
        assert run.violations == []

    def test_io_error_isolated(self, many_files, tmp_path, engine):
        paths = many_files + [str(tmp_path / "Gone.cs")]
        run = analyze_paths(paths, engine, num_workers=3)
        assert run.files_done == 13
        assert run.has_io_error
        assert sum(1 for v in run.violations if v.rule == IO_ERROR) == 1

    def test_lex_error_isolated(self, many_files, fixtures_dir, engine):
        broken = str(fixtures_dir / "broken" / "Unterminated.cs")
        run = analyze_paths(many_files + [broken], engine, num_workers=2)
        assert sum(1 for v in run.violations if v.rule == LEX_ERROR) == 1
        assert sum(1 for v in run.violations if v.rule == "PascalCaseType") == 12

    def test_cancel_before_run(self, many_files, engine):
        pool = AnalysisPool(engine, num_workers=2)
        pool.cancel()
        run = pool.run(many_files)
        assert run.cancelled
        assert run.files_done == 0
        assert run.files_total == 12

    def test_cancel_mid_run_keeps_finished_files(self, many_files):
        cancelling = CancellingRule(after=3)
        pool = AnalysisPool(RuleEngine([get_rule("PascalCaseType")(), cancelling]), num_workers=1)
        cancelling.pool = pool
        run = pool.run(many_files)
        assert run.cancelled
        assert run.files_total == 12
        assert run.files_done == 3
        assert [r.path for r in run.results] == many_files[:3]
        assert [v.file for v in run.violations] == many_files[:3]
        assert rule_ids(run.violations) == ["PascalCaseType"] * 3

    def test_internal_error_becomes_diagnostic(self, many_files):
        engine = RuleEngine([ExplodingRule()])
        run = analyze_paths(many_files[:2], engine, num_workers=2)
        assert run.files_done == 2
        assert rule_ids(run.violations) == [INTERNAL_ERROR, INTERNAL_ERROR]
        assert "boom" in run.violations[0].message

    def test_stats(self, many_files, engine):
        pool = AnalysisPool(engine, num_workers=3)
        pool.run(many_files)
        stats = pool.get_stats()
        assert stats["num_workers"] == 3
        assert sum(w["files_done"] for w in stats["workers"]) == 12
        assert not any(w["alive"] for w in stats["workers"])
