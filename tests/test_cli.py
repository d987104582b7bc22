"""
Tests for the lintcs command line.
"""

import json

import pytest
from lintcs.cli import EXIT_ERROR, EXIT_FINDINGS, EXIT_OK, main
from lintcs.config import CONFIG_ENV_VAR, WORKERS_ENV_VAR
from lintcs.rules import all_rules


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user and environment configuration out of CLI runs."""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv(WORKERS_ENV_VAR, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)


class TestExitCodes:
    """Test exit codes for the different outcomes."""

    def test_clean_file(self, project_dir, capsys):
        assert main([str(project_dir / "Program.cs")]) == EXIT_OK
        assert "Found 0 issue(s)" in capsys.readouterr().out

    def test_findings(self, project_dir, capsys):
        assert main([str(project_dir)]) == EXIT_FINDINGS
        out = capsys.readouterr().out
        assert "OrderService.cs:8:" in out
        assert "warning CamelCaseUnderscoreField" in out
        assert "    -> _workerQueue" in out
        assert "Generated.cs" not in out

    def test_threshold_hides_findings(self, project_dir):
        assert main([str(project_dir), "--severity-threshold", "error"]) == EXIT_OK

    def test_lex_error_is_a_finding(self, fixtures_dir, capsys):
        assert main([str(fixtures_dir / "broken")]) == EXIT_FINDINGS
        assert "error LexError" in capsys.readouterr().out

    def test_missing_path(self, tmp_path):
        assert main([str(tmp_path / "nowhere")]) == EXIT_ERROR

    def test_no_paths(self, capsys):
        assert main([]) == EXIT_ERROR
        assert "at least one path" in capsys.readouterr().err

    def test_bad_worker_count(self, project_dir):
        assert main([str(project_dir), "--workers", "0"]) == EXIT_ERROR

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert "lintcs" in capsys.readouterr().out


class TestOutput:
    """Test output formats and destinations."""

    def test_json(self, project_dir, capsys):
        assert main([str(project_dir), "--format", "json"]) == EXIT_FINDINGS
        data = json.loads(capsys.readouterr().out)
        assert [entry["rule"] for entry in data] == ["CamelCaseUnderscoreField"]
        assert data[0]["line"] == 8
        assert data[0]["severity"] == "warning"

    def test_output_file(self, project_dir, tmp_path, capsys):
        report = tmp_path / "report.json"
        main([str(project_dir), "--format", "json", "-o", str(report)])
        assert capsys.readouterr().out == ""
        assert len(json.loads(report.read_text(encoding="utf-8"))) == 1

    def test_unwritable_output(self, project_dir, tmp_path):
        report = tmp_path / "missing" / "report.txt"
        assert main([str(project_dir), "-o", str(report)]) == EXIT_ERROR

    def test_list_rules(self, capsys):
        assert main(["--list-rules"]) == EXIT_OK
        out = capsys.readouterr().out
        for rule_cls in all_rules():
            assert rule_cls.id in out
        assert "AllmanBraces" in out


class TestConfiguration:
    """Test configuration handling from the command line."""

    def test_config_disables_rule(self, project_dir, tmp_path):
        config = tmp_path / "lintcs.yaml"
        config.write_text("CamelCaseUnderscoreField: false\n", encoding="utf-8")
        assert main([str(project_dir), "--config", str(config)]) == EXIT_OK

    def test_config_raises_severity(self, project_dir, tmp_path, capsys):
        config = tmp_path / "lintcs.yaml"
        config.write_text("CamelCaseUnderscoreField: error\n", encoding="utf-8")
        main([str(project_dir), "--config", str(config)])
        assert "error CamelCaseUnderscoreField" in capsys.readouterr().out

    def test_cwd_config_found(self, project_dir, tmp_path):
        (tmp_path / ".lintcs.yaml").write_text("CamelCaseUnderscoreField: off\n", encoding="utf-8")
        assert main([str(project_dir)]) == EXIT_OK

    def test_bad_config(self, project_dir, tmp_path, capsys):
        config = tmp_path / "lintcs.yaml"
        config.write_text("PascalCaseType: sometimes\n", encoding="utf-8")
        assert main([str(project_dir), "--config", str(config)]) == EXIT_ERROR
        assert "Configuration error" in capsys.readouterr().err

    def test_missing_config(self, project_dir, tmp_path):
        assert main([str(project_dir), "--config", str(tmp_path / "none.yaml")]) == EXIT_ERROR
