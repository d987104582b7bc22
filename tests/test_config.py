"""
Tests for configuration loading and validation.
"""

from pathlib import Path

import pytest
from lintcs.config import (
    CONFIG_ENV_VAR,
    DEFAULT_EXCLUDE_DIRS,
    DEFAULT_EXTENSIONS,
    WORKERS_ENV_VAR,
    ConfigError,
    LintConfig,
    RuleSetting,
    config_search_paths,
    load_config,
    parse_config,
)
from lintcs.rules.base import Severity
from lintcs.rules.engine import RuleEngine


class TestParseConfig:
    """Test rule settings and options."""

    def test_empty(self):
        config = parse_config(None, environ={})
        assert dict(config.rules) == {}
        assert config.extensions == DEFAULT_EXTENSIONS
        assert config.exclude_dirs == DEFAULT_EXCLUDE_DIRS
        assert config.workers is None

    def test_shorthand_values(self):
        config = parse_config({
            "PascalCaseType": False,
            "VarApparentType": "on",
            "OneStatementPerLine": "info",
            "AllmanBraces": True,
        }, environ={})
        assert config.rules["PascalCaseType"] == RuleSetting(enabled=False)
        assert config.rules["VarApparentType"] == RuleSetting(enabled=True)
        assert config.rules["OneStatementPerLine"] == RuleSetting(severity=Severity.INFO)
        assert config.rules["AllmanBraces"].enabled is True

    def test_mapping_value(self):
        config = parse_config({"PascalCaseType": {"enabled": True, "severity": "Error"}}, environ={})
        assert config.rules["PascalCaseType"] == RuleSetting(enabled=True, severity=Severity.ERROR)

    def test_unknown_rule_id_warns(self, caplog):
        config = parse_config({"NoSuchRule": True}, environ={})
        assert "NoSuchRule" not in config.rules
        assert len(config.warnings) == 1
        assert "NoSuchRule" in caplog.text

    @pytest.mark.parametrize("data", [
        ["PascalCaseType"],
        {"PascalCaseType": "fatal"},
        {"PascalCaseType": {"enabled": "maybe"}},
        {"PascalCaseType": {"level": "error"}},
        {"PascalCaseType": 3},
        {"options": {"workers": 0}},
        {"options": {"workers": "many"}},
        {"options": {"threads": 2}},
        {"options": {"exclude": [1, 2]}},
        {"options": "fast"},
    ])
    def test_invalid(self, data):
        with pytest.raises(ConfigError):
            parse_config(data, environ={})

    def test_options(self):
        config = parse_config({"options": {
            "workers": 3,
            "extensions": ["cs", ".csx"],
            "exclude": "Generated",
        }}, environ={})
        assert config.workers == 3
        assert config.extensions == (".cs", ".csx")
        assert config.exclude_dirs == ("Generated",)

    def test_workers_env_override(self):
        config = parse_config({"options": {"workers": 3}}, environ={WORKERS_ENV_VAR: "8"})
        assert config.workers == 8

    def test_bad_workers_env(self):
        with pytest.raises(ConfigError):
            parse_config({}, environ={WORKERS_ENV_VAR: "-1"})

    def test_config_is_immutable(self):
        config = parse_config({"PascalCaseType": False}, environ={})
        with pytest.raises(TypeError):
            config.rules["InterfacePrefix"] = RuleSetting()
        with pytest.raises(AttributeError):
            config.workers = 2

    def test_to_dict(self):
        data = parse_config({"PascalCaseType": "error"}, environ={}).to_dict()
        assert data["rules"] == {"PascalCaseType": {"enabled": None, "severity": "error"}}
        assert data["source"] is None


class TestLoadConfig:
    """Test config file discovery and YAML loading."""

    YAML = """
PascalCaseType:
  severity: error
VarApparentType: off
options:
  exclude: [bin, Generated]
"""

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "lintcs.yaml"
        path.write_text(self.YAML, encoding="utf-8")
        config = load_config(path, environ={})
        assert config.source == path
        assert config.rules["PascalCaseType"].severity == Severity.ERROR
        assert config.rules["VarApparentType"].enabled is False
        assert config.exclude_dirs == ("bin", "Generated")

    def test_explicit_path_missing(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yaml", environ={})

    def test_env_path(self, tmp_path):
        path = tmp_path / "env.yaml"
        path.write_text("AllmanBraces: true\n", encoding="utf-8")
        config = load_config(environ={CONFIG_ENV_VAR: str(path)})
        assert config.rules["AllmanBraces"].enabled is True

    def test_env_path_missing(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(environ={CONFIG_ENV_VAR: str(tmp_path / "nope.yaml")})

    def test_cwd_file(self, tmp_path, monkeypatch):
        (tmp_path / ".lintcs.yaml").write_text("InterfacePrefix: false\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        config = load_config(environ={})
        assert config.rules["InterfacePrefix"].enabled is False

    def test_defaults_when_no_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        config = load_config(environ={})
        assert config.source is None
        assert dict(config.rules) == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("PascalCaseType: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path, environ={})

    def test_search_order(self, tmp_path):
        paths = config_search_paths({CONFIG_ENV_VAR: str(tmp_path / "x.yaml")})
        assert paths[0] == (tmp_path / "x.yaml", True)
        assert paths[1] == (Path.cwd() / ".lintcs.yaml", False)
        assert all(not required for _, required in paths[1:])


class TestEngineFromConfig:
    """Test how configuration selects rules."""

    def test_defaults(self):
        engine = RuleEngine.from_config(LintConfig())
        assert "PascalCaseType" in engine.rule_ids
        assert "AllmanBraces" not in engine.rule_ids

    def test_enable_opt_in_rule(self):
        engine = RuleEngine.from_config(parse_config({"AllmanBraces": True}, environ={}))
        assert "AllmanBraces" in engine.rule_ids
        assert engine.severities["AllmanBraces"] == Severity.INFO

    def test_severity_only_keeps_default_enablement(self):
        engine = RuleEngine.from_config(parse_config({"NoTabIndentation": "error"}, environ={}))
        assert "NoTabIndentation" not in engine.rule_ids
