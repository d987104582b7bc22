"""
lintcs Configuration

Loads rule enablement/severity settings and run options from a YAML file,
with environment variable overrides. Loaded once before analysis; the
resulting LintConfig is immutable for the rest of the run.

Example .lintcs.yaml:

    PascalCaseType:
      enabled: true
      severity: error
    VarApparentType: false          # disable
    OneStatementPerLine: info       # change severity only
    AllmanBraces: true              # enable an opt-in rule
    options:
      workers: 4
      extensions: [".cs"]
      exclude: ["bin", "obj", "Generated"]
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from lintcs.rules import RULES
from lintcs.rules.base import Severity

logger = logging.getLogger(__name__)


CONFIG_ENV_VAR = "LINTCS_CONFIG"
WORKERS_ENV_VAR = "LINTCS_WORKERS"

CONFIG_FILE_NAME = ".lintcs.yaml"
USER_CONFIG_PATH = Path("~") / ".lintcs" / "config.yaml"

DEFAULT_EXTENSIONS = (".cs",)
DEFAULT_EXCLUDE_DIRS = ("bin", "obj", ".git", ".vs", "node_modules")

OPTIONS_KEY = "options"
RULE_SETTING_KEYS = frozenset({"enabled", "severity"})
OPTION_KEYS = frozenset({"workers", "extensions", "exclude"})


class ConfigError(Exception):
    """Configuration file is unreadable or malformed."""


@dataclass(frozen=True)
class RuleSetting:
    """Configured overrides for one rule. None means 'use the rule's default'."""
    enabled: Optional[bool] = None
    severity: Optional[Severity] = None


@dataclass(frozen=True)
class LintConfig:
    """Immutable configuration for one run."""
    rules: Mapping[str, RuleSetting] = field(default_factory=lambda: MappingProxyType({}))
    workers: Optional[int] = None
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    exclude_dirs: Tuple[str, ...] = DEFAULT_EXCLUDE_DIRS
    source: Optional[Path] = None       # file the settings came from, None for defaults
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rules": {
                rule_id: {
                    "enabled": s.enabled,
                    "severity": s.severity.value if s.severity else None,
                }
                for rule_id, s in sorted(self.rules.items())
            },
            "workers": self.workers,
            "extensions": list(self.extensions),
            "exclude": list(self.exclude_dirs),
            "source": str(self.source) if self.source else None,
        }


def config_search_paths(environ: Optional[Mapping[str, str]] = None) -> List[Tuple[Path, bool]]:
    """
    Candidate config files in priority order, as (path, required) pairs.
    A path named by $LINTCS_CONFIG must exist; the defaults are optional.
    """
    environ = os.environ if environ is None else environ
    paths: List[Tuple[Path, bool]] = []
    if environ.get(CONFIG_ENV_VAR):
        paths.append((Path(environ[CONFIG_ENV_VAR]).expanduser(), True))
    paths.append((Path.cwd() / CONFIG_FILE_NAME, False))
    paths.append((USER_CONFIG_PATH.expanduser(), False))
    return paths


def load_config(explicit_path: Optional[Path] = None,
                environ: Optional[Mapping[str, str]] = None) -> LintConfig:
    """
    Find and load the configuration.

    Search order: explicit_path (--config), $LINTCS_CONFIG, ./.lintcs.yaml,
    ~/.lintcs/config.yaml. Defaults are used when none exists.

    Raises:
        ConfigError: if the chosen file cannot be read or is malformed.
    """
    environ = os.environ if environ is None else environ
    if explicit_path is not None:
        candidates = [(Path(explicit_path), True)]
    else:
        candidates = config_search_paths(environ)

    for path, required in candidates:
        if path.is_file():
            data = _read_yaml(path)
            config = parse_config(data, source=path, environ=environ)
            logger.info(f"Loaded configuration from {path}")
            return config
        if required:
            raise ConfigError(f"Config file not found: {path}")

    logger.debug("No configuration file found, using defaults")
    return parse_config({}, environ=environ)


def _read_yaml(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e


def parse_config(data: Any, source: Optional[Path] = None,
                 environ: Optional[Mapping[str, str]] = None) -> LintConfig:
    """Validate a loaded YAML document and build a LintConfig."""
    environ = os.environ if environ is None else environ
    where = str(source) if source else "configuration"
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: top level must be a mapping of rule ids, got {type(data).__name__}")

    warnings: List[str] = []
    rules: Dict[str, RuleSetting] = {}
    for key, value in data.items():
        if key == OPTIONS_KEY:
            continue
        rule_id = str(key)
        setting = _parse_rule_setting(rule_id, value, where)
        if rule_id not in RULES:
            message = f"{where}: unknown rule id '{rule_id}' (ignored)"
            logger.warning(message)
            warnings.append(message)
            continue
        rules[rule_id] = setting

    options = data.get(OPTIONS_KEY) or {}
    if not isinstance(options, dict):
        raise ConfigError(f"{where}: '{OPTIONS_KEY}' must be a mapping")
    unknown = set(map(str, options)) - OPTION_KEYS
    if unknown:
        raise ConfigError(f"{where}: unknown option(s) {', '.join(sorted(unknown))}")

    workers = options.get("workers")
    if workers is not None:
        workers = _parse_workers(workers, f"{where}: options.workers")
    if environ.get(WORKERS_ENV_VAR):
        workers = _parse_workers(environ[WORKERS_ENV_VAR], f"${WORKERS_ENV_VAR}")

    extensions = DEFAULT_EXTENSIONS
    if "extensions" in options:
        extensions = tuple(
            e if e.startswith(".") else "." + e
            for e in _string_list(options["extensions"], f"{where}: options.extensions")
        )
    exclude_dirs = DEFAULT_EXCLUDE_DIRS
    if "exclude" in options:
        exclude_dirs = tuple(_string_list(options["exclude"], f"{where}: options.exclude"))

    return LintConfig(
        rules=MappingProxyType(rules),
        workers=workers,
        extensions=extensions,
        exclude_dirs=exclude_dirs,
        source=source,
        warnings=tuple(warnings),
    )


def _parse_rule_setting(rule_id: str, value: Any, where: str) -> RuleSetting:
    """Accepts: bool, 'on'/'off', a severity name, or {enabled, severity}."""
    if value is None:
        return RuleSetting()
    if isinstance(value, bool):
        return RuleSetting(enabled=value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("on", "true", "yes"):
            return RuleSetting(enabled=True)
        if text in ("off", "false", "no"):
            return RuleSetting(enabled=False)
        return RuleSetting(severity=_parse_severity(value, f"{where}: {rule_id}"))
    if isinstance(value, dict):
        unknown = set(map(str, value)) - RULE_SETTING_KEYS
        if unknown:
            raise ConfigError(f"{where}: {rule_id}: unknown key(s) {', '.join(sorted(unknown))}")
        enabled = value.get("enabled")
        if enabled is not None and not isinstance(enabled, bool):
            raise ConfigError(f"{where}: {rule_id}.enabled must be true or false, got {enabled!r}")
        severity = value.get("severity")
        return RuleSetting(
            enabled=enabled,
            severity=_parse_severity(severity, f"{where}: {rule_id}.severity") if severity is not None else None,
        )
    raise ConfigError(f"{where}: {rule_id} must be a mapping, boolean or severity, got {type(value).__name__}")


def _parse_severity(value: Any, where: str) -> Severity:
    try:
        return Severity.parse(value)
    except ValueError as e:
        raise ConfigError(f"{where}: {e}") from e


def _parse_workers(value: Any, where: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{where} must be a positive integer, got {value!r}")
    try:
        workers = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{where} must be a positive integer, got {value!r}") from None
    if workers < 1:
        raise ConfigError(f"{where} must be a positive integer, got {value!r}")
    return workers


def _string_list(value: Any, where: str) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{where} must be a list of strings")
    return list(value)
