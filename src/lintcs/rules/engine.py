"""
Rule Engine

Runs the enabled rules over one analysis unit and stamps each violation
with its configured severity. Built once per run; holds no per-file state,
so one engine can be shared by every worker thread.
"""

import logging
from dataclasses import replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from lintcs.rules import all_rules
from lintcs.rules.base import LintRule, Severity, SourceUnit, Violation

if TYPE_CHECKING:
    from lintcs.config import LintConfig
    from lintcs.symbols import ProjectSymbolTable

logger = logging.getLogger(__name__)


class RuleEngine:
    """
    Applies a fixed set of rules to analysis units.

    Usage:
        engine = RuleEngine.from_config(config)
        violations = engine.run(unit)
    """

    def __init__(self, rules: Sequence[LintRule],
                 severities: Optional[Mapping[str, Severity]] = None,
                 symbols: Optional["ProjectSymbolTable"] = None):
        self.rules = tuple(rules)
        self.severities = MappingProxyType(dict(severities or {}))
        self.symbols = symbols

    @classmethod
    def from_config(cls, config: Optional["LintConfig"] = None,
                    symbols: Optional["ProjectSymbolTable"] = None) -> "RuleEngine":
        """Instantiate every registered rule that the configuration enables."""
        rules: List[LintRule] = []
        severities: Dict[str, Severity] = {}
        for rule_cls in all_rules():
            setting = config.rules.get(rule_cls.id) if config is not None else None
            enabled = rule_cls.enabled_by_default
            severity = rule_cls.default_severity
            if setting is not None:
                if setting.enabled is not None:
                    enabled = setting.enabled
                if setting.severity is not None:
                    severity = setting.severity
            if enabled:
                rules.append(rule_cls())
                severities[rule_cls.id] = severity
        logger.debug(f"Rule engine: {len(rules)} rules enabled ({', '.join(r.id for r in rules)})")
        return cls(rules, severities, symbols)

    @property
    def rule_ids(self) -> List[str]:
        return [rule.id for rule in self.rules]

    def severity_of(self, rule: LintRule) -> Severity:
        return self.severities.get(rule.id, rule.default_severity)

    def run(self, unit: SourceUnit) -> List[Violation]:
        """Run every enabled rule over the unit. Tree rules are skipped when unit.root is None."""
        context: Dict[str, Any] = {"file": unit.path, "symbols": self.symbols}
        violations: List[Violation] = []
        for rule in self.rules:
            if rule.requires_tree and unit.root is None:
                continue
            severity = self.severity_of(rule)
            for violation in rule.check(unit, context):
                if violation.severity != severity:
                    violation = replace(violation, severity=severity)
                violations.append(violation)
        return violations
