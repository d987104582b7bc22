"""
lintcs.rules - Rule registry

Every rule class registers itself with @register under its id. The
registry is populated by importing the rule modules at the bottom of this
file.
"""

from typing import Dict, List, Type

from lintcs.rules.base import (
    BindingRule,
    LintRule,
    Severity,
    SourceUnit,
    Violation,
)

RULES: Dict[str, Type[LintRule]] = {}


def register(cls: Type[LintRule]) -> Type[LintRule]:
    """Class decorator adding a rule to the registry."""
    if cls.id in RULES:
        raise ValueError(f"Duplicate rule id {cls.id!r} ({RULES[cls.id].__name__} and {cls.__name__})")
    RULES[cls.id] = cls
    return cls


def get_rule(rule_id: str) -> Type[LintRule]:
    """Look up a rule class by id. Raises KeyError if unknown."""
    return RULES[rule_id]


def all_rules() -> List[Type[LintRule]]:
    """All registered rule classes, ordered by id."""
    return [RULES[rule_id] for rule_id in sorted(RULES)]


from lintcs.rules import naming, implicit_typing, layout, operators  # noqa: E402,F401

__all__ = [
    "RULES",
    "register",
    "get_rule",
    "all_rules",
    "BindingRule",
    "LintRule",
    "Severity",
    "SourceUnit",
    "Violation",
]
