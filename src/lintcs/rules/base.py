"""
Core types shared by all lint rules: severities, violations, the analysis
unit handed to each rule, and the rule base classes.
"""

import re
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Pattern, Tuple

from lintcs.parser.lexer import Token
from lintcs.parser.scopes import Binding, BindingRole, ScopeNode


class Severity(Enum):
    """Lint issue severity levels, ordered info < warning < error."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Severity from its name ('info', 'warning', 'error'); raises ValueError."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise ValueError(f"Invalid severity {value!r} (expected one of: {choices})") from None


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARNING: 1, Severity.ERROR: 2}


@dataclass(frozen=True)
class Violation:
    """A single rule-check failure (or file-level diagnostic)."""
    rule: str               # rule id, or LexError / ParseError / IOError
    severity: Severity
    message: str
    file: str
    line: int
    column: int = 0
    suggestion: Optional[str] = None    # never applied automatically

    def __str__(self):
        loc = f"{self.file}:{self.line}"
        if self.column:
            loc += f":{self.column}"
        msg = f"[{self.severity.name}] {self.rule} {loc}: {self.message}"
        if self.suggestion:
            msg += f"\n    -> {self.suggestion}"
        return msg

    def sort_key(self) -> Tuple[str, int, int, str]:
        return (self.file, self.line, self.column, self.rule)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "rule": self.rule,
            "severity": self.severity.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class SourceUnit:
    """
    One file as seen by the rules: its path, text, the full token list
    (trivia included) and the scope tree, which is None when the file
    could not be structurally parsed.
    """
    path: str
    text: str
    tokens: Tuple[Token, ...]
    root: Optional[ScopeNode] = None

    @cached_property
    def significant_tokens(self) -> List[Token]:
        """Tokens without whitespace, newlines, comments or directives."""
        return [t for t in self.tokens if not t.is_trivia]


class LintRule:
    """Base class for lint rules. Rules are stateless; one instance serves every file."""

    id: str = "X000"
    description: str = ""
    default_severity: Severity = Severity.WARNING
    enabled_by_default: bool = True
    requires_tree: bool = False

    def check(self, unit: SourceUnit, context: Dict[str, Any]) -> Iterator[Violation]:
        """Check a file and yield any violations found."""
        raise NotImplementedError

    def violation(self, unit: SourceUnit, line: int, column: int, message: str,
                  suggestion: Optional[str] = None) -> Violation:
        return Violation(
            rule=self.id,
            severity=self.default_severity,
            message=message,
            file=unit.path,
            line=line,
            column=column,
            suggestion=suggestion,
        )

    def __repr__(self):
        return f"<{type(self).__name__} {self.id}>"


class BindingRule(LintRule):
    """
    A rule over the identifier bindings of the scope tree.

    Subclasses set `roles` and either `pattern` or override is_compliant().
    """

    requires_tree = True
    roles: FrozenSet[BindingRole] = frozenset()
    pattern: Optional[Pattern] = None

    def applies_to(self, binding: Binding) -> bool:
        return binding.role in self.roles and not is_ignored_name(binding.name)

    def is_compliant(self, binding: Binding) -> bool:
        return bool(self.pattern.match(binding.name))

    def message(self, binding: Binding) -> str:
        return f"'{binding.name}' does not match {self.pattern.pattern}"

    def suggest(self, binding: Binding) -> Optional[str]:
        return None

    def check(self, unit: SourceUnit, context: Dict[str, Any]) -> Iterator[Violation]:
        for binding in unit.root.iter_bindings():
            if not self.applies_to(binding) or self.is_compliant(binding):
                continue
            suggestion = self.suggest(binding)
            if suggestion is not None and (suggestion == binding.name or not self._acceptable(suggestion)):
                suggestion = None
            yield self.violation(unit, binding.line, binding.column, self.message(binding), suggestion)

    def _acceptable(self, name: str) -> bool:
        return self.pattern is None or bool(self.pattern.match(name))


# ============================================================================
# NAME HELPERS
# ============================================================================

_PREFIX = re.compile(r"^(?:[stm]_|_+)")
_WORD = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


def is_ignored_name(name: str) -> bool:
    """Discards (`_`, `__`) and compiler-generated names are never checked."""
    return not name.strip("_") or name.startswith("<")


def split_words(name: str) -> List[str]:
    """Split an identifier into words, dropping field prefixes: s_workerQueue -> [worker, Queue]."""
    words: List[str] = []
    for chunk in _PREFIX.sub("", name).split("_"):
        words.extend(_WORD.findall(chunk))
    return words


def to_pascal(name: str) -> str:
    """dataService -> DataService, worker_queue -> WorkerQueue."""
    return "".join(w[:1].upper() + w[1:] for w in split_words(name))


def to_camel(name: str) -> str:
    """WorkerQueue -> workerQueue, URL -> url."""
    words = split_words(name)
    if not words:
        return ""
    first = words[0].lower() if words[0].isupper() else words[0][:1].lower() + words[0][1:]
    return first + "".join(w[:1].upper() + w[1:] for w in words[1:])
