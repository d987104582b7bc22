"""
Per-file analysis pipeline: read -> lex -> parse -> rules.

Each stage's failures become file-level diagnostics (LexError, ParseError,
IOError) in the file's result instead of aborting the run. Cancellation is
checked between stages.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from lintcs.parser.lexer import read_source
from lintcs.parser.parser import RecoveringParser, lex_source_recovering
from lintcs.rules.base import Severity, SourceUnit, Violation
from lintcs.rules.engine import RuleEngine

logger = logging.getLogger(__name__)


LEX_ERROR = "LexError"
PARSE_ERROR = "ParseError"
IO_ERROR = "IOError"
INTERNAL_ERROR = "InternalError"

DIAGNOSTIC_CODES = frozenset({LEX_ERROR, PARSE_ERROR, IO_ERROR, INTERNAL_ERROR, "TooManyErrors"})


class AnalysisCancelled(Exception):
    """The run was cancelled before this file finished."""


@dataclass
class FileResult:
    """Everything that leaves the pipeline for one file."""
    path: str
    violations: List[Violation] = field(default_factory=list)

    @property
    def diagnostics(self) -> List[Violation]:
        return [v for v in self.violations if v.rule in DIAGNOSTIC_CODES]

    @property
    def has_io_error(self) -> bool:
        return any(v.rule == IO_ERROR for v in self.violations)


def diagnostic(path: str, code: str, message: str, line: int = 0, column: int = 0) -> Violation:
    """A file-level diagnostic, reported like a violation at severity error."""
    return Violation(rule=code, severity=Severity.ERROR, message=message,
                     file=path, line=line, column=column)


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise AnalysisCancelled()


def analyze_source(text: str, path: str, engine: RuleEngine,
                   cancel_event: Optional[threading.Event] = None) -> FileResult:
    """
    Analyze source text.

    If lexing fails the file gets one LexError diagnostic per error and only
    token rules run. Parse errors are reported and the rules still run over
    the partial scope tree.

    Raises:
        AnalysisCancelled: if cancel_event is set between stages.
    """
    _check_cancelled(cancel_event)
    tokens, lex_errors = lex_source_recovering(text, path)
    violations = [diagnostic(path, LEX_ERROR, e.message, e.line, e.column) for e in lex_errors]

    root = None
    if not lex_errors:
        _check_cancelled(cancel_event)
        parser = RecoveringParser(tokens, path)
        root = parser.parse()
        violations.extend(
            diagnostic(path, d.code, d.message, d.line, d.column) for d in parser.diagnostics
        )
    else:
        logger.debug(f"{path}: {len(lex_errors)} lex error(s), skipping structural analysis")

    _check_cancelled(cancel_event)
    unit = SourceUnit(path=path, text=text, tokens=tuple(tokens), root=root)
    violations.extend(engine.run(unit))
    logger.debug(f"{path}: {len(violations)} finding(s)")
    return FileResult(path=path, violations=violations)


def analyze_file(path: str, engine: RuleEngine,
                 cancel_event: Optional[threading.Event] = None) -> FileResult:
    """Read and analyze one file. A read failure becomes an IOError diagnostic."""
    _check_cancelled(cancel_event)
    try:
        text = read_source(path)
    except OSError as e:
        logger.warning(f"Cannot read {path}: {e}")
        return FileResult(path=path, violations=[
            diagnostic(path, IO_ERROR, f"Cannot read file: {e.strerror or e}")
        ])
    return analyze_source(text, path, engine, cancel_event)
