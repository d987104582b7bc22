"""
Reporter: filters, orders and renders violations as text or JSON.
"""

import json
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, TextIO

from lintcs.rules.base import Severity, Violation


FORMATS = ("text", "json")


class Reporter:
    """
    Collects violations from any number of files (in any order) and renders
    them sorted by (file, line, column, rule).
    """

    def __init__(self, threshold: Severity = Severity.INFO) -> None:
        self.threshold = threshold
        self.violations: List[Violation] = []

    def add(self, violation: Violation) -> None:
        self.violations.append(violation)

    def extend(self, violations: Iterable[Violation]) -> None:
        self.violations.extend(violations)

    def findings(self) -> List[Violation]:
        """Violations at or above the threshold, in report order."""
        kept = [v for v in self.violations if v.severity >= self.threshold]
        return sorted(kept, key=Violation.sort_key)

    @property
    def has_findings(self) -> bool:
        return any(v.severity >= self.threshold for v in self.violations)

    def counts(self) -> Dict[str, int]:
        c = {s.value: 0 for s in Severity}
        for v in self.findings():
            c[v.severity.value] += 1
        return c

    def render_text(self) -> str:
        out: List[str] = []
        findings = self.findings()
        for v in findings:
            out.append(f"{v.file}:{v.line}:{v.column}: {v.severity.value} {v.rule}: {v.message}")
            if v.suggestion:
                out.append(f"    -> {v.suggestion}")
        c = self.counts()
        files = len({v.file for v in findings})
        out.append(
            f"Found {len(findings)} issue(s) in {files} file(s): "
            f"error={c['error']} warning={c['warning']} info={c['info']}"
        )
        return "\n".join(out)

    def render_json(self) -> str:
        return json.dumps([v.to_dict() for v in self.findings()], indent=2, ensure_ascii=False)

    def render(self, fmt: str = "text") -> str:
        if fmt == "json":
            return self.render_json()
        if fmt == "text":
            return self.render_text()
        raise ValueError(f"Unknown output format {fmt!r} (expected one of: {', '.join(FORMATS)})")

    def write(self, fmt: str = "text", output: Optional[Path] = None, stream: TextIO = None) -> None:
        """Write the report to a file or stream (stdout by default). Raises OSError on I/O failure."""
        text = self.render(fmt) + "\n"
        if output is not None:
            with open(output, "w", encoding="utf-8") as f:
                f.write(text)
        else:
            (stream or sys.stdout).write(text)
