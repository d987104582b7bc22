"""
Source file discovery: expands the command-line paths into the list of C#
files to analyze.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence

from lintcs.analyzer import IO_ERROR, diagnostic
from lintcs.config import DEFAULT_EXCLUDE_DIRS, DEFAULT_EXTENSIONS
from lintcs.rules.base import Violation

logger = logging.getLogger(__name__)


@dataclass
class Discovery:
    """Files found, plus diagnostics for paths that could not be used."""
    files: List[str] = field(default_factory=list)
    diagnostics: List[Violation] = field(default_factory=list)


def should_exclude_path(path: Path, exclude_dirs: Sequence[str]) -> bool:
    return any(d in path.parts for d in exclude_dirs)


def iter_source_files(root: Path, extensions: Sequence[str] = DEFAULT_EXTENSIONS,
                      exclude_dirs: Sequence[str] = DEFAULT_EXCLUDE_DIRS) -> Iterable[Path]:
    """Recursively yield source files under root, skipping excluded directories."""
    for p in sorted(root.rglob("*")):
        if not p.is_file():
            continue
        if should_exclude_path(p.relative_to(root), exclude_dirs):
            continue
        if p.suffix.lower() in extensions:
            yield p


def discover(paths: Sequence[str], extensions: Sequence[str] = DEFAULT_EXTENSIONS,
             exclude_dirs: Sequence[str] = DEFAULT_EXCLUDE_DIRS) -> Discovery:
    """
    Expand files and directories into source files.

    Files named explicitly are always included, whatever their extension.
    A path that does not exist yields an IOError diagnostic.
    """
    found = Discovery()
    seen = set()
    for raw in paths:
        path = Path(raw)
        if path.is_file():
            candidates: Iterable[Path] = [path]
        elif path.is_dir():
            candidates = iter_source_files(path, extensions, exclude_dirs)
        else:
            logger.warning(f"Path not found: {raw}")
            found.diagnostics.append(diagnostic(str(raw), IO_ERROR, "No such file or directory"))
            continue
        for candidate in candidates:
            key = str(candidate)
            if key not in seen:
                seen.add(key)
                found.files.append(key)
    logger.info(f"Discovered {len(found.files)} source file(s)")
    return found
