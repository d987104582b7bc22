"""
CLI entry point for lintcs.

Usage:
    lintcs <path...>                         Lint files and directories
    lintcs src --format json                 Machine-readable output
    lintcs src --severity-threshold warning  Hide info findings
    lintcs --list-rules                      Show every rule and its defaults

Exit codes:
    0  no findings at or above the threshold
    1  findings reported
    2  internal error (unreadable source file, output failure, bad configuration)
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from lintcs import __version__
from lintcs.config import ConfigError, LintConfig, load_config
from lintcs.discovery import discover
from lintcs.pool import AnalysisPool
from lintcs.reporting import FORMATS, Reporter
from lintcs.rules import all_rules
from lintcs.rules.base import Severity
from lintcs.rules.engine import RuleEngine

logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lintcs",
        description="Check C# source files against the .NET coding-style conventions",
    )
    parser.add_argument("paths", nargs="*", help="Files or directories to lint")
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument("--format", choices=FORMATS, default="text", help="Output format")
    parser.add_argument("--severity-threshold", choices=[s.value for s in Severity], default="info",
                        help="Minimum severity to report (default: info)")
    parser.add_argument("--workers", type=int, help="Number of worker threads")
    parser.add_argument("--output", "-o", type=Path, help="Write the report to FILE instead of stdout")
    parser.add_argument("--list-rules", action="store_true", help="List available rules and exit")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="More logging on stderr (-v info, -vv debug)")
    parser.add_argument("--version", action="version", version=f"lintcs {__version__}")
    return parser


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def cmd_list_rules(config: LintConfig) -> int:
    """Print every registered rule with its effective state."""
    engine = RuleEngine.from_config(config)
    enabled = set(engine.rule_ids)
    for rule_cls in all_rules():
        state = "on " if rule_cls.id in enabled else "off"
        severity = engine.severities.get(rule_cls.id, rule_cls.default_severity).value
        print(f"{rule_cls.id:<26} {state} {severity:<8} {rule_cls.description}")
    return EXIT_OK


def cmd_lint(args: argparse.Namespace, config: LintConfig) -> int:
    if args.workers is not None and args.workers < 1:
        logger.error("--workers must be at least 1")
        return EXIT_ERROR

    engine = RuleEngine.from_config(config)
    found = discover(args.paths, config.extensions, config.exclude_dirs)
    pool = AnalysisPool(engine, num_workers=args.workers or config.workers)
    run = pool.run(found.files)

    reporter = Reporter(threshold=Severity.parse(args.severity_threshold))
    reporter.extend(found.diagnostics)
    reporter.extend(run.violations)
    try:
        reporter.write(args.format, args.output)
    except OSError as e:
        logger.error(f"Cannot write report to {args.output}: {e}")
        return EXIT_ERROR

    if run.cancelled:
        print(f"Cancelled: {run.files_done}/{run.files_total} file(s) analyzed", file=sys.stderr)
    if found.diagnostics or run.has_io_error:
        return EXIT_ERROR
    return EXIT_FINDINGS if reporter.has_findings else EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.list_rules:
        return cmd_list_rules(config)
    if not args.paths:
        parser.print_usage(sys.stderr)
        print("lintcs: error: at least one path is required", file=sys.stderr)
        return EXIT_ERROR
    return cmd_lint(args, config)


if __name__ == "__main__":
    sys.exit(main())
