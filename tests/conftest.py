"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Import lintcs modules
from lintcs.analyzer import analyze_source
from lintcs.config import LintConfig, parse_config
from lintcs.parser import BindingRole, parse_source
from lintcs.parser.scopes import ScopeNode
from lintcs.rules.engine import RuleEngine


# =============================================================================
# PATH FIXTURES
# =============================================================================

@pytest.fixture
def fixtures_dir():
    """Path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def project_dir(fixtures_dir):
    """A small C# project with one convention violation per file."""
    return fixtures_dir / "project"


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    """Rule engine with the default rule set."""
    return RuleEngine.from_config(LintConfig())


@pytest.fixture
def all_rules_engine():
    """Rule engine with every rule enabled, opt-in layout rules included."""
    config = parse_config({
        "AllmanBraces": True,
        "NoTabIndentation": True,
        "CommentSpacing": True,
        "CommentOnSeparateLine": True,
    }, environ={})
    return RuleEngine.from_config(config)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def lint(source: str, engine: RuleEngine = None, path: str = "Test.cs") -> list:
    """Analyze source text and return its violations sorted by position."""
    engine = engine or RuleEngine.from_config(LintConfig())
    result = analyze_source(source, path, engine)
    return sorted(result.violations, key=lambda v: v.sort_key())


def rule_ids(violations) -> list:
    return [v.rule for v in violations]


def bindings_by_name(root: ScopeNode) -> dict:
    """Map binding name -> binding (last one wins for duplicates)."""
    return {b.name: b for b in root.iter_bindings()}


def roles_of(source: str) -> dict:
    """Parse source and map binding name -> role."""
    return {name: b.role for name, b in bindings_by_name(parse_source(source)).items()}
