"""
lintcs - C# Style-Convention Checker

Statically analyzes C# source files and reports violations of the .NET
coding-style conventions: naming, field prefixes, using-directive
placement, layout, implicit typing and short-circuit operators.
"""

__version__ = "0.1.0"
__author__ = "lintcs contributors"

from lintcs.parser import parse_file, parse_source
