"""
lintcs.parser - C# Source Parser

Lexer and structural parser for C# source files.
Converts .cs files into a token stream and a scope tree of bindings.
"""

from lintcs.parser.lexer import Lexer, RecoveringLexer, Token, TokenType, LexError, read_source, tokenize_file
from lintcs.parser.parser import (
    Parser,
    RecoveringParser,
    ParseError,
    ParseDiagnostic,
    ParseResult,
    lex_source_recovering,
    parse_file,
    parse_source,
    parse_source_recovering,
)
from lintcs.parser.scopes import (
    Binding,
    BindingRole,
    MemberKind,
    ScopeKind,
    ScopeNode,
    UsingDirective,
)

__all__ = [
    # Lexer
    "Lexer",
    "RecoveringLexer",
    "Token",
    "TokenType",
    "LexError",
    "read_source",
    "tokenize_file",
    # Parser
    "Parser",
    "RecoveringParser",
    "ParseError",
    "ParseDiagnostic",
    "ParseResult",
    "lex_source_recovering",
    "parse_file",
    "parse_source",
    "parse_source_recovering",
    # Scope tree
    "Binding",
    "BindingRole",
    "MemberKind",
    "ScopeKind",
    "ScopeNode",
    "UsingDirective",
]
