"""
Layout rules: using-directive placement, one statement and one declaration
per line, brace style, indentation and comment placement.

All of these except OneDeclarationPerLine work on the token stream alone,
so they still run on files the structural parser could not handle.
"""

from collections import defaultdict
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from lintcs.parser.lexer import Token, TokenType
from lintcs.parser.parser import is_using_directive
from lintcs.parser.scopes import Binding
from lintcs.rules import register
from lintcs.rules.base import LintRule, Severity, SourceUnit, Violation


ACCESSOR_NAMES = frozenset({"get", "set", "init", "add", "remove"})
ACCESS_MODIFIERS = frozenset({"public", "private", "protected", "internal"})


def is_punct(token: Token, *values: str) -> bool:
    return token.type == TokenType.PUNCTUATION and token.value in values


def is_keyword(token: Token, *values: str) -> bool:
    return token.type == TokenType.KEYWORD and token.value in values


@register
class UsingOutsideNamespace(LintRule):
    """
    Using directives go at the top of the file, outside any namespace.

    Inside a namespace a directive is resolved relative to that namespace
    first, so `using Azure;` inside `namespace Contoso` silently binds to
    `Contoso.Azure` if the project has one. When a project symbol table is
    available the message names that namespace.

    Reads the directives the parser recorded in the scope tree. Files
    without a tree (lex errors) are checked by scanning the token stream.
    """

    id = "UsingOutsideNamespace"
    description = "Place using directives outside the namespace declaration"

    def check(self, unit: SourceUnit, context: Dict[str, Any]) -> Iterator[Violation]:
        symbols = context.get("symbols")
        if unit.root is not None:
            for using in unit.root.iter_usings():
                if using.inside_namespace:
                    yield self._violation(unit, using.target, using.namespace,
                                          using.line, using.column, symbols)
            return

        tokens = unit.significant_tokens
        depth = 0
        namespaces: List[Tuple[str, int]] = []   # (name, brace depth of its body)
        file_scoped: Optional[str] = None
        i = 0
        while i < len(tokens):
            tok = tokens[i]
            if is_punct(tok, "{"):
                depth += 1
            elif is_punct(tok, "}"):
                if namespaces and namespaces[-1][1] == depth:
                    namespaces.pop()
                depth = max(depth - 1, 0)
            elif is_keyword(tok, "namespace"):
                j = i + 1
                parts = []
                while j < len(tokens) and (tokens[j].type == TokenType.IDENTIFIER or is_punct(tokens[j], ".")):
                    parts.append(tokens[j].value)
                    j += 1
                name = "".join(parts)
                if j < len(tokens) and is_punct(tokens[j], "{"):
                    depth += 1
                    namespaces.append((name, depth))
                    i = j + 1
                    continue
                if j < len(tokens) and is_punct(tokens[j], ";"):
                    file_scoped = name
                    i = j + 1
                    continue
            elif is_keyword(tok, "using") and is_using_directive(tokens, i):
                if namespaces or file_scoped is not None:
                    enclosing = ".".join(
                        n for n in [file_scoped or ""] + [name for name, _ in namespaces] if n
                    )
                    start = tokens[i - 1] if i > 0 and tokens[i - 1].value == "global" else tok
                    yield self._violation(unit, self._target(tokens, i), enclosing,
                                          start.line, start.column, symbols)
            i += 1

    @staticmethod
    def _target(tokens: Sequence[Token], i: int) -> str:
        j = i + 1
        if is_keyword(tokens[j], "static"):
            j += 1
        words = []
        while j < len(tokens) and not is_punct(tokens[j], ";") and tokens[j].type != TokenType.EOF:
            words.append(tokens[j].value)
            j += 1
        if "=" in words:
            words = words[words.index("=") + 1:]
        return "".join(words)

    def _violation(self, unit: SourceUnit, target: str, enclosing: str,
                   line: int, column: int, symbols) -> Violation:
        message = f"using directive '{target}' is inside namespace '{enclosing}'; move it above the namespace"
        if symbols is not None:
            resolved = symbols.resolve_nested_using(target, enclosing)
            if resolved and resolved != target:
                message += f" (here it resolves to project namespace '{resolved}')"
        return self.violation(unit, line, column, message,
                              suggestion=f"using {target};")


@register
class OneStatementPerLine(LintRule):
    id = "OneStatementPerLine"
    description = "Write only one statement per line"

    def check(self, unit: SourceUnit, context: Dict[str, Any]) -> Iterator[Violation]:
        tokens = unit.significant_tokens
        depth = 0
        for i, tok in enumerate(tokens):
            if is_punct(tok, "(", "["):
                depth += 1
            elif is_punct(tok, ")", "]"):
                depth = max(depth - 1, 0)
            elif is_punct(tok, ";") and depth == 0 and i + 1 < len(tokens):
                nxt = tokens[i + 1]
                if nxt.type == TokenType.EOF or nxt.line != tok.line or is_punct(nxt, "}", ";"):
                    continue
                if self._is_accessor(tokens, i + 1):
                    continue
                yield self.violation(
                    unit, nxt.line, nxt.column,
                    f"Multiple statements on one line; start '{nxt.value}' on a new line",
                )

    @staticmethod
    def _is_accessor(tokens: Sequence[Token], k: int) -> bool:
        """{ get; private set; } accessor lists are not statements."""
        while k < len(tokens) and is_keyword(tokens[k], *ACCESS_MODIFIERS):
            k += 1
        return (k + 1 < len(tokens) and tokens[k].type == TokenType.IDENTIFIER
                and tokens[k].value in ACCESSOR_NAMES and is_punct(tokens[k + 1], ";", "{", "=>"))


@register
class OneDeclarationPerLine(LintRule):
    """int a, b; declares two variables on one line. Declarators may share a statement but not a line."""

    id = "OneDeclarationPerLine"
    description = "Write only one declaration per line"
    requires_tree = True

    def check(self, unit: SourceUnit, context: Dict[str, Any]) -> Iterator[Violation]:
        groups: Dict[int, List[Binding]] = defaultdict(list)
        for binding in unit.root.iter_bindings():
            if binding.declaration_id:
                groups[binding.declaration_id].append(binding)
        for declarators in groups.values():
            seen_lines = set()
            for binding in sorted(declarators, key=lambda b: (b.line, b.column)):
                if binding.line in seen_lines:
                    yield self.violation(
                        unit, binding.line, binding.column,
                        f"'{binding.name}' is declared on the same line as another variable; "
                        f"use one declaration per line",
                    )
                seen_lines.add(binding.line)


@register
class AllmanBraces(LintRule):
    id = "AllmanBraces"
    description = "Opening braces start on their own line (Allman style)"
    default_severity = Severity.INFO
    enabled_by_default = False

    def check(self, unit: SourceUnit, context: Dict[str, Any]) -> Iterator[Violation]:
        tokens = unit.significant_tokens
        closing = self._matching_braces(tokens)
        for i, tok in enumerate(tokens):
            if not is_punct(tok, "{") or i == 0:
                continue
            if tokens[i - 1].line != tok.line:
                continue
            close = closing.get(i)
            if close is not None and tokens[close].line == tok.line:
                continue    # { get; set; } and other single-line blocks
            yield self.violation(unit, tok.line, tok.column,
                                 "Opening brace should be on its own line")

    @staticmethod
    def _matching_braces(tokens: Sequence[Token]) -> Dict[int, int]:
        stack: List[int] = []
        pairs: Dict[int, int] = {}
        for i, tok in enumerate(tokens):
            if is_punct(tok, "{"):
                stack.append(i)
            elif is_punct(tok, "}") and stack:
                pairs[stack.pop()] = i
        return pairs


@register
class NoTabIndentation(LintRule):
    id = "NoTabIndentation"
    description = "Indent with spaces, not tabs"
    default_severity = Severity.INFO
    enabled_by_default = False

    def check(self, unit: SourceUnit, context: Dict[str, Any]) -> Iterator[Violation]:
        for tok in unit.tokens:
            if tok.type == TokenType.WHITESPACE and tok.column == 1 and "\t" in tok.value:
                yield self.violation(unit, tok.line, tok.column, "Indentation uses tabs",
                                     suggestion=tok.value.replace("\t", "    "))


@register
class CommentSpacing(LintRule):
    id = "CommentSpacing"
    description = "Insert one space between the comment delimiter and the comment text"
    default_severity = Severity.INFO
    enabled_by_default = False

    def check(self, unit: SourceUnit, context: Dict[str, Any]) -> Iterator[Violation]:
        for tok in unit.tokens:
            if tok.type != TokenType.COMMENT or not tok.value.startswith("//"):
                continue
            text = tok.value.lstrip("/")
            if text and not text[0].isspace():
                delimiter = tok.value[:len(tok.value) - len(text)]
                yield self.violation(unit, tok.line, tok.column,
                                     f"Missing space after '{delimiter}'",
                                     suggestion=f"{delimiter} {text}")


@register
class CommentOnSeparateLine(LintRule):
    id = "CommentOnSeparateLine"
    description = "Place comments on a separate line, not at the end of a line of code"
    default_severity = Severity.INFO
    enabled_by_default = False

    def check(self, unit: SourceUnit, context: Dict[str, Any]) -> Iterator[Violation]:
        code_line = 0
        for tok in unit.tokens:
            if tok.type == TokenType.COMMENT and tok.value.startswith("//"):
                if tok.line == code_line:
                    yield self.violation(unit, tok.line, tok.column,
                                         "Comment follows code on the same line; move it to its own line")
            elif not tok.is_trivia and tok.type != TokenType.EOF:
                code_line = tok.end_line
