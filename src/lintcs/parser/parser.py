"""
C# Structural Parser

Builds a shallow scope tree from the lexer's token stream: namespaces,
types, members, parameters and local declarations, each identifier bound to
the role it plays. Expressions are skipped, not parsed; only as much
structure is recovered as the naming and typing checks need.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from lintcs.parser.lexer import LexError, Lexer, RecoveringLexer, Token, TokenType, read_source
from lintcs.parser.scopes import (
    Binding,
    BindingRole,
    MemberKind,
    ScopeKind,
    ScopeNode,
    UsingDirective,
)


ACCESS_MODIFIERS = ("public", "protected", "internal", "private")

KEYWORD_MODIFIERS = frozenset({
    "public", "private", "protected", "internal", "static", "readonly",
    "const", "volatile", "abstract", "sealed", "virtual", "override",
    "extern", "unsafe", "new", "fixed",
})

# Contextual modifiers only count as modifiers when another word follows
CONTEXTUAL_MODIFIERS = frozenset({"partial", "async", "required", "file"})

LOCAL_FUNCTION_MODIFIERS = frozenset({"static", "async", "unsafe", "extern"})

PARAMETER_MODIFIERS = frozenset({"this", "ref", "out", "in", "params", "readonly"})

PREDEFINED_TYPE_KEYWORDS = frozenset({
    "bool", "byte", "char", "decimal", "double", "float", "int", "long",
    "object", "sbyte", "short", "string", "uint", "ulong", "ushort", "void",
})

# Contextual keywords that start statements and are never a declared type
STATEMENT_IDENTIFIERS = frozenset({"await", "yield", "nameof"})

TYPE_DECLARATION_KEYWORDS = frozenset({"class", "struct", "interface", "enum", "delegate"})

ACCESSOR_NAMES = frozenset({"get", "set", "init", "add", "remove"})

THREAD_STATIC_ATTRIBUTES = frozenset({"ThreadStatic", "ThreadStaticAttribute"})

PAIRS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = frozenset(PAIRS.values())

STRUCTURAL_TYPES = frozenset({TokenType.PUNCTUATION, TokenType.KEYWORD, TokenType.IDENTIFIER})

# Tokens that may appear between '<' and '>' of a generic argument list
GENERIC_ARGUMENT_PUNCTUATION = frozenset({",", ".", "?", "[", "]", "(", ")", "*", "::"})

OPERAND_KEYWORDS = frozenset({
    "this", "base", "new", "typeof", "default", "sizeof", "checked",
    "unchecked", "true", "false", "null", "stackalloc",
})


def is_using_directive(tokens: Sequence[Token], i: int) -> bool:
    """True if tokens[i] is the `using` of a using directive (not a statement)."""
    prev = tokens[i - 1] if i > 0 else None
    if prev is not None and not (
        (prev.type == TokenType.PUNCTUATION and prev.value in (";", "{", "}", "]"))
        or (prev.type == TokenType.IDENTIFIER and prev.value == "global")
    ):
        return False
    if i + 2 >= len(tokens):
        return False
    nxt, after = tokens[i + 1], tokens[i + 2]
    if nxt.type == TokenType.KEYWORD and nxt.value == "static":
        return True
    return (nxt.type == TokenType.IDENTIFIER and after.type == TokenType.PUNCTUATION
            and after.value in ("=", ";", ".", "::"))


class ParseError(Exception):
    """Error during parsing."""
    def __init__(self, message: str, token: Token = None, line: int = None, column: int = None):
        self.token = token
        self.line = line or (token.line if token else 0)
        self.column = column or (token.column if token else 0)
        self.message = message
        if token:
            super().__init__(f"Parse error at line {token.line}, column {token.column}: {message}")
        elif line:
            super().__init__(f"Parse error at line {line}, column {column or 0}: {message}")
        else:
            super().__init__(f"Parse error: {message}")


@dataclass
class ParseDiagnostic:
    """A diagnostic message from lexing or parsing."""
    line: int
    column: int
    severity: str  # "error", "warning", "info"
    code: str      # "LexError", "ParseError", "TooManyErrors"
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line": self.line,
            "column": self.column,
            "severity": self.severity,
            "code": self.code,
            "message": self.message,
        }


@dataclass
class ParseResult:
    """Result of lexing and parsing with error recovery."""
    root: Optional[ScopeNode]
    tokens: List[Token]
    diagnostics: List[ParseDiagnostic] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.root is not None and not self.errors

    @property
    def errors(self) -> List[ParseDiagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "root": self.root.to_dict() if self.root else None,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


class Parser:
    """
    Structural parser for C# source.

    Raises ParseError on the first malformed declaration. See
    RecoveringParser for the variant that keeps going.

    Usage:
        parser = Parser(tokens)
        root = parser.parse()
    """

    def __init__(self, tokens: Sequence[Token], filename: str = "<unknown>"):
        self.tokens = [t for t in tokens if not t.is_trivia]
        if not self.tokens or self.tokens[-1].type != TokenType.EOF:
            last = self.tokens[-1] if self.tokens else None
            line = last.end_line if last else 1
            column = last.end_column if last else 1
            self.tokens.append(Token(TokenType.EOF, "", line, column, line, column))
        self.filename = filename
        self.pos = 0
        self.length = len(self.tokens)
        self._declaration_count = 0
        self._top_level: Optional[ScopeNode] = None

    # ------------------------------------------------------------------
    # Token access
    # ------------------------------------------------------------------

    def _current(self) -> Token:
        """Get current token (the EOF token once past the end)."""
        return self.tokens[min(self.pos, self.length - 1)]

    def _peek(self, offset: int = 1) -> Token:
        """Peek ahead by offset tokens."""
        return self.tokens[min(self.pos + offset, self.length - 1)]

    def _advance(self) -> Token:
        """Advance one token and return the previous one."""
        token = self._current()
        if token.type != TokenType.EOF:
            self.pos += 1
        return token

    @staticmethod
    def _is(token: Token, *values: str) -> bool:
        return token.type in STRUCTURAL_TYPES and token.value in values

    def _at(self, *values: str) -> bool:
        return self._is(self._current(), *values)

    def _at_eof(self) -> bool:
        return self._current().type == TokenType.EOF

    def _expect(self, value: str, message: str = None) -> Token:
        """Expect a specific token, raise error if not found."""
        token = self._current()
        if not self._is(token, value):
            found = "end of file" if token.type == TokenType.EOF else repr(token.value)
            raise ParseError(message or f"Expected '{value}', got {found}", token)
        return self._advance()

    def _expect_identifier(self, message: str) -> Token:
        token = self._current()
        if token.type != TokenType.IDENTIFIER:
            raise ParseError(message, token)
        return self._advance()

    @staticmethod
    def _name(token: Token) -> str:
        """Identifier text without the verbatim '@' prefix."""
        return token.value[1:] if token.value.startswith("@") else token.value

    @staticmethod
    def _is_type_word(token: Token) -> bool:
        return token.type == TokenType.IDENTIFIER or (
            token.type == TokenType.KEYWORD and token.value in PREDEFINED_TYPE_KEYWORDS
        )

    def _new_declaration_id(self) -> int:
        self._declaration_count += 1
        return self._declaration_count

    # ------------------------------------------------------------------
    # Index-based scanning (does not move self.pos)
    # ------------------------------------------------------------------

    def _match_close(self, i: int) -> Optional[int]:
        """Index of the bracket closing the one at i, or None if unbalanced."""
        stack = [PAIRS[self.tokens[i].value]]
        j = i + 1
        while j < self.length:
            tok = self.tokens[j]
            if tok.type == TokenType.PUNCTUATION:
                if tok.value in PAIRS:
                    stack.append(PAIRS[tok.value])
                elif tok.value in CLOSERS:
                    if tok.value != stack[-1]:
                        return None
                    stack.pop()
                    if not stack:
                        return j
            j += 1
        return None

    def _generic_end(self, i: int) -> Optional[int]:
        """
        If tokens[i] is a '<' opening a generic argument list, return the
        index just past the matching '>'. Otherwise None.
        """
        depth = 0
        j = i
        while j < self.length:
            tok = self.tokens[j]
            if tok.type == TokenType.PUNCTUATION:
                v = tok.value
                if v == "<":
                    depth += 1
                elif v in (">", ">>", ">>>"):
                    depth -= len(v)
                    if depth < 0:
                        return None
                    if depth == 0:
                        return j + 1
                elif v not in GENERIC_ARGUMENT_PUNCTUATION:
                    return None
            elif not self._is_type_word(tok):
                return None
            j += 1
        return None

    def _scan_expression(self, i: int, stops: Tuple[str, ...]) -> int:
        """
        Index of the first stop token (or unmatched closer, or EOF) at bracket
        depth 0, starting from i.
        """
        while True:
            tok = self.tokens[i]
            if tok.type == TokenType.EOF:
                return i
            if tok.type == TokenType.PUNCTUATION:
                v = tok.value
                if v in stops:
                    return i
                if v in PAIRS:
                    close = self._match_close(i)
                    if close is None:
                        raise ParseError(f"Unbalanced '{v}'", tok)
                    i = close + 1
                    continue
                if v in CLOSERS:
                    return i
                if v == "<" and i > 0 and self._is_type_word(self.tokens[i - 1]):
                    end = self._generic_end(i)
                    if end is not None:
                        i = end
                        continue
            i += 1

    def _skip_expression(self, stops: Tuple[str, ...]) -> None:
        self.pos = self._scan_expression(self.pos, stops)

    def _skip_balanced(self) -> None:
        """Skip a bracketed group starting at the current opening token."""
        open_tok = self._current()
        close = self._match_close(self.pos)
        if close is None:
            raise ParseError(f"Unbalanced '{open_tok.value}'", open_tok)
        self.pos = close + 1

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def _tuple_type_end(self, i: int) -> Optional[int]:
        """Index past a tuple type '(T1 a, T2 b)' starting at i, or None."""
        close = self._match_close(i)
        if close is None or close == i + 1:
            return None
        has_comma = False
        for tok in self.tokens[i + 1:close]:
            if tok.type == TokenType.PUNCTUATION:
                if tok.value == ",":
                    has_comma = True
                elif tok.value not in GENERIC_ARGUMENT_PUNCTUATION and tok.value not in ("<", ">", ">>"):
                    return None
            elif not self._is_type_word(tok):
                return None
        return close + 1 if has_comma else None

    def _parse_type(self) -> Optional[str]:
        """
        Consume a type reference at the current position and return its text.
        Returns None (position unchanged) if no type starts here.
        """
        start = self.pos
        if self._at("ref"):
            self._advance()
            if self._at("readonly"):
                self._advance()
        tok = self._current()
        if self._is(tok, "("):
            end = self._tuple_type_end(self.pos)
            if end is None:
                self.pos = start
                return None
            self.pos = end
        elif self._is_type_word(tok):
            self._advance()
            while True:
                if self._at(".", "::") and self._peek().type == TokenType.IDENTIFIER:
                    self._advance()
                    self._advance()
                    continue
                if self._at("<"):
                    end = self._generic_end(self.pos)
                    if end is not None:
                        self.pos = end
                        continue
                break
        else:
            self.pos = start
            return None

        # Nullable, pointer and array rank suffixes
        while True:
            if self._at("?", "*"):
                self._advance()
                continue
            if self._at("[") and self._is(self._peek(), "]", ","):
                close = self._match_close(self.pos)
                if close is None:
                    break
                if all(self._is(t, ",") for t in self.tokens[self.pos + 1:close]):
                    self.pos = close + 1
                    continue
            break
        return "".join(t.value for t in self.tokens[start:self.pos])

    def _parse_type_or_fail(self, message: str) -> str:
        type_text = self._parse_type()
        if type_text is None:
            raise ParseError(message, self._current())
        return type_text

    def _parse_qualified_name(self, message: str) -> str:
        parts = [self._name(self._expect_identifier(message))]
        while self._at(".", "::") and self._peek().type == TokenType.IDENTIFIER:
            self._advance()
            parts.append(self._name(self._advance()))
        return ".".join(parts)

    # ------------------------------------------------------------------
    # Error handling hooks
    # ------------------------------------------------------------------

    def _recover(self, error: ParseError, start: int) -> None:
        """Handle a ParseError raised while parsing from `start`. Strict: re-raise."""
        raise error

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def parse(self) -> ScopeNode:
        """Parse the token stream into a scope tree."""
        root = ScopeNode(ScopeKind.FILE, name=self.filename, line=1, column=1)
        self._parse_declarations(root, closing=False)
        return root

    def _parse_declarations(self, scope: ScopeNode, closing: bool) -> None:
        """Parse namespace or type members until EOF or the closing '}'."""
        while True:
            tok = self._current()
            if tok.type == TokenType.EOF:
                if closing:
                    self._recover(ParseError(
                        f"Unexpected end of file, missing '}}' for {scope.kind.name.lower()} '{scope.name}'",
                        tok,
                    ), self.pos)
                return
            if closing and self._is(tok, "}"):
                self._advance()
                return
            start = self.pos
            try:
                self._parse_declaration(scope)
            except ParseError as e:
                self._recover(e, start)

    def _parse_declaration(self, scope: ScopeNode) -> None:
        tok = self._current()
        if self._is(tok, ";"):
            self._advance()
            return
        if self._is(tok, "}"):
            raise ParseError("Unexpected '}'", tok)

        if scope.kind in (ScopeKind.FILE, ScopeKind.NAMESPACE):
            if self._is(tok, "extern") and self._peek().value == "alias":
                self._skip_expression((";",))
                self._expect(";")
                return
            if self._at_using_directive():
                self._parse_using_directive(scope)
                return
            if self._is(tok, "namespace"):
                self._parse_namespace(scope)
                return

        attributes = self._parse_attributes()
        modifiers = self._parse_modifiers(scope)

        if self._at_type_declaration():
            self._parse_type_declaration(scope, modifiers, attributes)
        elif scope.kind == ScopeKind.TYPE or modifiers:
            self._parse_member(scope, modifiers, attributes)
        elif attributes and self._at_eof():
            return  # assembly/module attributes at end of file
        else:
            self._parse_statement(self._top_level_scope(scope))

    def _top_level_scope(self, scope: ScopeNode) -> ScopeNode:
        """Implicit entry-point method that owns top-level statements."""
        if self._top_level is None:
            root = scope
            while root.parent is not None:
                root = root.parent
            tok = self._current()
            self._top_level = root.add_child(
                ScopeNode(ScopeKind.METHOD, "<top-level>", tok.line, tok.column)
            )
        return self._top_level

    def _at_using_directive(self) -> bool:
        i = self.pos
        if self._is(self.tokens[i], "global") and self._is(self._peek(), "using"):
            i += 1
        return self._is(self.tokens[i], "using") and is_using_directive(self.tokens, i)

    def _parse_using_directive(self, scope: ScopeNode) -> None:
        start_tok = self._current()
        if self._at("global"):
            self._advance()
        self._expect("using")
        if self._at("static"):
            self._advance()
        end = self._scan_expression(self.pos, (";",))
        words = [t.value for t in self.tokens[self.pos:end]]
        if "=" in words:
            words = words[words.index("=") + 1:]
        self.pos = end
        self._expect(";", "Expected ';' after using directive")
        namespace = scope.enclosing(ScopeKind.NAMESPACE)
        scope.usings.append(UsingDirective(
            target="".join(words),
            line=start_tok.line,
            column=start_tok.column,
            inside_namespace=namespace is not None,
            namespace=namespace.qualified_name() if namespace else "",
        ))

    def _parse_namespace(self, scope: ScopeNode) -> None:
        kw = self._advance()
        name = self._parse_qualified_name("Expected namespace name")
        child = scope.add_child(ScopeNode(ScopeKind.NAMESPACE, name, kw.line, kw.column))
        if self._at("{"):
            self._advance()
            self._parse_declarations(child, closing=True)
        elif self._at(";"):
            # File-scoped namespace: the rest of the file belongs to it
            self._advance()
            self._parse_declarations(child, closing=False)
        else:
            raise ParseError(f"Expected '{{' or ';' after namespace '{name}'", self._current())

    def _parse_attributes(self) -> List[str]:
        """Consume attribute sections and return the attribute names seen."""
        names: List[str] = []
        while self._at("["):
            close = self._match_close(self.pos)
            if close is None:
                raise ParseError("Unterminated attribute list", self._current())
            depth = 0
            for tok in self.tokens[self.pos + 1:close]:
                if self._is(tok, "(", "["):
                    depth += 1
                elif self._is(tok, ")", "]"):
                    depth -= 1
                elif depth == 0 and tok.type == TokenType.IDENTIFIER:
                    names.append(self._name(tok))
            self.pos = close + 1
        return names

    def _parse_modifiers(self, scope: ScopeNode) -> List[str]:
        modifiers: List[str] = []
        while True:
            tok = self._current()
            nxt = self._peek()
            if tok.type == TokenType.KEYWORD and tok.value in KEYWORD_MODIFIERS:
                if tok.value in ("new", "fixed") and scope.kind != ScopeKind.TYPE:
                    break
                if tok.value == "unsafe" and self._is(nxt, "{"):
                    break
                modifiers.append(self._advance().value)
                continue
            if (tok.type == TokenType.IDENTIFIER and tok.value in CONTEXTUAL_MODIFIERS
                    and nxt.type in (TokenType.IDENTIFIER, TokenType.KEYWORD)):
                modifiers.append(self._advance().value)
                continue
            return modifiers
        return modifiers

    @staticmethod
    def _accessibility(modifiers: Sequence[str]) -> str:
        return " ".join(m for m in modifiers if m in ACCESS_MODIFIERS)

    @staticmethod
    def _is_public(scope: ScopeNode, modifiers: Sequence[str]) -> bool:
        if "public" in modifiers or "protected" in modifiers:
            return True
        # Interface and enum members are public unless stated otherwise
        return (scope.is_interface or scope.is_enum) and "private" not in modifiers

    def _at_type_declaration(self) -> bool:
        tok = self._current()
        nxt = self._peek()
        if tok.type == TokenType.KEYWORD and tok.value in TYPE_DECLARATION_KEYWORDS:
            # Anonymous method: delegate { } / delegate (int x) { }
            return not (tok.value == "delegate" and self._is(nxt, "(", "{"))
        if self._is(tok, "record"):
            if self._is(nxt, "class", "struct"):
                return True
            return nxt.type == TokenType.IDENTIFIER and self._is(
                self._peek(2), "(", "{", ":", "<", ";", "where"
            )
        return False

    def _parse_type_declaration(self, scope: ScopeNode, modifiers: List[str], attributes: List[str]) -> None:
        keyword = self._advance().value
        if keyword == "record" and self._at("class", "struct"):
            self._advance()
        if keyword == "delegate":
            self._parse_delegate(scope, modifiers)
            return

        name_tok = self._expect_identifier(f"Expected type name after '{keyword}'")
        name = self._name(name_tok)
        role = BindingRole.INTERFACE_NAME if keyword == "interface" else BindingRole.TYPE_NAME
        scope.add_binding(Binding(
            name, role, MemberKind.TYPE, name_tok.line, name_tok.column,
            accessibility=self._accessibility(modifiers),
            modifiers=frozenset(modifiers),
        ))
        child = scope.add_child(ScopeNode(
            ScopeKind.TYPE, name, name_tok.line, name_tok.column, type_keyword=keyword
        ))

        if self._at("<"):
            end = self._generic_end(self.pos)
            if end is None:
                raise ParseError(f"Malformed type parameter list on '{name}'", self._current())
            self.pos = end
        if self._at("("):
            if keyword == "record":
                # Positional record parameters are the record's public properties
                self._parse_parameter_list(child, role=BindingRole.PUBLIC_MEMBER, kind=MemberKind.PROPERTY)
            else:
                self._parse_parameter_list(child)

        # Base list and constraints
        self._skip_expression(("{", ";"))
        if self._at("{"):
            self._advance()
            if keyword == "enum":
                self._parse_enum_body(child)
            else:
                self._parse_declarations(child, closing=True)
            if self._at(";"):
                self._advance()
        elif self._at(";"):
            self._advance()
        else:
            raise ParseError(f"Expected '{{' after {keyword} '{name}'", self._current())

    def _parse_delegate(self, scope: ScopeNode, modifiers: List[str]) -> None:
        self._parse_type_or_fail("Expected delegate return type")
        name_tok = self._expect_identifier("Expected delegate name")
        name = self._name(name_tok)
        scope.add_binding(Binding(
            name, BindingRole.TYPE_NAME, MemberKind.TYPE, name_tok.line, name_tok.column,
            accessibility=self._accessibility(modifiers),
            modifiers=frozenset(modifiers),
        ))
        signature = scope.add_child(ScopeNode(
            ScopeKind.METHOD, name, name_tok.line, name_tok.column, type_keyword="delegate"
        ))
        if self._at("<"):
            end = self._generic_end(self.pos)
            if end is None:
                raise ParseError(f"Malformed type parameter list on '{name}'", self._current())
            self.pos = end
        if not self._at("("):
            raise ParseError(f"Expected parameter list for delegate '{name}'", self._current())
        self._parse_parameter_list(signature)
        self._skip_expression((";",))
        self._expect(";", f"Expected ';' after delegate '{name}'")

    def _parse_enum_body(self, enum_scope: ScopeNode) -> None:
        while True:
            tok = self._current()
            if tok.type == TokenType.EOF:
                raise ParseError(f"Unexpected end of file, missing '}}' for enum '{enum_scope.name}'", tok)
            if self._is(tok, "}"):
                self._advance()
                return
            if self._is(tok, ","):
                self._advance()
                continue
            self._parse_attributes()
            name_tok = self._expect_identifier(f"Expected enum member name in '{enum_scope.name}'")
            enum_scope.add_binding(Binding(
                self._name(name_tok), BindingRole.PUBLIC_MEMBER, MemberKind.ENUM_MEMBER,
                name_tok.line, name_tok.column, accessibility="public",
            ))
            if self._at("="):
                self._advance()
                self._skip_expression((",",))

    def _parse_parameter_list(self, scope: ScopeNode,
                              role: BindingRole = BindingRole.PARAMETER,
                              kind: MemberKind = MemberKind.PARAMETER) -> None:
        """Parse '(...)' or '[...]' parameters, binding each name in `scope`."""
        close = PAIRS[self._advance().value]
        if self._at(close):
            self._advance()
            return
        while True:
            self._parse_attributes()
            while True:
                tok = self._current()
                if tok.type == TokenType.KEYWORD and tok.value in PARAMETER_MODIFIERS:
                    self._advance()
                elif self._is(tok, "scoped") and self._peek().type in (TokenType.IDENTIFIER, TokenType.KEYWORD):
                    self._advance()
                else:
                    break
            if self._at("__arglist"):
                self._advance()
            else:
                self._parse_type_or_fail("Expected parameter type")
                name_tok = self._expect_identifier("Expected parameter name")
                scope.add_binding(Binding(
                    self._name(name_tok), role, kind, name_tok.line, name_tok.column,
                    accessibility="public" if role == BindingRole.PUBLIC_MEMBER else "",
                ))
                if self._at("="):
                    self._advance()
                    self._skip_expression((",", close))
            if self._at(","):
                self._advance()
                continue
            self._expect(close, f"Expected ',' or '{close}' in parameter list")
            return

    def _member_role(self, public: bool) -> BindingRole:
        return BindingRole.PUBLIC_MEMBER if public else BindingRole.PRIVATE_MEMBER

    def _field_role(self, public: bool, modifiers: Sequence[str], thread_static: bool) -> BindingRole:
        if public:
            return BindingRole.PUBLIC_MEMBER
        if "const" in modifiers:
            return BindingRole.PRIVATE_MEMBER
        if thread_static:
            return BindingRole.THREAD_STATIC_FIELD
        if "static" in modifiers:
            return BindingRole.STATIC_FIELD
        return BindingRole.PRIVATE_FIELD

    def _new_method_scope(self, scope: ScopeNode, name: str, tok: Token) -> ScopeNode:
        return scope.add_child(ScopeNode(ScopeKind.METHOD, name, tok.line, tok.column))

    def _parse_member(self, scope: ScopeNode, modifiers: List[str], attributes: List[str]) -> None:
        tok = self._current()
        mods = frozenset(modifiers)
        access = self._accessibility(modifiers)
        public = self._is_public(scope, modifiers)

        if self._is(tok, "event"):
            self._advance()
            self._parse_event(scope, mods, access, public)
            return

        if self._is(tok, "implicit", "explicit"):
            self._advance()
            self._expect("operator")
            self._parse_type_or_fail("Expected conversion target type")
            method = self._new_method_scope(scope, "operator", tok)
            self._parse_parameter_list(method)
            self._parse_body(method)
            return

        if self._is(tok, "~"):
            self._advance()
            name_tok = self._expect_identifier("Expected finalizer name")
            method = self._new_method_scope(scope, "~" + self._name(name_tok), name_tok)
            self._expect("(")
            self._expect(")")
            self._parse_body(method)
            return

        # Constructor: TypeName(
        if (tok.type == TokenType.IDENTIFIER and self._is(self._peek(), "(")
                and scope.kind == ScopeKind.TYPE and self._name(tok) == scope.name):
            self._advance()
            method = self._new_method_scope(scope, self._name(tok), tok)
            self._parse_parameter_list(method)
            if self._at(":"):
                self._skip_expression(("{", "=>", ";"))
            self._parse_body(method)
            return

        type_text = self._parse_type()
        if type_text is None:
            raise ParseError(f"Unexpected {tok.value!r} in {scope.kind.name.lower()} body", tok)

        tok = self._current()
        if self._is(tok, "operator"):
            self._advance()
            while not self._at("(") and not self._at_eof():
                self._advance()
            method = self._new_method_scope(scope, "operator", tok)
            self._parse_parameter_list(method)
            self._parse_body(method)
            return

        if self._is(tok, "this") and self._is(self._peek(), "["):
            self._advance()
            indexer = self._new_method_scope(scope, "this[]", tok)
            self._parse_parameter_list(indexer)
            self._parse_property_body(scope, "this[]")
            return

        explicit = False
        if tok.type == TokenType.IDENTIFIER:
            name_tok = self._advance()
            # Explicit interface implementation: IFoo.Bar / IFoo<T>.Bar
            while True:
                if self._at(".") and self._peek().type == TokenType.IDENTIFIER:
                    self._advance()
                    name_tok = self._advance()
                    explicit = True
                    continue
                if self._at("<"):
                    end = self._generic_end(self.pos)
                    if end is not None and self._is(self.tokens[min(end, self.length - 1)], "."):
                        self.pos = end
                        continue
                break
        elif "." in type_text and self._is(tok, "(", "{", "=>", "<"):
            # The type reference swallowed the member name: void-less IFoo.Bar(...)
            name_tok = self.tokens[self.pos - 1]
            explicit = True
        else:
            found = "end of file" if tok.type == TokenType.EOF else repr(tok.value)
            raise ParseError(f"Expected member name after '{type_text}', got {found}", tok)

        name = self._name(name_tok)
        if explicit:
            public = True

        if self._at("<"):
            end = self._generic_end(self.pos)
            if end is None:
                raise ParseError(f"Malformed type parameter list on '{name}'", self._current())
            self.pos = end

        if self._at("("):
            scope.add_binding(Binding(
                name, self._member_role(public), MemberKind.METHOD, name_tok.line, name_tok.column,
                accessibility=access, modifiers=mods,
            ))
            method = self._new_method_scope(scope, name, name_tok)
            self._parse_parameter_list(method)
            self._skip_expression(("{", "=>", ";"))
            self._parse_body(method)
            return

        if self._at("{", "=>"):
            scope.add_binding(Binding(
                name, self._member_role(public), MemberKind.PROPERTY, name_tok.line, name_tok.column,
                accessibility=access, modifiers=mods,
            ))
            self._parse_property_body(scope, name)
            return

        if self._at("=", ";", ",", "["):
            thread_static = bool(THREAD_STATIC_ATTRIBUTES.intersection(attributes))
            self._parse_field_declarators(scope, name_tok, mods, access, public, thread_static)
            return

        found = "end of file" if self._at_eof() else repr(self._current().value)
        raise ParseError(f"Unexpected {found} after member name '{name}'", self._current())

    def _parse_event(self, scope: ScopeNode, mods: FrozenSet[str], access: str, public: bool) -> None:
        self._parse_type_or_fail("Expected event type")
        while True:
            name_tok = self._expect_identifier("Expected event name")
            while self._at(".") and self._peek().type == TokenType.IDENTIFIER:
                self._advance()
                name_tok = self._advance()
                public = True
            scope.add_binding(Binding(
                self._name(name_tok), self._member_role(public), MemberKind.EVENT,
                name_tok.line, name_tok.column, accessibility=access, modifiers=mods,
            ))
            if self._at("{"):
                self._parse_property_body(scope, self._name(name_tok))
                return
            if self._at("="):
                self._advance()
                self._skip_expression((",", ";"))
            if self._at(","):
                self._advance()
                continue
            self._expect(";", "Expected ';' after event declaration")
            return

    def _parse_field_declarators(self, scope: ScopeNode, name_tok: Token, mods: FrozenSet[str],
                                 access: str, public: bool, thread_static: bool) -> None:
        declaration_id = self._new_declaration_id()
        kind = MemberKind.CONSTANT if "const" in mods else MemberKind.FIELD
        role = self._field_role(public, mods, thread_static)
        while True:
            scope.add_binding(Binding(
                self._name(name_tok), role, kind, name_tok.line, name_tok.column,
                accessibility=access, modifiers=mods, declaration_id=declaration_id,
            ))
            if self._at("["):
                self._skip_balanced()  # fixed-size buffer
            if self._at("="):
                self._advance()
                self._skip_expression((",", ";"))
            if self._at(","):
                self._advance()
                name_tok = self._expect_identifier("Expected field name after ','")
                continue
            self._expect(";", "Expected ';' after field declaration")
            return

    def _parse_property_body(self, scope: ScopeNode, name: str) -> None:
        """Accessor list or expression body of a property, indexer or event."""
        if self._at("=>"):
            self._advance()
            self._skip_expression((";",))
            self._expect(";", f"Expected ';' after expression body of '{name}'")
            return
        self._expect("{")
        while True:
            tok = self._current()
            if tok.type == TokenType.EOF:
                raise ParseError(f"Unexpected end of file in accessor list of '{name}'", tok)
            if self._is(tok, "}"):
                self._advance()
                break
            self._parse_attributes()
            while self._current().type == TokenType.KEYWORD and self._current().value in (
                "public", "private", "protected", "internal", "readonly",
            ):
                self._advance()
            tok = self._current()
            if tok.type == TokenType.IDENTIFIER and tok.value in ACCESSOR_NAMES:
                self._advance()
                if self._at(";"):
                    self._advance()
                    continue
                accessor = self._new_method_scope(scope, f"{name}.{tok.value}", tok)
                self._parse_body(accessor)
                continue
            raise ParseError(f"Unexpected {tok.value!r} in accessor list of '{name}'", tok)
        # Property initializer: { get; set; } = value;
        if self._at("="):
            self._advance()
            self._skip_expression((";",))
            self._expect(";", f"Expected ';' after initializer of '{name}'")

    def _parse_body(self, method: ScopeNode) -> None:
        tok = self._current()
        if self._is(tok, "{"):
            self._advance()
            self._parse_statements(method)
        elif self._is(tok, "=>"):
            self._advance()
            self._skip_expression((";",))
            self._expect(";", f"Expected ';' after expression body of '{method.name}'")
        elif self._is(tok, ";"):
            self._advance()
        else:
            found = "end of file" if tok.type == TokenType.EOF else repr(tok.value)
            raise ParseError(f"Expected body for '{method.name}', got {found}", tok)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _parse_statements(self, scope: ScopeNode) -> None:
        """Parse statements until the '}' closing the current block."""
        while True:
            tok = self._current()
            if tok.type == TokenType.EOF:
                self._recover(ParseError(
                    f"Unexpected end of file, missing '}}' for '{scope.name or 'block'}'", tok
                ), self.pos)
                return
            if self._is(tok, "}"):
                self._advance()
                return
            start = self.pos
            try:
                self._parse_statement(scope)
            except ParseError as e:
                self._recover(e, start)

    def _parse_statement(self, scope: ScopeNode) -> None:
        tok = self._current()
        nxt = self._peek()

        if self._is(tok, "{"):
            self._advance()
            block = scope.add_child(ScopeNode(ScopeKind.BLOCK, "", tok.line, tok.column))
            self._parse_statements(block)
            return
        if self._is(tok, ";"):
            self._advance()
            return

        if tok.type == TokenType.KEYWORD:
            v = tok.value
            if v == "foreach":
                self._parse_foreach(scope)
                return
            if v == "for" and self._is(nxt, "("):
                self._advance()
                self._advance()
                if not self._try_local_declaration(scope, terminators=(";",), for_header=True):
                    self._skip_expression((";",))
                    self._expect(";")
                self._skip_expression(())
                self._expect(")", "Expected ')' to close for header")
                return
            if v in ("using", "fixed") and self._is(nxt, "("):
                self._advance()
                self._advance()
                if not self._try_local_declaration(scope, terminators=(")",)):
                    self._skip_expression(())
                    self._expect(")", f"Expected ')' to close {v} header")
                return
            if v == "using":
                # using declaration: using var x = ...;
                self._advance()
                if not self._try_local_declaration(scope):
                    raise ParseError("Expected declaration after 'using'", self._current())
                return
            if v == "catch" and self._is(nxt, "("):
                self._parse_catch(scope)
                return
            if v in ("if", "while", "switch", "lock") and self._is(nxt, "("):
                self._advance()
                self._skip_balanced()
                return
            if v in ("else", "do", "try", "catch", "finally"):
                self._advance()
                return
            if v in ("checked", "unchecked", "unsafe") and self._is(nxt, "{"):
                self._advance()
                return
            if v == "case":
                self._skip_expression((":",))
                self._expect(":", "Expected ':' after case label")
                return
            if v == "default" and self._is(nxt, ":"):
                self._advance()
                self._advance()
                return
            if v == "const":
                self._advance()
                if not self._try_local_declaration(scope, const=True):
                    raise ParseError("Expected local constant declaration", self._current())
                return

        if self._is(tok, "await") and self._is(nxt, "foreach"):
            self._parse_foreach(scope)
            return
        if self._is(tok, "await") and self._is(nxt, "using"):
            self._advance()
            return
        if self._is(tok, "when") and self._is(nxt, "("):
            self._advance()  # exception filter
            self._skip_balanced()
            return
        if tok.type == TokenType.IDENTIFIER and self._is(nxt, ":") and tok.value not in STATEMENT_IDENTIFIERS:
            self._advance()  # label
            self._advance()
            return

        if self._try_local_declaration(scope):
            return
        self._skip_statement()

    def _skip_statement(self) -> None:
        """Skip an expression statement (or jump statement) through its ';'."""
        self._skip_expression((";",))
        tok = self._current()
        if self._is(tok, ";"):
            self._advance()
        elif self._is(tok, ")", "]"):
            raise ParseError(f"Unexpected '{tok.value}'", tok)

    def _parse_catch(self, scope: ScopeNode) -> None:
        self._advance()
        self._advance()
        type_text = self._parse_type()
        if type_text is not None and self._current().type == TokenType.IDENTIFIER:
            name_tok = self._advance()
            scope.add_binding(Binding(
                self._name(name_tok), BindingRole.LOCAL_VARIABLE, MemberKind.LOCAL,
                name_tok.line, name_tok.column, declaration_id=self._new_declaration_id(),
            ))
        self._skip_expression(())
        self._expect(")", "Expected ')' to close catch clause")

    def _parse_foreach(self, scope: ScopeNode) -> None:
        if self._at("await"):
            self._advance()
        self._advance()  # foreach
        self._expect("(", "Expected '(' after foreach")
        declaration_id = self._new_declaration_id()

        if self._at("var") and self._is(self._peek(), "("):
            # foreach (var (key, value) in pairs)
            self._advance()
            close = self._match_close(self.pos)
            if close is None:
                raise ParseError("Unbalanced '(' in foreach deconstruction", self._current())
            for tok in self.tokens[self.pos + 1:close]:
                if tok.type == TokenType.IDENTIFIER:
                    scope.add_binding(Binding(
                        self._name(tok), BindingRole.LOCAL_VARIABLE, MemberKind.LOCAL,
                        tok.line, tok.column, uses_var=True, in_foreach=True,
                    ))
            self.pos = close + 1
        else:
            type_text = self._parse_type_or_fail("Expected loop variable type in foreach")
            if not (type_text.startswith("(") and self._at("in")):
                name_tok = self._expect_identifier("Expected loop variable name in foreach")
                scope.add_binding(Binding(
                    self._name(name_tok), BindingRole.LOCAL_VARIABLE, MemberKind.LOCAL,
                    name_tok.line, name_tok.column, uses_var=type_text == "var", in_foreach=True,
                    declaration_id=declaration_id,
                ))
        self._expect("in", "Expected 'in' in foreach")
        self._skip_expression(())
        self._expect(")", "Expected ')' to close foreach header")

    def _try_local_declaration(self, scope: ScopeNode, terminators: Tuple[str, ...] = (";",),
                               for_header: bool = False, const: bool = False) -> bool:
        """
        Parse a local variable declaration or local function at the current
        position. Returns False (position unchanged) if the statement is
        something else.
        """
        start = self.pos
        modifiers: List[str] = ["const"] if const else []
        while (self._current().value in LOCAL_FUNCTION_MODIFIERS
               and self._current().type in STRUCTURAL_TYPES
               and self._peek().type in (TokenType.IDENTIFIER, TokenType.KEYWORD)):
            modifiers.append(self._advance().value)

        tok = self._current()
        if tok.type == TokenType.IDENTIFIER and tok.value in STATEMENT_IDENTIFIERS:
            self.pos = start
            return False
        if tok.type == TokenType.KEYWORD and tok.value not in PREDEFINED_TYPE_KEYWORDS and tok.value not in ("ref", "readonly"):
            self.pos = start
            return False
        if self._is(tok, "scoped") and self._peek().type in (TokenType.IDENTIFIER, TokenType.KEYWORD):
            self._advance()

        type_text = self._parse_type()
        name_tok = self._current()
        if type_text is None or name_tok.type != TokenType.IDENTIFIER:
            self.pos = start
            return False
        after = self._peek()

        if self._is(after, "=", ",") or self._is(after, *terminators):
            self._parse_local_declarators(scope, type_text, modifiers, terminators, for_header)
            return True

        if self._is(after, "(", "<") and terminators == (";",) and not for_header:
            self._advance()
            if self._at("<"):
                end = self._generic_end(self.pos)
                if end is None or not self._is(self.tokens[min(end, self.length - 1)], "("):
                    self.pos = start
                    return False
                self.pos = end
            # Local function
            scope.add_binding(Binding(
                self._name(name_tok), BindingRole.PRIVATE_MEMBER, MemberKind.METHOD,
                name_tok.line, name_tok.column, modifiers=frozenset(modifiers),
            ))
            method = self._new_method_scope(scope, self._name(name_tok), name_tok)
            self._parse_parameter_list(method)
            self._skip_expression(("{", "=>", ";"))
            self._parse_body(method)
            return True

        self.pos = start
        return False

    def _parse_local_declarators(self, scope: ScopeNode, type_text: str, modifiers: List[str],
                                 terminators: Tuple[str, ...], for_header: bool) -> None:
        declaration_id = self._new_declaration_id()
        mods = frozenset(modifiers)
        while True:
            name_tok = self._advance()
            apparent: Optional[bool] = None
            if self._at("="):
                self._advance()
                apparent = self._initializer_is_apparent((",",) + terminators)
                self._skip_expression((",",) + terminators)
            scope.add_binding(Binding(
                self._name(name_tok), BindingRole.LOCAL_VARIABLE, MemberKind.LOCAL,
                name_tok.line, name_tok.column, modifiers=mods,
                uses_var=type_text == "var", initializer_apparent=apparent,
                declaration_id=declaration_id,
            ))
            if self._at(","):
                self._advance()
                if self._current().type != TokenType.IDENTIFIER:
                    raise ParseError("Expected variable name after ','", self._current())
                if for_header:
                    declaration_id = self._new_declaration_id()
                continue
            if not self._at(*terminators):
                found = "end of file" if self._at_eof() else repr(self._current().value)
                raise ParseError(f"Expected '{terminators[0]}' after local declaration, got {found}",
                                 self._current())
            self._advance()
            return

    # ------------------------------------------------------------------
    # Apparent-type heuristic
    # ------------------------------------------------------------------

    def _initializer_is_apparent(self, stops: Tuple[str, ...]) -> bool:
        """
        True if the initializer starting at the current token makes the
        variable's type obvious: a `new` expression, a single literal, or an
        explicit cast. Best effort; no type resolution is attempted.
        """
        begin = self.pos
        end = self._scan_expression(begin, stops)
        toks = self.tokens[begin:end]
        if not toks:
            return False
        first = toks[0]
        if self._is(first, "new", "stackalloc"):
            return self._is_creation_expression(begin, end)
        if len(toks) == 1:
            return first.is_literal and first.value != "null"
        if len(toks) == 2 and self._is(first, "-", "+") and toks[1].type == TokenType.NUMBER:
            return True
        if self._is(first, "("):
            close = self._match_close(begin)
            return (close is not None and close + 1 < end
                    and self._looks_like_type(begin + 1, close)
                    and self._starts_operand(self.tokens[close + 1]))
        return False

    def _is_creation_expression(self, begin: int, end: int) -> bool:
        """new T(...) { ... } spanning exactly tokens[begin:end]."""
        j = begin + 1
        while j < end:
            tok = self.tokens[j]
            if self._is_type_word(tok) or self._is(tok, ".", "::", "?"):
                j += 1
                continue
            if self._is(tok, "<"):
                g = self._generic_end(j)
                if g is None:
                    return False
                j = g
                continue
            break
        while j < end and self._is(self.tokens[j], "[", "(", "{"):
            close = self._match_close(j)
            if close is None:
                return False
            j = close + 1
        return j == end

    def _looks_like_type(self, begin: int, end: int) -> bool:
        if begin >= end or not self._is_type_word(self.tokens[begin]):
            return False
        for tok in self.tokens[begin:end]:
            if self._is_type_word(tok):
                continue
            if self._is(tok, ".", "::", "<", ">", ">>", ",", "?", "[", "]", "*"):
                continue
            return False
        return True

    def _starts_operand(self, tok: Token) -> bool:
        if tok.type in (TokenType.IDENTIFIER, TokenType.STRING, TokenType.CHAR, TokenType.NUMBER):
            return True
        if tok.type == TokenType.KEYWORD:
            return tok.value in OPERAND_KEYWORDS or tok.value in PREDEFINED_TYPE_KEYWORDS
        return self._is(tok, "(", "!", "~")


class RecoveringParser(Parser):
    """
    Parser with error recovery that collects multiple errors.

    A failed declaration or statement is recorded as a diagnostic and
    skipped up to the next ';' or the '}' closing its enclosing scope, so
    sibling declarations are still parsed and bound.
    """

    MAX_ERRORS = 100  # Prevent runaway error cascades

    def __init__(self, tokens: Sequence[Token], filename: str = "<unknown>"):
        super().__init__(tokens, filename)
        self.diagnostics: List[ParseDiagnostic] = []
        self.error_count = 0

    def _add_error(self, message: str, line: int, column: int, code: str = "ParseError") -> None:
        self.error_count += 1
        self.diagnostics.append(ParseDiagnostic(
            line=line, column=column, severity="error", code=code, message=message,
        ))

    def _recover(self, error: ParseError, start: int) -> None:
        if self.error_count >= self.MAX_ERRORS:
            self.pos = self.length - 1
            return
        self._add_error(error.message, error.line, error.column)
        if self.error_count >= self.MAX_ERRORS:
            tok = self._current()
            self._add_error(f"Too many errors ({self.MAX_ERRORS}+), stopping",
                            tok.line, tok.column, code="TooManyErrors")
            self.pos = self.length - 1
            return
        self._skip_to_recovery_point(start)

    def _skip_to_recovery_point(self, start: int) -> None:
        """
        Skip past the failed construct: close any braces it opened, then stop
        after the next ';' or before the '}' of the enclosing scope.
        """
        depth = 0
        for tok in self.tokens[start:self.pos]:
            if self._is(tok, "{"):
                depth += 1
            elif self._is(tok, "}") and depth > 0:
                depth -= 1

        while True:
            tok = self._current()
            if tok.type == TokenType.EOF:
                return
            if self._is(tok, "{"):
                depth += 1
            elif self._is(tok, "}"):
                if depth == 0:
                    break
                depth -= 1
                if depth == 0:
                    self._advance()
                    return
            elif self._is(tok, ";") and depth == 0:
                self._advance()
                return
            self._advance()

        if self.pos == start:
            # Stray '}' with no enclosing scope to close
            self._advance()


def lex_source_recovering(source: str, filename: str = "<unknown>") -> Tuple[List[Token], List[LexError]]:
    """Tokenize with recovery. Returns (tokens including trivia, lex errors)."""
    lexer = RecoveringLexer(source, filename)
    tokens = lexer.tokenize_all(include_trivia=True)
    return tokens, list(lexer.errors)


def parse_source(source: str, filename: str = "<unknown>") -> ScopeNode:
    """Parse source code string into a scope tree. Raises on the first error."""
    lexer = Lexer(source, filename)
    tokens = lexer.tokenize_all()
    parser = Parser(tokens, filename)
    return parser.parse()


def parse_source_recovering(source: str, filename: str = "<unknown>") -> ParseResult:
    """
    Lex and parse source with error recovery, collecting all errors.

    If the lexer reports errors the structural parse is skipped: the
    result carries the recovered tokens and one diagnostic per lexical
    error, with no scope tree.
    """
    tokens, lex_errors = lex_source_recovering(source, filename)
    if lex_errors:
        return ParseResult(
            root=None,
            tokens=tokens,
            diagnostics=[
                ParseDiagnostic(e.line, e.column, "error", "LexError", e.message)
                for e in lex_errors
            ],
        )

    parser = RecoveringParser(tokens, filename)
    root = parser.parse()
    return ParseResult(root=root, tokens=tokens, diagnostics=parser.diagnostics)


def parse_file(filepath: str) -> ScopeNode:
    """Parse a file into a scope tree."""
    return parse_source(read_source(filepath), filepath)
