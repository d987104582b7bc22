"""
C# Lexer (Tokenizer)

Converts raw .cs source text into a stream of tokens.
Handles: identifiers, keywords, operators, strings (regular, verbatim,
interpolated, raw), chars, numbers, comments, preprocessor directives.

With trivia included, the token values concatenate back to the exact source
text, so every character of the input belongs to exactly one token.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, List, Optional


class TokenType(Enum):
    """Types of tokens in C# source."""
    IDENTIFIER = auto()      # foo, _bar, @class, var, async
    KEYWORD = auto()         # class, public, if, int
    PUNCTUATION = auto()     # { } ( ) ; , . and all operators
    STRING = auto()          # "text", @"text", $"text", """raw"""
    CHAR = auto()            # 'a'
    NUMBER = auto()          # 42, 0x1F, 1_000, 3.5e-2f
    COMMENT = auto()         # // line, /* block */
    DIRECTIVE = auto()       # #region, #if DEBUG
    WHITESPACE = auto()      # spaces and tabs
    NEWLINE = auto()         # \n or \r\n
    ERROR = auto()           # text the recovering lexer could not tokenize
    EOF = auto()             # End of file


TRIVIA_TYPES = frozenset({
    TokenType.WHITESPACE,
    TokenType.NEWLINE,
    TokenType.COMMENT,
    TokenType.DIRECTIVE,
})

LITERAL_TYPES = frozenset({TokenType.STRING, TokenType.CHAR, TokenType.NUMBER})


# Reserved keywords. Contextual keywords (var, record, async, await, get,
# set, value, global, ...) are lexed as identifiers.
KEYWORDS = frozenset({
    "abstract", "as", "base", "bool", "break", "byte", "case", "catch",
    "char", "checked", "class", "const", "continue", "decimal", "default",
    "delegate", "do", "double", "else", "enum", "event", "explicit",
    "extern", "false", "finally", "fixed", "float", "for", "foreach", "goto",
    "if", "implicit", "in", "int", "interface", "internal", "is", "lock",
    "long", "namespace", "new", "null", "object", "operator", "out",
    "override", "params", "private", "protected", "public", "readonly",
    "ref", "return", "sbyte", "sealed", "short", "sizeof", "stackalloc",
    "static", "string", "struct", "switch", "this", "throw", "true", "try",
    "typeof", "uint", "ulong", "unchecked", "unsafe", "ushort", "using",
    "virtual", "void", "volatile", "while",
})

# Longest match first
OPERATORS = (
    ">>>=", "<<=", ">>=", ">>>", "??=", "...",
    "=>", "==", "!=", "<=", ">=", "&&", "||", "++", "--", "+=", "-=", "*=",
    "/=", "%=", "&=", "|=", "^=", "<<", ">>", "??", "?.", "::", "->", "..",
    "{", "}", "(", ")", "[", "]", ";", ",", ".", ":", "?", "=", "<", ">",
    "+", "-", "*", "/", "%", "&", "|", "^", "!", "~",
)

NUMBER_SUFFIX_CHARS = set("uUlLfFdDmM")


@dataclass(frozen=True)
class Token:
    """A single token from the lexer. Positions are 1-based, end exclusive."""
    type: TokenType
    value: str
    line: int
    column: int
    end_line: int = 0
    end_column: int = 0

    @property
    def is_trivia(self) -> bool:
        return self.type in TRIVIA_TYPES

    @property
    def is_literal(self) -> bool:
        return self.type in LITERAL_TYPES or self.value in ("true", "false", "null")

    def __repr__(self):
        if self.type == TokenType.NEWLINE:
            return f"Token({self.type.name}, '\\n', L{self.line}:{self.column})"
        return f"Token({self.type.name}, {self.value!r}, L{self.line}:{self.column})"


class LexError(Exception):
    """Error during lexical analysis."""
    def __init__(self, message: str, line: int, column: int):
        self.message = message
        self.line = line
        self.column = column
        super().__init__(f"Lexer error at line {line}, column {column}: {message}")


class Lexer:
    """
    Tokenizer for C# source files.

    Every call to tokenize() starts from the beginning of the source, so the
    token stream can be restarted at will.

    Usage:
        lexer = Lexer(source_text)
        tokens = list(lexer.tokenize())
    """

    @staticmethod
    def _is_ident_start(ch: str) -> bool:
        """Check if character can start an identifier (letter or underscore)."""
        return ch == '_' or ch.isalpha()

    @staticmethod
    def _is_ident_cont(ch: str) -> bool:
        """Check if character can continue an identifier."""
        return ch == '_' or ch.isalnum()

    def __init__(self, source: str, filename: str = "<unknown>"):
        self.source = source
        self.filename = filename
        self.length = len(source)
        self._reset()

    def _reset(self) -> None:
        self.pos = 0
        self.line = 1
        self.column = 1
        # End offset of the last recovered error; the token covering it becomes ERROR
        self._last_error_end = -1

    def _is_blank(self, ch: str) -> bool:
        """Whitespace other than a line break ('\\r' counts only when not part of '\\r\\n')."""
        if ch == '\n':
            return False
        if ch == '\r':
            return self._peek() != '\n'
        return ch.isspace()

    def _current(self) -> Optional[str]:
        """Get current character or None if at end."""
        if self.pos >= self.length:
            return None
        return self.source[self.pos]

    def _peek(self, offset: int = 1) -> Optional[str]:
        """Peek ahead by offset characters."""
        pos = self.pos + offset
        if pos >= self.length:
            return None
        return self.source[pos]

    def _advance(self) -> Optional[str]:
        """Advance one character and return it."""
        ch = self._current()
        if ch is not None:
            self.pos += 1
            if ch == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return ch

    def _advance_to(self, end: int) -> None:
        while self.pos < end:
            self._advance()

    def _error(self, message: str, line: int, column: int, resume: int) -> None:
        """
        Handle a lexical error. The strict lexer raises; the recovering lexer
        overrides this to record the error and continue at `resume`.
        """
        raise LexError(message, line, column)

    def _line_end(self) -> int:
        """Offset of the next newline (or end of input) from the current position."""
        end = self.source.find('\n', self.pos)
        if end == -1:
            return self.length
        if end > self.pos and self.source[end - 1] == '\r':
            return end - 1
        return end

    # ------------------------------------------------------------------
    # Literal scanners. Each returns normally after consuming the literal,
    # or reports through _error() (which may raise).
    # ------------------------------------------------------------------

    def _scan_regular_string(self, quote: str, start_line: int, start_col: int) -> None:
        """Scan "..." or '...' (no newlines allowed inside)."""
        self._advance()  # opening quote
        while True:
            ch = self._current()
            if ch is None or ch == '\n':
                kind = "string" if quote == '"' else "character"
                self._error(f"Unterminated {kind} literal", start_line, start_col, self._line_end())
                return
            if ch == '\\':
                self._advance()
                if self._current() not in (None, '\n'):
                    self._advance()
                continue
            self._advance()
            if ch == quote:
                return

    def _scan_verbatim_string(self, start_line: int, start_col: int) -> None:
        """Scan the body of @"..." where "" is an escaped quote. Opening quote is current."""
        self._advance()
        while True:
            ch = self._current()
            if ch is None:
                self._error("Unterminated verbatim string literal", start_line, start_col, self.length)
                return
            self._advance()
            if ch == '"':
                if self._current() == '"':
                    self._advance()
                    continue
                return

    def _scan_raw_string(self, start_line: int, start_col: int) -> None:
        """Scan a raw string literal: N >= 3 quotes ... N quotes."""
        count = 0
        while self._current() == '"':
            count += 1
            self._advance()
        closing = '"' * count
        end = self.source.find(closing, self.pos)
        if end == -1:
            self._error("Unterminated raw string literal", start_line, start_col, self.length)
            return
        self._advance_to(end + count)
        # A longer run of quotes still closes the literal
        while self._current() == '"':
            self._advance()

    def _scan_interpolated_string(self, verbatim: bool, start_line: int, start_col: int) -> None:
        """Scan $"..." / $@"..." including nested {expressions}. Opening quote is current."""
        self._advance()
        depth = 0
        while True:
            ch = self._current()
            if ch is None or (ch == '\n' and not verbatim):
                resume = self.length if verbatim else self._line_end()
                self._error("Unterminated interpolated string literal", start_line, start_col, resume)
                return
            if depth == 0:
                if ch == '\\' and not verbatim:
                    self._advance()
                    if self._current() not in (None, '\n'):
                        self._advance()
                    continue
                if ch == '{':
                    self._advance()
                    if self._current() == '{':
                        self._advance()
                    else:
                        depth = 1
                    continue
                self._advance()
                if ch == '"':
                    if verbatim and self._current() == '"':
                        self._advance()
                        continue
                    return
                continue
            # Inside an interpolation hole
            if ch == '{':
                depth += 1
            elif ch == '}':
                depth -= 1
            elif ch in ('"', "'"):
                last_error = self._last_error_end
                self._scan_regular_string(ch, self.line, self.column)
                if self._last_error_end != last_error:
                    return  # the nested literal already reported the rest of the line
                continue
            self._advance()

    def _scan_block_comment(self, start_line: int, start_col: int) -> None:
        end = self.source.find('*/', self.pos + 2)
        if end == -1:
            self._error("Unterminated block comment", start_line, start_col, self.length)
            return
        self._advance_to(end + 2)

    def _scan_number(self) -> None:
        ch = self._current()
        nxt = self._peek()
        if ch == '0' and nxt in ('x', 'X', 'b', 'B'):
            self._advance()
            self._advance()
            while self._current() is not None and (self._current().isalnum() or self._current() == '_'):
                self._advance()
            return
        while self._current() is not None and (self._current().isdigit() or self._current() == '_'):
            self._advance()
        if self._current() == '.' and self._peek() is not None and self._peek().isdigit():
            self._advance()
            while self._current() is not None and (self._current().isdigit() or self._current() == '_'):
                self._advance()
        if self._current() in ('e', 'E'):
            offset = 2 if self._peek() in ('+', '-') else 1
            if self._peek(offset) is not None and self._peek(offset).isdigit():
                for _ in range(offset):
                    self._advance()
                while self._current() is not None and self._current().isdigit():
                    self._advance()
        while self._current() is not None and self._current() in NUMBER_SUFFIX_CHARS:
            self._advance()

    def _scan_identifier(self) -> None:
        while self._current() is not None and self._is_ident_cont(self._current()):
            self._advance()

    def _string_prefix_length(self) -> int:
        """
        Length of a string-literal prefix at the current position ($, @, $@,
        @$, $$...), or 0 if no string literal starts here.
        """
        i = self.pos
        dollars = 0
        at = False
        while i < self.length and self.source[i] in '$@':
            if self.source[i] == '@':
                if at:
                    return 0
                at = True
            else:
                dollars += 1
            i += 1
        if i < self.length and self.source[i] == '"' and (dollars or at):
            return i - self.pos
        return 0

    def _scan_prefixed_string(self, prefix_len: int, start_line: int, start_col: int) -> None:
        prefix = self.source[self.pos:self.pos + prefix_len]
        self._advance_to(self.pos + prefix_len)
        verbatim = '@' in prefix
        interpolated = '$' in prefix
        if self.source.startswith('"""', self.pos):
            self._scan_raw_string(start_line, start_col)
        elif interpolated:
            self._scan_interpolated_string(verbatim, start_line, start_col)
        else:
            self._scan_verbatim_string(start_line, start_col)

    def _match_operator(self) -> Optional[str]:
        for op in OPERATORS:
            if self.source.startswith(op, self.pos):
                return op
        return None

    def _at_line_start(self) -> bool:
        """True if only whitespace precedes the current position on this line."""
        i = self.pos - 1
        while i >= 0 and self.source[i] in ' \t':
            i -= 1
        return i < 0 or self.source[i] == '\n'

    def tokenize(self, include_trivia: bool = False) -> Iterator[Token]:
        """
        Generate tokens from the source.

        Args:
            include_trivia: If True, emit WHITESPACE, NEWLINE, COMMENT and
                DIRECTIVE tokens as well. Otherwise skip them.
        """
        self._reset()
        while True:
            ch = self._current()
            start = self.pos
            start_line = self.line
            start_col = self.column

            if ch is None:
                yield Token(TokenType.EOF, '', start_line, start_col, start_line, start_col)
                return

            # Whitespace (not newlines)
            if self._is_blank(ch):
                while self._current() is not None and self._is_blank(self._current()):
                    self._advance()
                token_type = TokenType.WHITESPACE

            # Newline
            elif ch == '\n' or ch == '\r':
                if ch == '\r':
                    self._advance()
                self._advance()
                token_type = TokenType.NEWLINE

            # Comments
            elif ch == '/' and self._peek() == '/':
                self._advance_to(self._line_end())
                token_type = TokenType.COMMENT
            elif ch == '/' and self._peek() == '*':
                token_type = TokenType.COMMENT
                self._scan_block_comment(start_line, start_col)

            # Preprocessor directive: # as the first non-blank char of a line
            elif ch == '#' and self._at_line_start():
                self._advance_to(self._line_end())
                token_type = TokenType.DIRECTIVE

            # Strings
            elif ch == '"':
                token_type = TokenType.STRING
                if self.source.startswith('"""', self.pos):
                    self._scan_raw_string(start_line, start_col)
                else:
                    self._scan_regular_string('"', start_line, start_col)
            elif ch in '$@' and self._string_prefix_length():
                token_type = TokenType.STRING
                self._scan_prefixed_string(self._string_prefix_length(), start_line, start_col)

            # Char literal
            elif ch == "'":
                token_type = TokenType.CHAR
                self._scan_regular_string("'", start_line, start_col)

            # Verbatim identifier (@class)
            elif ch == '@' and self._peek() is not None and self._is_ident_start(self._peek()):
                self._advance()
                self._scan_identifier()
                token_type = TokenType.IDENTIFIER

            # Number
            elif ch.isdigit() or (ch == '.' and self._peek() is not None and self._peek().isdigit()):
                if ch == '.':
                    self._advance()
                self._scan_number()
                token_type = TokenType.NUMBER

            # Identifier or keyword
            elif self._is_ident_start(ch):
                self._scan_identifier()
                word = self.source[start:self.pos]
                token_type = TokenType.KEYWORD if word in KEYWORDS else TokenType.IDENTIFIER

            else:
                op = self._match_operator()
                if op is not None:
                    self._advance_to(self.pos + len(op))
                    token_type = TokenType.PUNCTUATION
                else:
                    token_type = TokenType.ERROR
                    self._error(f"Unexpected character {ch!r}", start_line, start_col, self.pos + 1)

            if self._last_error_end > start:
                token_type = TokenType.ERROR
            if self.pos > start and (include_trivia or token_type not in TRIVIA_TYPES):
                value = self.source[start:self.pos]
                yield Token(token_type, value, start_line, start_col, self.line, self.column)

    def tokenize_all(self, include_trivia: bool = False) -> List[Token]:
        """Convenience method to get all tokens as a list."""
        return list(self.tokenize(include_trivia))

    def __iter__(self) -> Iterator[Token]:
        return self.tokenize()


class RecoveringLexer(Lexer):
    """
    Lexer that records errors instead of raising.

    The offending text becomes an ERROR token (the rest of the line for
    single-line literals, the rest of the file for block comments and
    multi-line strings) and lexing resumes after it, so a single pass
    surfaces every lexical diagnostic.
    """

    def __init__(self, source: str, filename: str = "<unknown>"):
        super().__init__(source, filename)
        self.errors: List[LexError] = []

    def _reset(self) -> None:
        super()._reset()
        self.errors = []

    def _error(self, message: str, line: int, column: int, resume: int) -> None:
        self.errors.append(LexError(message, line, column))
        self._advance_to(max(resume, self.pos))
        self._last_error_end = self.pos


def read_source(filepath: str) -> str:
    """Read a source file. Handles encoding fallback."""
    # Try UTF-8 with BOM first, then UTF-8, then latin-1 (which always succeeds)
    for encoding in ['utf-8-sig', 'utf-8', 'latin-1']:
        try:
            with open(filepath, 'r', encoding=encoding, newline='') as f:
                return f.read()
        except UnicodeDecodeError:
            continue
    raise AssertionError("latin-1 decoding cannot fail")


def tokenize_file(filepath: str, **kwargs) -> List[Token]:
    """Tokenize a file and return all tokens."""
    lexer = Lexer(read_source(filepath), filename=filepath)
    return lexer.tokenize_all(**kwargs)
