"""
Operator rules: prefer && and || over & and | on boolean operands.
"""

from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from lintcs.parser.lexer import Token, TokenType
from lintcs.rules import register
from lintcs.rules.base import LintRule, SourceUnit, Violation
from lintcs.rules.layout import is_keyword, is_punct


# Operators that end an operand of & or | (lower or equal precedence)
OPERAND_BOUNDARIES = frozenset({
    "&", "|", "^", "&&", "||", "?", "??", ":", ",", ";", "=", "=>",
    "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "<<=", ">>=", ">>>=", "??=",
})

# An operand containing one of these is a boolean expression
BOOLEAN_MARKERS = frozenset({"==", "!=", "<", ">", "<=", ">=", "!", "&&", "||"})
BOOLEAN_KEYWORDS = frozenset({"true", "false", "is"})

# Tokens allowed between the angle brackets of a type argument list
TYPE_ARGUMENT_PUNCT = frozenset({",", ".", "?", "[", "]", "::"})

OPENERS = ("(", "[", "{")
CLOSERS = (")", "]", "}")

SHORT_CIRCUIT = {"&": "&&", "|": "||"}


@register
class ShortCircuitOperator(LintRule):
    """
    `a & b` evaluates both sides; `a && b` stops as soon as the result is
    known.

    Inside an if/while/for condition the whole expression is bool, so an &
    or | at the top level of the condition is always the logical operator.
    Nested deeper, and on the right-hand side of assignments, initializers,
    expression bodies and return statements, & and | are flagged only when
    an operand is visibly boolean (a comparison, negation or true/false).
    Bitwise masks such as `(flags & Mask) != 0` are left alone.
    """

    id = "ShortCircuitOperator"
    description = "Use && and || instead of & and | on boolean operands"

    def check(self, unit: SourceUnit, context: Dict[str, Any]) -> Iterator[Violation]:
        tokens = unit.significant_tokens
        flagged: Set[int] = set()
        for i, tok in enumerate(tokens):
            if is_keyword(tok, "if", "while", "for"):
                span = self._condition(tokens, i)
                if span is not None:
                    flagged.update(self._scan(tokens, *span, in_condition=True))
            elif is_keyword(tok, "return") or is_punct(tok, "=", "=>"):
                end = self._expression_end(tokens, i + 1)
                flagged.update(self._scan(tokens, i + 1, end, in_condition=False))

        for k in sorted(flagged):
            op = tokens[k]
            replacement = SHORT_CIRCUIT[op.value]
            yield self.violation(
                unit, op.line, op.column,
                f"Use '{replacement}' instead of '{op.value}' on boolean operands "
                f"so evaluation short-circuits",
                suggestion=replacement,
            )

    def _scan(self, tokens: Sequence[Token], begin: int, end: int, in_condition: bool) -> Iterator[int]:
        """Indices of & and | in tokens[begin:end] that combine boolean operands."""
        depth = 0
        for k in range(begin, end):
            op = tokens[k]
            if is_punct(op, *OPENERS):
                depth += 1
            elif is_punct(op, *CLOSERS):
                depth -= 1
            elif is_punct(op, "&", "|"):
                left = self._operand(tokens, k, -1, begin, end)
                right = self._operand(tokens, k, 1, begin, end)
                if not left or not right:
                    continue    # unary & (address-of)
                if (in_condition and depth == 0) or self._is_boolean(left) or self._is_boolean(right):
                    yield k

    def _condition(self, tokens: Sequence[Token], i: int) -> Optional[Tuple[int, int]]:
        """Token span of the condition following the keyword at tokens[i]."""
        if i + 1 >= len(tokens) or not is_punct(tokens[i + 1], "("):
            return None
        close = self._matching_paren(tokens, i + 1)
        if close is None:
            return None
        if tokens[i].value == "for":
            return self._for_condition(tokens, i + 2, close)
        return i + 2, close

    @staticmethod
    def _expression_end(tokens: Sequence[Token], begin: int) -> int:
        """End of the expression starting at begin: the `;` or unbalanced closer."""
        depth = 0
        j = begin
        while j < len(tokens) and tokens[j].type != TokenType.EOF:
            if is_punct(tokens[j], *OPENERS):
                depth += 1
            elif is_punct(tokens[j], *CLOSERS):
                depth -= 1
                if depth < 0:
                    break
            elif depth == 0 and is_punct(tokens[j], ";"):
                break
            j += 1
        return j

    @staticmethod
    def _matching_paren(tokens: Sequence[Token], i: int) -> Optional[int]:
        depth = 0
        for j in range(i, len(tokens)):
            if is_punct(tokens[j], "("):
                depth += 1
            elif is_punct(tokens[j], ")"):
                depth -= 1
                if depth == 0:
                    return j
        return None

    @staticmethod
    def _for_condition(tokens: Sequence[Token], begin: int, end: int) -> Optional[Tuple[int, int]]:
        """The middle clause of a for header: for (init; condition; step)."""
        depth = 0
        semicolons: List[int] = []
        for j in range(begin, end):
            if is_punct(tokens[j], "(", "[", "{"):
                depth += 1
            elif is_punct(tokens[j], ")", "]", "}"):
                depth -= 1
            elif depth == 0 and is_punct(tokens[j], ";"):
                semicolons.append(j)
        if len(semicolons) != 2:
            return None
        return semicolons[0] + 1, semicolons[1]

    @staticmethod
    def _operand(tokens: Sequence[Token], k: int, step: int, begin: int, end: int) -> List[Token]:
        """Tokens of the operand on one side of tokens[k], stopping at a boundary operator."""
        opening, closing = ("(", ")") if step > 0 else (")", "(")
        operand: List[Token] = []
        depth = 0
        j = k + step
        while begin <= j < end:
            tok = tokens[j]
            if is_punct(tok, opening, "[" if step > 0 else "]"):
                depth += 1
            elif is_punct(tok, closing, "]" if step > 0 else "["):
                if depth == 0:
                    break
                depth -= 1
            elif depth == 0 and tok.type == TokenType.PUNCTUATION and tok.value in OPERAND_BOUNDARIES:
                break
            operand.append(tok)
            j += step
        return operand if step > 0 else operand[::-1]

    @classmethod
    def _is_boolean(cls, operand: Sequence[Token]) -> bool:
        type_brackets = cls._type_argument_brackets(operand)
        for idx, tok in enumerate(operand):
            if tok.type == TokenType.KEYWORD and tok.value in BOOLEAN_KEYWORDS:
                return True
            if tok.type != TokenType.PUNCTUATION or tok.value not in BOOLEAN_MARKERS:
                continue
            if idx in type_brackets:
                continue
            if tok.value == "!" and idx > 0 and cls._ends_primary(operand[idx - 1]):
                continue    # null-forgiving x!
            return True
        return False

    @staticmethod
    def _ends_primary(tok: Token) -> bool:
        return tok.type == TokenType.IDENTIFIER or is_punct(tok, ")", "]")

    @staticmethod
    def _type_argument_brackets(operand: Sequence[Token]) -> Set[int]:
        """Indices of < and > that delimit type arguments, as in Get<int>() or List<T>.Empty."""
        brackets: Set[int] = set()
        for i, tok in enumerate(operand):
            if not is_punct(tok, "<") or i in brackets:
                continue
            nesting = 0
            inner = []
            j = i
            while j < len(operand):
                t = operand[j]
                if is_punct(t, "<"):
                    nesting += 1
                elif is_punct(t, ">", ">>"):
                    nesting -= len(t.value)
                elif not (t.type in (TokenType.IDENTIFIER, TokenType.KEYWORD)
                          or (t.type == TokenType.PUNCTUATION and t.value in TYPE_ARGUMENT_PUNCT)):
                    break
                inner.append(j)
                if nesting <= 0:
                    break
                j += 1
            if nesting != 0 or j >= len(operand):
                continue
            following = operand[j + 1] if j + 1 < len(operand) else None
            if following is None or is_punct(following, "(", ".", ")", "::"):
                brackets.update(inner)
        return brackets
