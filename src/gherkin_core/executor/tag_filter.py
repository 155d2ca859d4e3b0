"""
Boolean tag expressions such as ``@smoke and not (@wip or @slow)``.

Grammar, from lowest to highest precedence::

    or_expr  = and_expr ("or" and_expr)*
    and_expr = not_expr ("and" not_expr)*
    not_expr = "not" not_expr | primary
    primary  = "(" or_expr ")" | TAG
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from ..core.exceptions import (
    EmptyTagExpressionError,
    MissingClosingParenthesisError,
    UnexpectedEndOfExpressionError,
    UnexpectedTokenError,
)

_KEYWORDS = ("not", "and", "or")


class TagOp(Enum):
    TAG = "tag"
    NOT = "not"
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class TagExpression:
    """Node of a parsed tag expression; ``op`` selects which fields are set"""
    op: TagOp
    name: Optional[str] = None
    left: Optional["TagExpression"] = None
    right: Optional["TagExpression"] = None

    def evaluate(self, tags: frozenset) -> bool:
        if self.op is TagOp.TAG:
            return self.name in tags
        if self.op is TagOp.NOT:
            return not self.left.evaluate(tags)
        if self.op is TagOp.AND:
            return self.left.evaluate(tags) and self.right.evaluate(tags)
        return self.left.evaluate(tags) or self.right.evaluate(tags)

    def __str__(self) -> str:
        if self.op is TagOp.TAG:
            return self.name
        if self.op is TagOp.NOT:
            return f"not {self.left}"
        return f"({self.left} {self.op.value} {self.right})"


@dataclass(frozen=True)
class TagToken:
    value: str
    position: int

    @property
    def is_tag(self) -> bool:
        return self.value.startswith("@")


def tokenize(expression: str) -> List[TagToken]:
    tokens = []
    index = 0

    while index < len(expression):
        char = expression[index]

        if char.isspace():
            index += 1
        elif char in "()":
            tokens.append(TagToken(char, index))
            index += 1
        elif char == "@":
            start = index
            index += 1
            while index < len(expression) and not expression[index].isspace() and expression[index] not in "()":
                index += 1
            tokens.append(TagToken(expression[start:index], start))
        elif char.isalpha():
            start = index
            while index < len(expression) and expression[index].isalpha():
                index += 1
            word = expression[start:index]
            if word not in _KEYWORDS:
                raise UnexpectedTokenError(word, start)
            tokens.append(TagToken(word, start))
        else:
            raise UnexpectedTokenError(char, index)

    return tokens


class _Parser:
    """Recursive descent over the token list"""

    def __init__(self, tokens: List[TagToken]):
        self.tokens = tokens
        self.position = 0

    def _peek(self) -> Optional[TagToken]:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _accept(self, value: str) -> bool:
        token = self._peek()
        if token is not None and token.value == value:
            self.position += 1
            return True
        return False

    def parse(self) -> TagExpression:
        expression = self.parse_or()
        trailing = self._peek()
        if trailing is not None:
            raise UnexpectedTokenError(trailing.value, trailing.position)
        return expression

    def parse_or(self) -> TagExpression:
        left = self.parse_and()
        while self._accept("or"):
            left = TagExpression(TagOp.OR, left=left, right=self.parse_and())
        return left

    def parse_and(self) -> TagExpression:
        left = self.parse_not()
        while self._accept("and"):
            left = TagExpression(TagOp.AND, left=left, right=self.parse_not())
        return left

    def parse_not(self) -> TagExpression:
        if self._accept("not"):
            return TagExpression(TagOp.NOT, left=self.parse_not())
        return self.parse_primary()

    def parse_primary(self) -> TagExpression:
        token = self._peek()
        if token is None:
            raise UnexpectedEndOfExpressionError()

        if token.is_tag:
            self.position += 1
            return TagExpression(TagOp.TAG, name=token.value)

        if token.value == "(":
            self.position += 1
            expression = self.parse_or()
            if not self._accept(")"):
                raise MissingClosingParenthesisError()
            return expression

        raise UnexpectedTokenError(token.value, token.position)


class TagFilter:
    """
    A parsed tag expression.

    Construction raises a ``TagFilterError`` subclass for malformed input;
    afterwards the filter is immutable and ``matches`` is pure.
    """

    def __init__(self, expression: str):
        self.expression = expression
        tokens = tokenize(expression)
        if not tokens:
            raise EmptyTagExpressionError()
        self._root = _Parser(tokens).parse()

    def __repr__(self) -> str:
        return f"TagFilter({self.expression!r})"

    def __str__(self) -> str:
        return str(self._root)

    def __eq__(self, other) -> bool:
        return isinstance(other, TagFilter) and self._root == other._root

    def __hash__(self) -> int:
        return hash(self._root)

    @property
    def root(self) -> TagExpression:
        return self._root

    def matches(self, tags: Iterable[str]) -> bool:
        """True if the tag set satisfies the expression"""
        return self._root.evaluate(frozenset(tags))
