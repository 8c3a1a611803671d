"""Filter expression language.

Expressions compare entity attributes against literal values and combine
the comparisons with ``and`` / ``or`` and parentheses::

    title =~ "linux" and unread = "yes"
    (author == "alice" or tags # "news") and age between 0:7

Operators: ``=``/``==`` equality, ``!=``, ``=~``/``!~`` case-insensitive
regex search, ``#``/``!#`` word membership in a space-separated list,
``<`` ``>`` ``<=`` ``>=`` integer comparison, ``between a:b`` inclusive
integer range. ``and`` binds tighter than ``or``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol, Union

from feedcore.errors import PredicateSyntaxError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
    |(?P<lparen>\()
    |(?P<rparen>\))
    |(?P<op>==|=~|!=|!~|!\#|<=|>=|=|<|>|\#)
    |(?P<string>"(?:\\.|[^"\\])*")
    |(?P<range>-?\d+:-?\d+)
    |(?P<number>-?\d+)
    |(?P<ident>[A-Za-z_][A-Za-z0-9_-]*)
    """,
    re.VERBOSE,
)
_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")
_ESCAPE_RE = re.compile(r"\\(.)")

_NUMERIC_OPS = frozenset({"<", ">", "<=", ">="})


class AttributeSource(Protocol):
    def has_attribute(self, name: str) -> bool: ...

    def get_attribute(self, name: str) -> str: ...


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    pos: int


@dataclass(frozen=True)
class _Comparison:
    attribute: str
    op: str
    value: str
    pattern: re.Pattern | None = None


@dataclass(frozen=True)
class _And:
    left: _Node
    right: _Node


@dataclass(frozen=True)
class _Or:
    left: _Node
    right: _Node


_Node = Union[_Comparison, _And, _Or]


def _to_int(text: str) -> int:
    match = _LEADING_INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _tokenize(expression: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(expression):
        match = _TOKEN_RE.match(expression, pos)
        if match is None:
            raise PredicateSyntaxError(
                expression, f"unexpected character {expression[pos]!r} at {pos}"
            )
        kind = match.lastgroup
        if kind != "space":
            tokens.append(_Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, expression: str) -> None:
        self._expression = expression
        self._tokens = _tokenize(expression)
        self._index = 0

    def _error(self, reason: str) -> PredicateSyntaxError:
        return PredicateSyntaxError(self._expression, reason)

    def _peek(self) -> _Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise self._error("unexpected end of expression")
        self._index += 1
        return token

    def _accept_keyword(self, word: str) -> bool:
        token = self._peek()
        if token is not None and token.kind == "ident" and token.text == word:
            self._index += 1
            return True
        return False

    def parse(self) -> _Node:
        if not self._tokens:
            raise self._error("empty expression")
        node = self._parse_or()
        token = self._peek()
        if token is not None:
            raise self._error(f"unexpected {token.text!r} at {token.pos}")
        return node

    def _parse_or(self) -> _Node:
        node = self._parse_and()
        while self._accept_keyword("or"):
            node = _Or(node, self._parse_and())
        return node

    def _parse_and(self) -> _Node:
        node = self._parse_primary()
        while self._accept_keyword("and"):
            node = _And(node, self._parse_primary())
        return node

    def _parse_primary(self) -> _Node:
        token = self._next()
        if token.kind == "lparen":
            node = self._parse_or()
            closing = self._next()
            if closing.kind != "rparen":
                raise self._error(f"expected ')' at {closing.pos}")
            return node
        if token.kind != "ident" or token.text in ("and", "or", "between"):
            raise self._error(f"expected attribute name at {token.pos}")
        return self._parse_comparison(token.text)

    def _parse_comparison(self, attribute: str) -> _Comparison:
        op_token = self._next()
        if op_token.kind == "op":
            op = "==" if op_token.text == "=" else op_token.text
        elif op_token.kind == "ident" and op_token.text == "between":
            op = "between"
        else:
            raise self._error(f"expected operator at {op_token.pos}")

        value_token = self._next()
        if op == "between":
            if value_token.kind != "range":
                raise self._error(f"'between' needs a range like 1:5 at {value_token.pos}")
            return _Comparison(attribute, op, value_token.text)

        if value_token.kind == "string":
            value = _ESCAPE_RE.sub(r"\1", value_token.text[1:-1])
        elif value_token.kind == "number":
            value = value_token.text
        else:
            raise self._error(f"expected a value at {value_token.pos}")

        pattern = None
        if op in ("=~", "!~"):
            try:
                pattern = re.compile(value, re.IGNORECASE)
            except re.error as exc:
                raise self._error(f"bad regular expression {value!r}: {exc}") from exc
        return _Comparison(attribute, op, value, pattern)


def _evaluate_comparison(node: _Comparison, source: AttributeSource) -> bool:
    if not source.has_attribute(node.attribute):
        logger.debug("Attribute %r not available, comparison is false", node.attribute)
        return False
    actual = source.get_attribute(node.attribute)
    op = node.op
    if op == "==":
        return actual == node.value
    if op == "!=":
        return actual != node.value
    if op == "=~":
        return node.pattern.search(actual) is not None
    if op == "!~":
        return node.pattern.search(actual) is None
    if op == "#":
        return node.value in actual.split()
    if op == "!#":
        return node.value not in actual.split()
    if op == "between":
        low, high = sorted(int(part) for part in node.value.rsplit(":", 1))
        return low <= _to_int(actual) <= high
    if op in _NUMERIC_OPS:
        left, right = _to_int(actual), _to_int(node.value)
        if op == "<":
            return left < right
        if op == ">":
            return left > right
        if op == "<=":
            return left <= right
        return left >= right
    raise ValueError(f"unknown operator {op!r}")


def _evaluate(node: _Node, source: AttributeSource) -> bool:
    if isinstance(node, _And):
        return _evaluate(node.left, source) and _evaluate(node.right, source)
    if isinstance(node, _Or):
        return _evaluate(node.left, source) or _evaluate(node.right, source)
    return _evaluate_comparison(node, source)


class Predicate:
    """A compiled filter expression."""

    def __init__(self, expression: str, tree: _Node) -> None:
        self.expression = expression
        self._tree = tree

    def matches(self, source: AttributeSource) -> bool:
        return _evaluate(self._tree, source)

    def __repr__(self) -> str:
        return f"Predicate({self.expression!r})"


def compile_predicate(expression: str) -> Predicate:
    """Compile an expression. Raises PredicateSyntaxError if it is malformed."""
    return Predicate(expression, _Parser(expression).parse())
