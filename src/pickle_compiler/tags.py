"""Tag expressions used to scope hooks to scenarios.

Supports the Cucumber tag expression grammar:

    expr     := and_expr ("or" and_expr)*
    and_expr := not_expr ("and" not_expr)*
    not_expr := "not" not_expr | primary
    primary  := TAG | "(" expr ")"

A legacy comma separated list (``@a,@b``) is read as ``@a or @b``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

TOKEN_RE = re.compile(r"\(|\)|,|[^\s(),]+")


class TagExpressionError(ValueError):
    pass


class Node:
    def evaluate(self, tags: frozenset[str]) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class Tag(Node):
    name: str

    def evaluate(self, tags: frozenset[str]) -> bool:
        return self.name in tags


@dataclass(frozen=True)
class Not(Node):
    operand: Node

    def evaluate(self, tags: frozenset[str]) -> bool:
        return not self.operand.evaluate(tags)


@dataclass(frozen=True)
class And(Node):
    left: Node
    right: Node

    def evaluate(self, tags: frozenset[str]) -> bool:
        return self.left.evaluate(tags) and self.right.evaluate(tags)


@dataclass(frozen=True)
class Or(Node):
    left: Node
    right: Node

    def evaluate(self, tags: frozenset[str]) -> bool:
        return self.left.evaluate(tags) or self.right.evaluate(tags)


@dataclass(frozen=True)
class TagExpression:
    """A parsed tag expression."""

    text: str
    root: Node

    def evaluate(self, tags: Iterable[str]) -> bool:
        return self.root.evaluate(frozenset(tags))


class _ExpressionParser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = TOKEN_RE.findall(text)
        self.pos = 0

    def parse(self) -> Node:
        if not self.tokens:
            raise TagExpressionError("empty tag expression")
        node = self._or()
        if self.pos < len(self.tokens):
            raise TagExpressionError(f"unexpected '{self.tokens[self.pos]}'")
        return node

    def _or(self) -> Node:
        node = self._and()
        while self._peek() in ("or", ","):
            self.pos += 1
            node = Or(node, self._and())
        return node

    def _and(self) -> Node:
        node = self._not()
        while self._peek() == "and":
            self.pos += 1
            node = And(node, self._not())
        return node

    def _not(self) -> Node:
        if self._peek() == "not":
            self.pos += 1
            return Not(self._not())
        return self._primary()

    def _primary(self) -> Node:
        token = self._peek()
        if token is None:
            raise TagExpressionError("unexpected end of expression")
        self.pos += 1
        if token == "(":
            node = self._or()
            if self._peek() != ")":
                raise TagExpressionError("missing ')'")
            self.pos += 1
            return node
        if token.startswith("@") and len(token) > 1:
            return Tag(token)
        raise TagExpressionError(f"expected a tag, got '{token}'")

    def _peek(self) -> str | None:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None


def parse_tag_expression(text: str) -> TagExpression:
    """Parse a tag expression such as ``@slow and not @wip``."""
    return TagExpression(text=text.strip(), root=_ExpressionParser(text).parse())
