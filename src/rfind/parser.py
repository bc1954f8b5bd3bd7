"""Command line expression parser.

The infix token sequence is converted with an operator stack into a postfix list of
nodes (groups are appended with empty operand slots), and the postfix list is then
linked into the evaluation tree. Precedence is NOT > AND > OR, binary operators are
left associative, and two operands written next to each other are joined by AND.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Optional, Union

from .diagnostics import Debug
from .expressions import (
    Group,
    Node,
    Operator,
    ParseError,
    contains_action,
    format_tree,
    new_action,
    new_group,
    new_test,
)
from .terminals import ACTIONS, PRINT, TESTS, Registry

OPERATOR_TOKENS = {
    "!": Operator.NOT,
    "-not": Operator.NOT,
    "-a": Operator.AND,
    "-and": Operator.AND,
    "-o": Operator.OR,
    "-or": Operator.OR,
}

LBR = "("
RBR = ")"


class GlobalOptionRequested(Exception):
    """A ``--long`` option was met; the command line layer decides what it means."""

    def __init__(self, option: str) -> None:
        super().__init__(option)
        self.option = option


class Tokens:
    def __init__(self, items: Sequence[str]):
        self.items = items
        self.i = 0

    def peek(self) -> Optional[str]:
        if self.i < len(self.items):
            return self.items[self.i]
        return None

    def next(self) -> Optional[str]:
        if self.i < len(self.items):
            v = self.items[self.i]
            self.i += 1
            return v
        return None


class ExpressionParser:
    def __init__(self, tests: Registry = TESTS, actions: Registry = ACTIONS) -> None:
        self.tests = tests
        self.actions = actions
        self.operators: list[Union[Operator, str]] = []
        self.postfix: list[Node] = []
        self.expect_operand = True

    def parse(self, tokens: Tokens) -> list[Node]:
        """Fill and return the postfix list for the whole token stream."""
        while True:
            tok = tokens.next()
            if tok is None:
                break
            if tok.startswith("--"):
                raise GlobalOptionRequested(tok[2:])

            op = OPERATOR_TOKENS.get(tok)
            if op is Operator.NOT:
                self._operand_starts()
                # prefix operator: nothing on its left can be reduced yet
                self.operators.append(op)
            elif op is not None:
                if self.expect_operand:
                    raise ParseError(f"expected an expression before {tok}")
                self._push_binary(op)
                self.expect_operand = True
            elif tok == LBR:
                self._operand_starts()
                self.operators.append(LBR)
            elif tok == RBR:
                self._close_bracket()
            elif tok[:1] in ("!", "(", ")"):
                raise ParseError(f"invalid expression {tok}")
            else:
                self._terminal(tok, tokens)

        if self.expect_operand and (self.postfix or self.operators):
            raise ParseError("expected an expression at the end of input")
        while self.operators:
            top = self.operators.pop()
            if top == LBR:
                raise ParseError("missing ')'")
            self.postfix.append(new_group(top))
        return self.postfix

    def _operand_starts(self) -> None:
        if not self.expect_operand:
            self._push_binary(Operator.AND)
        self.expect_operand = True

    def _push_binary(self, op: Operator) -> None:
        while self.operators:
            top = self.operators[-1]
            if top == LBR or top.precedence < op.precedence:
                break
            self.postfix.append(new_group(self.operators.pop()))
        self.operators.append(op)

    def _close_bracket(self) -> None:
        if self.expect_operand:
            raise ParseError("expected an expression before ')'")
        while self.operators:
            top = self.operators.pop()
            if top == LBR:
                return
            self.postfix.append(new_group(top))
        raise ParseError("unexpected ')'")

    def _terminal(self, tok: str, tokens: Tokens) -> None:
        if not tok.startswith("-"):
            raise ParseError(f"invalid expression {tok}")
        name = tok[1:]
        test = self.tests.lookup(name)
        if test is not None:
            node: Node = new_test(test, tokens.peek())
        else:
            action = self.actions.lookup(name)
            if action is None:
                raise ParseError(f"invalid expression {tok}")
            node = new_action(action, tokens.peek())
        if node.argument is not None:
            tokens.next()
        self._operand_starts()
        self.postfix.append(node)
        self.expect_operand = False


def postfix_to_tree(postfix: Sequence[Node]) -> Node:
    """Link a postfix list into a tree; every group takes the operands preceding it."""
    operands: list[Node] = []
    for node in postfix:
        if isinstance(node, Group) and node.left is None:
            if node.op.unary:
                if not operands:
                    raise ParseError(f"missing operand for {node.op.token}")
                node.left = operands.pop()
            else:
                if len(operands) < 2:
                    raise ParseError(f"missing operand for {node.op.token}")
                node.right = operands.pop()
                node.left = operands.pop()
        operands.append(node)
    if len(operands) != 1:
        raise ParseError("malformed expression")
    return operands[0]


def format_postfix(postfix: Sequence[Node]) -> str:
    return " ".join(
        node.op.token if isinstance(node, Group) and node.left is None else format_tree(node)
        for node in postfix
    )


def parse_expression(
    argv: Sequence[str],
    tests: Registry = TESTS,
    actions: Registry = ACTIONS,
    debug: Debug | None = None,
) -> Node:
    """Parse expression tokens into an evaluation tree.

    An empty token list yields the bare ``-print`` action; a tree without any action
    is wrapped as ``( tree -a -print )``. Raises ParseError (or one of its subclasses)
    on the first problem, and GlobalOptionRequested for ``--long`` tokens.
    """
    assert PRINT is not None
    parser = ExpressionParser(tests, actions)
    postfix = parser.parse(Tokens(argv))
    if not postfix:
        return new_action(PRINT)

    if debug is not None:
        debug.log("tree", f"postfix: {format_postfix(postfix)}")
    tree = postfix_to_tree(postfix)
    if not contains_action(tree):
        tree = new_group(Operator.AND, tree, new_action(PRINT))
    if debug is not None:
        debug.log("tree", f"tree: {format_tree(tree)}")
    return tree
