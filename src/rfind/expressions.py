"""Expression tree: group, test and action nodes, their construction and evaluation.

Nodes are built bottom-up by the parser. Evaluation never mutates the tree; AND and
OR short-circuit exactly like find does, so a right operand with side effects (an
action) only runs when the left operand did not already decide the result.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .terminals import Arity, Terminal

# first characters of tokens that belong to the expression grammar itself
TOKEN_STARTS = ("-", "!", "(", ")")


class ParseError(ValueError):
    pass


class MissingArgument(ParseError):
    pass


class InvalidArgument(ParseError):
    pass


class Operator(Enum):
    # values are the binding strength: NOT > AND > OR
    OR = 1
    AND = 2
    NOT = 3

    @property
    def precedence(self) -> int:
        return self.value

    @property
    def unary(self) -> bool:
        return self is Operator.NOT

    @property
    def token(self) -> str:
        return _OPERATOR_TOKENS[self]


_OPERATOR_TOKENS = {Operator.OR: "-o", Operator.AND: "-a", Operator.NOT: "!"}


@dataclass(eq=False)
class Group:
    op: Operator
    left: Optional[Node] = None
    right: Optional[Node] = None


@dataclass(eq=False)
class Test:
    __test__ = False  # not a pytest class

    terminal: Terminal
    argument: Optional[str] = None


@dataclass(eq=False)
class Action:
    terminal: Terminal
    argument: Optional[str] = None


Node = Union[Group, Test, Action]


def looks_like_token(arg: str) -> bool:
    return arg.startswith(TOKEN_STARTS)


def _check_argument(terminal: Terminal, kind: str, raw: str | None) -> str | None:
    if terminal.arity is Arity.MANDATORY:
        if raw is None or looks_like_token(raw):
            raise MissingArgument(f"missing argument for -{terminal.id} {kind}.")
    elif raw is None or looks_like_token(raw):
        # optional or no argument: the next token belongs to the expression
        return None
    elif terminal.arity is Arity.NONE:
        raise InvalidArgument(f"invalid argument '{raw}' for -{terminal.id} {kind}.")

    if terminal.validate is not None:
        try:
            terminal.validate(raw)
        except ValueError as e:
            raise InvalidArgument(f"invalid argument '{raw}' for -{terminal.id} {kind}: {e}") from e
    return raw


def new_group(op: Operator, left: Node | None = None, right: Node | None = None) -> Group:
    if op.unary and right is not None:
        raise ValueError(f"operator {op.token} takes a single operand")
    return Group(op, left, right)


def new_test(terminal: Terminal, raw_arg: str | None = None) -> Test:
    """Create a test leaf, taking ``raw_arg`` as its argument if the terminal's arity allows.

    The caller consumes the argument token only when the returned node's ``argument``
    is not None.
    """
    return Test(terminal, _check_argument(terminal, "test", raw_arg))


def new_action(terminal: Terminal, raw_arg: str | None = None) -> Action:
    return Action(terminal, _check_argument(terminal, "action", raw_arg))


def evaluate(path: str, name: str, st: os.stat_result, node: Node) -> bool:
    if isinstance(node, Test):
        return bool(node.terminal.callback(path, name, st, node.argument))
    if isinstance(node, Action):
        return bool(node.terminal.callback(path, node.argument))

    assert node.left is not None
    left = evaluate(path, name, st, node.left)
    if node.op is Operator.NOT:
        return not left
    if node.op is Operator.AND and not left:
        return False
    if node.op is Operator.OR and left:
        return True
    assert node.right is not None
    return evaluate(path, name, st, node.right)


def iter_nodes(node: Node | None) -> Iterator[Node]:
    """Yield every node of the tree in post-order (children before their group)."""
    if node is None:
        return
    if isinstance(node, Group):
        yield from iter_nodes(node.left)
        yield from iter_nodes(node.right)
    yield node


def contains_action(node: Node | None) -> bool:
    return any(isinstance(n, Action) for n in iter_nodes(node))


def release(node: Node | None) -> int:
    """Unlink the tree post-order and return how many nodes were released."""
    if node is None:
        return 0
    count = 1
    if isinstance(node, Group):
        count += release(node.left) + release(node.right)
        node.left = node.right = None
    return count


def format_tree(node: Node | None) -> str:
    if node is None:
        return ""
    if isinstance(node, Group):
        if node.op.unary:
            return f"{node.op.token} {format_tree(node.left)}"
        return f"( {format_tree(node.left)} {node.op.token} {format_tree(node.right)} )"
    if node.argument is None:
        return f"-{node.terminal.id}"
    return f"-{node.terminal.id} {node.argument}"
