"""Registries of the expression terminals: tests (predicates) and actions (effects).

A terminal is looked up by the command line name without the leading dash. Adding a
new one means writing its callback and appending one ``Terminal`` row to ``TESTS`` or
``ACTIONS``; the parser and the help text pick it up from there.
"""

from __future__ import annotations

import fnmatch
import os
import stat
import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union


class Arity(Enum):
    NONE = "none"
    OPTIONAL = "optional"
    MANDATORY = "mandatory"


# (path, name, metadata, argument) -> matched
TestCallback = Callable[[str, str, os.stat_result, Optional[str]], bool]
# (path, argument) -> succeeded
ActionCallback = Callable[[str, Optional[str]], bool]


@dataclass(frozen=True)
class Terminal:
    id: str
    callback: Union[TestCallback, ActionCallback]
    arity: Arity = Arity.NONE
    help: str = ""
    # raises ValueError when the argument cannot be used
    validate: Optional[Callable[[str], None]] = None


class Registry:
    """Closed, ordered table of terminals of one kind ("test" or "action")."""

    def __init__(self, kind: str, terminals: Iterable[Terminal]) -> None:
        self.kind = kind
        self._terminals: dict[str, Terminal] = {}
        for terminal in terminals:
            if terminal.id in self._terminals:
                raise ValueError(f"duplicate {kind} -{terminal.id}")
            self._terminals[terminal.id] = terminal

    def lookup(self, id: str) -> Terminal | None:
        return self._terminals.get(id)

    def __contains__(self, id: object) -> bool:
        return id in self._terminals

    def __iter__(self) -> Iterator[Terminal]:
        return iter(self._terminals.values())


# ------------------------- Tests -------------------------


def _translate(pattern: str) -> str:
    """Turn shell backslash escapes into fnmatch syntax: ``\\*`` becomes ``[*]``."""
    out = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "\\" and i + 1 < len(pattern):
            i += 1
            c = pattern[i]
            if c in "*?[]":
                c = f"[{c}]"
        out.append(c)
        i += 1
    return "".join(out)


def match_name(path: str, name: str, st: os.stat_result, arg: str | None) -> bool:
    return fnmatch.fnmatchcase(name, _translate(arg or ""))


def match_iname(path: str, name: str, st: os.stat_result, arg: str | None) -> bool:
    return fnmatch.fnmatchcase(name.lower(), _translate((arg or "").lower()))


def is_empty(path: str, name: str, st: os.stat_result, arg: str | None) -> bool:
    if stat.S_ISDIR(st.st_mode):
        # a directory is empty when scandir yields nothing (it never yields . and ..)
        try:
            with os.scandir(path) as it:
                for _ in it:
                    return False
        except OSError:
            return False
        return True
    return st.st_size == 0


_TYPE_CHECKS = {
    "b": stat.S_ISBLK,
    "c": stat.S_ISCHR,
    "d": stat.S_ISDIR,
    "p": stat.S_ISFIFO,
    "f": stat.S_ISREG,
    "l": stat.S_ISLNK,
    "s": stat.S_ISSOCK,
}


def validate_type(arg: str) -> None:
    if not arg:
        raise ValueError("empty file type")
    for t in arg:
        if t not in _TYPE_CHECKS:
            raise ValueError(f"unknown file type '{t}'")


def match_type(path: str, name: str, st: os.stat_result, arg: str | None) -> bool:
    return any(_TYPE_CHECKS[t](st.st_mode) for t in arg or "")


def always_true(path: str, name: str, st: os.stat_result, arg: str | None) -> bool:
    return True


def always_false(path: str, name: str, st: os.stat_result, arg: str | None) -> bool:
    return False


# ------------------------- Actions -------------------------


def action_print(path: str, arg: str | None) -> bool:
    sys.stdout.write(path + "\n")
    return True


def action_print0(path: str, arg: str | None) -> bool:
    sys.stdout.write(path + "\0")
    return True


TESTS = Registry(
    "test",
    (
        Terminal("empty", is_empty, Arity.NONE, "    -empty\n            The file is empty.\n"),
        Terminal(
            "iname",
            match_iname,
            Arity.MANDATORY,
            "    -iname PATTERN\n            Same as -name, but the match is case insensitive.\n",
        ),
        Terminal(
            "name",
            match_name,
            Arity.MANDATORY,
            "    -name PATTERN\n"
            "            Base of the file name (the path with the leading directories\n"
            "            removed) matches the shell PATTERN. The metacharacters are\n"
            "            `*', `?' and `[]'.\n",
        ),
        Terminal(
            "type",
            match_type,
            Arity.MANDATORY,
            "    -type [bcdpfls]\n"
            "            File is of any of the listed types: block (b), character (c),\n"
            "            directory (d), named pipe (p), regular file (f), symbolic\n"
            "            link (l) or socket (s).\n",
            validate=validate_type,
        ),
        Terminal("true", always_true, Arity.NONE, "    -true\n            Always true.\n"),
        Terminal("false", always_false, Arity.NONE, "    -false\n            Always false.\n"),
    ),
)

ACTIONS = Registry(
    "action",
    (
        Terminal(
            "print0",
            action_print0,
            Arity.NONE,
            "    -print0\n"
            "            Print the full file name on the standard output, followed by a\n"
            "            null character.\n",
        ),
        Terminal(
            "print",
            action_print,
            Arity.NONE,
            "    -print\n"
            "            Print the full file name on the standard output, followed by a\n"
            "            newline. This is the default action when no action is given.\n",
        ),
    ),
)

PRINT = ACTIONS.lookup("print")
