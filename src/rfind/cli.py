from __future__ import annotations

import contextlib
import sys
from collections.abc import Sequence

from .core import Options, SymlinkPolicy, search
from .diagnostics import DEBUG_CATEGORIES, PROG, Debug, parse_debug, warn
from .expressions import release
from .parser import GlobalOptionRequested, parse_expression
from .terminals import ACTIONS, TESTS

VERSION = f"{PROG} 1.0.0"

_SYMLINK_FLAGS = {
    "-P": SymlinkPolicy.NO_SYMLINKS,
    "-L": SymlinkPolicy.ALL_SYMLINKS,
    "-H": SymlinkPolicy.EXPLICIT_SYMLINKS,
}

# first characters that end the path list
_EXPRESSION_STARTS = ("-", "!", "(")


class OptionError(ValueError):
    pass


class DebugHelpRequested(GlobalOptionRequested):
    def __init__(self) -> None:
        super().__init__("D help")


def help_text() -> str:
    lines = [
        f"Usage: {PROG} [-H] [-L] [-P] [-D debugopts] [path...] [expression]",
        "",
        "Options (the last of -H, -L and -P wins):",
        "  -P    Never follow symbolic links. This is the default behavior.",
        "  -L    Follow symbolic links.",
        "  -H    Follow symbolic links only for the paths given on the command line.",
        f"  -D    Print debug information for the listed categories: {', '.join(DEBUG_CATEGORIES)}.",
        "",
        "Default path is the current directory; default expression is -print.",
        "Expression may consist of: operators, tests, and actions.",
        "",
        "Operators (decreasing precedence; -and is implicit where no others are given):",
        "    ( EXPR )",
        "    ! EXPR  -not EXPR",
        "    EXPR1 -a EXPR2  EXPR1 -and EXPR2",
        "    EXPR1 -o EXPR2  EXPR1 -or EXPR2",
        "",
        "Tests:",
    ]
    out = "\n".join(lines) + "\n"
    out += "".join(t.help for t in TESTS)
    out += "\nActions:\n"
    out += "".join(a.help for a in ACTIONS)
    return out


def global_option(name: str) -> int:
    """Handle a ``--long`` option; all of them end the run."""
    if name == "help":
        sys.stdout.write(help_text())
        return 0
    if name == "version":
        print(VERSION)
        return 0
    warn(f"unknown option --{name}")
    return 1


def parse_options(argv: Sequence[str]) -> tuple[Options, int]:
    """Consume the leading global options; returns them and the index of the next token."""
    policy = SymlinkPolicy.NO_SYMLINKS
    debug = Debug()
    i = 0
    while i < len(argv) and argv[i].startswith("-"):
        a = argv[i]
        if a.startswith("--"):
            raise GlobalOptionRequested(a[2:])
        if a in _SYMLINK_FLAGS:
            policy = _SYMLINK_FLAGS[a]
        elif a == "-D":
            i += 1
            if i >= len(argv):
                raise OptionError("missing argument to -D")
            if argv[i] == "help":
                raise DebugHelpRequested()
            try:
                debug = parse_debug(argv[i])
            except ValueError as e:
                raise OptionError(str(e)) from e
        else:
            break
        i += 1
    return Options(symlinks=policy, debug=debug), i


def parse_paths(argv: Sequence[str], pos: int) -> tuple[list[str], int]:
    paths: list[str] = []
    while pos < len(argv) and not argv[pos].startswith(_EXPRESSION_STARTS):
        paths.append(argv[pos])
        pos += 1
    return paths or ["."], pos


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)

    try:
        opts, pos = parse_options(args)
        paths, pos = parse_paths(args, pos)
        tree = parse_expression(args[pos:], debug=opts.debug)
    except DebugHelpRequested:
        print(f"Valid arguments for -D:\n{', '.join(DEBUG_CATEGORIES)}, help")
        return 0
    except GlobalOptionRequested as e:
        return global_option(e.option)
    except ValueError as e:
        warn(str(e))
        return 1

    try:
        failed = search(paths, tree, opts)
        sys.stdout.flush()
    except BrokenPipeError:
        with contextlib.suppress(Exception):
            sys.stdout.close()
        return 0
    except KeyboardInterrupt:
        return 130
    finally:
        release(tree)

    return 1 if failed else 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
