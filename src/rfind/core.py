from __future__ import annotations

import os
import stat
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum

from .diagnostics import Debug, warn
from .expressions import Node, evaluate


class SymlinkPolicy(Enum):
    NO_SYMLINKS = "P"  # default, never follow
    EXPLICIT_SYMLINKS = "H"  # follow only paths given on the command line
    ALL_SYMLINKS = "L"


@dataclass(frozen=True)
class Options:
    symlinks: SymlinkPolicy = SymlinkPolicy.NO_SYMLINKS
    debug: Debug = field(default_factory=Debug)


def follows_symlinks(policy: SymlinkPolicy, explicit: bool) -> bool:
    return policy is SymlinkPolicy.ALL_SYMLINKS or (
        explicit and policy is SymlinkPolicy.EXPLICIT_SYMLINKS
    )


def resolve_metadata(path: str, policy: SymlinkPolicy, explicit: bool = False) -> os.stat_result:
    """stat() or lstat() ``path`` according to the symlink policy; OSError propagates."""
    if follows_symlinks(policy, explicit):
        return os.stat(path)
    return os.lstat(path)


@dataclass
class DirStackEntry:
    inode: int
    dev: int
    # path the directory was reached by (the symlink, not its target)
    name: str
    entries: Iterator[os.DirEntry]


class DirStack:
    """Directories currently being descended, innermost last."""

    def __init__(self) -> None:
        self._entries: list[DirStackEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DirStackEntry]:
        return iter(self._entries)

    @property
    def top(self) -> DirStackEntry:
        return self._entries[-1]

    def push(self, st: os.stat_result, name: str, entries: Iterator[os.DirEntry]) -> None:
        self._entries.append(DirStackEntry(st.st_ino, st.st_dev, name, entries))

    def pop(self) -> DirStackEntry:
        entry = self._entries.pop()
        entry.entries.close()  # type: ignore[attr-defined]
        return entry

    def find(self, st: os.stat_result) -> DirStackEntry | None:
        """Return the ancestor directory that is the same file as ``st``, if any."""
        for entry in reversed(self._entries):
            if entry.inode == st.st_ino and entry.dev == st.st_dev:
                return entry
        return None

    def clear(self) -> None:
        while self._entries:
            self.pop()


def _root_name(path: str) -> str:
    return os.path.basename(path.rstrip(os.sep)) or path


class Traversal:
    """Depth-first walk evaluating one expression tree on every visited file."""

    def __init__(self, tree: Node, options: Options) -> None:
        self.tree = tree
        self.options = options
        self.stack = DirStack()

    @property
    def debug(self) -> Debug:
        return self.options.debug

    def metadata(self, path: str, explicit: bool = False) -> os.stat_result | None:
        policy = self.options.symlinks
        if self.debug.on("stat"):
            self.debug.log("stat", f"{'stat' if follows_symlinks(policy, explicit) else 'lstat'} {path}")
        try:
            return resolve_metadata(path, policy, explicit)
        except OSError as e:
            warn(f"unable to get file {path} information ({e.strerror}).")
            return None

    def visit(self, path: str, name: str, st: os.stat_result) -> bool:
        return evaluate(path, name, st, self.tree)

    def enter(self, path: str, st: os.stat_result) -> bool:
        try:
            it = os.scandir(path)
        except OSError as e:
            warn(f"cannot read directory '{path}': {e.strerror}")
            return False
        self.stack.push(st, path, it)
        self.debug.log("search", f"enter {path} (inode {st.st_ino}, depth {len(self.stack)})")
        return True

    def leave(self) -> None:
        entry = self.stack.pop()
        self.debug.log("search", f"leave {entry.name}")

    def walk_root(self, root: str) -> bool:
        """Traverse one command line path; False if the path itself could not be processed."""
        st = self.metadata(root, explicit=True)
        if st is None:
            return False
        self.visit(root, _root_name(root), st)
        if not stat.S_ISDIR(st.st_mode):
            return True
        if not self.enter(root, st):
            return False

        try:
            while self.stack:
                top = self.stack.top
                try:
                    entry = next(top.entries)
                except StopIteration:
                    self.leave()
                    continue
                except OSError as e:
                    warn(f"error reading '{top.name}': {e.strerror}")
                    self.leave()
                    continue

                path = os.path.join(top.name, entry.name)
                child = self.metadata(path)
                if child is None:
                    continue
                ancestor = self.stack.find(child)
                if ancestor is not None:
                    warn(
                        f"File system loop detected; '{path}' is part of the same "
                        f"file system loop as '{ancestor.name}'."
                    )
                    continue

                self.visit(path, entry.name, child)
                if stat.S_ISDIR(child.st_mode):
                    self.enter(path, child)
        finally:
            self.stack.clear()
        return True


def search(roots: Sequence[str], tree: Node, options: Options | None = None) -> list[str]:
    """Evaluate ``tree`` on every file below ``roots``; returns the roots that failed."""
    if not roots:
        roots = ["."]
    traversal = Traversal(tree, options or Options())
    return [root for root in roots if not traversal.walk_root(root)]
