from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any

PROG = "rfind"

DEBUG_CATEGORIES = ("search", "stat", "tree", "all")


def eprint(*args: Any, **kwargs: Any) -> None:
    print(*args, file=sys.stderr, **kwargs)


def warn(msg: str) -> None:
    eprint(f"{PROG}: {msg}")


@dataclass
class Debug:
    cats: set[str] = field(default_factory=set)

    def on(self, cat: str) -> bool:
        return "all" in self.cats or cat in self.cats

    def log(self, cat: str, msg: str) -> None:
        if self.on(cat):
            eprint(f"[DEBUG:{cat}] {msg}")


def parse_debug(value: str) -> Debug:
    """Build a Debug from a comma separated ``-D`` list; raises ValueError on unknown names."""
    cats = {v.strip() for v in value.split(",") if v.strip()}
    if not cats:
        raise ValueError("empty debug option list")
    unknown = sorted(cats.difference(DEBUG_CATEGORIES))
    if unknown:
        raise ValueError(f"unknown debug option: {', '.join(unknown)}")
    return Debug(cats)
