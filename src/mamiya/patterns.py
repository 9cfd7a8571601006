"""
Command type filtering.

An agent may be restricted to a subset of command types.  Each filter entry
is one of:
- an exact string: ``"fetch"`` matches only ``fetch``
- a glob string: ``"pkg-*"`` matches ``pkg-fetch``, ``?`` matches one char
- a compiled regex: matches when ``search`` finds it anywhere in the type

Examples:
    EventFilter(["fetch"]).accepts("fetch")  # True
    EventFilter(["fetch"]).accepts("clean")  # False
    EventFilter([re.compile("^pkg")]).accepts("pkg-remove")  # True
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import TypeAlias

FilterEntry: TypeAlias = str | re.Pattern[str]


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern (``*`` and ``?``) to an anchored regex.

    Example:
        p = compile_glob("pkg-*")
        p.match("pkg-fetch")  # Match
        p.match("task")  # No match
    """
    regex = ""
    for char in pattern:
        if char == "*":
            regex += ".*"
        elif char == "?":
            regex += "."
        else:
            regex += re.escape(char)
    return re.compile(f"^{regex}$")


def _is_glob(pattern: str) -> bool:
    return "*" in pattern or "?" in pattern


class EventFilter:
    """Immutable, ordered set of command type matchers.

    Example:
        only_fetch = EventFilter(["fetch", "pkg-*"])
        only_fetch.accepts("pkg-remove")  # True
    """

    __slots__ = ("_entries", "_compiled")

    def __init__(self, entries: Iterable[FilterEntry]) -> None:
        self._entries: tuple[FilterEntry, ...] = tuple(entries)
        self._compiled: tuple[str | re.Pattern[str], ...] = tuple(
            compile_glob(entry) if isinstance(entry, str) and _is_glob(entry) else entry
            for entry in self._entries
        )

    @property
    def entries(self) -> tuple[FilterEntry, ...]:
        return self._entries

    def accepts(self, command_type: str) -> bool:
        """Return True if any entry matches *command_type*."""
        for matcher in self._compiled:
            if isinstance(matcher, re.Pattern):
                if matcher.search(command_type):
                    return True
            elif matcher == command_type:
                return True
        return False

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"EventFilter({list(self._entries)!r})"
