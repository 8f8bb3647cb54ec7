"""Append-only, session-scoped operation log."""

from __future__ import annotations

import threading
from typing import Iterator, List, Tuple


class OperationLog:
    """Ordered human-readable lines accumulated across pipeline runs.

    Lines can only be appended. A fresh session starts with a fresh log.
    """

    def __init__(self) -> None:
        self._lines: List[str] = []
        self._lock = threading.Lock()

    def append(self, line: str) -> None:
        """Append one line; embedded newlines are split into separate lines."""
        self.extend(line)

    def extend(self, text: str) -> None:
        """Append tool output verbatim, one entry per line."""
        if not text:
            return
        lines = text.splitlines()
        with self._lock:
            self._lines.extend(lines)

    @property
    def lines(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._lines)

    def tail(self, since: int) -> Tuple[str, ...]:
        """Return the lines appended after position ``since``."""
        with self._lock:
            return tuple(self._lines[since:])

    def text(self) -> str:
        lines = self.lines
        return "\n".join(lines) + ("\n" if lines else "")

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(self.lines)


__all__ = ["OperationLog"]
