"""Undo history for cell store mutations.

Every mutating call on the cell store records one ``HistoryEntry``: the list
of per-cell changes it made, each as a tagged variant holding the cell's
prior state. Undo pops the newest entry and applies the inverse of each
change. The stack is bounded; pushing beyond the bound evicts the oldest
entry first.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from .types import CellAssignment, Position


@dataclass(frozen=True)
class Upserted:
    """A cell was painted. ``prior`` is None if it was previously empty."""

    position: Position
    prior: CellAssignment | None


@dataclass(frozen=True)
class Removed:
    """A painted cell was erased."""

    position: Position
    prior: CellAssignment


CellChange = Upserted | Removed


@dataclass
class HistoryEntry:
    changes: list[CellChange] = field(default_factory=list)

    @property
    def positions(self) -> list[Position]:
        return [c.position for c in self.changes]

    def __len__(self) -> int:
        return len(self.changes)


class History:
    def __init__(
        self, max_entries: int = 10, entries: Iterable[HistoryEntry] = ()
    ) -> None:
        self.max_entries = max_entries
        self._entries: deque[HistoryEntry] = deque(entries, maxlen=max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def pop(self) -> HistoryEntry | None:
        if not self._entries:
            return None
        return self._entries.pop()

    def clear(self) -> None:
        self._entries.clear()

    def copy(self) -> History:
        """A new stack holding the same entries. Entries are not copied."""
        return History(self.max_entries, self._entries)
