"""Persistence sinks for the cell assignment list.

A sink stores and reloads the full list of cell assignments as plain
dictionaries (``CellAssignment.to_dict`` form). ``HeightMap`` writes to its
sink after every successful mutation and reads from it on ``reload``.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Protocol


class PersistenceSink(Protocol):
    def load(self) -> list[dict]:
        ...

    def store(self, cells: list[dict]) -> None:
        ...


class MemorySink:
    """Keeps the last stored list in memory. Useful for tests and tools."""

    def __init__(self, cells: list[dict] | None = None) -> None:
        self.cells: list[dict] = copy.deepcopy(cells or [])
        self.store_count = 0

    def load(self) -> list[dict]:
        return copy.deepcopy(self.cells)

    def store(self, cells: list[dict]) -> None:
        self.cells = copy.deepcopy(cells)
        self.store_count += 1


class JsonFileSink:
    """Stores the cell list as a JSON array in a file.

    A missing file loads as an empty list.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> list[dict]:
        if not self.path.exists():
            return []
        with open(self.path) as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(
                f"Cell data in {self.path} must be a JSON array, "
                f"got {type(data).__name__}"
            )
        return data

    def store(self, cells: list[dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(cells, f, indent=2)
            f.write("\n")
