"""Sparse cell store with bounded undo history.

The store maps grid positions to terrain assignments. It is kept sorted
row-major then column-major after every mutation, which the shape builder
relies on for deterministic output. Mutations report which positions
actually changed; painting a cell with the attributes it already has is not
a change and records no history.

The store does not persist itself; ``height_map.HeightMap`` owns one and
writes it out after successful mutations.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .errors import CellValidationError
from .grid import GridAdapter
from .history import History, HistoryEntry, Removed, Upserted
from .types import Canvas, CellAssignment, Position, TerrainCatalog


@dataclass(frozen=True)
class StoreCheckpoint:
    """Cells and history captured by ``CellStore.checkpoint``."""

    cells: dict[Position, CellAssignment]
    history: History


class CellStore:
    def __init__(
        self,
        catalog: TerrainCatalog,
        max_history: int = 10,
        cells: Iterable[CellAssignment] = (),
    ) -> None:
        self._catalog = catalog
        self._cells: dict[Position, CellAssignment] = {}
        self.history = History(max_history)
        self.load(cells)

    def __len__(self) -> int:
        return len(self._cells)

    @property
    def cells(self) -> list[CellAssignment]:
        return list(self._cells.values())

    def load(self, cells: Iterable[CellAssignment]) -> None:
        """Replace the whole store without recording history.

        A later assignment for the same position wins.
        """
        self._cells = {c.position: c for c in cells}
        self._sort()

    def get(self, position: Position) -> CellAssignment | None:
        return self._cells.get(position)

    def checkpoint(self) -> StoreCheckpoint:
        """Capture the current cells and history for a later ``restore``.

        Assignments are shared with the store, not copied; the store replaces
        assignments rather than mutating them.
        """
        return StoreCheckpoint(dict(self._cells), self.history.copy())

    def restore(self, checkpoint: StoreCheckpoint) -> None:
        """Return to a checkpoint exactly, including evicted history."""
        self._cells = dict(checkpoint.cells)
        self.history = checkpoint.history.copy()

    def set_many(
        self,
        positions: Iterable[Position],
        terrain_type_id: str,
        height: float = 1.0,
        elevation: float = 0.0,
        overwrite: bool = True,
    ) -> list[Position]:
        """Paint the given cells.

        Raises CellValidationError, before touching any cell, if the terrain
        type is unknown or if it uses height and height/elevation are out of
        range.
        """
        terrain_type = self._catalog.get(terrain_type_id)
        if terrain_type is None:
            raise CellValidationError(
                f"Unknown terrain type {terrain_type_id!r}"
            )
        if terrain_type.uses_height and height <= 0:
            raise CellValidationError(
                "`height` must be a positive, non-zero number."
            )
        if terrain_type.uses_height and elevation < 0:
            raise CellValidationError(
                "`elevation` must be a positive number or zero."
            )

        entry = HistoryEntry()
        for position in positions:
            position = (int(position[0]), int(position[1]))
            existing = self._cells.get(position)
            if existing is not None and not overwrite:
                continue
            if existing is not None and existing.attributes == (
                terrain_type_id,
                height,
                elevation,
            ):
                continue
            entry.changes.append(Upserted(position, existing))
            self._cells[position] = CellAssignment(
                position, terrain_type_id, height, elevation
            )
        return self._commit(entry)

    def erase_many(self, positions: Iterable[Position]) -> list[Position]:
        entry = HistoryEntry()
        for position in positions:
            position = (int(position[0]), int(position[1]))
            existing = self._cells.pop(position, None)
            if existing is not None:
                entry.changes.append(Removed(position, existing))
        return self._commit(entry)

    def clear(self) -> bool:
        entry = HistoryEntry(
            [Removed(pos, cell) for pos, cell in self._cells.items()]
        )
        self._cells = {}
        return bool(self._commit(entry))

    def undo(self) -> bool:
        """Revert the newest history entry. False if there is none."""
        entry = self.history.pop()
        if entry is None:
            return False
        for change in reversed(entry.changes):
            if change.prior is None:
                self._cells.pop(change.position, None)
            else:
                self._cells[change.position] = change.prior
        self._sort()
        return True

    def purge(
        self, keep_terrain_type_id: Callable[[str], bool]
    ) -> list[CellAssignment]:
        """Drop assignments whose terrain type fails the predicate.

        Not recorded in history: purged cells reference terrain types that
        no longer exist and so could not be restored meaningfully.
        """
        purged = [
            c
            for c in self._cells.values()
            if not keep_terrain_type_id(c.terrain_type_id)
        ]
        for cell in purged:
            del self._cells[cell.position]
        return purged

    def flood_fill(
        self, start: Position, grid: GridAdapter, canvas: Canvas
    ) -> list[Position]:
        """Positions connected to ``start`` that share its exact attributes.

        An empty start cell fills the connected empty region. Neighbours lying
        entirely off the canvas, judged by the grid's cell width and height,
        are not visited.
        """
        start = (int(start[0]), int(start[1]))
        start_attrs = self._attributes_at(start)

        visited: set[Position] = set()
        queue: deque[Position] = deque([start])
        result: list[Position] = []
        while queue:
            position = queue.popleft()
            if position in visited:
                continue
            visited.add(position)

            if self._attributes_at(position) != start_attrs:
                continue
            result.append(position)

            for neighbor in grid.neighbors(position):
                x, y = grid.position_to_pixels(neighbor)
                if x + grid.width <= 0 or x >= canvas.width:
                    continue
                if y + grid.size <= 0 or y >= canvas.height:
                    continue
                if neighbor not in visited:
                    queue.append(neighbor)
        return result

    def _attributes_at(
        self, position: Position
    ) -> tuple[str, float, float] | None:
        cell = self._cells.get(position)
        return cell.attributes if cell is not None else None

    def _commit(self, entry: HistoryEntry) -> list[Position]:
        if not entry.changes:
            return []
        self.history.push(entry)
        self._sort()
        return entry.positions

    def _sort(self) -> None:
        self._cells = dict(sorted(self._cells.items()))
