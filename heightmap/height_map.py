"""The height map: one managed grid's cells, history and derived shapes.

``HeightMap`` is constructed explicitly with its collaborators (a grid
adapter, a terrain catalog, a persistence sink and the canvas extent) and
owns the cell store, its undo history and the cached shape list.

Every successful mutation:

  1. changes the cell store (recording one history entry),
  2. purges cells whose terrain type has left the catalog,
  3. recomputes the whole shape list from scratch, and
  4. writes the cell list to the persistence sink.

If step 3 raises ``GeometryConstructionError`` the store is restored to the
checkpoint taken before step 1, purged cells and evicted history included.
The previous shapes stay in place, nothing is written and the error
propagates.
Validation errors are raised by the store before anything changes.

Mutating calls must not interleave; callers serialize them per instance.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from .cells import CellStore
from .errors import GeometryConstructionError
from .flatten import flatten_regions
from .grid import GridAdapter
from .los import RayPoint, calculate_line_of_sight
from .persistence import PersistenceSink
from .shapes import build_shapes
from .types import (
    Canvas,
    CellAssignment,
    FlatRegion,
    HeightMapSettings,
    Position,
    Shape,
    ShapeRegions,
    TerrainCatalog,
)

logger = logging.getLogger(__name__)


class HeightMap:
    def __init__(
        self,
        grid: GridAdapter,
        catalog: TerrainCatalog,
        sink: PersistenceSink,
        canvas: Canvas,
        settings: HeightMapSettings | None = None,
    ) -> None:
        self.grid = grid
        self.catalog = catalog
        self.sink = sink
        self.canvas = canvas
        self.settings = settings or HeightMapSettings()
        self._store = CellStore(catalog, self.settings.max_history)
        self._shapes: list[Shape] = []
        self.reload()

    @property
    def shapes(self) -> list[Shape]:
        """The current shapes. The returned list is a copy."""
        return list(self._shapes)

    @property
    def cells(self) -> list[CellAssignment]:
        return self._store.cells

    @property
    def can_undo(self) -> bool:
        return len(self._store.history) > 0

    @property
    def history_size(self) -> int:
        return len(self._store.history)

    def reload(self) -> None:
        """Re-read the cells from the sink and recompute all shapes."""
        self._store.load(CellAssignment.from_dict(d) for d in self.sink.load())
        self._shapes = self._build_shapes()

    def get(self, position: Position) -> CellAssignment | None:
        return self._store.get(position)

    def compute_shapes(self) -> list[Shape]:
        """Recompute the shape list from the current cells and return it."""
        self._shapes = self._build_shapes()
        return self.shapes

    # -- Painting -------------------------------------------------------

    def paint_cells(
        self,
        positions: Iterable[Position],
        terrain_type_id: str,
        height: float = 1.0,
        elevation: float = 0.0,
        overwrite: bool = True,
    ) -> bool:
        """Paint cells. Returns True if anything changed."""
        return self._apply(
            lambda: self._store.set_many(
                positions, terrain_type_id, height, elevation, overwrite
            )
        )

    def fill_cells(
        self,
        start: Position,
        terrain_type_id: str,
        height: float = 1.0,
        elevation: float = 0.0,
    ) -> bool:
        """Paint the region connected to ``start`` that matches its attributes."""
        existing = self._store.get(start)
        if existing is not None and existing.attributes == (
            terrain_type_id,
            height,
            elevation,
        ):
            return False
        positions = self._store.flood_fill(start, self.grid, self.canvas)
        if not positions:
            return False
        return self.paint_cells(positions, terrain_type_id, height, elevation)

    def erase_cells(self, positions: Iterable[Position]) -> bool:
        """Erase painted cells. Returns True if any were painted."""
        return self._apply(lambda: self._store.erase_many(positions))

    def erase_fill_cells(self, start: Position) -> bool:
        positions = self._store.flood_fill(start, self.grid, self.canvas)
        if not positions:
            return False
        return self.erase_cells(positions)

    def clear(self) -> bool:
        return self._apply(self._store.clear)

    def undo(self) -> bool:
        """Revert the most recent mutation. False if there is no history."""
        return self._apply(self._store.undo)

    # -- Line of sight --------------------------------------------------

    def line_of_sight(
        self,
        p1: RayPoint,
        p2: RayPoint,
        include_no_height_terrain: bool = False,
    ) -> list[ShapeRegions]:
        """Shapes the ray p1 -> p2 passes through, with their inside regions.

        Points are (x, y, height) in canvas pixels. Results follow the order
        of ``shapes``; see ``calculate_line_of_sight``.
        """
        return calculate_line_of_sight(
            self._shapes,
            self.catalog,
            p1,
            p2,
            include_no_height_terrain=include_no_height_terrain,
            settings=self.settings,
        )

    @staticmethod
    def flatten_regions(shape_regions: list[ShapeRegions]) -> list[FlatRegion]:
        return flatten_regions(shape_regions)

    # -- Internals ------------------------------------------------------

    def _build_shapes(self) -> list[Shape]:
        return build_shapes(
            self._store.cells, self.grid, self.settings.hole_probe_offset
        )

    def _apply(self, mutate: Callable[[], object]) -> bool:
        """Run one store mutation, then purge, rebuild shapes and save.

        ``mutate`` returns something falsy when nothing changed.
        """
        checkpoint = self._store.checkpoint()
        if not mutate():
            return False
        self._purge_unknown_terrain()
        try:
            shapes = self._build_shapes()
        except GeometryConstructionError:
            self._store.restore(checkpoint)
            logger.warning(
                "Shape rebuild failed; cells and history restored"
            )
            raise
        self._shapes = shapes
        self._save_changes()
        return True

    def _purge_unknown_terrain(self) -> None:
        purged = self._store.purge(self.catalog.exists)
        if purged:
            logger.warning(
                "Removed %d cells whose terrain type no longer exists: %s",
                len(purged),
                sorted({c.terrain_type_id for c in purged}),
            )

    def _save_changes(self) -> None:
        self.sink.store([c.to_dict() for c in self._store.cells])
        logger.debug("Stored %d cells", len(self._store))
