"""Grid adapter interface.

The height map never does grid pixel math itself: cell outlines, fill
adjacency and pixel/position conversion all come from a ``GridAdapter``
supplied by the host application. ``SquareGrid`` is a minimal adapter for
square lattices, used by the command line tool and the tests.
"""

from __future__ import annotations

import enum
from typing import Protocol

from .types import Point, Position


class GridKind(enum.Enum):
    SQUARE = "square"
    HEX = "hex"
    GRIDLESS = "gridless"


class GridAdapter(Protocol):
    kind: GridKind
    size: float  # cell height in pixels
    width: float  # cell width in pixels; wider than size on hex lattices

    def cell_polygon(self, position: Position) -> list[Point]:
        """Pixel-space vertices of one cell, clockwise on screen."""
        ...

    def neighbors(self, position: Position) -> list[Position]:
        """Cells adjacent for flood-fill purposes."""
        ...

    def position_to_pixels(self, position: Position) -> Point:
        """Top-left pixel of a cell."""
        ...

    def pixels_to_position(self, x: float, y: float) -> Position:
        ...


class SquareGrid:
    kind = GridKind.SQUARE

    def __init__(self, size: float) -> None:
        self.size = size
        self.width = size

    def cell_polygon(self, position: Position) -> list[Point]:
        x, y = self.position_to_pixels(position)
        s = self.size
        return [(x, y), (x + s, y), (x + s, y + s), (x, y + s)]

    def neighbors(self, position: Position) -> list[Position]:
        # Orthogonal only; diagonal cells do not share an edge.
        row, col = position
        return [(row - 1, col), (row, col - 1), (row, col + 1), (row + 1, col)]

    def position_to_pixels(self, position: Position) -> Point:
        row, col = position
        return (col * self.size, row * self.size)

    def pixels_to_position(self, x: float, y: float) -> Position:
        return (int(y // self.size), int(x // self.size))
