"""Error hierarchy for height map operations."""

from __future__ import annotations


class HeightMapError(Exception):
    """Base error for height map operations."""


class CellValidationError(HeightMapError, ValueError):
    """Paint request rejected before any cell was changed."""


class GeometryConstructionError(HeightMapError):
    """Shape recomputation could not build a consistent set of shapes."""


class NonManifoldEdgeError(GeometryConstructionError):
    """An edge loop could not be closed because no continuing edge exists.

    Attributes:
        vertex: The loop endpoint with no outgoing edge.
    """

    def __init__(self, vertex: tuple[float, float]) -> None:
        self.vertex = vertex
        super().__init__(
            f"Invalid edge graph: no edge continues from vertex "
            f"({vertex[0]}, {vertex[1]})"
        )


class OrphanHoleError(GeometryConstructionError):
    """A hole polygon could not be assigned to a parent boundary."""
