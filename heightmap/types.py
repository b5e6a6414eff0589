"""Data types for the terrain height map and its JSON representation."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .geometry import LineSegment, Polygon

Position = tuple[int, int]  # (row, col)
Point = tuple[float, float]  # (x, y) in pixels, y pointing down


@dataclass
class CellAssignment:
    position: Position
    terrain_type_id: str
    height: float = 1.0
    elevation: float = 0.0

    @property
    def attributes(self) -> tuple[str, float, float]:
        return (self.terrain_type_id, self.height, self.elevation)

    @staticmethod
    def from_dict(d: dict) -> CellAssignment:
        row, col = d["position"]
        return CellAssignment(
            position=(int(row), int(col)),
            terrain_type_id=d["terrainTypeId"],
            height=d.get("height", 1.0),
            elevation=d.get("elevation", 0.0),
        )

    def to_dict(self) -> dict:
        return {
            "position": [self.position[0], self.position[1]],
            "terrainTypeId": self.terrain_type_id,
            "height": self.height,
            "elevation": self.elevation,
        }


class HeightCapability(enum.Enum):
    USES_HEIGHT = "uses_height"
    NO_HEIGHT = "no_height"


@dataclass
class TerrainType:
    id: str
    name: str | None = None
    capability: HeightCapability = HeightCapability.USES_HEIGHT

    @property
    def uses_height(self) -> bool:
        return self.capability is HeightCapability.USES_HEIGHT

    @staticmethod
    def from_dict(d: dict) -> TerrainType:
        return TerrainType(
            id=d["id"],
            name=d.get("name"),
            capability=(
                HeightCapability.USES_HEIGHT
                if d.get("usesHeight", True)
                else HeightCapability.NO_HEIGHT
            ),
        )

    def to_dict(self) -> dict:
        d: dict = {"id": self.id, "usesHeight": self.uses_height}
        if self.name:
            d["name"] = self.name
        return d


@dataclass
class TerrainCatalog:
    terrain_types: list[TerrainType] = field(default_factory=list)

    def get(self, terrain_type_id: str) -> TerrainType | None:
        for terrain_type in self.terrain_types:
            if terrain_type.id == terrain_type_id:
                return terrain_type
        return None

    def exists(self, terrain_type_id: str) -> bool:
        return self.get(terrain_type_id) is not None

    def uses_height(self, terrain_type_id: str) -> bool:
        """False for unknown terrain types as well as no-height ones."""
        terrain_type = self.get(terrain_type_id)
        return terrain_type is not None and terrain_type.uses_height

    @staticmethod
    def from_dict(d: dict) -> TerrainCatalog:
        return TerrainCatalog(
            terrain_types=[
                TerrainType.from_dict(t) for t in d.get("terrainTypes", [])
            ]
        )

    def to_dict(self) -> dict:
        return {"terrainTypes": [t.to_dict() for t in self.terrain_types]}


@dataclass
class Canvas:
    width: float
    height: float


@dataclass
class HeightMapSettings:
    max_history: int = 10
    skim_angle_threshold: float = 0.05  # radians
    skim_distance_squared: float = 16.0  # pixels^2
    hole_probe_offset: float = 0.05  # fraction of grid size

    @staticmethod
    def from_dict(d: dict | None) -> HeightMapSettings:
        if not d:
            return HeightMapSettings()
        return HeightMapSettings(
            max_history=d.get("maxHistory", 10),
            skim_angle_threshold=d.get("skimAngleThreshold", 0.05),
            skim_distance_squared=d.get("skimDistanceSquared", 16.0),
            hole_probe_offset=d.get("holeProbeOffset", 0.05),
        )


@dataclass
class Shape:
    """A merged region of cells sharing terrain type, height and elevation.

    ``boundary`` winds clockwise (on screen); every hole winds
    counter-clockwise and lies inside the boundary.
    """

    boundary: Polygon
    holes: list[Polygon]
    terrain_type_id: str
    height: float
    elevation: float

    @property
    def top(self) -> float:
        return self.elevation + self.height


@dataclass
class Intersection:
    point: Point
    t: float  # along the ray
    u: float  # along the edge
    edge: LineSegment
    hole: Polygon | None = None


@dataclass(frozen=True)
class LosPoint:
    x: float
    y: float
    h: float
    t: float

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "h": self.h, "t": self.t}


@dataclass(frozen=True)
class IntersectionRegion:
    start: LosPoint
    end: LosPoint
    skimmed: bool = False

    def to_dict(self) -> dict:
        return {
            "start": self.start.to_dict(),
            "end": self.end.to_dict(),
            "skimmed": self.skimmed,
        }


@dataclass
class ShapeRegions:
    shape: Shape
    regions: list[IntersectionRegion]

    def to_dict(self) -> dict:
        return {
            "terrainTypeId": self.shape.terrain_type_id,
            "height": self.shape.height,
            "elevation": self.shape.elevation,
            "regions": [r.to_dict() for r in self.regions],
        }


@dataclass(frozen=True)
class FlatRegion:
    start: LosPoint
    end: LosPoint
    terrain_type_id: str
    height: float
    elevation: float
    skimmed: bool = False

    def to_dict(self) -> dict:
        return {
            "start": self.start.to_dict(),
            "end": self.end.to_dict(),
            "terrainTypeId": self.terrain_type_id,
            "height": self.height,
            "elevation": self.elevation,
            "skimmed": self.skimmed,
        }
