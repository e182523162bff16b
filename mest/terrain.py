"""
Terrain model for the MEST QSR battlefield.

The battlefield is a square of side `size` MU centred on the origin.
Terrain objects are immutable records; a change is a removal followed by a
new placement. Every kind exposes one footprint that placement, LOS and
movement all share.
"""

import math
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterator, Optional

from .errors import UnknownTerrainError
from .rules import RulesConfig

logger = logging.getLogger(__name__)


class TerrainKind(Enum):
    HILL = "hill"
    TREE_SINGLE = "tree_single"
    TREE_CLUSTER = "tree_cluster"
    TREE_STAND = "tree_stand"
    BUILDING = "building"
    WALL = "wall"
    DEBRIS = "debris"

    @property
    def is_tree(self) -> bool:
        return self in (TerrainKind.TREE_SINGLE, TerrainKind.TREE_CLUSTER, TerrainKind.TREE_STAND)

    @property
    def is_structure(self) -> bool:
        return self in (TerrainKind.BUILDING, TerrainKind.WALL)

    @property
    def blocks_los(self) -> bool:
        return self.is_tree or self.is_structure


class MoveClass(Enum):
    """Movement class of the ground at a point, cheapest first."""
    CLEAR = "clear"
    ROUGH = "rough"
    DIFFICULT = "difficult"
    IMPASSABLE = "impassable"

    @property
    def rank(self) -> int:
        return _MOVE_RANK[self]


_MOVE_RANK = {
    MoveClass.CLEAR: 0,
    MoveClass.ROUGH: 1,
    MoveClass.DIFFICULT: 2,
    MoveClass.IMPASSABLE: 3,
}

HILL_SIZE_ORDER = {"small": 0, "medium": 1, "large": 2}

ROTATION_STEP = 15


@dataclass(frozen=True)
class Position:
    """A point on the battlefield plane, in MU."""
    x: float
    y: float

    def distance_to(self, other: "Position") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_any(cls, value) -> "Position":
        """Accept a Position, an {x, y} mapping or an (x, y) pair."""
        if isinstance(value, Position):
            return value
        if isinstance(value, dict):
            return cls(float(value["x"]), float(value["y"]))
        x, y = value
        return cls(float(x), float(y))


@dataclass(frozen=True, kw_only=True)
class Terrain:
    """Common fields of every terrain object."""
    id: str
    kind: TerrainKind
    position: Position
    rotation: float = 0.0  # degrees

    @property
    def footprint_radius(self) -> float:
        raise NotImplementedError

    @property
    def height(self) -> float:
        raise NotImplementedError

    def contains(self, point: Position) -> bool:
        """True if point lies inside the ground footprint."""
        return self.position.distance_to(point) <= self.footprint_radius

    def move_class_at(self, point: Position) -> MoveClass:
        raise NotImplementedError

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.kind.value,
            "x": self.position.x,
            "y": self.position.y,
            "rotation": self.rotation,
            "blocking": self.kind.blocks_los,
        }


@dataclass(frozen=True, kw_only=True)
class Hill(Terrain):
    size: str
    plateau_radius: float
    total_radius: float
    elevation: float

    @property
    def footprint_radius(self) -> float:
        return self.total_radius

    @property
    def height(self) -> float:
        return self.elevation

    @property
    def size_order(self) -> int:
        return HILL_SIZE_ORDER[self.size]

    def on_plateau(self, point: Position) -> bool:
        return self.position.distance_to(point) <= self.plateau_radius

    def elevation_at(self, point: Position) -> float:
        """Full elevation on the plateau, linear falloff down the slope."""
        distance = self.position.distance_to(point)
        if distance <= self.plateau_radius:
            return self.elevation
        if distance <= self.total_radius:
            slope = (distance - self.plateau_radius) / (self.total_radius - self.plateau_radius)
            return self.elevation * (1.0 - slope)
        return 0.0

    def move_class_at(self, point: Position) -> MoveClass:
        distance = self.position.distance_to(point)
        if distance <= self.plateau_radius:
            return MoveClass.CLEAR
        if distance <= self.total_radius:
            return MoveClass.ROUGH
        return MoveClass.CLEAR

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            "size": self.size,
            "plateau_radius": self.plateau_radius,
            "total_radius": self.total_radius,
            "elevation": self.elevation,
        })
        return data


@dataclass(frozen=True, kw_only=True)
class Tree(Terrain):
    radius: float
    canopy_height: float

    @property
    def footprint_radius(self) -> float:
        return self.radius

    @property
    def height(self) -> float:
        return self.canopy_height

    def move_class_at(self, point: Position) -> MoveClass:
        if not self.contains(point):
            return MoveClass.CLEAR
        if self.kind == TerrainKind.TREE_STAND:
            return MoveClass.DIFFICULT
        if self.kind == TerrainKind.TREE_CLUSTER:
            return MoveClass.ROUGH
        return MoveClass.CLEAR

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"radius": self.radius, "height": self.canopy_height})
        return data


@dataclass(frozen=True, kw_only=True)
class Debris(Terrain):
    radius: float
    pile_height: float

    @property
    def footprint_radius(self) -> float:
        return self.radius

    @property
    def height(self) -> float:
        return self.pile_height

    def move_class_at(self, point: Position) -> MoveClass:
        return MoveClass.ROUGH if self.contains(point) else MoveClass.CLEAR

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"radius": self.radius, "height": self.pile_height})
        return data


@dataclass(frozen=True, kw_only=True)
class Structure(Terrain):
    """Building or wall: a rotated rectangular box."""
    width: float
    depth: float
    box_height: float

    @property
    def footprint_radius(self) -> float:
        return max(self.width, self.depth) / 2

    @property
    def height(self) -> float:
        return self.box_height

    def to_local(self, point: Position) -> tuple[float, float]:
        """Point in the box's own frame (unrotated, centred)."""
        theta = math.radians(self.rotation)
        dx = point.x - self.position.x
        dy = point.y - self.position.y
        cos_t, sin_t = math.cos(theta), math.sin(theta)
        return (dx * cos_t + dy * sin_t, -dx * sin_t + dy * cos_t)

    def corners(self) -> list[tuple[float, float]]:
        """World-space corners of the rotated footprint."""
        theta = math.radians(self.rotation)
        cos_t, sin_t = math.cos(theta), math.sin(theta)
        hw, hd = self.width / 2, self.depth / 2
        return [
            (self.position.x + lx * cos_t - ly * sin_t,
             self.position.y + lx * sin_t + ly * cos_t)
            for lx, ly in ((-hw, -hd), (hw, -hd), (hw, hd), (-hw, hd))
        ]

    def contains(self, point: Position) -> bool:
        lx, ly = self.to_local(point)
        return abs(lx) <= self.width / 2 and abs(ly) <= self.depth / 2

    def move_class_at(self, point: Position) -> MoveClass:
        return MoveClass.IMPASSABLE if self.contains(point) else MoveClass.CLEAR

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"width": self.width, "depth": self.depth, "height": self.box_height})
        return data


def snap_rotation(rotation: float) -> float:
    """Snap degrees to the 15 degree grid, in [0, 360)."""
    return float((round(rotation / ROTATION_STEP) * ROTATION_STEP) % 360)


def make_terrain(
    kind: TerrainKind | str,
    x: float,
    y: float,
    params: Optional[dict] = None,
    rotation: float = 0.0,
    rules: Optional[RulesConfig] = None,
    terrain_id: str = "",
) -> Terrain:
    """
    Build a terrain record from loose parameters.

    Accepted params: hills take `size` plus optional `plateauRadiusMU`,
    `totalRadiusMU` and `elevation`; buildings and walls take `width`,
    `depth`, `height` (walls also accept `length` for width); trees and
    debris take an optional `radius`.
    """
    kind = TerrainKind(kind)
    params = params or {}
    rules = rules or RulesConfig()
    position = Position(float(x), float(y))
    rotation = snap_rotation(rotation)

    if kind == TerrainKind.HILL:
        size = params.get("size", "medium")
        if size not in rules.hills:
            raise ValueError(f"Unknown hill size: {size}")
        base = rules.hills[size]
        plateau = float(params.get("plateauRadiusMU", params.get("plateau_radius", base.plateau_radius)))
        total = float(params.get("totalRadiusMU", params.get("total_radius", base.total_radius)))
        if not 0 < plateau < total:
            raise ValueError(f"Hill needs 0 < plateau radius < total radius, got {plateau}/{total}")
        return Hill(
            id=terrain_id, kind=kind, position=position, rotation=rotation,
            size=size, plateau_radius=plateau, total_radius=total,
            elevation=float(params.get("elevation", base.elevation)),
        )

    if kind.is_structure:
        box = rules.building if kind == TerrainKind.BUILDING else rules.wall
        width = float(params.get("width", params.get("length", box.width)))
        depth = float(params.get("depth", box.depth))
        if width <= 0 or depth <= 0:
            raise ValueError(f"{kind.value} needs positive width and depth")
        return Structure(
            id=terrain_id, kind=kind, position=position, rotation=rotation,
            width=width, depth=depth,
            box_height=float(params.get("height", box.height)),
        )

    radius = float(params.get("radius", rules.terrain_radii[kind.value]))
    height = float(params.get("height", rules.terrain_heights[kind.value]))
    if kind == TerrainKind.DEBRIS:
        return Debris(id=terrain_id, kind=kind, position=position, rotation=rotation,
                      radius=radius, pile_height=height)
    return Tree(id=terrain_id, kind=kind, position=position, rotation=rotation,
                radius=radius, canopy_height=height)


@dataclass
class Battlefield:
    """
    The terrain store.

    `revision` increases on every mutation so that derived structures
    (LOS bounds, path grids) can tell when they are out of date.
    """
    size: float = 24.0
    terrain: dict[str, Terrain] = field(default_factory=dict)
    revision: int = 0
    _counter: int = 0

    @property
    def half(self) -> float:
        return self.size / 2

    def __iter__(self) -> Iterator[Terrain]:
        return iter(list(self.terrain.values()))

    def __len__(self) -> int:
        return len(self.terrain)

    def get(self, terrain_id: str) -> Optional[Terrain]:
        return self.terrain.get(terrain_id)

    def next_id(self, kind: TerrainKind) -> str:
        self._counter += 1
        return f"{kind.value}-{self._counter}"

    def add(self, terrain: Terrain) -> Terrain:
        if not terrain.id:
            terrain = replace(terrain, id=self.next_id(terrain.kind))
        self.terrain[terrain.id] = terrain
        self.revision += 1
        return terrain

    def remove(self, terrain_id: str) -> Terrain:
        if terrain_id not in self.terrain:
            raise UnknownTerrainError(terrain_id)
        removed = self.terrain.pop(terrain_id)
        self.revision += 1
        return removed

    def clear(self):
        self.terrain.clear()
        self.revision += 1

    def replace_all(self, terrain: list[Terrain]):
        """Swap in a whole terrain list (history restore, mission load)."""
        self.terrain = {t.id: t for t in terrain}
        for t in terrain:
            suffix = t.id.rsplit("-", 1)[-1]
            if suffix.isdigit():
                self._counter = max(self._counter, int(suffix))
        self.revision += 1

    def in_bounds(self, point: Position) -> bool:
        return abs(point.x) <= self.half and abs(point.y) <= self.half

    def move_class_at(self, point: Position) -> MoveClass:
        """Most restrictive movement class of all footprints covering point."""
        worst = MoveClass.CLEAR
        for obj in self.terrain.values():
            if obj.position.distance_to(point) > obj.footprint_radius:
                continue
            cls = obj.move_class_at(point)
            if cls.rank > worst.rank:
                worst = cls
        return worst

    def hills(self) -> list[Hill]:
        return [t for t in self.terrain.values() if isinstance(t, Hill)]

    def elevation_at(self, point: Position) -> float:
        """Ground elevation at point. Stacked hills add up."""
        return sum(hill.elevation_at(point) for hill in self.hills())

    def plateau_elevation_at(self, point: Position) -> float:
        """Elevation counted only from hills whose plateau holds the point."""
        return sum(h.elevation for h in self.hills() if h.on_plateau(point))
