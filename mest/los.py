"""
Line-of-sight engine.

Rays run from eye to eye and are parametrised t in [0, 1]. Each terrain
object gets a bounding volume built once per terrain revision: an oriented
box for buildings and walls, a vertical cylinder (xy only) for hills and a
sphere for trees and debris. Hills never block sight; they only raise
the eye of a model standing on the plateau.
"""

import math
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from .errors import StaleTerrainError
from .rules import RulesConfig
from .terrain import Battlefield, Hill, Position, Structure, Terrain

logger = logging.getLogger(__name__)

EPSILON = 1e-9

Vec3 = tuple[float, float, float]


class Observer(Protocol):
    position: Position
    height: float


@dataclass
class LOSResult:
    has_los: bool
    distance: float
    blocked_by: Optional[str] = None
    blocker_id: Optional[str] = None

    def __bool__(self) -> bool:
        return self.has_los

    def to_dict(self) -> dict:
        return {
            "has_los": self.has_los,
            "distance": round(self.distance, 3),
            "blocked_by": self.blocked_by,
            "blocker_id": self.blocker_id,
        }


@dataclass
class RayHit:
    terrain: Terrain
    t_enter: float
    t_exit: float


def _slab(origin: Vec3, direction: Vec3, lo: Vec3, hi: Vec3) -> Optional[tuple[float, float]]:
    """Ray/AABB interval by the slab method, clipped to [0, 1]."""
    t_min, t_max = 0.0, 1.0
    for axis in range(3):
        o, d = origin[axis], direction[axis]
        if abs(d) < EPSILON:
            if o < lo[axis] or o > hi[axis]:
                return None
            continue
        t1 = (lo[axis] - o) / d
        t2 = (hi[axis] - o) / d
        if t1 > t2:
            t1, t2 = t2, t1
        t_min = max(t_min, t1)
        t_max = min(t_max, t2)
        if t_min > t_max:
            return None
    return (t_min, t_max)


def _clip_roots(a: float, b: float, c: float) -> Optional[tuple[float, float]]:
    """Interval where a*t^2 + b*t + c <= 0, clipped to [0, 1]."""
    disc = b * b - 4 * a * c
    if disc < 0:
        return None
    root = math.sqrt(disc)
    t1 = (-b - root) / (2 * a)
    t2 = (-b + root) / (2 * a)
    t_min, t_max = max(0.0, t1), min(1.0, t2)
    if t_min > t_max:
        return None
    return (t_min, t_max)


class BoundingVolume:
    """Broadphase box plus exact ray interval for one terrain object."""

    def __init__(self, terrain: Terrain):
        self.terrain = terrain
        self.lo, self.hi = self._aabb()

    def _aabb(self) -> tuple[Vec3, Vec3]:
        raise NotImplementedError

    def exact(self, origin: Vec3, direction: Vec3) -> Optional[tuple[float, float]]:
        raise NotImplementedError

    def intersect(self, origin: Vec3, direction: Vec3) -> Optional[tuple[float, float]]:
        if _slab(origin, direction, self.lo, self.hi) is None:
            return None
        return self.exact(origin, direction)


class OrientedBox(BoundingVolume):
    terrain: Structure

    def _aabb(self) -> tuple[Vec3, Vec3]:
        corners = self.terrain.corners()
        xs = [c[0] for c in corners]
        ys = [c[1] for c in corners]
        return (min(xs), min(ys), 0.0), (max(xs), max(ys), self.terrain.height)

    def exact(self, origin: Vec3, direction: Vec3) -> Optional[tuple[float, float]]:
        box = self.terrain
        theta = math.radians(box.rotation)
        cos_t, sin_t = math.cos(theta), math.sin(theta)
        ox = origin[0] - box.position.x
        oy = origin[1] - box.position.y
        local_origin = (ox * cos_t + oy * sin_t, -ox * sin_t + oy * cos_t, origin[2])
        local_dir = (
            direction[0] * cos_t + direction[1] * sin_t,
            -direction[0] * sin_t + direction[1] * cos_t,
            direction[2],
        )
        hw, hd = box.width / 2, box.depth / 2
        return _slab(local_origin, local_dir, (-hw, -hd, 0.0), (hw, hd, box.height))


class Cylinder(BoundingVolume):
    terrain: Hill

    def _aabb(self) -> tuple[Vec3, Vec3]:
        p, r = self.terrain.position, self.terrain.total_radius
        return (p.x - r, p.y - r, -math.inf), (p.x + r, p.y + r, math.inf)

    def exact(self, origin: Vec3, direction: Vec3) -> Optional[tuple[float, float]]:
        p, r = self.terrain.position, self.terrain.total_radius
        ox, oy = origin[0] - p.x, origin[1] - p.y
        dx, dy = direction[0], direction[1]
        a = dx * dx + dy * dy
        c = ox * ox + oy * oy - r * r
        if a < EPSILON:
            return (0.0, 1.0) if c <= 0 else None
        return _clip_roots(a, 2 * (ox * dx + oy * dy), c)


class Sphere(BoundingVolume):

    @property
    def center(self) -> Vec3:
        t = self.terrain
        # Trees sit with the sphere resting on the ground; debris is a low mound
        z = t.footprint_radius if t.kind.is_tree else 0.0
        return (t.position.x, t.position.y, z)

    def _aabb(self) -> tuple[Vec3, Vec3]:
        cx, cy, cz = self.center
        r = self.terrain.footprint_radius
        return (cx - r, cy - r, cz - r), (cx + r, cy + r, cz + r)

    def exact(self, origin: Vec3, direction: Vec3) -> Optional[tuple[float, float]]:
        cx, cy, cz = self.center
        r = self.terrain.footprint_radius
        ox, oy, oz = origin[0] - cx, origin[1] - cy, origin[2] - cz
        dx, dy, dz = direction
        a = dx * dx + dy * dy + dz * dz
        c = ox * ox + oy * oy + oz * oz - r * r
        if a < EPSILON:
            return (0.0, 1.0) if c <= 0 else None
        return _clip_roots(a, 2 * (ox * dx + oy * dy + oz * dz), c)


def bounding_volume(terrain: Terrain) -> BoundingVolume:
    if isinstance(terrain, Structure):
        return OrientedBox(terrain)
    if isinstance(terrain, Hill):
        return Cylinder(terrain)
    return Sphere(terrain)


class LOSEngine:
    """
    Visibility between models over the current terrain.

    Call refresh() after every terrain change. Queries against an
    out-of-date volume set raise StaleTerrainError.
    """

    def __init__(self, battlefield: Battlefield, rules: Optional[RulesConfig] = None):
        self.battlefield = battlefield
        self.rules = rules or RulesConfig()
        self.volumes: list[BoundingVolume] = []
        self.bounds_revision = -1
        self.refresh()

    def refresh(self):
        """Rebuild every bounding volume from the battlefield."""
        self.volumes = [bounding_volume(t) for t in self.battlefield]
        self.bounds_revision = self.battlefield.revision
        logger.debug(f"LOS bounds rebuilt: {len(self.volumes)} volumes (rev {self.bounds_revision})")

    @property
    def is_stale(self) -> bool:
        return self.bounds_revision != self.battlefield.revision

    def _check_fresh(self):
        if self.is_stale:
            raise StaleTerrainError(
                f"Terrain revision {self.battlefield.revision} but LOS bounds at {self.bounds_revision}"
            )

    def eye_position(self, position: Position, height: float) -> Vec3:
        z = height / 2 + self.battlefield.plateau_elevation_at(position)
        return (position.x, position.y, z)

    def cast(self, origin: Vec3, target: Vec3) -> list[RayHit]:
        """All terrain hit by the segment, nearest entry first."""
        self._check_fresh()
        direction = (target[0] - origin[0], target[1] - origin[1], target[2] - origin[2])
        hits = []
        for volume in self.volumes:
            interval = volume.intersect(origin, direction)
            if interval is not None:
                hits.append(RayHit(volume.terrain, interval[0], interval[1]))
        hits.sort(key=lambda h: h.t_enter)
        return hits

    def trace(self, origin: Vec3, target: Vec3) -> LOSResult:
        """LOS between two eye points with no short-range exemption."""
        distance = math.dist(origin, target)
        for hit in self.cast(origin, target):
            if hit.terrain.kind.blocks_los:
                return LOSResult(False, distance, hit.terrain.kind.value, hit.terrain.id)
        return LOSResult(True, distance)

    def validate_los(self, model_a: Observer, model_b: Observer) -> LOSResult:
        self._check_fresh()
        origin = self.eye_position(model_a.position, model_a.height)
        target = self.eye_position(model_b.position, model_b.height)
        distance = math.dist(origin, target)
        if distance <= self.rules.los_short_range:
            return LOSResult(True, distance)
        return self.trace(origin, target)

    def has_los_between(self, a: Position, b: Position, height_a: float = 1.0, height_b: float = 1.0) -> bool:
        """Point-to-point variant used by planners that have no model at hand."""
        self._check_fresh()
        origin = self.eye_position(a, height_a)
        target = self.eye_position(b, height_b)
        if math.dist(origin, target) <= self.rules.los_short_range:
            return True
        return self.trace(origin, target).has_los

    def blocking_terrain(self) -> list[Terrain]:
        return [v.terrain for v in self.volumes if v.terrain.kind.blocks_los]
