"""
Placement validation for terrain objects.

Footprints are compared as circles of the kind's footprint radius. When two
footprints overlap, the pairwise rules below decide whether the overlap is
legal. The first rule that matches a pair decides it.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .terrain import Hill, Terrain, TerrainKind

logger = logging.getLogger(__name__)

OUTSIDE_BOUNDS = "outside_bounds"
HILL_STACKING_VIOLATION = "hill_stacking_violation"
NOT_ON_HILL_PLATEAU = "not_on_hill_plateau"
BUILDING_WALL_INTERSECTION = "building_wall_intersection"
TERRAIN_BUILDING_INTERSECTION = "terrain_building_intersection"


@dataclass
class PlacementResult:
    """Outcome of a placement check. Falsy when the placement is rejected."""
    valid: bool
    reason: Optional[str] = None
    conflict_id: Optional[str] = None
    terrain: Optional[Terrain] = None

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> dict:
        data = {"valid": self.valid}
        if self.reason:
            data["reason"] = self.reason
        if self.conflict_id:
            data["conflict_id"] = self.conflict_id
        if self.terrain is not None:
            data["terrain"] = self.terrain.to_dict()
        return data


def footprints_intersect(a: Terrain, b: Terrain) -> bool:
    return a.position.distance_to(b.position) < a.footprint_radius + b.footprint_radius


def _is_tree_or_hill(obj: Terrain) -> bool:
    return obj.kind.is_tree or obj.kind == TerrainKind.HILL


def _hill_stacking_ok(a: Hill, b: Hill) -> bool:
    """The smaller hill must sit wholly on the larger one's plateau."""
    if a.size_order == b.size_order:
        return False
    inner, outer = (a, b) if a.size_order < b.size_order else (b, a)
    distance = inner.position.distance_to(outer.position)
    return distance <= outer.plateau_radius - inner.total_radius


def pair_rule(candidate: Terrain, existing: Terrain) -> Optional[str]:
    """
    Rejection reason for two overlapping footprints, or None if allowed.

    The rules treat both arguments alike, so swapping them never changes
    the outcome.
    """
    a, b = candidate, existing

    if isinstance(a, Hill) and isinstance(b, Hill):
        return None if _hill_stacking_ok(a, b) else HILL_STACKING_VIOLATION

    for item, hill in ((a, b), (b, a)):
        if isinstance(hill, Hill) and item.kind.is_tree:
            return None if hill.on_plateau(item.position) else NOT_ON_HILL_PLATEAU

    if a.kind.is_structure and b.kind.is_structure:
        return BUILDING_WALL_INTERSECTION

    if (_is_tree_or_hill(a) and b.kind.is_structure) or (_is_tree_or_hill(b) and a.kind.is_structure):
        return TERRAIN_BUILDING_INTERSECTION

    return None


class PlacementValidator:
    """Checks candidate terrain against the battlefield edge and existing terrain."""

    def __init__(self, battlefield_size: float = 24.0):
        self.battlefield_size = battlefield_size

    def within_bounds(self, candidate: Terrain, battlefield_size: Optional[float] = None) -> bool:
        """False only when no part of the footprint touches the battlefield."""
        half = (battlefield_size or self.battlefield_size) / 2
        r = candidate.footprint_radius
        x, y = candidate.position.x, candidate.position.y
        if x + r < -half or x - r > half:
            return False
        if y + r < -half or y - r > half:
            return False
        return True

    def is_valid_placement(
        self,
        candidate: Terrain,
        existing: Iterable[Terrain],
        battlefield_size: Optional[float] = None,
    ) -> PlacementResult:
        if not self.within_bounds(candidate, battlefield_size):
            return PlacementResult(False, OUTSIDE_BOUNDS)

        for obj in existing:
            if obj.id and obj.id == candidate.id:
                continue
            if not footprints_intersect(candidate, obj):
                continue
            reason = pair_rule(candidate, obj)
            if reason:
                logger.debug(f"Placement of {candidate.kind.value} rejected by {obj.id}: {reason}")
                return PlacementResult(False, reason, conflict_id=obj.id)

        return PlacementResult(True)
