"""
Cover analysis and defensive bonus scoring.
"""

import math
import logging
from dataclasses import dataclass, field
from typing import Optional

from .los import LOSEngine
from .pathfinding import Pathfinder
from .rules import RulesConfig
from .terrain import Battlefield, MoveClass, Position, TerrainKind

logger = logging.getLogger(__name__)

NONE = "none"
PARTIAL = "partial"
SOFT = "soft"
HARD = "hard"

COVER_RANK = {NONE: 0, PARTIAL: 1, SOFT: 2, HARD: 3}
COVER_BONUS = {NONE: 0, PARTIAL: 1, SOFT: 2, HARD: 3}

COVER_BY_KIND = {
    TerrainKind.BUILDING: HARD,
    TerrainKind.WALL: HARD,
    TerrainKind.TREE_STAND: SOFT,
    TerrainKind.TREE_CLUSTER: SOFT,
    TerrainKind.TREE_SINGLE: PARTIAL,
    TerrainKind.DEBRIS: PARTIAL,
}


def _position_of(item) -> Position:
    return item.position if hasattr(item, "position") else Position.from_any(item)


def has_elevation_advantage(battlefield: Battlefield, observer: Position, target: Position,
                            threshold: float = 0.5) -> bool:
    return battlefield.elevation_at(observer) - battlefield.elevation_at(target) >= threshold


@dataclass
class CoverAnalysis:
    cover: str = NONE
    effectiveness: float = 0.0  # share of enemies the position has cover from
    per_enemy: list[str] = field(default_factory=list)


@dataclass
class DefensiveBonus:
    total: int
    cover: str
    elevation: bool
    cover_bonus: int = 0

    @property
    def description(self) -> str:
        parts = []
        if self.cover_bonus:
            parts.append(f"+{self.cover_bonus} {self.cover.title()} Cover")
        if self.elevation:
            parts.append("+1 Elevation")
        return ", ".join(parts) or "No defensive bonus"

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "cover": self.cover,
            "elevation": self.elevation,
            "description": self.description,
        }


@dataclass
class DefensivePosition:
    position: Position
    bonus: DefensiveBonus
    cost: float

    @property
    def score(self) -> float:
        return self.bonus.total - self.cost

    def to_dict(self) -> dict:
        return {
            "position": self.position.to_dict(),
            "bonus": self.bonus.to_dict(),
            "cost": round(self.cost, 4),
            "score": round(self.score, 4),
        }


class CoverAnalyzer:
    """Classifies a position's cover against a set of enemies."""

    def __init__(self, los: LOSEngine, rules: Optional[RulesConfig] = None):
        self.los = los
        self.rules = rules or los.rules

    def _eye(self, position: Position) -> tuple[float, float, float]:
        z = self.rules.eye_height + self.los.battlefield.elevation_at(position)
        return (position.x, position.y, z)

    def cover_from(self, defender: Position, enemy: Position) -> str:
        """Cover of the first cover-giving terrain between defender and enemy."""
        for hit in self.los.cast(self._eye(defender), self._eye(enemy)):
            cover = COVER_BY_KIND.get(hit.terrain.kind)
            if cover:
                return cover
        return NONE

    def analyze(self, defender: Position, enemies: list) -> CoverAnalysis:
        analysis = CoverAnalysis()
        for enemy in enemies:
            cover = self.cover_from(defender, _position_of(enemy))
            analysis.per_enemy.append(cover)
            if COVER_RANK[cover] > COVER_RANK[analysis.cover]:
                analysis.cover = cover
        if enemies:
            covered = sum(1 for c in analysis.per_enemy if c != NONE)
            analysis.effectiveness = covered / len(enemies)
        return analysis


class CoverBonusSystem:
    """Defensive bonus at a point and search for the best nearby position."""

    def __init__(self, los: LOSEngine, pathfinder: Pathfinder, rules: Optional[RulesConfig] = None):
        self.los = los
        self.pathfinder = pathfinder
        self.rules = rules or los.rules
        self.analyzer = CoverAnalyzer(los, self.rules)

    @property
    def battlefield(self) -> Battlefield:
        return self.los.battlefield

    def calculate_defensive_bonus(self, position, enemies: list) -> DefensiveBonus:
        position = Position.from_any(position)
        cover = self.analyzer.analyze(position, enemies).cover
        elevation = bool(enemies) and all(
            has_elevation_advantage(self.battlefield, position, _position_of(e),
                                    self.rules.elevation_advantage)
            for e in enemies
        )
        cover_bonus = COVER_BONUS[cover]
        return DefensiveBonus(
            total=cover_bonus + (1 if elevation else 0),
            cover=cover,
            elevation=elevation,
            cover_bonus=cover_bonus,
        )

    def candidate_points(self, start: Position, max_ap: float):
        """Scan order: the start, then rings of 0.5 MU steps, angle ascending."""
        yield start
        steps = int(math.floor(2 * max_ap / 0.5 + 1e-9))
        for step in range(1, steps + 1):
            radius = step * 0.5
            samples = math.ceil(radius * 8)
            for k in range(samples):
                angle = 2 * math.pi * k / samples
                yield Position(start.x + math.cos(angle) * radius, start.y + math.sin(angle) * radius)

    def find_best_defensive_position(self, start, enemies: list, max_ap: float) -> Optional[DefensivePosition]:
        """Reachable sample maximising bonus minus path cost. First found wins ties."""
        start = Position.from_any(start)
        best: Optional[DefensivePosition] = None
        for point in self.candidate_points(start, max_ap):
            if not self.battlefield.in_bounds(point):
                continue
            if self.battlefield.move_class_at(point) == MoveClass.IMPASSABLE:
                continue
            path = self.pathfinder.find_path_with_cost(start, point, max_ap)
            if path is None:
                continue
            candidate = DefensivePosition(point, self.calculate_defensive_bonus(point, enemies), path.cost)
            if best is None or candidate.score > best.score:
                best = candidate
        return best
