"""
Movement-cost pathfinding.

The battlefield is cut into square cells of `grid_resolution` MU, each
classed by the terrain at its centre. A segment costs the length it
spends in each cell times that cell's AP-per-MU rate, found by walking the
cells the segment crosses. Search is Theta*: A* over cell centres where
a node may link straight back to its grandparent when that is cheaper,
so paths are any-angle rather than zig-zags along the grid.
"""

import math
import heapq
import logging
from dataclasses import dataclass, field
from itertools import count
from typing import Iterable, Optional

from .errors import StaleTerrainError
from .rules import RulesConfig
from .terrain import Battlefield, MoveClass, Position

logger = logging.getLogger(__name__)

INF = float("inf")
EPS = 1e-9

START = "start"
END = "end"

# Nearest-affordable sampling rings around an unreachable target
SAMPLE_RADII = [0.5, 1.0, 1.5, 2.0, 2.5, 3.0]


@dataclass
class PathResult:
    path: list[Position]
    cost: float

    @property
    def final_position(self) -> Position:
        return self.path[-1]

    def to_dict(self) -> dict:
        return {
            "path": [p.to_dict() for p in self.path],
            "cost": round(self.cost, 4),
        }


@dataclass
class CostGrid:
    """AP-per-MU rate of every cell, built for one terrain revision."""
    size: float
    resolution: float
    rates: list[list[float]] = field(default_factory=list)
    revision: int = -1

    @property
    def cells(self) -> int:
        return len(self.rates)

    @property
    def half(self) -> float:
        return self.size / 2

    def cell_of(self, point: Position) -> tuple[int, int]:
        last = self.cells - 1
        i = min(last, max(0, int(math.floor((point.x + self.half) / self.resolution))))
        j = min(last, max(0, int(math.floor((point.y + self.half) / self.resolution))))
        return (i, j)

    def center(self, cell: tuple[int, int]) -> Position:
        i, j = cell
        return Position(
            -self.half + (i + 0.5) * self.resolution,
            -self.half + (j + 0.5) * self.resolution,
        )

    def rate(self, i: int, j: int) -> float:
        if 0 <= i < self.cells and 0 <= j < self.cells:
            return self.rates[i][j]
        return INF


class Pathfinder:
    """Cheapest AP path between two points over the current terrain."""

    def __init__(self, battlefield: Battlefield, rules: Optional[RulesConfig] = None):
        self.battlefield = battlefield
        self.rules = rules or RulesConfig()
        self.grid = CostGrid(battlefield.size, self.rules.grid_resolution)
        self.refresh()

    @property
    def baseline_rate(self) -> float:
        return self.rules.movement_cost(MoveClass.CLEAR.value)

    def refresh(self):
        """Reclassify every cell from the battlefield terrain."""
        grid = CostGrid(self.battlefield.size, self.rules.grid_resolution)
        n = int(math.ceil(grid.size / grid.resolution))
        grid.rates = [[0.0] * n for _ in range(n)]
        for i in range(n):
            for j in range(n):
                cls = self.battlefield.move_class_at(grid.center((i, j)))
                grid.rates[i][j] = self.rules.movement_cost(cls.value)
        grid.revision = self.battlefield.revision
        self.grid = grid
        logger.debug(f"Cost grid rebuilt: {n}x{n} cells (rev {grid.revision})")

    @property
    def is_stale(self) -> bool:
        return self.grid.revision != self.battlefield.revision

    def _check_fresh(self):
        if self.is_stale:
            raise StaleTerrainError(
                f"Terrain revision {self.battlefield.revision} but cost grid at {self.grid.revision}"
            )

    def segment_cost(
        self,
        a: Position,
        b: Position,
        free_cell: Optional[tuple[int, int]] = None,
    ) -> float:
        """
        AP cost of moving straight from a to b.

        `free_cell` is the mover's starting cell: leaving it is never
        blocked even if its centre lies inside impassable terrain.
        """
        dx, dy = b.x - a.x, b.y - a.y
        length = math.hypot(dx, dy)
        if length < EPS:
            return 0.0

        g = self.grid.resolution
        fx = (a.x + self.grid.half) / g
        fy = (a.y + self.grid.half) / g
        i, j = self.grid.cell_of(a)

        step_i = 1 if dx > 0 else -1
        step_j = 1 if dy > 0 else -1
        if abs(dx) > EPS:
            next_x = i + 1 if dx > 0 else i
            t_max_x = (next_x - fx) / (dx / g)
            t_delta_x = g / abs(dx)
        else:
            t_max_x = t_delta_x = INF
        if abs(dy) > EPS:
            next_y = j + 1 if dy > 0 else j
            t_max_y = (next_y - fy) / (dy / g)
            t_delta_y = g / abs(dy)
        else:
            t_max_y = t_delta_y = INF

        t = 0.0
        total = 0.0
        while t < 1.0:
            t_next = min(t_max_x, t_max_y, 1.0)
            span = (t_next - t) * length
            if span > EPS:
                rate = self.grid.rate(i, j)
                if rate == INF and (i, j) == free_cell:
                    rate = self.baseline_rate
                if rate == INF:
                    return INF
                total += span * rate
            t = t_next
            if t >= 1.0:
                break
            if t_max_x < t_max_y:
                i += step_i
                t_max_x += t_delta_x
            else:
                j += step_j
                t_max_y += t_delta_y
        return total

    def path_cost(self, path: list[Position]) -> float:
        """Cost of following a waypoint list, starting free of its first cell."""
        if not path:
            return 0.0
        free = self.grid.cell_of(path[0])
        return sum(self.segment_cost(a, b, free) for a, b in zip(path, path[1:]))

    def _heuristic(self, point: Position, end: Position) -> float:
        cheapest = min(self.rules.movement_costs.values())
        return point.distance_to(end) * cheapest

    def _neighbors(self, node, end_cell: tuple[int, int], start_cell: tuple[int, int]) -> Iterable:
        if node == END:
            return
        if node == START:
            ci, cj = start_cell
            yield END
        else:
            ci, cj = node
            if max(abs(ci - end_cell[0]), abs(cj - end_cell[1])) <= 1:
                yield END
        for di in (-1, 0, 1):
            for dj in (-1, 0, 1):
                if node != START and di == 0 and dj == 0:
                    continue
                cell = (ci + di, cj + dj)
                rate = self.grid.rate(*cell)
                if rate == INF and cell != start_cell:
                    continue
                yield cell

    def find_path_with_cost(
        self,
        start,
        end,
        max_ap: Optional[float] = None,
    ) -> Optional[PathResult]:
        """
        Cheapest path from start to end, or None when no path exists or
        every path costs more than max_ap.
        """
        self._check_fresh()
        start = Position.from_any(start)
        end = Position.from_any(end)
        if not (self.battlefield.in_bounds(start) and self.battlefield.in_bounds(end)):
            return None
        budget = INF if max_ap is None else max_ap + EPS

        if start.distance_to(end) < EPS:
            return PathResult([start], 0.0)

        start_cell = self.grid.cell_of(start)
        end_cell = self.grid.cell_of(end)

        # A straight move at the cheapest rate cannot be beaten
        direct = self.segment_cost(start, end, start_cell)
        if direct <= self._heuristic(start, end) + EPS:
            return PathResult([start, end], direct) if direct <= budget else None

        points = {START: start, END: end}

        def point(node) -> Position:
            if node not in points:
                points[node] = self.grid.center(node)
            return points[node]

        g_score = {START: 0.0}
        parent = {START: START}
        tie = count()
        open_set = [(self._heuristic(start, end), next(tie), START)]
        closed = set()

        while open_set:
            _, _, current = heapq.heappop(open_set)
            if current in closed:
                continue
            if current == END:
                return PathResult(self._reconstruct(parent, point), g_score[END])
            closed.add(current)

            for neighbor in self._neighbors(current, end_cell, start_cell):
                if neighbor in closed:
                    continue
                nb_point = point(neighbor)
                best_parent = current
                best_g = g_score[current] + self.segment_cost(point(current), nb_point, start_cell)
                grand = parent[current]
                if grand != current:
                    via_grand = g_score[grand] + self.segment_cost(point(grand), nb_point, start_cell)
                    if via_grand <= best_g:
                        best_parent, best_g = grand, via_grand
                if best_g == INF:
                    continue
                f_score = best_g + self._heuristic(nb_point, end)
                if f_score > budget:
                    continue
                if best_g < g_score.get(neighbor, INF):
                    g_score[neighbor] = best_g
                    parent[neighbor] = best_parent
                    heapq.heappush(open_set, (f_score, next(tie), neighbor))

        return None

    def _reconstruct(self, parent: dict, point) -> list[Position]:
        node = END
        path = [point(END)]
        while node != START:
            node = parent[node]
            path.append(point(node))
        return list(reversed(path))

    def truncate(self, result: PathResult, max_ap: float) -> PathResult:
        """The longest prefix of a path whose cost fits within max_ap."""
        free = self.grid.cell_of(result.path[0])
        spent = 0.0
        kept = [result.path[0]]
        for a, b in zip(result.path, result.path[1:]):
            leg = self.segment_cost(a, b, free)
            if spent + leg <= max_ap + EPS:
                spent += leg
                kept.append(b)
                continue
            lo, hi = 0.0, 1.0
            for _ in range(40):
                mid = (lo + hi) / 2
                probe = Position(a.x + (b.x - a.x) * mid, a.y + (b.y - a.y) * mid)
                if spent + self.segment_cost(a, probe, free) <= max_ap + EPS:
                    lo = mid
                else:
                    hi = mid
            if lo > 0:
                end = Position(a.x + (b.x - a.x) * lo, a.y + (b.y - a.y) * lo)
                spent += self.segment_cost(a, end, free)
                kept.append(end)
            break
        return PathResult(kept, spent)

    def find_closest_affordable(self, start, target, max_ap: float) -> Optional[PathResult]:
        """
        The exact target if affordable, else the nearest point around it
        that is.

        Rings of 0.5..3 MU around the target are sampled first (ring
        radius ascending, angle ascending). If no sample fits the budget the
        cheapest unconstrained path is cut off where the budget runs out.
        """
        start = Position.from_any(start)
        target = Position.from_any(target)
        exact = self.find_path_with_cost(start, target, max_ap)
        if exact is not None:
            return exact

        for radius in SAMPLE_RADII:
            samples = math.ceil(radius * 8)
            for k in range(samples):
                angle = 2 * math.pi * k / samples
                probe = Position(target.x + math.cos(angle) * radius,
                                 target.y + math.sin(angle) * radius)
                result = self.find_path_with_cost(start, probe, max_ap)
                if result is not None:
                    return result

        full = self.find_path_with_cost(start, target)
        if full is None:
            return None
        partial = self.truncate(full, max_ap)
        if len(partial.path) < 2:
            return None
        return partial
