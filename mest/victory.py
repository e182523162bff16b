"""
Victory and resource point accounting.

Accrued during play: the outnumbered bonus (once, at setup), aggression
(once per side), first crossing RP, bottled-out VP and objective points.
Elimination VP and RP VP are only worked out by get_final_result(),
which never changes state.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .models import Model, Side
from .terrain import Position

logger = logging.getLogger(__name__)


@dataclass
class SideScore:
    vp: int = 0
    rp: int = 0
    eliminated_bp: float = 0.0  # BP this side has lost
    bottled_out: bool = False
    aggression_awarded: bool = False
    starting_models: int = 0
    breakdown: dict[str, int] = field(default_factory=dict)

    def award(self, source: str, vp: int):
        self.vp += vp
        self.breakdown[source] = self.breakdown.get(source, 0) + vp


@dataclass
class VictoryResult:
    vp: dict[str, int]
    rp: dict[str, int]
    breakdown: dict[str, dict[str, int]]
    winner: Optional[str]
    reason: Optional[str] = None

    @property
    def is_draw(self) -> bool:
        return self.winner is None

    def to_dict(self) -> dict:
        return {
            "winner": self.winner or "draw",
            "vp": dict(self.vp),
            "rp": dict(self.rp),
            "breakdown": {k: dict(v) for k, v in self.breakdown.items()},
            "reason": self.reason,
        }


def has_crossed(side: Side, position: Position) -> bool:
    """Past the centre line, seen from that side's deployment edge."""
    return position.x * side.advance >= 0


class VictorySystem:
    """Per-side VP/RP state for one mission."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.sides = {Side.A: SideScore(), Side.B: SideScore()}
        self.first_crossing_side: Optional[Side] = None
        self.eliminated_models: set[str] = set()
        self.awarded_objectives: set[str] = set()

    def initialize(self, starting_counts: dict[Side, int]):
        """Record starting strength and apply the outnumbered bonus."""
        self.reset()
        for side, n in starting_counts.items():
            self.sides[side].starting_models = n

        a, b = starting_counts.get(Side.A, 0), starting_counts.get(Side.B, 0)
        if a == 0 or b == 0 or a == b:
            return
        smaller = Side.A if a < b else Side.B
        ratio = max(a, b) / min(a, b)
        if ratio >= 2:
            self.sides[smaller].award("outnumbered", 2)
        elif ratio >= 1.5:
            self.sides[smaller].award("outnumbered", 1)

    def record_move(self, model: Model, old: Position, new: Position):
        """First model of either side to cross the centre line earns +1 RP."""
        if self.first_crossing_side is not None:
            return
        if not has_crossed(model.side, old) and has_crossed(model.side, new):
            self.first_crossing_side = model.side
            self.sides[model.side].rp += 1
            logger.info(f"{model.identifier} ({model.side.value}) first across the centre line: +1 RP")

    def check_aggression(self, models: list[Model], active_ids: set[str]):
        """+1 VP once per side when half its starting models are across."""
        for side, score in self.sides.items():
            if score.aggression_awarded or score.starting_models == 0:
                continue
            across = sum(
                1 for m in models
                if m.side == side and m.id in active_ids and has_crossed(side, m.position)
            )
            if across >= score.starting_models / 2:
                score.aggression_awarded = True
                score.award("aggression", 1)
                logger.info(f"{side.value} earns aggression VP ({across} models across)")

    def record_elimination(self, model: Model):
        """Count a model's BP as lost the first time it goes out of action."""
        if model.id in self.eliminated_models:
            return
        self.eliminated_models.add(model.id)
        self.sides[model.side].eliminated_bp += model.bp

    def mark_bottled(self, side: Side):
        """A bottled-out side hands its opponent +1 VP, once."""
        score = self.sides[side]
        if score.bottled_out:
            return
        score.bottled_out = True
        self.sides[side.opponent].award("bottled_out", 1)
        logger.info(f"{side.value} bottled out: +1 VP to {side.opponent.value}")

    def check_bottled(self, ordered_counts: dict[Side, int]):
        for side, ordered in ordered_counts.items():
            if ordered == 0:
                self.mark_bottled(side)

    def award_objective(self, objective_id: str, side: Side, points: int) -> bool:
        if objective_id in self.awarded_objectives:
            return False
        self.awarded_objectives.add(objective_id)
        self.sides[side].award("objectives", points)
        return True

    def add_rp(self, side: Side, amount: int = 1):
        self.sides[side].rp += amount

    def _elimination_vp(self) -> dict[Side, int]:
        lost_a = self.sides[Side.A].eliminated_bp
        lost_b = self.sides[Side.B].eliminated_bp
        if lost_b > lost_a:
            return {Side.A: 1, Side.B: 0}
        if lost_a > lost_b:
            return {Side.A: 0, Side.B: 1}
        return {Side.A: 0, Side.B: 0}

    def _rp_vp(self) -> dict[Side, int]:
        rp_a, rp_b = self.sides[Side.A].rp, self.sides[Side.B].rp
        result = {Side.A: 0, Side.B: 0}
        if rp_a == rp_b:
            return result
        leader, high, low = (Side.A, rp_a, rp_b) if rp_a > rp_b else (Side.B, rp_b, rp_a)
        result[leader] = 2 if high >= 2 * low and high - low >= 10 else 1
        return result

    def get_final_result(self, reason: Optional[str] = None) -> VictoryResult:
        elimination = self._elimination_vp()
        rp_vp = self._rp_vp()
        vp, rp, breakdown = {}, {}, {}
        for side, score in self.sides.items():
            parts = dict(score.breakdown)
            if elimination[side]:
                parts["elimination"] = elimination[side]
            if rp_vp[side]:
                parts["resource_points"] = rp_vp[side]
            vp[side.value] = score.vp + elimination[side] + rp_vp[side]
            rp[side.value] = score.rp
            breakdown[side.value] = parts

        a, b = Side.A.value, Side.B.value
        if vp[a] != vp[b]:
            winner = a if vp[a] > vp[b] else b
        elif rp[a] != rp[b]:
            winner = a if rp[a] > rp[b] else b
        else:
            winner = None
        return VictoryResult(vp=vp, rp=rp, breakdown=breakdown, winner=winner, reason=reason)

    def current_vp(self, side: Side) -> int:
        return self.sides[side].vp
