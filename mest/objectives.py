"""
Mission objective tracking.

Objectives get stable ids (`objective-<index>`). Once an id is completed
it is never evaluated or awarded again.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .models import ModelRoster, Side
from .terrain import Position
from .tokens import TokenLedger

logger = logging.getLogger(__name__)

BOTH = "both"


class ObjectiveType(Enum):
    ELIMINATE = "eliminate"
    CONTROL = "control"
    DESTROY = "destroy"
    ESCORT = "escort"
    SURVIVE = "survive"
    CAPTURE = "capture"
    INTERCEPT = "intercept"

    @property
    def scripted(self) -> bool:
        """Completed only by an explicit scenario command."""
        return self in (ObjectiveType.DESTROY, ObjectiveType.ESCORT,
                        ObjectiveType.CAPTURE, ObjectiveType.INTERCEPT)


def _survive_turns(cfg: dict) -> Optional[int]:
    """Turn count for a survive objective; `turns` wins over `duration`."""
    if cfg.get("type") != ObjectiveType.SURVIVE.value:
        return None
    value = cfg.get("turns", cfg.get("duration"))
    return int(value) if value is not None else None


@dataclass
class Objective:
    id: str
    type: ObjectiveType
    points: int
    side: Optional[Side] = Side.A  # None means either side may complete it
    target: Optional[str] = None
    location: Optional[Position] = None
    radius: float = 0.0
    duration: int = 1
    turns: Optional[int] = None
    description: str = ""

    @classmethod
    def from_config(cls, index: int, cfg: dict) -> "Objective":
        side_value = cfg.get("side", Side.A.value)
        location = cfg.get("location")
        return cls(
            id=f"objective-{index}",
            type=ObjectiveType(cfg["type"]),
            points=int(cfg["points"]),
            side=None if side_value == BOTH else Side(side_value),
            target=cfg.get("target"),
            location=Position.from_any(location) if location else None,
            radius=float(location.get("radius", 0)) if location else 0.0,
            duration=int(cfg.get("duration") or 1),
            turns=_survive_turns(cfg),
            description=cfg.get("description", ""),
        )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "type": self.type.value,
            "points": self.points,
            "side": self.side.value if self.side else BOTH,
            "description": self.description,
        }
        if self.target:
            data["target"] = self.target
        if self.location:
            data["location"] = {**self.location.to_dict(), "radius": self.radius}
        if self.type == ObjectiveType.CONTROL:
            data["duration"] = self.duration
        if self.type == ObjectiveType.SURVIVE and self.turns is not None:
            data["turns"] = self.turns
        return data


@dataclass
class Completion:
    objective_id: str
    side: Side
    points: int
    turn: int


@dataclass
class ObjectiveStatus:
    completed: list[str] = field(default_factory=list)
    active: list[str] = field(default_factory=list)
    newly_completed: list[Completion] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "completed": list(self.completed),
            "active": list(self.active),
            "newly_completed": [
                {"id": c.objective_id, "side": c.side.value, "points": c.points}
                for c in self.newly_completed
            ],
        }


class ObjectiveTracker:
    """Evaluates objectives against the roster and token ledger."""

    def __init__(self):
        self.objectives: list[Objective] = []
        self.completed: dict[str, Completion] = {}
        # objective id -> (controlling side, consecutive turn-ends held)
        self.control_streaks: dict[str, tuple[Optional[Side], int]] = {}
        self.current_turn = 0
        self.default_survive_turns: Optional[int] = None

    def set_objectives(self, objectives: list):
        self.objectives = [
            o if isinstance(o, Objective) else Objective.from_config(i, o)
            for i, o in enumerate(objectives)
        ]
        self.completed.clear()
        self.control_streaks.clear()

    def get(self, objective_id: str) -> Optional[Objective]:
        for objective in self.objectives:
            if objective.id == objective_id:
                return objective
        return None

    def controlling_side(self, objective: Objective, roster: ModelRoster, ledger: TokenLedger) -> Optional[Side]:
        """Side with strictly more active models in the zone, or None if contested."""
        if objective.location is None:
            return None
        counts = {Side.A: 0, Side.B: 0}
        for model in roster:
            if model.reserve or ledger.is_out_of_action(model.id):
                continue
            if model.position.distance_to(objective.location) <= objective.radius:
                counts[model.side] += 1
        if counts[Side.A] > counts[Side.B]:
            return Side.A
        if counts[Side.B] > counts[Side.A]:
            return Side.B
        return None

    def record_turn_end(self, roster: ModelRoster, ledger: TokenLedger):
        """Advance control streaks by one turn-end."""
        for objective in self.objectives:
            if objective.type != ObjectiveType.CONTROL or objective.id in self.completed:
                continue
            holder = self.controlling_side(objective, roster, ledger)
            if objective.side is not None and holder != objective.side:
                holder = None
            previous, streak = self.control_streaks.get(objective.id, (None, 0))
            if holder is None:
                self.control_streaks[objective.id] = (None, 0)
            elif holder == previous:
                self.control_streaks[objective.id] = (holder, streak + 1)
            else:
                self.control_streaks[objective.id] = (holder, 1)

    def _eliminate_done(self, objective: Objective, roster: ModelRoster, ledger: TokenLedger) -> bool:
        model = roster.find(objective.target) if objective.target else None
        if model is None and objective.target:
            model = roster.by_identifier(objective.target)
        if model is None:
            return True
        return ledger.is_out_of_action(model.id)

    def _survive_done(self, objective: Objective, roster: ModelRoster, ledger: TokenLedger) -> bool:
        required = objective.turns or self.default_survive_turns
        if required is None or self.current_turn < required:
            return False
        return any(not ledger.is_out_of_action(m.id) for m in roster.by_side(objective.side or Side.A))

    def _evaluate(self, objective: Objective, roster: ModelRoster, ledger: TokenLedger) -> Optional[Side]:
        """Side that has completed the objective, or None."""
        owner = objective.side or Side.A
        if objective.type == ObjectiveType.ELIMINATE:
            return owner if self._eliminate_done(objective, roster, ledger) else None
        if objective.type == ObjectiveType.SURVIVE:
            return owner if self._survive_done(objective, roster, ledger) else None
        if objective.type == ObjectiveType.CONTROL:
            holder, streak = self.control_streaks.get(objective.id, (None, 0))
            if holder is not None and streak >= objective.duration:
                return holder
        return None

    def check_objectives(self, roster: ModelRoster, ledger: TokenLedger) -> ObjectiveStatus:
        status = ObjectiveStatus()
        for objective in self.objectives:
            if objective.id in self.completed:
                status.completed.append(objective.id)
                continue
            winner = self._evaluate(objective, roster, ledger)
            if winner is None:
                status.active.append(objective.id)
                continue
            completion = Completion(objective.id, winner, objective.points, self.current_turn)
            self.completed[objective.id] = completion
            status.completed.append(objective.id)
            status.newly_completed.append(completion)
            logger.info(f"Objective {objective.id} ({objective.type.value}) completed by {winner.value}")
        return status

    def complete_objective(self, objective_id: str, side: Optional[Side] = None) -> Optional[Completion]:
        """Mark a scripted objective complete. Repeated calls return None."""
        objective = self.get(objective_id)
        if objective is None:
            raise KeyError(f"Unknown objective: {objective_id}")
        if objective_id in self.completed:
            return None
        winner = side or objective.side or Side.A
        completion = Completion(objective_id, winner, objective.points, self.current_turn)
        self.completed[objective_id] = completion
        logger.info(f"Objective {objective_id} marked complete for {winner.value}")
        return completion
