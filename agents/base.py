"""
Base tactical agent: turns a side's models into actions on a BattleSession.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from mest.errors import MissionStateError
from mest.models import Model, Side
from mest.session import BattleSession
from mest.terrain import Position
from mest.tokens import TokenKind

logger = logging.getLogger(__name__)

# Safety cap on actions per activation; AP normally ends it first
MAX_ACTIONS_PER_ACTIVATION = 4


class ActionKind(Enum):
    MOVE = "move"
    CLOSE_COMBAT = "closeCombat"
    RANGED_COMBAT = "rangedCombat"
    HIDE = "hide"
    WAIT = "wait"


@dataclass
class AgentConfig:
    """Configuration for a tactical agent."""
    side: str
    profile: str = "aggressive"  # mission aiProfile
    model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 1024


@dataclass
class Action:
    kind: ActionKind
    model_id: str
    cost: int = 0
    target_id: Optional[str] = None
    destination: Optional[Position] = None
    score: float = 0.0

    def describe(self) -> str:
        if self.kind == ActionKind.MOVE and self.destination is not None:
            return f"move toward ({self.destination.x:.1f}, {self.destination.y:.1f})"
        if self.target_id:
            return f"{self.kind.value} on {self.target_id}"
        return self.kind.value

    def to_dict(self) -> dict:
        data = {"kind": self.kind.value, "model_id": self.model_id, "cost": self.cost,
                "score": self.score}
        if self.target_id:
            data["target_id"] = self.target_id
        if self.destination is not None:
            data["destination"] = self.destination.to_dict()
        return data


class TacticalAgent(ABC):
    """Base class for agents that activate every model of one side."""

    def __init__(self, config: AgentConfig):
        self.config = config
        self.side = Side(config.side)
        self.turn_count = 0

    @abstractmethod
    def choose_action(self, session: BattleSession, model: Model) -> Action:
        """Pick the next action for a model that still has AP."""
        pass

    def execute(self, session: BattleSession, action: Action) -> dict:
        """Carry out an action and return a log event for it."""
        event = {"action": action.to_dict()}
        model = session.roster.get(action.model_id)

        if action.kind == ActionKind.MOVE:
            result = session.move_toward(model.id, action.destination)
            event["result"] = result.to_dict() if result else None
        elif action.kind in (ActionKind.CLOSE_COMBAT, ActionKind.RANGED_COMBAT):
            attack_type = "close" if action.kind == ActionKind.CLOSE_COMBAT else "ranged"
            report = session.resolve_combat(model.id, action.target_id, attack_type)
            event["result"] = report.to_dict()
        elif action.kind == ActionKind.HIDE:
            session.add_token(model.id, TokenKind.HIDDEN)
            model.ap_spent += action.cost
            event["result"] = {"hidden": True}
        else:
            session.add_token(model.id, TokenKind.WAIT)
            event["result"] = {"waiting": True}
        return event

    def activate(self, session: BattleSession, model: Model) -> list[dict]:
        """Spend one model's AP on actions until it waits or runs out."""
        events = []
        for _ in range(MAX_ACTIONS_PER_ACTIVATION):
            if session.is_over or session.ledger.is_out_of_action(model.id):
                break
            if session.available_ap(model.id) < 1:
                break
            action = self.choose_action(session, model)
            try:
                event = self.execute(session, action)
            except MissionStateError as e:
                logger.warning(f"{model.identifier}: {action.describe()} rejected: {e}")
                break
            events.append(event)
            if action.kind == ActionKind.WAIT or event.get("result") is None:
                break
        if not session.ledger.is_out_of_action(model.id):
            session.add_token(model.id, TokenKind.DONE)
        return events

    def take_turn(self, session: BattleSession) -> list[dict]:
        """Activate every active model of this side once."""
        self.turn_count += 1
        events = []
        for model in session.active_models(self.side):
            events.extend(self.activate(session, model))
        return events

    def reset(self):
        self.turn_count = 0
