"""
Heuristic action scorer and the agent built on it.

Candidate actions are enumerated in a fixed order (move, attacks per
visible enemy, hide, wait) and each gets a base score less twice its AP
cost. The highest score wins; on a tie the earlier candidate stays.
"""

import logging
from typing import Optional

from mest.combat import AttackType
from mest.cover import NONE
from mest.models import Model
from mest.objectives import ObjectiveType
from mest.session import BattleSession
from mest.terrain import Position
from mest.tokens import TokenKind

from .base import Action, ActionKind, AgentConfig, TacticalAgent

logger = logging.getLogger(__name__)

CLOSE_COMBAT_SCORES = {2: 10, 1: 5, 0: 1}  # by outcome: damage, hit, miss
RANGED_COMBAT_SCORES = {2: 8, 1: 4, 0: 2}
MOVE_SCORE = 3
HIDE_SCORE = 4
WAIT_SCORE = 1
COST_WEIGHT = 2


class ActionScorer:
    """Enumerates and scores the legal actions of one model."""

    def __init__(self, profile: str = "aggressive"):
        self.profile = profile

    def visible_enemies(self, session: BattleSession, model: Model) -> list[Model]:
        """
        Active enemies within short range or in line of sight.

        Stricter than the plain 8 MU distance check, which counts every
        enemy as visible past that range: an enemy behind a wall or a
        building is not offered as a target.
        """
        return [e for e in session.enemies_of(model) if session.validate_los(model, e).has_los]

    def move_destination(self, session: BattleSession, model: Model) -> Optional[Position]:
        enemies = session.enemies_of(model)
        if not enemies:
            return None
        nearest = min(enemies, key=lambda e: model.position.distance_to(e.position))
        if model.position.distance_to(nearest.position) <= session.rules.melee_range:
            return None

        if self.profile in ("defensive", "cautious"):
            best = session.find_best_defensive_position(
                model.position, enemies, session.available_ap(model.id))
            if best is not None and best.position != model.position:
                return best.position
            if self.profile == "cautious":
                return None

        if self.profile == "objective-focused":
            target = self._objective_location(session, model)
            if target is not None and model.position.distance_to(target) > 0.5:
                return target

        return nearest.position

    def _objective_location(self, session: BattleSession, model: Model) -> Optional[Position]:
        """Nearest open control zone this model's side can score."""
        zones = [
            o.location for o in session.objectives.objectives
            if o.type == ObjectiveType.CONTROL and o.location is not None
            and o.id not in session.objectives.completed
            and (o.side is None or o.side == model.side)
        ]
        if not zones:
            return None
        return min(zones, key=lambda p: model.position.distance_to(p))

    def candidates(self, session: BattleSession, model: Model) -> list[Action]:
        actions = []
        if session.available_ap(model.id) >= 1:
            destination = self.move_destination(session, model)
            if destination is not None:
                actions.append(Action(ActionKind.MOVE, model.id, cost=1, destination=destination))

        engaged = session.combat.is_engaged(model)
        visible = self.visible_enemies(session, model)
        for enemy in visible:
            distance = model.position.distance_to(enemy.position)
            if distance <= session.rules.melee_range:
                actions.append(Action(ActionKind.CLOSE_COMBAT, model.id, cost=1, target_id=enemy.id))
            if (not engaged and distance <= session.rules.ranged_range
                    and session.combat.why_not(model, enemy, AttackType.RANGED) is None):
                actions.append(Action(ActionKind.RANGED_COMBAT, model.id, cost=1, target_id=enemy.id))

        if not engaged and visible and not session.ledger.has(model.id, TokenKind.HIDDEN):
            cover = session.cover.analyzer.analyze(model.position, visible).cover
            if cover != NONE:
                actions.append(Action(ActionKind.HIDE, model.id, cost=1))

        actions.append(Action(ActionKind.WAIT, model.id, cost=0))
        return actions

    def score(self, session: BattleSession, action: Action) -> float:
        if action.kind in (ActionKind.CLOSE_COMBAT, ActionKind.RANGED_COMBAT):
            attack_type = AttackType.CLOSE if action.kind == ActionKind.CLOSE_COMBAT else AttackType.RANGED
            report = session.resolve_combat(action.model_id, action.target_id, attack_type, simulate=True)
            table = CLOSE_COMBAT_SCORES if attack_type == AttackType.CLOSE else RANGED_COMBAT_SCORES
            base = table[report.outcome_score]
        elif action.kind == ActionKind.MOVE:
            base = MOVE_SCORE
        elif action.kind == ActionKind.HIDE:
            base = HIDE_SCORE
        else:
            base = WAIT_SCORE
        return base - COST_WEIGHT * action.cost

    def scored(self, session: BattleSession, model: Model) -> list[Action]:
        actions = self.candidates(session, model)
        for action in actions:
            action.score = self.score(session, action)
        return actions

    def best(self, actions: list[Action]) -> Action:
        """Highest score; the first candidate wins ties."""
        best = actions[0]
        for action in actions[1:]:
            if action.score > best.score:
                best = action
        return best

    def decide(self, session: BattleSession, model: Model) -> Action:
        return self.best(self.scored(session, model))


class HeuristicAgent(TacticalAgent):
    """Agent that always plays the scorer's top action."""

    def __init__(self, config: AgentConfig):
        super().__init__(config)
        self.scorer = ActionScorer(config.profile)

    def choose_action(self, session: BattleSession, model: Model) -> Action:
        action = self.scorer.decide(session, model)
        logger.debug(f"{model.identifier}: {action.describe()} (score {action.score})")
        return action

    @classmethod
    def create_default(cls, side: str, profile: Optional[str] = None) -> "HeuristicAgent":
        return cls(AgentConfig(side=side, profile=profile or "aggressive"))
