"""
End-game trigger state machine.

Each turn-end runs, in order: the breakpoint morale check, the
no-opposing-models check, a roll of every END die already in the pool
(any die at or under the miss threshold ends the game), then adds dice
due this turn. The first die joins at the game size's trigger turn and
one more at each later additional-dice turn.
"""

import random
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .models import Side
from .rules import RulesConfig

logger = logging.getLogger(__name__)

NO_OPPOSING_MODELS = "no_opposing_models"
END_GAME_TRIGGER = "end_game_trigger"
TURN_LIMIT = "turn_limit"
VICTORY_CONDITIONS = "victory_conditions"


@dataclass
class EndOfTurnReport:
    turn: int
    morale_tests: list[Side] = field(default_factory=list)
    rolls: list[int] = field(default_factory=list)
    dice_added: int = 0
    ended: bool = False
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "turn": self.turn,
            "morale_tests": [s.value for s in self.morale_tests],
            "rolls": list(self.rolls),
            "dice_added": self.dice_added,
            "ended": self.ended,
            "reason": self.reason,
        }


class EndGameSystem:
    """Turn counter, breakpoint morale and END dice."""

    def __init__(
        self,
        game_size: str = "small",
        rules: Optional[RulesConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.rules = rules or RulesConfig()
        self.game_size = game_size
        self.trigger_turn = self.rules.end_game_turn(game_size)
        self.rng = rng or random.Random()
        self.turn = 0
        self.dice = 0
        self.ended = False
        self.reason: Optional[str] = None
        self.morale_triggered: set[Side] = set()
        self.on_bottle_test: Optional[Callable[[Side], None]] = None

    def end(self, reason: str):
        if not self.ended:
            self.ended = True
            self.reason = reason
            logger.info(f"Mission ended on turn {self.turn}: {reason}")

    def _dice_due(self, turn: int) -> int:
        due = 0
        if turn == self.trigger_turn:
            due += 1
        if turn > self.trigger_turn and turn in self.rules.additional_end_dice_turns:
            due += 1
        return due

    def process_end_of_turn(
        self,
        active_counts: dict[Side, int],
        starting_counts: dict[Side, int],
    ) -> EndOfTurnReport:
        if self.ended:
            return EndOfTurnReport(self.turn, ended=True, reason=self.reason)

        self.turn += 1
        report = EndOfTurnReport(self.turn)

        for side in (Side.A, Side.B):
            if side in self.morale_triggered:
                continue
            if active_counts.get(side, 0) < starting_counts.get(side, 0) / 2:
                self.morale_triggered.add(side)
                report.morale_tests.append(side)
                logger.info(f"Breakpoint reached for {side.value}: bottle test required")
                if self.on_bottle_test:
                    self.on_bottle_test(side)

        if any(active_counts.get(side, 0) == 0 for side in (Side.A, Side.B)):
            self.end(NO_OPPOSING_MODELS)
            report.ended, report.reason = True, NO_OPPOSING_MODELS
            return report

        if self.dice:
            report.rolls = [self.rng.randint(1, 6) for _ in range(self.dice)]
            logger.info(f"Turn {self.turn} END dice: {report.rolls}")
            if any(r <= self.rules.end_die_miss for r in report.rolls):
                self.end(END_GAME_TRIGGER)
                report.ended, report.reason = True, END_GAME_TRIGGER
                return report

        report.dice_added = self._dice_due(self.turn)
        self.dice += report.dice_added
        return report

    def to_dict(self) -> dict:
        return {
            "turn": self.turn,
            "game_size": self.game_size,
            "trigger_turn": self.trigger_turn,
            "dice": self.dice,
            "ended": self.ended,
            "reason": self.reason,
            "morale_triggered": sorted(s.value for s in self.morale_triggered),
        }
