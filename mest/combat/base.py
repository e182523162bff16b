"""
Base combat resolution with common dice mechanics.
"""

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class AttackType(Enum):
    CLOSE = "close"
    RANGED = "ranged"


@dataclass
class CombatReport:
    """Report of a single attack."""
    attacker_id: str
    defender_id: str
    attack_type: AttackType
    hit_roll: int = 0
    hit_target: int = 0
    hit: bool = False
    damage_roll: int = 0
    damage_target: int = 0
    damaged: bool = False
    fear_added: bool = False
    ko: bool = False
    simulated: bool = False
    modifiers: dict[str, int] = field(default_factory=dict)
    notes: list[str] = field(default_factory=list)

    @property
    def outcome_score(self) -> int:
        """0 miss, 1 hit without damage, 2 damage."""
        if self.damaged:
            return 2
        return 1 if self.hit else 0

    def to_dict(self) -> dict:
        return {
            "attacker_id": self.attacker_id,
            "defender_id": self.defender_id,
            "attack_type": self.attack_type.value,
            "hit_roll": self.hit_roll,
            "hit_target": self.hit_target,
            "hit": self.hit,
            "damage_roll": self.damage_roll,
            "damage_target": self.damage_target,
            "damaged": self.damaged,
            "fear_added": self.fear_added,
            "ko": self.ko,
            "simulated": self.simulated,
            "modifiers": dict(self.modifiers),
            "notes": list(self.notes),
        }


class CombatResolver:
    """Base class for combat resolution."""

    def __init__(self, rng_seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random(rng_seed)
        # Simulated attacks draw from their own stream so planning never
        # shifts the dice of real attacks
        self.sim_rng = random.Random(rng_seed)

    def roll_d6(self, rng: Optional[random.Random] = None) -> int:
        return (rng or self.rng).randint(1, 6)

    def test_under(self, target: int, rng: Optional[random.Random] = None) -> tuple[int, bool]:
        """Roll a d6; success when the roll is at or under target."""
        roll = self.roll_d6(rng)
        return roll, roll <= target

    def test_over(self, target: int, rng: Optional[random.Random] = None) -> tuple[int, bool]:
        """Roll a d6; success when the roll beats target."""
        roll = self.roll_d6(rng)
        return roll, roll > target
