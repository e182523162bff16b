"""
Combat resolution: hit tests, damage tests and fear.
"""

from .base import AttackType, CombatReport, CombatResolver
from .resolution import CombatSystem, HINDRANCE_PENALTIES

__all__ = [
    "AttackType",
    "CombatReport",
    "CombatResolver",
    "CombatSystem",
    "HINDRANCE_PENALTIES",
]
