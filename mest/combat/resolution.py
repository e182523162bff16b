"""
Close and ranged combat between models.

Hit test: d6 at or under the attacker's CCA (close) or RCA (ranged) plus
modifiers. Damage test: d6 over the defender's REF. Damage adds a wound
and forces a fear test; the first fear token is automatic, later ones
land on a d6 at or under 2, 3, then 4. A model whose wounds reach its
SIZ is knocked out.
"""

import logging
from typing import Optional

from ..cover import CoverBonusSystem, has_elevation_advantage
from ..errors import MissionStateError
from ..hindrance import HindranceTracker
from ..models import Model, ModelRoster
from ..rules import RulesConfig
from ..tokens import TokenKind, TokenLedger
from .base import AttackType, CombatReport, CombatResolver

logger = logging.getLogger(__name__)

# Attacker statuses that each cost -1 to hit
HINDRANCE_PENALTIES = ("Distracted", "Stunned", "Nervous", "Disordered", "Panicked")


class CombatSystem(CombatResolver):
    """Resolves attacks and applies their results through the token ledger."""

    def __init__(
        self,
        roster: ModelRoster,
        ledger: TokenLedger,
        hindrance: HindranceTracker,
        cover: CoverBonusSystem,
        rules: Optional[RulesConfig] = None,
        rng_seed: Optional[int] = None,
        rng=None,
    ):
        super().__init__(rng_seed, rng)
        self.roster = roster
        self.ledger = ledger
        self.hindrance = hindrance
        self.cover = cover
        self.rules = rules or ledger.rules

    def active_enemies(self, model: Model) -> list[Model]:
        return [
            m for m in self.roster
            if m.side != model.side and not m.reserve and not self.ledger.is_out_of_action(m.id)
        ]

    def is_engaged(self, model: Model) -> bool:
        """In base contact range of any active enemy."""
        return any(
            model.position.distance_to(e.position) <= self.rules.melee_range
            for e in self.active_enemies(model)
        )

    def attack_type_for(self, attacker: Model, defender: Model) -> AttackType:
        distance = attacker.position.distance_to(defender.position)
        return AttackType.CLOSE if distance <= self.rules.melee_range else AttackType.RANGED

    def why_not(self, attacker: Model, defender: Model, attack_type: AttackType) -> Optional[str]:
        """Reason the attack is illegal, or None."""
        if attacker.side == defender.side:
            return "same_side"
        if self.ledger.is_out_of_action(attacker.id):
            return "attacker_out_of_action"
        if self.ledger.is_out_of_action(defender.id):
            return "defender_out_of_action"
        distance = attacker.position.distance_to(defender.position)
        if attack_type == AttackType.CLOSE:
            return None if distance <= self.rules.melee_range else "out_of_melee_range"
        if distance > self.rules.ranged_range:
            return "out_of_range"
        if self.is_engaged(attacker):
            return "engaged"
        if self.ledger.has(attacker.id, TokenKind.OUT_OF_AMMO):
            return "out_of_ammo"
        if not self.cover.los.validate_los(attacker, defender).has_los:
            return "no_line_of_sight"
        return None

    def hit_modifiers(self, attacker: Model, defender: Model, attack_type: AttackType) -> dict[str, int]:
        mods = {}
        if attack_type == AttackType.RANGED:
            cover = self.cover.analyzer.analyze(defender.position, [attacker]).cover
            if cover in self.rules.cover_penalty:
                mods[f"{cover}_cover"] = -self.rules.cover_penalty[cover]
        if has_elevation_advantage(self.cover.battlefield, attacker.position, defender.position,
                                   self.rules.elevation_advantage):
            mods["elevation"] = self.rules.elevation_hit_bonus
        penalties = [s for s in self.hindrance.get_status(attacker.id) if s in HINDRANCE_PENALTIES]
        if penalties:
            mods["hindrance"] = -len(penalties)
        return mods

    def resolve(
        self,
        attacker_id: str,
        defender_id: str,
        attack_type: Optional[AttackType | str] = None,
        simulate: bool = False,
    ) -> CombatReport:
        """
        Resolve one attack. With simulate=True nothing is written and the
        dice come from the simulation stream.
        """
        attacker = self.roster.get(attacker_id)
        defender = self.roster.get(defender_id)
        attack_type = AttackType(attack_type) if attack_type else self.attack_type_for(attacker, defender)

        reason = self.why_not(attacker, defender, attack_type)
        if reason:
            raise MissionStateError(f"{attacker_id} cannot attack {defender_id}: {reason}")

        rng = self.sim_rng if simulate else self.rng
        report = CombatReport(attacker_id, defender_id, attack_type, simulated=simulate)
        report.modifiers = self.hit_modifiers(attacker, defender, attack_type)
        skill = attacker.profile.cca if attack_type == AttackType.CLOSE else attacker.profile.rca
        report.hit_target = skill + sum(report.modifiers.values())
        report.hit_roll, report.hit = self.test_under(report.hit_target, rng)
        if not report.hit:
            report.notes.append("miss")
            return report

        report.damage_target = defender.profile.ref
        report.damage_roll, report.damaged = self.test_over(report.damage_target, rng)
        if not report.damaged:
            report.notes.append("hit, no damage")
            return report

        fear = self.hindrance.get_hindrances(defender.id).fear
        if fear == 0:
            report.fear_added = True
        else:
            difficulty = self.rules.fear_difficulty[min(fear - 1, len(self.rules.fear_difficulty) - 1)]
            _, report.fear_added = self.test_under(difficulty, rng)

        wounds = self.hindrance.get_hindrances(defender.id).wounds + 1
        report.ko = wounds >= defender.profile.siz and not self.ledger.has(defender.id, TokenKind.KO)

        if simulate:
            return report

        self.hindrance.add_hindrance(defender.id, TokenKind.WOUND)
        if report.fear_added:
            self.hindrance.add_hindrance(defender.id, TokenKind.FEAR)
        if report.ko:
            self.ledger.add_token(defender.id, TokenKind.KO)
            report.notes.append("knocked out")
        logger.info(
            f"{attacker.identifier} {attack_type.value} attack on {defender.identifier}: "
            f"hit {report.hit_roll}/{report.hit_target}, damage {report.damage_roll}>{report.damage_target}"
        )
        return report
