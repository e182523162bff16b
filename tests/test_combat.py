"""Tests for close and ranged combat resolution."""
import pytest

from mest.combat import AttackType
from mest.errors import MissionStateError
from mest.models import Side


class ScriptedDice:
    """Dice that return a fixed sequence of results."""

    def __init__(self, rolls):
        self.rolls = list(rolls)

    def randint(self, a, b):
        return self.rolls.pop(0)


def test_damaging_hit_adds_wound_and_first_fear(session):
    attacker = session.add_model(Side.A, 0, 0)
    defender = session.add_model(Side.B, 0.5, 0)
    session.combat.rng = ScriptedDice([2, 5])

    report = session.resolve_combat(attacker.id, defender.id)
    assert report.attack_type == AttackType.CLOSE
    assert report.hit and report.damaged
    assert report.fear_added
    assert report.outcome_score == 2
    assert session.get_token_counts(defender.id) == {"wound": 1, "fear": 1}
    assert defender.status == ["Nervous", "Wounded"]
    assert attacker.ap_spent == 1


def test_miss_changes_nothing(session):
    attacker = session.add_model(Side.A, 0, 0)
    defender = session.add_model(Side.B, 0.5, 0)
    session.combat.rng = ScriptedDice([3])

    report = session.resolve_combat(attacker.id, defender.id)
    assert not report.hit
    assert report.outcome_score == 0
    assert session.get_token_counts(defender.id) == {}


def test_hit_without_damage(session):
    attacker = session.add_model(Side.A, 0, 0)
    defender = session.add_model(Side.B, 0.5, 0)
    session.combat.rng = ScriptedDice([1, 2])

    report = session.resolve_combat(attacker.id, defender.id)
    assert report.hit and not report.damaged
    assert report.outcome_score == 1


def test_later_fear_needs_a_test(session):
    attacker = session.add_model(Side.A, 0, 0)
    defender = session.add_model(Side.B, 0.5, 0)
    session.add_hindrance(defender.id, "fear")

    # Second fear token lands on 2 or less
    session.combat.rng = ScriptedDice([1, 6, 2])
    assert session.resolve_combat(attacker.id, defender.id).fear_added
    assert session.get_hindrances(defender.id).fear == 2

    session.combat.rng = ScriptedDice([1, 6, 4])
    report = session.resolve_combat(attacker.id, defender.id)
    assert not report.fear_added
    assert session.get_hindrances(defender.id).fear == 2


def test_wounds_reaching_siz_knock_out(session):
    attacker = session.add_model(Side.A, 0, 0)
    defender = session.add_model(Side.B, 0.5, 0)
    session.add_hindrance(defender.id, "wound")
    session.add_hindrance(defender.id, "wound")
    session.add_hindrance(defender.id, "fear")
    session.combat.rng = ScriptedDice([1, 6, 6])

    report = session.resolve_combat(attacker.id, defender.id)
    assert report.ko
    assert session.ledger.is_out_of_action(defender.id)
    assert session.victory.sides[Side.B].eliminated_bp == defender.bp

    with pytest.raises(MissionStateError):
        session.resolve_combat(attacker.id, defender.id)


def test_simulation_writes_nothing(session):
    attacker = session.add_model(Side.A, 0, 0)
    defender = session.add_model(Side.B, 0.5, 0)
    report = session.resolve_combat(attacker.id, defender.id, simulate=True)
    assert report.simulated
    assert session.get_token_counts(defender.id) == {}
    assert attacker.ap_spent == 0


def test_attacks_cost_ap(session):
    attacker = session.add_model(Side.A, 0, 0)
    defender = session.add_model(Side.B, 0.5, 0)
    session.combat.rng = ScriptedDice([6, 6])
    session.resolve_combat(attacker.id, defender.id)
    session.resolve_combat(attacker.id, defender.id)
    with pytest.raises(MissionStateError):
        session.resolve_combat(attacker.id, defender.id)


def test_ranged_attack_needs_line_of_sight(session):
    session.place_terrain("building", 0, 0)
    attacker = session.add_model(Side.A, -6, 0)
    defender = session.add_model(Side.B, 6, 0)
    with pytest.raises(MissionStateError, match="no_line_of_sight"):
        session.resolve_combat(attacker.id, defender.id, "ranged")


def test_no_ranged_attack_while_engaged(session):
    attacker = session.add_model(Side.A, 0, 0)
    session.add_model(Side.B, 0.5, 0)
    far = session.add_model(Side.B, 5, 0)
    with pytest.raises(MissionStateError, match="engaged"):
        session.resolve_combat(attacker.id, far.id, "ranged")
    assert session.combat.why_not(attacker, far, AttackType.RANGED) == "engaged"


def test_close_combat_needs_base_contact(session):
    attacker = session.add_model(Side.A, 0, 0)
    defender = session.add_model(Side.B, 3, 0)
    with pytest.raises(MissionStateError, match="out_of_melee_range"):
        session.resolve_combat(attacker.id, defender.id, "close")


def test_cover_penalises_ranged_hits(session):
    session.place_terrain("wall", 2, 0, {"length": 4}, rotation=90)
    attacker = session.add_model(Side.A, -3, 0)
    defender = session.add_model(Side.B, 3, 0)
    session.combat.rng = ScriptedDice([1])

    report = session.resolve_combat(attacker.id, defender.id, "ranged")
    assert report.modifiers == {"hard_cover": -3}
    assert report.hit_target == -1
    assert not report.hit


def test_high_ground_helps_the_attacker(session):
    session.place_terrain("hill", -5, 0, {"size": "small"})
    attacker = session.add_model(Side.A, -5, 0)
    defender = session.add_model(Side.B, 1, 0)
    session.combat.rng = ScriptedDice([3, 1])

    report = session.resolve_combat(attacker.id, defender.id, "ranged")
    assert report.modifiers == {"elevation": 1}
    assert report.hit_target == 3
    assert report.hit


def test_attacker_hindrances_cost_to_hit(session):
    attacker = session.add_model(Side.A, 0, 0)
    defender = session.add_model(Side.B, 0.5, 0)
    session.add_hindrance(attacker.id, "fear")
    session.add_hindrance(attacker.id, "fear")
    session.combat.rng = ScriptedDice([1])

    report = session.resolve_combat(attacker.id, defender.id)
    assert report.modifiers == {"hindrance": -2}
    assert not report.hit
