"""Tests for the token ledger and hindrance tracking."""
import pytest

from mest.errors import UnknownModelError
from mest.hindrance import HindranceTracker, derive_status, hindrance_kind, Hindrances
from mest.models import ModelRoster, Side
from mest.terrain import Position
from mest.tokens import TokenKind, TokenLedger


def make_ledger():
    roster = ModelRoster()
    model = roster.create(Side.A, Position(0, 0))
    ledger = TokenLedger(known_models=roster)
    return roster, model, ledger


def test_markers_never_stack():
    _, model, ledger = make_ledger()
    assert ledger.add_token(model.id, "ko") == 1
    assert ledger.add_token(model.id, "ko") == 1
    assert ledger.add_token(model.id, TokenKind.ELIMINATED, count=3) == 1
    assert ledger.is_out_of_action(model.id)


def test_turn_scoped_tokens_are_purged():
    _, model, ledger = make_ledger()
    ledger.add_token(model.id, TokenKind.DELAY)
    ledger.add_token(model.id, TokenKind.DONE)
    ledger.add_token(model.id, TokenKind.WOUND, count=2)
    ledger.add_token(model.id, TokenKind.HIDDEN, until_end_of_turn=False)

    changed = ledger.start_new_turn()
    assert (model.id, TokenKind.DELAY) in changed
    assert ledger.get_token_counts(model.id) == {"wound": 2, "hidden": 1}


def test_remove_floors_at_zero():
    _, model, ledger = make_ledger()
    ledger.add_token(model.id, TokenKind.FEAR)
    assert ledger.remove_token(model.id, TokenKind.FEAR) == 0
    assert ledger.remove_token(model.id, TokenKind.FEAR) == 0
    assert ledger.get_token_counts(model.id) == {}
    assert model.id not in ledger.entries


def test_unknown_model_rejected():
    _, _, ledger = make_ledger()
    with pytest.raises(UnknownModelError):
        ledger.add_token("side-a-99", TokenKind.FEAR)
    with pytest.raises(UnknownModelError):
        ledger.get_token_counts("side-a-99")


def test_count_must_be_positive():
    _, model, ledger = make_ledger()
    with pytest.raises(ValueError):
        ledger.add_token(model.id, TokenKind.WOUND, count=0)


def test_listeners_see_every_change():
    _, model, ledger = make_ledger()
    seen = []
    ledger.subscribe(lambda mid, kind, n: seen.append((kind.value, n)))
    ledger.add_token(model.id, TokenKind.WOUND)
    ledger.remove_token(model.id, TokenKind.WOUND)
    assert seen == [("wound", 1), ("wound", 0)]


def test_status_thresholds():
    assert derive_status(Hindrances()) == []
    assert derive_status(Hindrances(delay=2)) == ["Distracted", "Stunned"]
    assert derive_status(Hindrances(fear=3, wounds=1)) == ["Nervous", "Disordered", "Panicked", "Wounded"]


def test_tracker_follows_the_ledger():
    roster, model, ledger = make_ledger()
    tracker = HindranceTracker(ledger, roster)

    tracker.add_hindrance(model.id, "fear")
    assert tracker.is_ordered(model.id)
    tracker.add_hindrance(model.id, "fear")
    assert not tracker.is_ordered(model.id)
    assert model.status == ["Nervous", "Disordered"]

    tracker.remove_hindrance(model.id, "fear")
    tracker.remove_hindrance(model.id, "fear")
    tracker.remove_hindrance(model.id, "fear")
    assert tracker.get_hindrances(model.id).is_clear
    assert model.id not in tracker.tracked
    assert model.status == []


def test_delay_reduces_available_ap():
    roster, model, ledger = make_ledger()
    tracker = HindranceTracker(ledger, roster)
    assert tracker.available_ap(model.id) == 2
    tracker.add_hindrance(model.id, "delay")
    model.ap_spent = 0.5
    assert tracker.available_ap(model.id) == 0.5

    ledger.start_new_turn()
    assert tracker.get_hindrances(model.id).delay == 0


def test_only_hindrances_accepted():
    assert hindrance_kind("wounds") == TokenKind.WOUND
    with pytest.raises(ValueError):
        hindrance_kind("ko")
    with pytest.raises(ValueError):
        hindrance_kind(TokenKind.DONE)
