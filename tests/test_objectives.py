"""Tests for objective tracking."""
import pytest

from mest.models import ModelRoster, Side
from mest.objectives import Objective, ObjectiveTracker, ObjectiveType
from mest.terrain import Position
from mest.tokens import TokenKind, TokenLedger


def make_state():
    roster = ModelRoster()
    ledger = TokenLedger(known_models=roster)
    return roster, ledger


def test_objectives_get_stable_ids():
    tracker = ObjectiveTracker()
    tracker.set_objectives([
        {"type": "eliminate", "target": "Zulu", "points": 1},
        {"type": "control", "side": "both", "location": {"x": 0, "y": 0, "radius": 3}, "points": 2},
    ])
    assert [o.id for o in tracker.objectives] == ["objective-0", "objective-1"]
    assert tracker.objectives[0].side == Side.A
    assert tracker.objectives[1].side is None
    assert tracker.objectives[1].to_dict()["side"] == "both"


def test_eliminate_completes_once():
    roster, ledger = make_state()
    zulu = roster.create(Side.B, Position(5, 0), identifier="Zulu")
    tracker = ObjectiveTracker()
    tracker.set_objectives([{"type": "eliminate", "side": "side-a", "target": "Zulu", "points": 2}])

    status = tracker.check_objectives(roster, ledger)
    assert status.active == ["objective-0"]
    assert status.newly_completed == []

    ledger.add_token(zulu.id, TokenKind.KO)
    status = tracker.check_objectives(roster, ledger)
    assert [(c.objective_id, c.side, c.points) for c in status.newly_completed] == [("objective-0", Side.A, 2)]

    status = tracker.check_objectives(roster, ledger)
    assert status.completed == ["objective-0"]
    assert status.newly_completed == []


def test_control_needs_consecutive_turn_ends():
    roster, ledger = make_state()
    a = roster.create(Side.A, Position(0, 0))
    b = roster.create(Side.B, Position(10, 0))
    tracker = ObjectiveTracker()
    tracker.set_objectives([{
        "type": "control", "side": "both", "duration": 2, "points": 2,
        "location": {"x": 0, "y": 0, "radius": 3},
    }])

    tracker.record_turn_end(roster, ledger)
    assert tracker.check_objectives(roster, ledger).newly_completed == []

    # Contested for a turn: the streak starts over
    b.position = Position(1, 0)
    tracker.record_turn_end(roster, ledger)
    assert tracker.control_streaks["objective-0"] == (None, 0)

    b.position = Position(10, 0)
    tracker.record_turn_end(roster, ledger)
    tracker.record_turn_end(roster, ledger)
    status = tracker.check_objectives(roster, ledger)
    assert status.newly_completed[0].side == Side.A
    assert a.position == Position(0, 0)


def test_out_of_action_models_do_not_control():
    roster, ledger = make_state()
    a = roster.create(Side.A, Position(0, 0))
    tracker = ObjectiveTracker()
    objective = Objective("objective-0", ObjectiveType.CONTROL, 1, side=Side.A,
                          location=Position(0, 0), radius=2)
    tracker.set_objectives([objective])
    ledger.add_token(a.id, TokenKind.KO)
    assert tracker.controlling_side(objective, roster, ledger) is None


def test_side_specific_control_ignores_the_other_side():
    roster, ledger = make_state()
    roster.create(Side.A, Position(0, 0))
    tracker = ObjectiveTracker()
    tracker.set_objectives([{
        "type": "control", "side": "side-b", "points": 1,
        "location": {"x": 0, "y": 0, "radius": 3},
    }])
    for _ in range(3):
        tracker.record_turn_end(roster, ledger)
    assert tracker.check_objectives(roster, ledger).newly_completed == []


def test_survive_waits_for_the_turn():
    roster, ledger = make_state()
    roster.create(Side.B, Position(5, 0))
    tracker = ObjectiveTracker()
    tracker.set_objectives([{"type": "survive", "side": "side-b", "turns": 3, "points": 1}])

    tracker.current_turn = 2
    assert tracker.check_objectives(roster, ledger).newly_completed == []
    tracker.current_turn = 3
    assert tracker.check_objectives(roster, ledger).newly_completed[0].side == Side.B


def test_survive_reads_duration_as_its_turn_count():
    roster, ledger = make_state()
    roster.create(Side.B, Position(5, 0))
    tracker = ObjectiveTracker()
    tracker.set_objectives([{"type": "survive", "side": "side-b", "duration": 2, "points": 1}])
    assert tracker.objectives[0].turns == 2
    assert tracker.objectives[0].to_dict()["turns"] == 2

    tracker.current_turn = 1
    assert tracker.check_objectives(roster, ledger).newly_completed == []
    tracker.current_turn = 2
    assert tracker.check_objectives(roster, ledger).newly_completed[0].side == Side.B


def test_scripted_objectives_complete_by_command():
    roster, ledger = make_state()
    tracker = ObjectiveTracker()
    tracker.set_objectives([{"type": "destroy", "side": "side-b", "points": 3}])

    assert tracker.check_objectives(roster, ledger).active == ["objective-0"]
    completion = tracker.complete_objective("objective-0")
    assert completion.side == Side.B
    assert completion.points == 3
    assert tracker.complete_objective("objective-0") is None
    with pytest.raises(KeyError):
        tracker.complete_objective("objective-9")
