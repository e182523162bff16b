"""Tests for the end-game trigger and breakpoint morale."""
from mest.endgame import END_GAME_TRIGGER, NO_OPPOSING_MODELS, EndGameSystem
from mest.models import Side


class ScriptedDice:
    """Dice that return a fixed sequence of results."""

    def __init__(self, rolls):
        self.rolls = list(rolls)

    def randint(self, a, b):
        return self.rolls.pop(0)


FULL = {Side.A: 4, Side.B: 4}


def test_dice_join_at_trigger_turn_and_roll_after():
    endgame = EndGameSystem("small", rng=ScriptedDice([4, 5, 6, 2]))
    assert endgame.trigger_turn == 4

    for turn in (1, 2, 3):
        report = endgame.process_end_of_turn(FULL, FULL)
        assert report.turn == turn
        assert report.rolls == []
        assert report.dice_added == 0

    report = endgame.process_end_of_turn(FULL, FULL)
    assert report.dice_added == 1
    assert report.rolls == []

    report = endgame.process_end_of_turn(FULL, FULL)
    assert report.rolls == [4]
    assert not report.ended

    # Turn 6 is an additional-dice turn
    report = endgame.process_end_of_turn(FULL, FULL)
    assert report.rolls == [5]
    assert report.dice_added == 1

    report = endgame.process_end_of_turn(FULL, FULL)
    assert report.rolls == [6, 2]
    assert report.ended
    assert report.reason == END_GAME_TRIGGER
    assert endgame.ended


def test_medium_game_adds_one_die_at_trigger():
    endgame = EndGameSystem("medium", rng=ScriptedDice([6, 6]))
    reports = [endgame.process_end_of_turn(FULL, FULL) for _ in range(8)]
    assert [r.dice_added for r in reports] == [0, 0, 0, 0, 0, 1, 0, 1]
    assert reports[6].rolls == [6]
    assert endgame.dice == 2


def test_no_opposing_models_ends_the_game():
    endgame = EndGameSystem("small", rng=ScriptedDice([]))
    report = endgame.process_end_of_turn({Side.A: 3, Side.B: 0}, FULL)
    assert report.ended
    assert report.reason == NO_OPPOSING_MODELS
    assert report.morale_tests == [Side.B]


def test_breakpoint_fires_once_per_side():
    triggered = []
    endgame = EndGameSystem("small", rng=ScriptedDice([]))
    endgame.on_bottle_test = triggered.append

    report = endgame.process_end_of_turn({Side.A: 1, Side.B: 4}, FULL)
    assert report.morale_tests == [Side.A]
    report = endgame.process_end_of_turn({Side.A: 1, Side.B: 2}, FULL)
    assert report.morale_tests == []
    assert triggered == [Side.A]


def test_nothing_happens_after_the_end():
    endgame = EndGameSystem("small", rng=ScriptedDice([]))
    endgame.process_end_of_turn({Side.A: 0, Side.B: 4}, FULL)
    report = endgame.process_end_of_turn(FULL, FULL)
    assert report.ended
    assert report.turn == 1
    assert endgame.to_dict()["reason"] == NO_OPPOSING_MODELS
