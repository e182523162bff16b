"""Tests for the action scorer and the tactical agents."""
import json
from types import SimpleNamespace

from openai import OpenAIError

from agents import Action, ActionKind, ActionScorer, AgentConfig, HeuristicAgent, LLMAgent
from mest.models import Side
from mest.terrain import Position
from mest.tokens import TokenKind


class ScriptedDice:
    """Dice that return a fixed sequence of results."""

    def __init__(self, rolls):
        self.rolls = list(rolls)

    def randint(self, a, b):
        return self.rolls.pop(0)


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_client(completions: FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def make_standoff(session):
    """One model a side, 16 MU apart on open ground."""
    a = session.add_model(Side.A, -8, 0)
    b = session.add_model(Side.B, 8, 0)
    return a, b


def test_engaged_model_fights(session):
    a = session.add_model(Side.A, 0, 0)
    b = session.add_model(Side.B, 0.5, 0)
    session.combat.sim_rng = ScriptedDice([1, 6])

    scorer = ActionScorer("aggressive")
    actions = scorer.scored(session, a)
    assert [x.kind for x in actions] == [ActionKind.CLOSE_COMBAT, ActionKind.WAIT]
    best = scorer.best(actions)
    assert best.kind == ActionKind.CLOSE_COMBAT
    assert best.target_id == b.id
    assert best.score == 8


def test_aggressive_model_advances_when_shots_miss(session):
    a, b = make_standoff(session)
    session.combat.sim_rng = ScriptedDice([6])

    actions = ActionScorer("aggressive").scored(session, a)
    assert [x.kind for x in actions] == [ActionKind.MOVE, ActionKind.RANGED_COMBAT, ActionKind.WAIT]
    assert [x.score for x in actions] == [1, 0, 1]
    best = ActionScorer("aggressive").best(actions)
    assert best.kind == ActionKind.MOVE
    assert best.destination == b.position


def test_cautious_model_stays_without_cover(session):
    a, _ = make_standoff(session)
    assert ActionScorer("cautious").move_destination(session, a) is None


def test_objective_focused_model_heads_for_the_zone(session):
    a, _ = make_standoff(session)
    session.objectives.set_objectives([{
        "type": "control", "side": "both", "points": 1,
        "location": {"x": 0, "y": 5, "radius": 2},
    }])
    assert ActionScorer("objective-focused").move_destination(session, a) == Position(0, 5)


def test_enemies_out_of_sight_are_not_targets(session):
    a, b = make_standoff(session)
    scorer = ActionScorer("aggressive")
    assert scorer.visible_enemies(session, a) == [b]

    session.place_terrain("building", 0, 0)
    assert scorer.visible_enemies(session, a) == []
    kinds = [x.kind for x in scorer.candidates(session, a)]
    assert ActionKind.RANGED_COMBAT not in kinds


def test_hide_offered_behind_cover(session):
    session.place_terrain("wall", -6, 0, {"length": 4}, rotation=90)
    a = session.add_model(Side.A, -8, 0)
    session.add_model(Side.B, -1, 0)
    kinds = [x.kind for x in ActionScorer("aggressive").candidates(session, a)]
    assert ActionKind.HIDE in kinds

    session.add_token(a.id, TokenKind.HIDDEN)
    kinds = [x.kind for x in ActionScorer("aggressive").candidates(session, a)]
    assert ActionKind.HIDE not in kinds


def test_hide_action_spends_ap(session):
    a, _ = make_standoff(session)
    agent = HeuristicAgent.create_default("side-a")
    event = agent.execute(session, Action(ActionKind.HIDE, a.id, cost=1))
    assert event["result"] == {"hidden": True}
    assert session.ledger.has(a.id, TokenKind.HIDDEN)
    assert session.available_ap(a.id) == 1


def test_heuristic_agent_activates_every_model(session, mission_config):
    session.load_mission(mission_config)
    agent = HeuristicAgent.create_default("side-a")
    events = agent.take_turn(session)
    assert events
    assert agent.turn_count == 1
    for model in session.roster.by_side(Side.A):
        assert session.ledger.has(model.id, TokenKind.DONE)
    for model in session.roster.by_side(Side.B):
        assert not session.ledger.has(model.id, TokenKind.DONE)


def test_llm_agent_plays_the_chosen_index(session):
    a, _ = make_standoff(session)
    session.combat.sim_rng = ScriptedDice([6])
    completions = FakeCompletions(json.dumps({"reasoning": "Hold and watch", "action_index": 2}))
    agent = LLMAgent(AgentConfig(side="side-a"), client=make_client(completions))

    action = agent.choose_action(session, a)
    assert action.kind == ActionKind.WAIT
    assert agent.last_reasoning == "Hold and watch"
    assert agent.fallbacks == 0

    request = completions.calls[0]
    assert request["model"] == "gpt-4o"
    assert request["response_format"]["json_schema"]["strict"] is True
    assert "LEGAL ACTIONS" in request["messages"][1]["content"]


def test_llm_agent_falls_back_on_bad_index(session):
    a, _ = make_standoff(session)
    session.combat.sim_rng = ScriptedDice([6])
    completions = FakeCompletions(json.dumps({"reasoning": "?", "action_index": 7}))
    agent = LLMAgent(AgentConfig(side="side-a"), client=make_client(completions))

    assert agent.choose_action(session, a).kind == ActionKind.MOVE
    assert agent.fallbacks == 1


def test_llm_agent_falls_back_when_the_api_fails(session, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    a, _ = make_standoff(session)
    session.combat.sim_rng = ScriptedDice([6])
    completions = FakeCompletions(error=OpenAIError("offline"))
    agent = LLMAgent.create_default("side-a", "aggressive")
    agent.client = make_client(completions)

    assert agent.choose_action(session, a).kind == ActionKind.MOVE
    assert agent.fallbacks == 1
