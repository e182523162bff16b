"""Tests for the headless mission runner."""
import json

from game import MissionSimulation

from conftest import DATA_PATH


def test_run_game_writes_a_log(tmp_path):
    sim = MissionSimulation(mission="skirmish_small", data_path=str(DATA_PATH), log_dir=str(tmp_path), seed=3)
    results = sim.run_game(max_turns=2)

    assert results["mission"] == "Crossroads Skirmish"
    assert 1 <= results["turns_played"] <= 2
    assert results["winner"] in ("side-a", "side-b", "draw")
    assert set(results["final_vp"]) == {"side-a", "side-b"}
    assert set(results["surviving_models"]) == {"side-a", "side-b"}

    logs = list(tmp_path.glob("game_*.json"))
    assert len(logs) == 1
    events = json.loads(logs[0].read_text())
    assert events[0]["event"] == "game_start"
    assert events[-1]["event"] == "game_end"
    assert [e["event"] for e in events[1:-1]] == ["turn_complete"] * results["turns_played"]


def test_mission_file_path_is_accepted(tmp_path):
    path = DATA_PATH / "missions" / "hill_assault.yaml"
    sim = MissionSimulation(mission=str(path), data_path=str(DATA_PATH), log_dir=str(tmp_path), seed=1)
    sim.initialize()
    assert sim.session.mission is not None
    assert set(sim.agents) == set(sim.session.mission.sides)


def test_same_seed_same_game(tmp_path):
    first = MissionSimulation(data_path=str(DATA_PATH), log_dir=str(tmp_path / "a"), seed=11).run_game(max_turns=3)
    second = MissionSimulation(data_path=str(DATA_PATH), log_dir=str(tmp_path / "b"), seed=11).run_game(max_turns=3)
    for key in ("turns_played", "winner", "reason", "final_vp", "final_rp", "surviving_models"):
        assert first[key] == second[key]
