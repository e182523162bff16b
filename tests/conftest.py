"""Shared fixtures for the MEST QSR test suite."""
import copy
from pathlib import Path

import pytest

from mest import BattleSession

DATA_PATH = Path(__file__).parent.parent / "data"

BASE_MISSION = {
    "name": "Test Skirmish",
    "gameSize": "small",
    "battlefield": "24x24",
    "sideA": {
        "name": "Blue",
        "bp": 500,
        "models": ["Alpha", "Bravo", "Charlie", "Delta"],
        "initialPosition": {"x": -8, "y": 0},
        "deployment": "standard",
        "ai": True,
        "aiProfile": "aggressive",
    },
    "sideB": {
        "name": "Red",
        "bp": 500,
        "models": ["Zulu", "Yankee", "Xray", "Whiskey"],
        "initialPosition": {"x": 8, "y": 0},
        "deployment": "standard",
        "ai": True,
        "aiProfile": "aggressive",
    },
    "terrain": {"preset": "open-field"},
    "objectives": [
        {"type": "eliminate", "side": "side-a", "target": "Zulu", "points": 1},
    ],
    "victoryConditions": {
        "sideA": {"primary": ["Eliminate Zulu"]},
        "sideB": {"primary": ["Survive"]},
    },
}


@pytest.fixture
def mission_config() -> dict:
    """A fresh, valid small-game mission config."""
    return copy.deepcopy(BASE_MISSION)


@pytest.fixture
def session() -> BattleSession:
    """An empty 24 MU session with the bundled rules data."""
    return BattleSession(data_path=DATA_PATH, rng_seed=7)
