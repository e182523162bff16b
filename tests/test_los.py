"""Tests for line of sight over terrain."""
import pytest

from mest.errors import StaleTerrainError
from mest.los import LOSEngine
from mest.models import Model, Side
from mest.terrain import Battlefield, Position, make_terrain


def make_model(x, y, side=Side.A, height=1.0) -> Model:
    return Model(id=f"m-{x}-{y}", side=side, identifier="M", position=Position(x, y), height=height)


def make_engine(*terrain) -> LOSEngine:
    bf = Battlefield(size=24)
    for t in terrain:
        bf.add(t)
    return LOSEngine(bf)


def test_open_ground_is_visible():
    los = make_engine()
    result = los.validate_los(make_model(-10, 0), make_model(10, 0))
    assert result.has_los
    assert result.distance == pytest.approx(20.0)


def test_short_range_always_visible():
    los = make_engine(make_terrain("building", 0, 0))
    assert los.validate_los(make_model(-3, 0), make_model(3, 0)).has_los


def test_building_blocks_beyond_short_range():
    los = make_engine(make_terrain("building", 0, 0))
    result = los.validate_los(make_model(-6, 0), make_model(6, 0))
    assert not result
    assert result.blocked_by == "building"
    assert result.blocker_id == "building-1"


def test_low_wall_blocks_eye_line():
    los = make_engine(make_terrain("wall", 0, 0, {"length": 4}, rotation=90))
    assert not los.validate_los(make_model(-6, 0), make_model(6, 0)).has_los
    # Passing beyond the end of the wall
    assert los.validate_los(make_model(-6, 3), make_model(6, 3)).has_los


def test_single_tree_blocks():
    los = make_engine(make_terrain("tree_single", 0, 0))
    assert not los.validate_los(make_model(-6, 0), make_model(6, 0)).has_los


def test_hills_never_block():
    los = make_engine(make_terrain("hill", 0, 0, {"size": "large"}))
    assert los.validate_los(make_model(-11, 0), make_model(11, 0)).has_los


def test_plateau_lifts_the_eye_over_a_wall():
    blocked = make_engine(make_terrain("wall", 0, 0, {"length": 4}, rotation=90))
    assert not blocked.validate_los(make_model(-10, 0), make_model(10, 0)).has_los

    raised = make_engine(
        make_terrain("wall", 0, 0, {"length": 4}, rotation=90),
        make_terrain("hill", -10, 0, {"size": "large"}),
    )
    assert raised.eye_position(Position(-10, 0), 1.0) == (-10, 0, 3.5)
    assert raised.validate_los(make_model(-10, 0), make_model(10, 0)).has_los


def test_query_against_stale_bounds_raises():
    los = make_engine()
    los.battlefield.add(make_terrain("building", 0, 0))
    assert los.is_stale
    with pytest.raises(StaleTerrainError):
        los.validate_los(make_model(-6, 0), make_model(6, 0))

    los.refresh()
    assert not los.validate_los(make_model(-6, 0), make_model(6, 0)).has_los


def test_point_to_point_query_matches_model_query():
    los = make_engine(make_terrain("building", 0, 0))
    assert not los.has_los_between(Position(-6, 0), Position(6, 0))
    assert los.has_los_between(Position(-6, 5), Position(6, 5))
    assert [t.id for t in los.blocking_terrain()] == ["building-1"]
