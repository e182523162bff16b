"""Tests for AP-cost pathfinding."""
import pytest

from mest.errors import StaleTerrainError
from mest.pathfinding import Pathfinder
from mest.terrain import Battlefield, Position, make_terrain


def make_pathfinder(*terrain) -> Pathfinder:
    bf = Battlefield(size=24)
    for t in terrain:
        bf.add(t)
    return Pathfinder(bf)


def test_open_ground_costs_the_distance():
    pf = make_pathfinder()
    result = pf.find_path_with_cost((-5, 0), (5, 0))
    assert result.cost == pytest.approx(10.0)
    assert result.path == [Position(-5, 0), Position(5, 0)]


def test_same_point_is_free():
    pf = make_pathfinder()
    result = pf.find_path_with_cost((1, 1), (1, 1))
    assert result.cost == 0.0
    assert result.path == [Position(1, 1)]


def test_out_of_bounds_has_no_path():
    pf = make_pathfinder()
    assert pf.find_path_with_cost((0, 0), (13, 0)) is None


def test_budget_limits_the_search():
    pf = make_pathfinder()
    assert pf.find_path_with_cost((-5, 0), (5, 0), max_ap=2) is None
    assert pf.find_path_with_cost((-1, 0), (1, 0), max_ap=2).cost == pytest.approx(2.0)


def test_rough_ground_is_worth_going_around():
    pf = make_pathfinder(make_terrain("tree_cluster", 0, 0))
    # Straight through: 6 MU of rough at 2 AP plus 6 MU of clear
    assert pf.path_cost([Position(-6, 0), Position(6, 0)]) == pytest.approx(18.0, abs=0.5)

    result = pf.find_path_with_cost((-6, 0), (6, 0))
    assert 12.0 <= result.cost < 17.0
    assert len(result.path) > 2


def test_walls_are_impassable():
    pf = make_pathfinder(make_terrain("wall", 0, 0, {"length": 8}, rotation=90))
    assert pf.path_cost([Position(-3, 0), Position(3, 0)]) == float("inf")

    result = pf.find_path_with_cost((-3, 0), (3, 0))
    # Around the end of a wall reaching 4 MU either side
    assert result.cost >= 9.9
    assert pf.path_cost(result.path) == pytest.approx(result.cost)
    assert pf.find_path_with_cost((-3, 0), (3, 0), max_ap=8) is None


def test_closest_affordable_samples_around_the_target():
    pf = make_pathfinder()
    result = pf.find_closest_affordable((0, 0), (2.4, 0), max_ap=2)
    assert result.final_position.x == pytest.approx(1.9)
    assert result.final_position.y == pytest.approx(0.0, abs=1e-9)
    assert result.cost <= 2.0


def test_closest_affordable_falls_back_to_partial_path():
    pf = make_pathfinder()
    result = pf.find_closest_affordable((-5, 0), (5, 0), max_ap=2)
    assert result.final_position.x == pytest.approx(-3.0, abs=1e-6)
    assert result.cost == pytest.approx(2.0, abs=1e-6)


def test_query_against_stale_grid_raises():
    pf = make_pathfinder()
    pf.battlefield.add(make_terrain("debris", 0, 0))
    with pytest.raises(StaleTerrainError):
        pf.find_path_with_cost((-5, 0), (5, 0))
    pf.refresh()
    assert pf.find_path_with_cost((-5, 0), (5, 0)).cost > 10.0
