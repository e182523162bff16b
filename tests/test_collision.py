"""Tests for terrain placement validation."""
import pytest

from mest.collision import (
    BUILDING_WALL_INTERSECTION, HILL_STACKING_VIOLATION, NOT_ON_HILL_PLATEAU,
    OUTSIDE_BOUNDS, TERRAIN_BUILDING_INTERSECTION, PlacementValidator, pair_rule,
)
from mest.terrain import make_terrain


def place(kind, x, y, params=None, rotation=0, tid=""):
    return make_terrain(kind, x, y, params, rotation, terrain_id=tid)


@pytest.fixture
def validator():
    return PlacementValidator(24)


def test_empty_battlefield_accepts_placement(validator):
    assert validator.is_valid_placement(place("building", 0, 0), [])


def test_partly_off_the_edge_is_allowed(validator):
    assert validator.is_valid_placement(place("building", 13, 0), [])
    result = validator.is_valid_placement(place("building", 15, 0), [])
    assert not result
    assert result.reason == OUTSIDE_BOUNDS


def test_structures_may_not_overlap(validator):
    existing = [place("building", 0, 0, tid="building-1")]
    result = validator.is_valid_placement(place("wall", 3, 0), existing)
    assert not result
    assert result.reason == BUILDING_WALL_INTERSECTION
    assert result.conflict_id == "building-1"
    assert validator.is_valid_placement(place("building", 5, 0), existing)


def test_trees_and_hills_keep_off_structures(validator):
    existing = [place("building", 0, 0, tid="building-1")]
    result = validator.is_valid_placement(place("tree_single", 2.2, 0), existing)
    assert result.reason == TERRAIN_BUILDING_INTERSECTION
    result = validator.is_valid_placement(place("hill", 6, 0, {"size": "medium"}), existing)
    assert result.reason == TERRAIN_BUILDING_INTERSECTION


def test_trees_only_on_hill_plateaus(validator):
    existing = [place("hill", 0, 0, {"size": "large"}, tid="hill-1")]
    assert validator.is_valid_placement(place("tree_single", 3, 0), existing)
    result = validator.is_valid_placement(place("tree_single", 8, 0), existing)
    assert result.reason == NOT_ON_HILL_PLATEAU


def test_hill_stacking(validator):
    large = place("hill", 0, 0, {"size": "large"}, tid="hill-1")
    # Small hill (radius 4) wholly on the large plateau (radius 6)
    assert validator.is_valid_placement(place("hill", 2, 0, {"size": "small"}), [large])
    result = validator.is_valid_placement(place("hill", 3, 0, {"size": "small"}), [large])
    assert result.reason == HILL_STACKING_VIOLATION

    medium = place("hill", 0, 0, {"size": "medium"}, tid="hill-2")
    result = validator.is_valid_placement(place("hill", 1, 0, {"size": "medium"}), [medium])
    assert result.reason == HILL_STACKING_VIOLATION


def test_debris_and_trees_may_overlap_freely(validator):
    existing = [place("tree_cluster", 0, 0, tid="tree_cluster-1")]
    assert validator.is_valid_placement(place("debris", 1, 0), existing)
    assert validator.is_valid_placement(place("tree_single", 1, 1), existing)


@pytest.mark.parametrize("a, b", [
    (place("hill", 0, 0, {"size": "large"}), place("hill", 2, 0, {"size": "small"})),
    (place("hill", 0, 0, {"size": "large"}), place("hill", 3, 0, {"size": "small"})),
    (place("hill", 0, 0, {"size": "large"}), place("tree_stand", 7, 0)),
    (place("building", 0, 0), place("tree_cluster", 3, 0)),
    (place("wall", 0, 0), place("building", 1, 1)),
    (place("debris", 0, 0), place("building", 1, 0)),
])
def test_pair_rules_are_symmetric(a, b):
    assert pair_rule(a, b) == pair_rule(b, a)


def test_candidate_with_same_id_ignores_itself(validator):
    hill = place("hill", 0, 0, tid="hill-1")
    assert validator.is_valid_placement(hill, [hill])
