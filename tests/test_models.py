"""Tests for model identifiers, profiles and the roster."""
import pytest

from mest.errors import UnknownModelError
from mest.models import ModelRoster, NameManager, Side, load_profiles
from mest.terrain import Position

from conftest import DATA_PATH


def test_canonical_letters_per_side():
    names = NameManager()
    assert [names.assign(Side.A) for _ in range(3)] == ["A", "B", "C"]
    assert [names.assign(Side.B) for _ in range(3)] == ["Z", "Y", "X"]


def test_exhausted_pool_falls_back_to_numbers():
    names = NameManager()
    letters = [names.assign(Side.A) for _ in range(14)]
    assert letters[-1] == "N"
    assert names.assign(Side.A) == "A1"
    assert names.assign(Side.A) == "A2"


def test_custom_identifiers_are_sanitized_and_unique():
    names = NameManager()
    assert names.assign(Side.A, "Sgt. Rock!") == "SgtRock"
    assert names.assign(Side.A, "averyveryverylongname") == "averyveryver"
    with pytest.raises(ValueError):
        names.assign(Side.B, "SgtRock")
    with pytest.raises(ValueError):
        names.assign(Side.B, "!!!")
    assert not names.is_available("Sgt Rock")

    names.release("SgtRock")
    assert names.is_available("SgtRock")


def test_roster_ids_and_lookup():
    roster = ModelRoster()
    a = roster.create(Side.A, Position(-5, 0))
    b = roster.create(Side.B, Position(5, 0), identifier="Zed")
    assert a.id == "side-a-1"
    assert b.id == "side-b-2"
    assert roster.by_identifier("Zed") is b
    assert roster.by_side(Side.A) == [a]

    roster.remove(a.id)
    assert a.id not in roster
    with pytest.raises(UnknownModelError):
        roster.get(a.id)


def test_profiles_load_from_data():
    profiles = load_profiles(DATA_PATH)
    assert profiles["Veteran"].cca == 3
    assert profiles["Veteran"].int_ == 3
    assert profiles["Militia"].bp == 20
    assert load_profiles("no-such-dir")["Average"].siz == 3


def test_sides_face_each_other():
    assert Side.A.opponent == Side.B
    assert Side.B.opponent == Side.A
    assert Side.A.advance == 1
    assert Side.B.advance == -1
