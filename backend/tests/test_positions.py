import pytest

from models import SEATS
from positions import (
    absolute_seat,
    are_partners,
    is_opponent,
    next_seat,
    partner,
    partnership,
    relative_seat,
    rotate_mapping,
)


@pytest.mark.parametrize("viewer", SEATS)
def test_relative_seat_is_a_bijection_and_inverts(viewer):
    rotated = [relative_seat(seat, viewer) for seat in SEATS]
    assert sorted(rotated) == sorted(SEATS)
    for seat in SEATS:
        assert absolute_seat(relative_seat(seat, viewer), viewer) == seat


@pytest.mark.parametrize("viewer", SEATS)
def test_viewer_sits_south_with_partner_north(viewer):
    assert relative_seat(viewer, viewer) == "South"
    assert relative_seat(partner(viewer), viewer) == "North"
    # left-hand opponent plays next and sits to the viewer's left
    assert relative_seat(next_seat(viewer), viewer) == "West"


def test_rotation_table():
    assert [relative_seat(s, "North") for s in SEATS] == ["South", "West", "North", "East"]
    assert [relative_seat(s, "East") for s in SEATS] == ["East", "South", "West", "North"]
    assert [relative_seat(s, "West") for s in SEATS] == ["West", "North", "East", "South"]


def test_partnerships():
    assert are_partners("North", "South")
    assert not are_partners("North", "East")
    assert is_opponent("East", "South")
    assert not is_opponent("West", "East")
    assert partnership("West") == "EW"
    assert next_seat("West") == "North"


def test_rotate_mapping():
    counts = {"North": 13, "East": 12, "South": 11, "West": 10}
    assert rotate_mapping(counts, "East") == {"East": 13, "South": 12, "West": 11, "North": 10}
