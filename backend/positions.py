"""
Seat arithmetic for a four-handed table.

Game logic always works with absolute seats (North/East/South/West).
Rendering uses relative seats: every viewer draws themselves at the bottom as
South, partner at the top as North, left-hand opponent as West and right-hand
opponent as East.  The mapping is a rotation of the clockwise cycle

    North -> East -> South -> West -> North

so for a fixed viewer it is a bijection and ``absolute_seat`` undoes it.

    viewer   North  East   South  West     (absolute seat)
    North    South  West   North  East
    East     East   South  West   North
    South    North  East   South  West
    West     West   North  East   South
"""
from __future__ import annotations

from typing import Dict, Mapping, TypeVar

from models import SEATS, Seat, Side

T = TypeVar("T")

_INDEX: Dict[Seat, int] = {seat: idx for idx, seat in enumerate(SEATS)}
_BOTTOM = _INDEX["South"]


def _shift(seat: Seat, steps: int) -> Seat:
    return SEATS[(_INDEX[seat] + steps) % 4]


def next_seat(seat: Seat) -> Seat:
    return _shift(seat, 1)


def partner(seat: Seat) -> Seat:
    return _shift(seat, 2)


def are_partners(a: Seat, b: Seat) -> bool:
    return partner(a) == b


def is_opponent(a: Seat, b: Seat) -> bool:
    return (_INDEX[a] - _INDEX[b]) % 2 == 1


def partnership(seat: Seat) -> Side:
    return "NS" if seat in ("North", "South") else "EW"


def relative_seat(absolute: Seat, viewer: Seat) -> Seat:
    """How ``absolute`` appears to ``viewer`` when the viewer sits at South."""
    return SEATS[(_INDEX[absolute] - _INDEX[viewer] + _BOTTOM) % 4]


def absolute_seat(relative: Seat, viewer: Seat) -> Seat:
    """Inverse of :func:`relative_seat` for the same viewer."""
    return SEATS[(_INDEX[relative] + _INDEX[viewer] - _BOTTOM) % 4]


def rotate_mapping(mapping: Mapping[Seat, T], viewer: Seat) -> Dict[Seat, T]:
    """Re-key a seat-keyed mapping from absolute to relative seats."""
    return {relative_seat(seat, viewer): value for seat, value in mapping.items()}
