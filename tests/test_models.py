from __future__ import annotations

import math

from mc_excavator.models import ZERO, BlockState, Coordinate, bounding_box


def test_coordinate_arithmetic() -> None:
    a = Coordinate(1, 2, 3)
    b = Coordinate(0.5, -1, 2)

    assert a.plus(b) == Coordinate(1.5, 1, 5)
    assert a.minus(b) == Coordinate(0.5, 3, 1)
    assert a.scaled(2) == Coordinate(2, 4, 6)
    assert a.offset(0, 0, -3) == Coordinate(1, 2, 0)
    assert Coordinate(3, 0, 4).norm() == 5
    assert math.isclose(Coordinate(3, 0, 4).normalize().norm(), 1.0)
    assert ZERO.normalize() == ZERO


def test_floored_and_centered_cells() -> None:
    position = Coordinate(-0.2, 64.9, 3.5)

    assert position.floored() == Coordinate(-1, 64, 3)
    assert position.centered() == Coordinate(-0.5, 64.5, 3.5)


def test_bounding_box_normalizes_corner_order() -> None:
    low, high = bounding_box(Coordinate(4, -2, 7), Coordinate(1, 5, 7))

    assert low == Coordinate(1, -2, 7)
    assert high == Coordinate(4, 5, 7)


def test_block_state_full_block_flag() -> None:
    assert BlockState("stone").is_full_block
    assert not BlockState("air", bounding_box="empty").is_full_block
