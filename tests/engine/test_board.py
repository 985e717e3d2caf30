"""Tests for the Board mechanics."""

import random

import pytest
from seabattle.engine.board import STANDARD_FLEET, Board, CellState, Shot
from seabattle.engine.errors import (
    AlreadyTargetedError,
    DamagedShipError,
    PlacementError,
    PlacementReason,
    ValidationError,
)
from seabattle.engine.ship import Coordinate, MoveDirection, Ship, ShipOrientation


def test_board_shot_tracking() -> None:
    board = Board()
    ship = Ship.build("Destroyer", 2, 0, 0, ShipOrientation.HORIZONTAL)
    board.place(ship)

    assert board.receive_shot(0, 0) is True
    assert board.cell(0, 0) is CellState.HIT
    assert not board.all_sunk()

    assert board.receive_shot(5, 5) is False
    assert board.cell(5, 5) is CellState.MISSED

    with pytest.raises(AlreadyTargetedError):
        board.receive_shot(0, 0)
    with pytest.raises(ValidationError):
        board.receive_shot(10, 3)

    board.receive_shot(1, 0)
    assert board.all_sunk()
    assert board.shots == (Shot(0, 0, True), Shot(5, 5, False), Shot(1, 0, True))


def test_empty_board_is_not_sunk() -> None:
    assert not Board().all_sunk()


def test_placement_rejects_collision_and_bounds() -> None:
    board = Board()
    board.place(Ship.build("Cruiser", 3, 0, 0, ShipOrientation.HORIZONTAL))

    with pytest.raises(PlacementError) as collision:
        board.place(Ship.build("Destroyer", 2, 1, 0, ShipOrientation.VERTICAL))
    assert collision.value.reason is PlacementReason.COLLISION

    with pytest.raises(PlacementError) as outside:
        board.place(Ship.build("Destroyer", 2, 9, 9, ShipOrientation.HORIZONTAL))
    assert outside.value.reason is PlacementReason.OUT_OF_BOUNDS

    assert len(board.ships) == 1
    assert board.cell(9, 9) is CellState.WATER


def test_placement_rejects_fired_upon_cells() -> None:
    board = Board()
    board.receive_shot(4, 4)

    with pytest.raises(PlacementError) as excinfo:
        board.place(Ship.build("Cruiser", 3, 3, 4, ShipOrientation.HORIZONTAL))

    assert excinfo.value.reason is PlacementReason.FIRED_UPON
    assert board.ships == ()


def test_move_ship_repaints_cells() -> None:
    board = Board()
    ship = Ship.build("Cruiser", 3, 0, 0, ShipOrientation.HORIZONTAL)
    board.place(ship)

    board.move_ship(ship.id, MoveDirection.EAST)

    assert board.cell(0, 0) is CellState.WATER
    assert [board.cell(x, 0) for x in (1, 2, 3)] == [CellState.SHIP] * 3
    assert ship.positions() == [(1, 0), (2, 0), (3, 0)]


def test_move_onto_missed_cell_is_rejected_without_changes() -> None:
    board = Board()
    ship = Ship.build("Cruiser", 3, 0, 0, ShipOrientation.HORIZONTAL)
    board.place(ship)
    board.receive_shot(3, 0)

    with pytest.raises(PlacementError) as excinfo:
        board.move_ship(ship.id, MoveDirection.EAST)

    assert excinfo.value.reason is PlacementReason.FIRED_UPON
    assert ship.positions() == [(0, 0), (1, 0), (2, 0)]
    assert board.cell(3, 0) is CellState.MISSED


def test_move_into_another_ship_or_off_board_is_rejected() -> None:
    board = Board()
    mover = Ship.build("Submarine", 1, 0, 0, ShipOrientation.HORIZONTAL)
    blocker = Ship.build("Destroyer", 2, 1, 0, ShipOrientation.VERTICAL)
    board.place(mover)
    board.place(blocker)

    with pytest.raises(PlacementError) as collision:
        board.move_ship(mover.id, MoveDirection.EAST)
    assert collision.value.reason is PlacementReason.COLLISION

    with pytest.raises(PlacementError) as outside:
        board.move_ship(mover.id, MoveDirection.NORTH)
    assert outside.value.reason is PlacementReason.OUT_OF_BOUNDS


def test_damaged_ship_cannot_be_moved_through_board() -> None:
    board = Board()
    ship = Ship.build("Cruiser", 3, 0, 0, ShipOrientation.HORIZONTAL)
    board.place(ship)
    board.receive_shot(0, 0)

    with pytest.raises(DamagedShipError):
        board.move_ship(ship.id, MoveDirection.EAST)


def test_random_placement_populates_full_fleet_without_overlap() -> None:
    board = Board()
    board.auto_place(random.Random(123))

    assert len(board.ships) == len(STANDARD_FLEET)
    cells = [cell for ship in board.ships for cell in ship.positions()]
    assert len(cells) == len(set(cells)) == 24
    ship_cells = [
        (x, y) for x in range(10) for y in range(10) if board.cell(x, y) is CellState.SHIP
    ]
    assert sorted(ship_cells) == sorted(cells)


def test_random_placement_is_reproducible() -> None:
    first, second = Board(), Board()
    first.auto_place(random.Random(9))
    second.auto_place(random.Random(9))

    assert [s.positions() for s in first.ships] == [s.positions() for s in second.ships]


def test_random_placement_gives_up_after_attempts() -> None:
    crowded = (("Carrier", 6),) * 30

    with pytest.raises(ValidationError):
        Board().auto_place(random.Random(1), fleet=crowded, max_attempts=5)


def test_restore_rebuilds_grid() -> None:
    board = Board()
    ship = Ship.build("Cruiser", 3, 2, 2, ShipOrientation.VERTICAL)
    board.place(ship)
    board.receive_shot(2, 3)
    board.receive_shot(7, 7)

    restored = Board.restore(board.ships, board.targeted_cells(), board.shots)

    assert restored.grid() == board.grid()
    assert restored.shots == board.shots


def test_restore_rejects_untargeted_marks() -> None:
    with pytest.raises(ValidationError):
        Board.restore([], {(0, 0): CellState.SHIP})


def test_confirm_move_rejects_a_broken_footprint_without_changes() -> None:
    board = Board()
    ship = Ship.build("Destroyer", 2, 2, 2, ShipOrientation.HORIZONTAL)
    board.place(ship)

    with pytest.raises(ValidationError):
        board.confirm_move(ship.id, [Coordinate(4, 4), Coordinate(4, 4)])

    assert ship.positions() == [(2, 2), (3, 2)]
    assert board.cell(2, 2) is CellState.SHIP
    assert board.cell(4, 4) is CellState.WATER
    assert sum(row.count(CellState.SHIP) for row in board.grid()) == 2
