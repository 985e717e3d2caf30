"""Tests for the AI targeting policies."""

from __future__ import annotations

import random

import numpy as np
import pytest
from seabattle.ai.strategies import (
    MISS,
    SUNK,
    UNKNOWN,
    AdvancedStrategy,
    BasicStrategy,
    IntermediateStrategy,
    knowledge_grid,
    placement_density,
    strategy_for,
)
from seabattle.engine.board import Board
from seabattle.engine.match import Difficulty
from seabattle.engine.ship import Ship, ShipOrientation

ALL_STRATEGIES = [BasicStrategy, IntermediateStrategy, AdvancedStrategy]


def board_with_cruiser() -> Board:
    board = Board()
    board.place(Ship.build("Cruiser", 3, 4, 4, ShipOrientation.HORIZONTAL))
    board.place(Ship.build("Submarine", 1, 0, 0, ShipOrientation.HORIZONTAL))
    return board


def test_knowledge_grid_hides_unhit_ships() -> None:
    board = board_with_cruiser()
    board.receive_shot(0, 0)
    board.receive_shot(9, 9)

    view = knowledge_grid(board)

    assert view[4, 4] == UNKNOWN
    assert view[0, 0] == SUNK
    assert view[9, 9] == MISS


@pytest.mark.parametrize("strategy_cls", ALL_STRATEGIES)
def test_never_targets_a_resolved_cell(strategy_cls) -> None:
    board = Board()
    for x in range(10):
        for y in range(10):
            if (x, y) != (7, 3):
                board.receive_shot(x, y)

    target = strategy_cls(random.Random(0)).choose_target(board)

    assert target.position == (7, 3)


@pytest.mark.parametrize("strategy_cls", ALL_STRATEGIES)
def test_full_board_has_no_target(strategy_cls) -> None:
    board = Board()
    for x in range(10):
        for y in range(10):
            board.receive_shot(x, y)

    with pytest.raises(RuntimeError):
        strategy_cls(random.Random(0)).choose_target(board)


@pytest.mark.parametrize("strategy_cls", ALL_STRATEGIES)
def test_choosing_does_not_touch_the_board(strategy_cls) -> None:
    board = board_with_cruiser()
    board.receive_shot(5, 4)
    before = board.grid()

    strategy_cls(random.Random(2)).choose_target(board)

    assert board.grid() == before
    assert len(board.shots) == 1


def test_intermediate_targets_around_a_live_hit() -> None:
    board = board_with_cruiser()
    board.receive_shot(5, 4)
    strategy = IntermediateStrategy(random.Random(4))

    for _ in range(10):
        target = strategy.choose_target(board)
        assert target.position in {(5, 3), (5, 5), (4, 4), (6, 4)}


def test_advanced_extends_a_line_of_hits() -> None:
    board = board_with_cruiser()
    board.receive_shot(4, 4)
    board.receive_shot(5, 4)
    strategy = AdvancedStrategy(random.Random(4))

    for _ in range(10):
        assert strategy.choose_target(board).position in {(3, 4), (6, 4)}


def test_sunk_ships_do_not_attract_fire() -> None:
    board = board_with_cruiser()
    board.receive_shot(0, 0)
    strategy = IntermediateStrategy(random.Random(5))

    targets = {strategy.choose_target(board).position for _ in range(30)}

    assert len(targets) > 2


def test_placement_density_counts_fitting_ships() -> None:
    view = np.full((10, 10), UNKNOWN, dtype=np.int8)

    density = placement_density(view, [3])

    assert density[0, 0] == 2
    assert density[4, 4] == 6

    view[1, 0] = MISS
    blocked = placement_density(view, [3])
    assert blocked[0, 0] == 1
    assert blocked[1, 0] == 0


def test_strategy_for_maps_difficulties() -> None:
    assert isinstance(strategy_for(None), BasicStrategy)
    assert isinstance(strategy_for(Difficulty.BASIC), BasicStrategy)
    assert isinstance(strategy_for(Difficulty.INTERMEDIATE), IntermediateStrategy)
    assert isinstance(strategy_for(Difficulty.ADVANCED), AdvancedStrategy)
