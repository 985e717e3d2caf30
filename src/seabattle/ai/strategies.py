"""Targeting policies for the computer opponent.

Strategies are stateless: every call rebuilds what it knows from the
enemy board's shot marks and its sunk ships, never from hidden ship
positions, so they can be created fresh for each AI shot.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod

import numpy as np

from seabattle.engine.board import Board, CellState
from seabattle.engine.match import Difficulty
from seabattle.engine.ship import Coordinate
from seabattle.telemetry import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.ai.strategies")

UNKNOWN = 0
MISS = 1
LIVE_HIT = 2
SUNK = 3

# Extra weight a placement earns for each live hit it would explain.
HIT_WEIGHT = 20

_NEIGHBOUR_DELTAS = ((0, -1), (0, 1), (-1, 0), (1, 0))


def knowledge_grid(board: Board) -> np.ndarray:
    """Public view of an enemy board, indexed `[x][y]`."""
    view = np.full((board.size, board.size), UNKNOWN, dtype=np.int8)
    for (x, y), state in board.targeted_cells().items():
        view[x, y] = LIVE_HIT if state is CellState.HIT else MISS
    for ship in board.ships:
        if ship.sunk:
            for x, y in ship.positions():
                view[x, y] = SUNK
    return view


class AiStrategy(ABC):
    """Choose the next cell to fire at on an enemy board."""

    name = "base"

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def choose_target(self, board: Board) -> Coordinate:
        with tracer.start_as_current_span("ai.choose_target") as span:
            span.set_attribute("ai.strategy", self.name)
            view = knowledge_grid(board)
            if not (view == UNKNOWN).any():
                raise RuntimeError("No untargeted cells left to fire at.")
            x, y = self._select(board, view)
            span.set_attribute("ai.target", f"{x},{y}")
            logger.debug("ai_target_chosen", extra={"strategy": self.name, "x": x, "y": y})
            return Coordinate(int(x), int(y))

    @abstractmethod
    def _select(self, board: Board, view: np.ndarray) -> tuple[int, int]:
        """Return an untargeted `(x, y)`."""

    def _random_cell(self, view: np.ndarray) -> tuple[int, int]:
        candidates = [tuple(cell) for cell in np.argwhere(view == UNKNOWN)]
        return self.rng.choice(candidates)


class BasicStrategy(AiStrategy):
    """Uniformly random untargeted cell."""

    name = "basic"

    def _select(self, board: Board, view: np.ndarray) -> tuple[int, int]:
        return self._random_cell(view)


class IntermediateStrategy(AiStrategy):
    """Hunt at random, then search around hits that have not sunk a ship yet."""

    name = "intermediate"

    def _select(self, board: Board, view: np.ndarray) -> tuple[int, int]:
        candidates = _open_neighbours(view)
        if candidates:
            return self.rng.choice(candidates)
        return self._random_cell(view)


class AdvancedStrategy(AiStrategy):
    """Follow lines of hits, otherwise fire where remaining ships most likely fit."""

    name = "advanced"

    def _select(self, board: Board, view: np.ndarray) -> tuple[int, int]:
        density = placement_density(view, _remaining_sizes(board))
        line_ends = _line_extensions(view)
        candidates = line_ends or _open_neighbours(view)
        if candidates:
            return self._best(candidates, density)
        return self._best([tuple(cell) for cell in np.argwhere(view == UNKNOWN)], density)

    def _best(self, candidates: list[tuple[int, int]], density: np.ndarray) -> tuple[int, int]:
        top = max(density[x, y] for x, y in candidates)
        return self.rng.choice([(x, y) for x, y in candidates if density[x, y] == top])


def placement_density(view: np.ndarray, sizes: list[int]) -> np.ndarray:
    """Count, per cell, the legal placements of the afloat ships covering it.

    Placements may not overlap misses or sunk ships; each one is weighted
    up by the live hits it covers. Targeted cells are zeroed.
    """
    size = view.shape[0]
    density = np.zeros(view.shape, dtype=np.int64)
    blocked = (view == MISS) | (view == SUNK)
    hits = view == LIVE_HIT
    for length in sizes:
        for x in range(size):
            for y in range(size):
                if x + length <= size and not blocked[x : x + length, y].any():
                    density[x : x + length, y] += 1 + HIT_WEIGHT * int(hits[x : x + length, y].sum())
                if length > 1 and y + length <= size and not blocked[x, y : y + length].any():
                    density[x, y : y + length] += 1 + HIT_WEIGHT * int(hits[x, y : y + length].sum())
    density[view != UNKNOWN] = 0
    return density


def _remaining_sizes(board: Board) -> list[int]:
    return [ship.size for ship in board.ships if not ship.sunk]


def _in_bounds(view: np.ndarray, x: int, y: int) -> bool:
    return 0 <= x < view.shape[0] and 0 <= y < view.shape[1]


def _open_neighbours(view: np.ndarray) -> list[tuple[int, int]]:
    found: list[tuple[int, int]] = []
    for x, y in np.argwhere(view == LIVE_HIT):
        for dx, dy in _NEIGHBOUR_DELTAS:
            nx, ny = int(x) + dx, int(y) + dy
            if _in_bounds(view, nx, ny) and view[nx, ny] == UNKNOWN and (nx, ny) not in found:
                found.append((nx, ny))
    return found


def _line_extensions(view: np.ndarray) -> list[tuple[int, int]]:
    """Untargeted cells just past either end of a run of two or more live hits."""
    found: list[tuple[int, int]] = []
    for x, y in np.argwhere(view == LIVE_HIT):
        x, y = int(x), int(y)
        for dx, dy in ((1, 0), (0, 1)):
            if not (_in_bounds(view, x + dx, y + dy) and view[x + dx, y + dy] == LIVE_HIT):
                continue
            # Walk both directions to the end of the run.
            for step in (1, -1):
                nx, ny = x, y
                while _in_bounds(view, nx, ny) and view[nx, ny] == LIVE_HIT:
                    nx, ny = nx + step * dx, ny + step * dy
                if _in_bounds(view, nx, ny) and view[nx, ny] == UNKNOWN and (nx, ny) not in found:
                    found.append((nx, ny))
    return found


_STRATEGIES: dict[Difficulty, type[AiStrategy]] = {
    Difficulty.BASIC: BasicStrategy,
    Difficulty.INTERMEDIATE: IntermediateStrategy,
    Difficulty.ADVANCED: AdvancedStrategy,
}


def strategy_for(difficulty: Difficulty | None, rng: random.Random | None = None) -> AiStrategy:
    """Build the strategy for a difficulty; `None` plays like `BASIC`."""
    return _STRATEGIES[difficulty or Difficulty.BASIC](rng)
