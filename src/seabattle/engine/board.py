"""Single-player 10x10 board: the only mutator of its grid and ships."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence
from uuid import UUID

from seabattle.telemetry import get_meter, get_tracer

from .errors import (
    AlreadyTargetedError,
    DamagedShipError,
    PlacementError,
    PlacementReason,
    ResourceNotFoundError,
    ValidationError,
)
from .ship import Coordinate, MoveDirection, Ship, ShipOrientation

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.engine.board")
meter = get_meter("seabattle.engine.board")

PLACEMENT_COUNTER = meter.create_counter(
    "seabattle_engine_ship_placements",
    unit="1",
    description="Number of attempted ship placements",
)

SHOT_COUNTER = meter.create_counter(
    "seabattle_engine_shots",
    unit="1",
    description="Shots received by a board",
)

BOARD_SIZE = 10

# (name, size) pairs: 2x6, 2x4, 1x3, 1x1.
STANDARD_FLEET: tuple[tuple[str, int], ...] = (
    ("Carrier", 6),
    ("Carrier", 6),
    ("Battleship", 4),
    ("Battleship", 4),
    ("Cruiser", 3),
    ("Submarine", 1),
)

AUTO_PLACEMENT_ATTEMPTS = 100


class CellState(Enum):
    """What a single cell of the grid currently shows."""

    WATER = "water"
    SHIP = "ship"
    HIT = "hit"
    MISSED = "missed"

    @property
    def is_targeted(self) -> bool:
        return self in (CellState.HIT, CellState.MISSED)


@dataclass(frozen=True)
class Shot:
    """One entry of the chronological shot history."""

    x: int
    y: int
    hit: bool


class Board:
    """A player's grid, fleet and shot history.

    All transitions go through `place`, `confirm_move` and `receive_shot`,
    so a cell is `SHIP` exactly when a ship occupies it and `HIT`/`MISSED`
    cells never revert.
    """

    size = BOARD_SIZE

    def __init__(self, owner: str = "unknown") -> None:
        self.owner = owner
        self._cells: list[list[CellState]] = [
            [CellState.WATER for _ in range(self.size)] for _ in range(self.size)
        ]
        self._ships: list[Ship] = []
        self._shots: list[Shot] = []

    @classmethod
    def restore(
        cls,
        ships: Iterable[Ship],
        marks: dict[tuple[int, int], CellState],
        shots: Iterable[Shot] = (),
        owner: str = "unknown",
    ) -> Board:
        """Rebuild a board from persisted ships, targeted cells and history."""
        board = cls(owner=owner)
        for ship in ships:
            board._ships.append(ship)
            for coord in ship.coordinates:
                board._require_in_bounds(coord.x, coord.y)
                board._cells[coord.x][coord.y] = CellState.HIT if coord.hit else CellState.SHIP
        for (x, y), state in marks.items():
            board._require_in_bounds(x, y)
            if not state.is_targeted:
                raise ValidationError(f"Only hit or missed cells can be restored, got {state.value}.")
            board._cells[x][y] = state
        board._shots = list(shots)
        return board

    @property
    def ships(self) -> tuple[Ship, ...]:
        return tuple(self._ships)

    @property
    def shots(self) -> tuple[Shot, ...]:
        return tuple(self._shots)

    def is_valid_coordinate(self, x: int, y: int) -> bool:
        """Check whether a coordinate lies inside the board boundaries."""
        return 0 <= x < self.size and 0 <= y < self.size

    def cell(self, x: int, y: int) -> CellState:
        self._require_in_bounds(x, y)
        return self._cells[x][y]

    def grid(self) -> list[list[CellState]]:
        """A copy of the grid, indexed `[x][y]`."""
        return [list(column) for column in self._cells]

    def targeted_cells(self) -> dict[tuple[int, int], CellState]:
        """Sparse view of every cell that has been fired upon."""
        return {
            (x, y): state
            for x, column in enumerate(self._cells)
            for y, state in enumerate(column)
            if state.is_targeted
        }

    def untargeted_cells(self) -> list[tuple[int, int]]:
        return [
            (x, y)
            for x in range(self.size)
            for y in range(self.size)
            if not self._cells[x][y].is_targeted
        ]

    def find_ship(self, ship_id: UUID) -> Ship:
        for ship in self._ships:
            if ship.id == ship_id:
                return ship
        raise ResourceNotFoundError(f"Ship {ship_id} is not on this board.")

    def ship_at(self, x: int, y: int) -> Ship | None:
        for ship in self._ships:
            if ship.occupies(x, y):
                return ship
        return None

    def live_hits(self) -> list[tuple[int, int]]:
        """Hit cells belonging to ships that are still afloat."""
        return [
            coord.position
            for ship in self._ships
            if not ship.sunk
            for coord in ship.coordinates
            if coord.hit
        ]

    def place(self, ship: Ship) -> None:
        """Add a ship to the board, or raise without touching anything."""
        with tracer.start_as_current_span("board.place") as span:
            span.set_attribute("ship.name", ship.name)
            span.set_attribute("ship.size", ship.size)
            span.set_attribute("board.owner", self.owner)
            try:
                if any(existing.id == ship.id for existing in self._ships):
                    raise ValidationError(f"Ship {ship.id} is already on this board.")
                self._validate_footprint(ship.coordinates, ignore=None)
            except ValidationError:
                PLACEMENT_COUNTER.add(1, attributes={"result": "failed", "owner": self.owner})
                logger.warning(
                    "ship_placement_failed",
                    extra={"owner": self.owner, "ship_name": ship.name, "positions": ship.positions()},
                )
                raise

            self._ships.append(ship)
            for x, y in ship.positions():
                self._cells[x][y] = CellState.SHIP
            PLACEMENT_COUNTER.add(1, attributes={"result": "success", "owner": self.owner})
            logger.debug(
                "ship_placed",
                extra={
                    "owner": self.owner,
                    "ship_name": ship.name,
                    "orientation": ship.orientation.name,
                    "positions": ship.positions(),
                },
            )

    def predict_move(self, ship_id: UUID, direction: MoveDirection) -> list[Coordinate]:
        return self.find_ship(ship_id).predict_move(direction)

    def confirm_move(self, ship_id: UUID, new_coordinates: Sequence[Coordinate]) -> None:
        """Relocate a ship after re-validating the target footprint."""
        ship = self.find_ship(ship_id)
        if ship.damaged:
            raise DamagedShipError(f"Ship {ship.name!r} is damaged and cannot move.")
        new_coordinates = [Coordinate(c.x, c.y) for c in new_coordinates]
        if len(new_coordinates) != ship.size:
            raise ValidationError("Moved footprint does not match the ship size.")
        ship.check_layout(new_coordinates)
        self._validate_footprint(new_coordinates, ignore=ship)

        for x, y in ship.positions():
            if self._cells[x][y] is CellState.SHIP:
                self._cells[x][y] = CellState.WATER
        ship.confirm_move(new_coordinates)
        for x, y in ship.positions():
            self._cells[x][y] = CellState.SHIP
        logger.info(
            "ship_moved",
            extra={"owner": self.owner, "ship_name": ship.name, "positions": ship.positions()},
        )

    def move_ship(self, ship_id: UUID, direction: MoveDirection) -> list[Coordinate]:
        with tracer.start_as_current_span("board.move_ship") as span:
            span.set_attribute("board.owner", self.owner)
            span.set_attribute("move.direction", direction.value)
            target = self.predict_move(ship_id, direction)
            self.confirm_move(ship_id, target)
            return target

    def receive_shot(self, x: int, y: int) -> bool:
        """Resolve a shot and return whether a ship was struck."""
        with tracer.start_as_current_span("board.receive_shot") as span:
            span.set_attribute("shot.x", x)
            span.set_attribute("shot.y", y)
            span.set_attribute("board.owner", self.owner)
            if not self.is_valid_coordinate(x, y):
                logger.error("shot_out_of_bounds", extra={"x": x, "y": y, "owner": self.owner})
                raise ValidationError(f"Shot ({x}, {y}) is outside the board.")
            if self._cells[x][y].is_targeted:
                logger.error("shot_duplicate", extra={"x": x, "y": y, "owner": self.owner})
                raise AlreadyTargetedError(x, y)

            ship = self.ship_at(x, y)
            hit = ship is not None
            if ship is not None:
                ship.apply_damage(x, y)
                self._cells[x][y] = CellState.HIT
            else:
                self._cells[x][y] = CellState.MISSED
            self._shots.append(Shot(x, y, hit))

            outcome = "hit" if hit else "miss"
            span.set_attribute("shot.outcome", outcome)
            SHOT_COUNTER.add(1, attributes={"outcome": outcome, "owner": self.owner})
            logger.debug(f"shot_{outcome}", extra={"x": x, "y": y, "owner": self.owner})
            return hit

    def all_sunk(self) -> bool:
        return bool(self._ships) and all(ship.sunk for ship in self._ships)

    def clear(self) -> None:
        """Drop every ship and reset the grid; used when a fleet is re-submitted."""
        self._ships.clear()
        self._shots.clear()
        self._cells = [[CellState.WATER for _ in range(self.size)] for _ in range(self.size)]

    def auto_place(
        self,
        rng: random.Random,
        fleet: Sequence[tuple[str, int]] = STANDARD_FLEET,
        max_attempts: int = AUTO_PLACEMENT_ATTEMPTS,
    ) -> None:
        """Randomly place `fleet`, trying each ship up to `max_attempts` times."""
        with tracer.start_as_current_span("board.auto_place") as span:
            span.set_attribute("board.owner", self.owner)
            self.clear()
            for name, size in fleet:
                for attempt in range(1, max_attempts + 1):
                    orientation = rng.choice(list(ShipOrientation))
                    candidate = Ship.build(
                        name, size, rng.randrange(self.size), rng.randrange(self.size), orientation
                    )
                    if self._fits(candidate):
                        self.place(candidate)
                        logger.debug(
                            "auto_ship_placed",
                            extra={"ship_name": name, "attempts": attempt, "owner": self.owner},
                        )
                        break
                else:
                    raise ValidationError(f"Could not place {name} after {max_attempts} attempts.")

    def _fits(self, ship: Ship) -> bool:
        try:
            self._validate_footprint(ship.coordinates, ignore=None)
        except PlacementError:
            return False
        return True

    def _validate_footprint(self, coords: Sequence[Coordinate], ignore: Ship | None) -> None:
        for coord in coords:
            if not self.is_valid_coordinate(coord.x, coord.y):
                raise PlacementError(PlacementReason.OUT_OF_BOUNDS, coord.x, coord.y)
            if self._cells[coord.x][coord.y].is_targeted:
                raise PlacementError(PlacementReason.FIRED_UPON, coord.x, coord.y)
            for other in self._ships:
                if other is not ignore and other.occupies(coord.x, coord.y):
                    raise PlacementError(PlacementReason.COLLISION, coord.x, coord.y)

    def _require_in_bounds(self, x: int, y: int) -> None:
        if not self.is_valid_coordinate(x, y):
            raise ValidationError(f"({x}, {y}) is outside the board.")

