"""Ship domain model for the match engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID, uuid4

from .errors import AxisViolationError, DamagedShipError, ValidationError

MIN_SHIP_SIZE = 1
MAX_SHIP_SIZE = 6


@dataclass
class Coordinate:
    """One ship segment. `hit` is set once and never cleared."""

    x: int
    y: int
    hit: bool = False

    @property
    def position(self) -> tuple[int, int]:
        return (self.x, self.y)


class ShipOrientation(Enum):
    """Allowed ship orientations."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class MoveDirection(Enum):
    """Compass directions a ship can be moved one cell towards."""

    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"

    @property
    def delta(self) -> tuple[int, int]:
        return {
            MoveDirection.NORTH: (0, -1),
            MoveDirection.SOUTH: (0, 1),
            MoveDirection.EAST: (1, 0),
            MoveDirection.WEST: (-1, 0),
        }[self]

    @property
    def is_vertical(self) -> bool:
        return self in (MoveDirection.NORTH, MoveDirection.SOUTH)


@dataclass
class Ship:
    """A single ship instance and the ordered segments it occupies."""

    name: str
    size: int
    orientation: ShipOrientation
    coordinates: list[Coordinate]
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if not MIN_SHIP_SIZE <= self.size <= MAX_SHIP_SIZE:
            raise ValidationError(
                f"Ship size must be between {MIN_SHIP_SIZE} and {MAX_SHIP_SIZE}, got {self.size}."
            )
        if len(self.coordinates) != self.size:
            raise ValidationError(
                f"Ship {self.name!r} needs {self.size} coordinates, got {len(self.coordinates)}."
            )
        self.check_layout(self.coordinates)

    @classmethod
    def build(
        cls,
        name: str,
        size: int,
        start_x: int,
        start_y: int,
        orientation: ShipOrientation,
        ship_id: UUID | None = None,
    ) -> Ship:
        """Lay out `size` segments from the start cell along the orientation."""
        coords = []
        for offset in range(size):
            if orientation is ShipOrientation.HORIZONTAL:
                coords.append(Coordinate(start_x + offset, start_y))
            else:
                coords.append(Coordinate(start_x, start_y + offset))
        return cls(name, size, orientation, coords, id=ship_id or uuid4())

    @property
    def sunk(self) -> bool:
        return all(coord.hit for coord in self.coordinates)

    @property
    def damaged(self) -> bool:
        return any(coord.hit for coord in self.coordinates)

    def positions(self) -> list[tuple[int, int]]:
        return [coord.position for coord in self.coordinates]

    def occupies(self, x: int, y: int) -> bool:
        return any(coord.x == x and coord.y == y for coord in self.coordinates)

    def predict_move(self, direction: MoveDirection) -> list[Coordinate]:
        """Return the footprint one cell towards `direction` without moving."""
        if self.damaged:
            raise DamagedShipError(f"Ship {self.name!r} is damaged and cannot move.")
        if self.size > 1:
            if self.orientation is ShipOrientation.VERTICAL and not direction.is_vertical:
                raise AxisViolationError(
                    f"Ship {self.name!r} is vertical and can only move north or south."
                )
            if self.orientation is ShipOrientation.HORIZONTAL and direction.is_vertical:
                raise AxisViolationError(
                    f"Ship {self.name!r} is horizontal and can only move east or west."
                )
        dx, dy = direction.delta
        return [Coordinate(c.x + dx, c.y + dy, c.hit) for c in self.coordinates]

    def confirm_move(self, new_coordinates: list[Coordinate]) -> None:
        if len(new_coordinates) != self.size:
            raise ValidationError("Moved footprint does not match the ship size.")
        self.check_layout(new_coordinates)
        self.coordinates = list(new_coordinates)

    def check_layout(self, coordinates: list[Coordinate]) -> None:
        """Segments must be distinct cells running one step apart along the orientation."""
        step = (1, 0) if self.orientation is ShipOrientation.HORIZONTAL else (0, 1)
        for prev, nxt in zip(coordinates, coordinates[1:]):
            if (nxt.x - prev.x, nxt.y - prev.y) != step:
                raise ValidationError(
                    f"Ship {self.name!r} segments must be consecutive {self.orientation.value} cells."
                )

    def apply_damage(self, x: int, y: int) -> bool:
        """Mark the segment at (x, y) as hit. Returns False if not ours."""
        for coord in self.coordinates:
            if coord.x == x and coord.y == y:
                coord.hit = True
                return True
        return False
