"""Request and response models exchanged with the boundary layer."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from seabattle.engine.board import BOARD_SIZE, STANDARD_FLEET, Board, CellState
from seabattle.engine.match import Difficulty, GameMode, MatchStatus, PlayerStats
from seabattle.engine.ship import MAX_SHIP_SIZE, MIN_SHIP_SIZE, MoveDirection, Ship, ShipOrientation

FLEET_COMPOSITION = Counter(size for _, size in STANDARD_FLEET)


class StartMatchInput(BaseModel):
    opponent_id: UUID | None = None
    ai_difficulty: Difficulty | None = None
    mode: GameMode = GameMode.CLASSIC

    @model_validator(mode="after")
    def _one_kind_of_opponent(self) -> "StartMatchInput":
        if self.opponent_id is not None and self.ai_difficulty is not None:
            raise ValueError("Choose either a human opponent or an AI difficulty, not both.")
        return self

    @property
    def against_ai(self) -> bool:
        return self.opponent_id is None


class ShipPlacement(BaseModel):
    name: str
    size: int = Field(ge=MIN_SHIP_SIZE, le=MAX_SHIP_SIZE)
    x: int = Field(ge=0, lt=BOARD_SIZE)
    y: int = Field(ge=0, lt=BOARD_SIZE)
    orientation: ShipOrientation

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Ship name must not be empty.")
        return value.strip()

    @model_validator(mode="after")
    def _inside_board(self) -> "ShipPlacement":
        end = (self.x if self.orientation is ShipOrientation.HORIZONTAL else self.y) + self.size
        if end > BOARD_SIZE:
            raise ValueError(f"{self.name} does not fit on the board from ({self.x}, {self.y}).")
        return self

    def to_ship(self) -> Ship:
        return Ship.build(self.name, self.size, self.x, self.y, self.orientation)


class PlaceShipsInput(BaseModel):
    ships: list[ShipPlacement]

    @field_validator("ships")
    @classmethod
    def _standard_fleet(cls, ships: list[ShipPlacement]) -> list[ShipPlacement]:
        if len(ships) != len(STANDARD_FLEET):
            raise ValueError(f"A fleet has exactly {len(STANDARD_FLEET)} ships, got {len(ships)}.")
        if Counter(ship.size for ship in ships) != FLEET_COMPOSITION:
            raise ValueError("A fleet is two ships of 6, two of 4, one of 3 and one of 1.")
        return ships

    def to_ships(self) -> list[Ship]:
        return [placement.to_ship() for placement in self.ships]


class ShootInput(BaseModel):
    x: int = Field(ge=0, lt=BOARD_SIZE)
    y: int = Field(ge=0, lt=BOARD_SIZE)


class MoveShipInput(BaseModel):
    ship_id: UUID
    direction: MoveDirection


class CoordinateView(BaseModel):
    x: int
    y: int
    hit: bool = False


class ShipView(BaseModel):
    id: UUID
    name: str
    size: int
    orientation: ShipOrientation
    sunk: bool
    damaged: bool
    coordinates: list[CoordinateView]

    @classmethod
    def of(cls, ship: Ship) -> "ShipView":
        return cls(
            id=ship.id,
            name=ship.name,
            size=ship.size,
            orientation=ship.orientation,
            sunk=ship.sunk,
            damaged=ship.damaged,
            coordinates=[CoordinateView(x=c.x, y=c.y, hit=c.hit) for c in ship.coordinates],
        )


class BoardView(BaseModel):
    """Grid rows (`grid[y][x]`) plus the ships the viewer may see."""

    grid: list[list[CellState]]
    ships: list[ShipView]

    @classmethod
    def own(cls, board: Board) -> "BoardView":
        cells = board.grid()
        return cls(
            grid=[[cells[x][y] for x in range(board.size)] for y in range(board.size)],
            ships=[ShipView.of(ship) for ship in board.ships],
        )

    @classmethod
    def opponent(cls, board: Board) -> "BoardView":
        """Fog of war: afloat ship cells read as water, only sunk ships are listed."""
        cells = board.grid()
        masked = [
            [CellState.WATER if cells[x][y] is CellState.SHIP else cells[x][y] for x in range(board.size)]
            for y in range(board.size)
        ]
        return cls(grid=masked, ships=[ShipView.of(ship) for ship in board.ships if ship.sunk])


class PlayerStatsView(BaseModel):
    hits: int = 0
    misses: int = 0
    streak: int = 0

    @classmethod
    def of(cls, stats: PlayerStats) -> "PlayerStatsView":
        return cls(hits=stats.hits, misses=stats.misses, streak=stats.streak)


class MatchStateView(BaseModel):
    match_id: UUID
    status: MatchStatus
    mode: GameMode
    ai_difficulty: Difficulty | None = None
    player1_id: UUID
    player2_id: UUID | None = None
    current_turn_player_id: UUID | None = None
    is_my_turn: bool
    winner_id: UUID | None = None
    turn_started_at: datetime | None = None
    my_board: BoardView
    opponent_board: BoardView
    my_stats: PlayerStatsView
    opponent_stats: PlayerStatsView


class TurnResult(BaseModel):
    match_id: UUID
    hit: bool = False
    sunk: bool = False
    game_over: bool = False
    winner_id: UUID | None = None
    current_turn_player_id: UUID | None = None
    moved_coordinates: list[CoordinateView] = Field(default_factory=list)
    ai_shots: list[CoordinateView] = Field(default_factory=list)


class TimeoutCheckResult(BaseModel):
    turn_switched: bool = False
    is_game_over: bool = False
