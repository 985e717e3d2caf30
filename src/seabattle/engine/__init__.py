"""Board, ship and match rules."""

from .board import BOARD_SIZE, STANDARD_FLEET, Board, CellState, Shot
from .match import (
    AI_PLAYER_ID,
    Difficulty,
    GameMode,
    Match,
    MatchStatus,
    PlayerStats,
    ShotOutcome,
    TimeoutOutcome,
)
from .ship import Coordinate, MoveDirection, Ship, ShipOrientation

__all__ = [
    "AI_PLAYER_ID",
    "BOARD_SIZE",
    "STANDARD_FLEET",
    "Board",
    "CellState",
    "Coordinate",
    "Difficulty",
    "GameMode",
    "Match",
    "MatchStatus",
    "MoveDirection",
    "PlayerStats",
    "Ship",
    "ShipOrientation",
    "Shot",
    "ShotOutcome",
    "TimeoutOutcome",
]
