"""Hot-store snapshot of a match.

The snapshot is a pydantic document kept apart from the engine types:
`to_snapshot` and `from_snapshot` are the only places that know both.
Boards store only their ships, a sparse map of fired-upon cells and the
shot history; `SHIP`/`WATER` cells are rebuilt from the ship list.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from pydantic import BaseModel, Field

from seabattle.engine.board import Board, CellState, Shot
from seabattle.engine.match import (
    Difficulty,
    GameMode,
    Match,
    MatchStatus,
    PlayerStats,
    utcnow,
)
from seabattle.engine.ship import Coordinate, Ship, ShipOrientation

# Values of the sparse cell map.
MISS_MARK = 0
HIT_MARK = 1


class SegmentSnapshot(BaseModel):
    x: int
    y: int
    hit: bool = False


class ShipSnapshot(BaseModel):
    id: UUID
    type: str
    size: int
    orientation: ShipOrientation
    sunk: bool = False
    is_damaged: bool = False
    segments: list[SegmentSnapshot]


class ShotSnapshot(BaseModel):
    x: int
    y: int
    hit: bool


class BoardSnapshot(BaseModel):
    alive_ships: int
    ocean_grid: dict[str, int] = Field(default_factory=dict)
    ships: list[ShipSnapshot] = Field(default_factory=list)
    shots: list[ShotSnapshot] = Field(default_factory=list)


class StatsSnapshot(BaseModel):
    streak: int = 0
    hits: int = 0
    misses: int = 0


class MatchSnapshot(BaseModel):
    match_id: UUID
    game_mode: GameMode
    ai_difficulty: Difficulty | None = None
    player1_id: UUID
    player2_id: UUID | None = None
    status: MatchStatus
    turn_player_id: UUID | None = None
    winner_id: UUID | None = None
    player1_ready: bool = False
    player2_ready: bool = False
    has_moved_this_turn: bool = False
    p1_consecutive_timeouts: int = 0
    p2_consecutive_timeouts: int = 0
    created_at: datetime | None = None
    started_at: datetime | None = None
    turn_started_at: datetime | None = None
    finished_at: datetime | None = None
    turn_time_limit_seconds: float
    max_consecutive_timeouts: int
    p1_stats: StatsSnapshot
    p2_stats: StatsSnapshot
    board_p1: BoardSnapshot
    board_p2: BoardSnapshot


def cell_key(x: int, y: int) -> str:
    return f"{x},{y}"


def parse_cell_key(key: str) -> tuple[int, int]:
    x, _, y = key.partition(",")
    return int(x), int(y)


def _board_to_snapshot(board: Board) -> BoardSnapshot:
    return BoardSnapshot(
        alive_ships=sum(1 for ship in board.ships if not ship.sunk),
        ocean_grid={
            cell_key(x, y): HIT_MARK if state is CellState.HIT else MISS_MARK
            for (x, y), state in board.targeted_cells().items()
        },
        ships=[
            ShipSnapshot(
                id=ship.id,
                type=ship.name,
                size=ship.size,
                orientation=ship.orientation,
                sunk=ship.sunk,
                is_damaged=ship.damaged,
                segments=[SegmentSnapshot(x=c.x, y=c.y, hit=c.hit) for c in ship.coordinates],
            )
            for ship in board.ships
        ],
        shots=[ShotSnapshot(x=s.x, y=s.y, hit=s.hit) for s in board.shots],
    )


def _board_from_snapshot(snapshot: BoardSnapshot, owner: str) -> Board:
    ships = [
        Ship(
            name=ship.type,
            size=ship.size,
            orientation=ship.orientation,
            coordinates=[Coordinate(s.x, s.y, s.hit) for s in ship.segments],
            id=ship.id,
        )
        for ship in snapshot.ships
    ]
    marks = {
        parse_cell_key(key): CellState.HIT if mark == HIT_MARK else CellState.MISSED
        for key, mark in snapshot.ocean_grid.items()
    }
    shots = [Shot(s.x, s.y, s.hit) for s in snapshot.shots]
    return Board.restore(ships, marks, shots, owner=owner)


def _stats(stats: PlayerStats) -> StatsSnapshot:
    return StatsSnapshot(streak=stats.streak, hits=stats.hits, misses=stats.misses)


def to_snapshot(match: Match) -> MatchSnapshot:
    return MatchSnapshot(
        match_id=match.id,
        game_mode=match.mode,
        ai_difficulty=match.ai_difficulty,
        player1_id=match.player1_id,
        player2_id=match.player2_id,
        status=match.status,
        turn_player_id=match.current_turn_player_id,
        winner_id=match.winner_id,
        player1_ready=match.player1_ready,
        player2_ready=match.player2_ready,
        has_moved_this_turn=match.has_moved_this_turn,
        p1_consecutive_timeouts=match.player1_timeouts,
        p2_consecutive_timeouts=match.player2_timeouts,
        created_at=match.created_at,
        started_at=match.started_at,
        turn_started_at=match.last_move_at,
        finished_at=match.finished_at,
        turn_time_limit_seconds=match.turn_time_limit.total_seconds(),
        max_consecutive_timeouts=match.max_consecutive_timeouts,
        p1_stats=_stats(match.player1_stats),
        p2_stats=_stats(match.player2_stats),
        board_p1=_board_to_snapshot(match.player1_board),
        board_p2=_board_to_snapshot(match.player2_board),
    )


def from_snapshot(
    snapshot: MatchSnapshot,
    clock: Callable[[], datetime] = utcnow,
    rng: random.Random | None = None,
) -> Match:
    p1, p2 = snapshot.p1_stats, snapshot.p2_stats
    return Match(
        id=snapshot.match_id,
        player1_id=snapshot.player1_id,
        player2_id=snapshot.player2_id,
        mode=snapshot.game_mode,
        ai_difficulty=snapshot.ai_difficulty,
        status=snapshot.status,
        player1_board=_board_from_snapshot(snapshot.board_p1, str(snapshot.player1_id)),
        player2_board=_board_from_snapshot(snapshot.board_p2, str(snapshot.player2_id)),
        current_turn_player_id=snapshot.turn_player_id,
        winner_id=snapshot.winner_id,
        player1_ready=snapshot.player1_ready,
        player2_ready=snapshot.player2_ready,
        player1_stats=PlayerStats(hits=p1.hits, misses=p1.misses, streak=p1.streak),
        player2_stats=PlayerStats(hits=p2.hits, misses=p2.misses, streak=p2.streak),
        player1_timeouts=snapshot.p1_consecutive_timeouts,
        player2_timeouts=snapshot.p2_consecutive_timeouts,
        has_moved_this_turn=snapshot.has_moved_this_turn,
        created_at=snapshot.created_at,
        started_at=snapshot.started_at,
        last_move_at=snapshot.turn_started_at,
        finished_at=snapshot.finished_at,
        turn_time_limit=timedelta(seconds=snapshot.turn_time_limit_seconds),
        max_consecutive_timeouts=snapshot.max_consecutive_timeouts,
        clock=clock,
        rng=rng or random.Random(),
    )
