"""Durable store: SQLAlchemy tables for matches and player profiles."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Uuid, create_engine, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.schema import Column

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
from seabattle.telemetry import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.storage.durable")


class Base(DeclarativeBase):
    pass


class MatchRow(Base):
    __tablename__ = "matches"
    id = Column(Uuid, primary_key=True)
    player1_id = Column(Uuid, nullable=False, index=True)
    player2_id = Column(Uuid, nullable=True, index=True)
    mode = Column(String(16), nullable=False)
    ai_difficulty = Column(String(16), nullable=True)
    status = Column(String(16), nullable=False, index=True)
    current_turn_player_id = Column(Uuid, nullable=True)
    winner_id = Column(Uuid, nullable=True)
    player1_ready = Column(Boolean, default=False)
    player2_ready = Column(Boolean, default=False)
    has_moved_this_turn = Column(Boolean, default=False)
    player1_timeouts = Column(Integer, default=0)
    player2_timeouts = Column(Integer, default=0)
    player1_hits = Column(Integer, default=0)
    player1_misses = Column(Integer, default=0)
    player1_streak = Column(Integer, default=0)
    player2_hits = Column(Integer, default=0)
    player2_misses = Column(Integer, default=0)
    player2_streak = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True))
    started_at = Column(DateTime(timezone=True), nullable=True)
    last_move_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    turn_time_limit_seconds = Column(Float, nullable=False)
    max_consecutive_timeouts = Column(Integer, nullable=False)
    player1_board = Column(JSON, nullable=False)
    player2_board = Column(JSON, nullable=False)


class PlayerProfileRow(Base):
    __tablename__ = "player_profiles"
    player_id = Column(Uuid, primary_key=True)
    rank_points = Column(Integer, default=0)
    wins = Column(Integer, default=0)
    losses = Column(Integer, default=0)
    current_streak = Column(Integer, default=0)
    max_streak = Column(Integer, default=0)
    medals = Column(JSON, default=list)


@dataclass
class PlayerProfile:
    player_id: UUID
    rank_points: int = 0
    wins: int = 0
    losses: int = 0
    current_streak: int = 0
    max_streak: int = 0
    medals: list[str] = field(default_factory=list)

    def award(self, medal: str) -> None:
        if medal not in self.medals:
            self.medals.append(medal)


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") == "sqlite:"):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=echo)


def build_session_factory(engine: Engine, create_schema: bool = True) -> sessionmaker[Session]:
    if create_schema:
        Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)


# -- board codec -------------------------------------------------------------


def _board_to_document(board: Board) -> dict[str, Any]:
    """Full grid (rows of cell states), ships and the shot history."""
    grid = board.grid()
    return {
        "grid": [[grid[x][y].value for x in range(board.size)] for y in range(board.size)],
        "ships": [
            {
                "id": str(ship.id),
                "name": ship.name,
                "size": ship.size,
                "orientation": ship.orientation.value,
                "coordinates": [[c.x, c.y, c.hit] for c in ship.coordinates],
            }
            for ship in board.ships
        ],
        "shots": [[shot.x, shot.y, shot.hit] for shot in board.shots],
    }


def _board_from_document(document: dict[str, Any], owner: str) -> Board:
    ships = [
        Ship(
            name=entry["name"],
            size=entry["size"],
            orientation=ShipOrientation(entry["orientation"]),
            coordinates=[Coordinate(x, y, bool(hit)) for x, y, hit in entry["coordinates"]],
            id=UUID(entry["id"]),
        )
        for entry in document.get("ships", [])
    ]
    marks: dict[tuple[int, int], CellState] = {}
    for y, row in enumerate(document.get("grid", [])):
        for x, value in enumerate(row):
            state = CellState(value)
            if state.is_targeted:
                marks[(x, y)] = state
    shots = [Shot(x, y, bool(hit)) for x, y, hit in document.get("shots", [])]
    return Board.restore(ships, marks, shots, owner=owner)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def match_to_row(match: Match) -> MatchRow:
    return MatchRow(
        id=match.id,
        player1_id=match.player1_id,
        player2_id=match.player2_id,
        mode=match.mode.value,
        ai_difficulty=match.ai_difficulty.value if match.ai_difficulty else None,
        status=match.status.value,
        current_turn_player_id=match.current_turn_player_id,
        winner_id=match.winner_id,
        player1_ready=match.player1_ready,
        player2_ready=match.player2_ready,
        has_moved_this_turn=match.has_moved_this_turn,
        player1_timeouts=match.player1_timeouts,
        player2_timeouts=match.player2_timeouts,
        player1_hits=match.player1_stats.hits,
        player1_misses=match.player1_stats.misses,
        player1_streak=match.player1_stats.streak,
        player2_hits=match.player2_stats.hits,
        player2_misses=match.player2_stats.misses,
        player2_streak=match.player2_stats.streak,
        created_at=match.created_at,
        started_at=match.started_at,
        last_move_at=match.last_move_at,
        finished_at=match.finished_at,
        turn_time_limit_seconds=match.turn_time_limit.total_seconds(),
        max_consecutive_timeouts=match.max_consecutive_timeouts,
        player1_board=_board_to_document(match.player1_board),
        player2_board=_board_to_document(match.player2_board),
    )


def row_to_match(
    row: MatchRow,
    clock: Callable[[], datetime] = utcnow,
    rng: random.Random | None = None,
) -> Match:
    return Match(
        id=row.id,
        player1_id=row.player1_id,
        player2_id=row.player2_id,
        mode=GameMode(row.mode),
        ai_difficulty=Difficulty(row.ai_difficulty) if row.ai_difficulty else None,
        status=MatchStatus(row.status),
        player1_board=_board_from_document(row.player1_board, str(row.player1_id)),
        player2_board=_board_from_document(row.player2_board, str(row.player2_id)),
        current_turn_player_id=row.current_turn_player_id,
        winner_id=row.winner_id,
        player1_ready=bool(row.player1_ready),
        player2_ready=bool(row.player2_ready),
        player1_stats=PlayerStats(row.player1_hits or 0, row.player1_misses or 0, row.player1_streak or 0),
        player2_stats=PlayerStats(row.player2_hits or 0, row.player2_misses or 0, row.player2_streak or 0),
        player1_timeouts=row.player1_timeouts or 0,
        player2_timeouts=row.player2_timeouts or 0,
        has_moved_this_turn=bool(row.has_moved_this_turn),
        created_at=_aware(row.created_at),
        started_at=_aware(row.started_at),
        last_move_at=_aware(row.last_move_at),
        finished_at=_aware(row.finished_at),
        turn_time_limit=timedelta(seconds=row.turn_time_limit_seconds),
        max_consecutive_timeouts=row.max_consecutive_timeouts,
        clock=clock,
        rng=rng or random.Random(),
    )


class SqlMatchRepository:
    """System of record for matches and player profiles."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Callable[[], datetime] = utcnow,
        rng_factory: Callable[[], random.Random] = random.Random,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock
        self.rng_factory = rng_factory

    @classmethod
    def from_url(cls, url: str, **kwargs) -> SqlMatchRepository:
        return cls(build_session_factory(build_engine(url)), **kwargs)

    def load(self, match_id: UUID) -> Match | None:
        with tracer.start_as_current_span("durable.load") as span:
            span.set_attribute("match.id", str(match_id))
            with self.session_factory() as session:
                row = session.get(MatchRow, match_id)
                if row is None:
                    return None
                return row_to_match(row, clock=self.clock, rng=self.rng_factory())

    def save(self, match: Match) -> None:
        """Insert or fully overwrite the match row."""
        with tracer.start_as_current_span("durable.save") as span:
            span.set_attribute("match.id", str(match.id))
            span.set_attribute("match.status", match.status.value)
            with self.session_factory() as session, session.begin():
                session.merge(match_to_row(match))

    def delete(self, match_id: UUID) -> None:
        with self.session_factory() as session, session.begin():
            row = session.get(MatchRow, match_id)
            if row is not None:
                session.delete(row)
                logger.info("match_row_deleted", extra={"match_id": str(match_id)})

    def find_active_match_id(self, player_id: UUID) -> UUID | None:
        stmt = (
            select(MatchRow.id)
            .where(MatchRow.status != MatchStatus.FINISHED.value)
            .where(or_(MatchRow.player1_id == player_id, MatchRow.player2_id == player_id))
            .limit(1)
        )
        with self.session_factory() as session:
            return session.scalars(stmt).first()

    def list_active_ai_match_ids(self) -> list[UUID]:
        stmt = (
            select(MatchRow.id)
            .where(MatchRow.player2_id.is_(None))
            .where(MatchRow.status == MatchStatus.IN_PROGRESS.value)
        )
        with self.session_factory() as session:
            return list(session.scalars(stmt))

    def get_profile(self, player_id: UUID) -> PlayerProfile:
        """Return the player's profile, creating an empty one on first access."""
        with self.session_factory() as session, session.begin():
            row = session.get(PlayerProfileRow, player_id)
            if row is None:
                row = PlayerProfileRow(
                    player_id=player_id,
                    rank_points=0,
                    wins=0,
                    losses=0,
                    current_streak=0,
                    max_streak=0,
                    medals=[],
                )
                session.add(row)
                logger.info("player_profile_created", extra={"player_id": str(player_id)})
            return PlayerProfile(
                player_id=row.player_id,
                rank_points=row.rank_points,
                wins=row.wins,
                losses=row.losses,
                current_streak=row.current_streak,
                max_streak=row.max_streak,
                medals=list(row.medals or []),
            )

    def save_profile(self, profile: PlayerProfile) -> None:
        with self.session_factory() as session, session.begin():
            session.merge(
                PlayerProfileRow(
                    player_id=profile.player_id,
                    rank_points=profile.rank_points,
                    wins=profile.wins,
                    losses=profile.losses,
                    current_streak=profile.current_streak,
                    max_streak=profile.max_streak,
                    medals=list(profile.medals),
                )
            )
