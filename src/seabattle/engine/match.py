"""Match aggregate: phases, turn ownership, timeouts and win detection."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Iterable
from uuid import UUID, uuid4

from seabattle.telemetry import get_meter, get_tracer

from .board import Board
from .errors import (
    InactivityTerminationError,
    PermissionDeniedError,
    TurnTimeoutError,
    TurnViolationError,
    ValidationError,
)
from .ship import Coordinate, MoveDirection, Ship

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.engine.match")
meter = get_meter("seabattle.engine.match")

ACTION_COUNTER = meter.create_counter(
    "seabattle_engine_actions",
    unit="1",
    description="Shots and moves applied to matches",
)

TIMEOUT_COUNTER = meter.create_counter(
    "seabattle_turn_timeouts",
    unit="1",
    description="Inactivity timeouts charged to turn holders",
)

# Stands in for the computer opponent wherever a player id is expected.
AI_PLAYER_ID = UUID(int=0)

DEFAULT_TURN_TIME_LIMIT = timedelta(seconds=31)
DEFAULT_MAX_CONSECUTIVE_TIMEOUTS = 4

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MatchStatus(Enum):
    """High-level lifecycle of a match."""

    SETUP = "setup"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class GameMode(Enum):
    CLASSIC = "classic"
    DYNAMIC = "dynamic"


class Difficulty(Enum):
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


@dataclass
class PlayerStats:
    """Per-player shot counters; `streak` counts consecutive hits."""

    hits: int = 0
    misses: int = 0
    streak: int = 0

    def record(self, hit: bool) -> None:
        if hit:
            self.hits += 1
            self.streak += 1
        else:
            self.misses += 1
            self.streak = 0


@dataclass(frozen=True)
class ShotOutcome:
    hit: bool
    sunk: bool
    game_over: bool
    winner_id: UUID | None


@dataclass(frozen=True)
class TimeoutOutcome:
    charged_player_id: UUID
    next_player_id: UUID
    consecutive_timeouts: int
    terminated: bool


@dataclass(eq=False)
class Match:
    """Two boards, whose turn it is, and everything needed to replay a turn.

    A match without `player2_id` is played against the AI, which is
    represented by `AI_PLAYER_ID` in `current_turn_player_id` and
    `winner_id`.
    """

    player1_id: UUID
    player2_id: UUID | None = None
    mode: GameMode = GameMode.CLASSIC
    ai_difficulty: Difficulty | None = None
    id: UUID = field(default_factory=uuid4)
    status: MatchStatus = MatchStatus.SETUP
    player1_board: Board = field(default_factory=Board)
    player2_board: Board = field(default_factory=Board)
    current_turn_player_id: UUID | None = None
    winner_id: UUID | None = None
    player1_ready: bool = False
    player2_ready: bool = False
    player1_stats: PlayerStats = field(default_factory=PlayerStats)
    player2_stats: PlayerStats = field(default_factory=PlayerStats)
    player1_timeouts: int = 0
    player2_timeouts: int = 0
    has_moved_this_turn: bool = False
    created_at: datetime | None = None
    started_at: datetime | None = None
    last_move_at: datetime | None = None
    finished_at: datetime | None = None
    turn_time_limit: timedelta = DEFAULT_TURN_TIME_LIMIT
    max_consecutive_timeouts: int = DEFAULT_MAX_CONSECUTIVE_TIMEOUTS
    clock: Clock = field(default=utcnow, repr=False)
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def __post_init__(self) -> None:
        if self.player2_id is not None and self.player2_id == self.player1_id:
            raise ValidationError("A player cannot play against themselves.")
        if self.player2_id is not None and self.ai_difficulty is not None:
            raise ValidationError("A match has either a human opponent or an AI difficulty.")
        if self.current_turn_player_id is None:
            self.current_turn_player_id = self.player1_id
        if self.created_at is None:
            self.created_at = self.clock()
        self.player1_board.owner = str(self.player1_id)
        self.player2_board.owner = str(self.player2_side_id)

    # -- identities ---------------------------------------------------------

    @property
    def is_ai_match(self) -> bool:
        return self.player2_id is None

    @property
    def is_finished(self) -> bool:
        return self.status is MatchStatus.FINISHED

    @property
    def player2_side_id(self) -> UUID:
        """The second side's id, `AI_PLAYER_ID` when it is the computer."""
        return self.player2_id if self.player2_id is not None else AI_PLAYER_ID

    @property
    def is_ai_turn(self) -> bool:
        return (
            self.is_ai_match
            and self.status is MatchStatus.IN_PROGRESS
            and self.current_turn_player_id == AI_PLAYER_ID
        )

    def participants(self) -> tuple[UUID, ...]:
        if self.player2_id is None:
            return (self.player1_id,)
        return (self.player1_id, self.player2_id)

    def is_participant(self, player_id: UUID) -> bool:
        return player_id in self.participants()

    def _side(self, player_id: UUID) -> int:
        if player_id == self.player1_id:
            return 1
        if player_id == self.player2_side_id:
            return 2
        raise PermissionDeniedError(f"Player {player_id} does not take part in match {self.id}.")

    def opponent_of(self, player_id: UUID) -> UUID:
        return self.player2_side_id if self._side(player_id) == 1 else self.player1_id

    def board_of(self, player_id: UUID) -> Board:
        return self.player1_board if self._side(player_id) == 1 else self.player2_board

    def target_board_for(self, player_id: UUID) -> Board:
        return self.player2_board if self._side(player_id) == 1 else self.player1_board

    def stats_of(self, player_id: UUID) -> PlayerStats:
        return self.player1_stats if self._side(player_id) == 1 else self.player2_stats

    def timeouts_of(self, player_id: UUID) -> int:
        return self.player1_timeouts if self._side(player_id) == 1 else self.player2_timeouts

    # -- setup --------------------------------------------------------------

    def place_fleet(self, player_id: UUID, ships: Iterable[Ship]) -> None:
        """Replace the player's fleet; nothing changes if any ship is illegal."""
        self._require_status(MatchStatus.SETUP)
        current = self.board_of(player_id)
        fresh = Board(owner=current.owner)
        for ship in ships:
            fresh.place(ship)
        if self._side(player_id) == 1:
            self.player1_board, self.player1_ready = fresh, False
        else:
            self.player2_board, self.player2_ready = fresh, False

    def auto_place_ai_fleet(self) -> None:
        if not self.is_ai_match:
            raise TurnViolationError("Only the AI side is placed automatically.")
        self._require_status(MatchStatus.SETUP)
        self.player2_board.auto_place(self.rng)

    def mark_ready(self, player_id: UUID) -> bool:
        """Flag a side as ready; returns True when this started the match."""
        self._require_status(MatchStatus.SETUP)
        if not self.board_of(player_id).ships:
            raise ValidationError("A fleet must be placed before signalling readiness.")
        if self._side(player_id) == 1:
            self.player1_ready = True
        else:
            self.player2_ready = True
        if self.player1_ready and self.player2_ready:
            self._start()
            return True
        return False

    def _start(self) -> None:
        now = self.clock()
        self.status = MatchStatus.IN_PROGRESS
        self.started_at = now
        self.last_move_at = now
        self.has_moved_this_turn = False
        # The human always opens against the AI; otherwise a coin flip decides.
        if self.is_ai_match:
            self.current_turn_player_id = self.player1_id
        else:
            self.current_turn_player_id = self.rng.choice([self.player1_id, self.player2_side_id])
        logger.info(
            "match_started",
            extra={"match_id": str(self.id), "starter": str(self.current_turn_player_id)},
        )

    # -- timeouts -----------------------------------------------------------

    def apply_timeout_if_expired(self, now: datetime | None = None) -> TimeoutOutcome | None:
        """Charge the turn holder if the turn budget ran out.

        This is the single transition used both before every action and by
        the background sweeper.
        """
        if self.status is not MatchStatus.IN_PROGRESS or self.last_move_at is None:
            return None
        now = now or self.clock()
        if now - self.last_move_at <= self.turn_time_limit:
            return None

        charged = self.current_turn_player_id
        if charged == self.player1_id:
            self.player1_timeouts += 1
            strikes = self.player1_timeouts
        else:
            self.player2_timeouts += 1
            strikes = self.player2_timeouts
        opponent = self.opponent_of(charged)
        TIMEOUT_COUNTER.add(1, attributes={"match_id": str(self.id)})

        if strikes >= self.max_consecutive_timeouts:
            self._finish(opponent, now)
            logger.info(
                "match_finished_by_inactivity",
                extra={"match_id": str(self.id), "charged": str(charged), "winner": str(opponent)},
            )
            return TimeoutOutcome(charged, opponent, strikes, terminated=True)

        self._switch_turn()
        self.last_move_at = now
        logger.info(
            "turn_timeout_charged",
            extra={"match_id": str(self.id), "charged": str(charged), "strikes": strikes},
        )
        return TimeoutOutcome(charged, opponent, strikes, terminated=False)

    # -- actions ------------------------------------------------------------

    def shoot(self, player_id: UUID, x: int, y: int) -> ShotOutcome:
        """Fire at the opponent's board, keeping the turn on a hit."""
        with tracer.start_as_current_span("match.shoot") as span:
            span.set_attribute("match.id", str(self.id))
            span.set_attribute("player", str(player_id))
            span.set_attribute("shot.x", x)
            span.set_attribute("shot.y", y)
            self._begin_action(player_id)

            target = self.target_board_for(player_id)
            hit = target.receive_shot(x, y)
            struck = target.ship_at(x, y) if hit else None
            sunk = bool(struck and struck.sunk)
            now = self.clock()

            self.stats_of(player_id).record(hit)
            self._reset_timeouts(player_id)
            self.last_move_at = now

            if target.all_sunk():
                self._finish(player_id, now)
                span.set_attribute("match.winner", str(player_id))
                logger.info(
                    "match_finished", extra={"match_id": str(self.id), "winner": str(player_id)}
                )
            elif not hit:
                self._switch_turn()

            ACTION_COUNTER.add(1, attributes={"action": "shot", "outcome": "hit" if hit else "miss"})
            return ShotOutcome(hit=hit, sunk=sunk, game_over=self.is_finished, winner_id=self.winner_id)

    def move(self, player_id: UUID, ship_id: UUID, direction: MoveDirection) -> list[Coordinate]:
        """Move one of the player's ships a cell; a successful move ends the turn."""
        with tracer.start_as_current_span("match.move") as span:
            span.set_attribute("match.id", str(self.id))
            span.set_attribute("player", str(player_id))
            span.set_attribute("move.direction", direction.value)
            if self.mode is not GameMode.DYNAMIC:
                raise TurnViolationError("Ships can only be moved in dynamic mode.")
            self._begin_action(player_id)
            if self.has_moved_this_turn:
                raise TurnViolationError("A ship has already been moved this turn.")

            new_coordinates = self.board_of(player_id).move_ship(ship_id, direction)
            self.has_moved_this_turn = True
            self._reset_timeouts(player_id)
            self.last_move_at = self.clock()
            self._switch_turn()

            ACTION_COUNTER.add(1, attributes={"action": "move", "outcome": "moved"})
            return new_coordinates

    def forfeit(self, player_id: UUID) -> None:
        """End an in-progress match with the opponent of `player_id` as winner."""
        self._require_status(MatchStatus.IN_PROGRESS)
        winner = self.opponent_of(player_id)
        self._finish(winner, self.clock())
        logger.info(
            "match_forfeited",
            extra={"match_id": str(self.id), "loser": str(player_id), "winner": str(winner)},
        )

    # -- internals ----------------------------------------------------------

    def _begin_action(self, player_id: UUID) -> None:
        self._side(player_id)
        if self.status is MatchStatus.FINISHED:
            raise TurnViolationError("The match has already finished.")
        if self.status is not MatchStatus.IN_PROGRESS:
            raise TurnViolationError("The match has not started yet.")

        timeout = self.apply_timeout_if_expired()
        if timeout is not None:
            if timeout.terminated:
                raise InactivityTerminationError(timeout.charged_player_id, timeout.next_player_id)
            raise TurnTimeoutError(timeout.charged_player_id, timeout.next_player_id)

        if player_id != self.current_turn_player_id:
            logger.warning(
                "action_rejected_wrong_player",
                extra={"player": str(player_id), "current": str(self.current_turn_player_id)},
            )
            raise TurnViolationError("It is not this player's turn.")

    def _require_status(self, expected: MatchStatus) -> None:
        if self.status is not expected:
            raise TurnViolationError(
                f"Match is {self.status.value}, expected {expected.value}."
            )

    def _reset_timeouts(self, player_id: UUID) -> None:
        if self._side(player_id) == 1:
            self.player1_timeouts = 0
        else:
            self.player2_timeouts = 0

    def _switch_turn(self) -> None:
        self.current_turn_player_id = self.opponent_of(self.current_turn_player_id)
        self.has_moved_this_turn = False

    def _finish(self, winner_id: UUID, now: datetime) -> None:
        self.status = MatchStatus.FINISHED
        self.winner_id = winner_id
        self.finished_at = now
