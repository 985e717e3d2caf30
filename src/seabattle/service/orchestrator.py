"""Match use cases coordinated across the engine, the hot store and the durable store."""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable
from uuid import UUID

from seabattle.ai.strategies import AiStrategy, strategy_for
from seabattle.config import EngineSettings, load_settings
from seabattle.engine.errors import (
    ActiveMatchConflictError,
    InactivityTerminationError,
    OpponentBusyError,
    PermissionDeniedError,
    ResourceNotFoundError,
    TurnTimeoutError,
    TurnViolationError,
    ValidationError,
)
from seabattle.engine.match import (
    AI_PLAYER_ID,
    Difficulty,
    Match,
    MatchStatus,
    utcnow,
)
from seabattle.storage.durable import SqlMatchRepository
from seabattle.storage.hot_store import MatchStateStore, RedisMatchStateStore
from seabattle.telemetry import get_tracer, record_match_metric

from .locks import MatchLockRegistry
from .schemas import (
    BoardView,
    CoordinateView,
    MatchStateView,
    MoveShipInput,
    PlaceShipsInput,
    PlayerStatsView,
    ShootInput,
    StartMatchInput,
    TimeoutCheckResult,
    TurnResult,
)

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.service.orchestrator")

FLAWLESS_MEDAL = "ADMIRAL"

StrategyFactory = Callable[[Difficulty | None, random.Random], AiStrategy]


class MatchService:
    """Runs each use case against the canonical `Match` aggregate.

    Live matches are read from the hot store and fall back to the durable
    store (re-seeding the hot store) on a miss. The durable store is written
    at creation, during setup and when a match ends. All work on one match
    happens under that match's lock.
    """

    def __init__(
        self,
        durable: SqlMatchRepository,
        hot: MatchStateStore,
        settings: EngineSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
        rng_factory: Callable[[], random.Random] = random.Random,
        strategy_factory: StrategyFactory = strategy_for,
        locks: MatchLockRegistry | None = None,
    ) -> None:
        self.durable = durable
        self.hot = hot
        self.settings = settings or load_settings()
        self.clock = clock
        self.rng_factory = rng_factory
        self.strategy_factory = strategy_factory
        self.locks = locks if locks is not None else MatchLockRegistry()

    @classmethod
    def from_settings(cls, settings: EngineSettings | None = None, **kwargs) -> MatchService:
        settings = settings or load_settings()
        durable = SqlMatchRepository.from_url(settings.database_url)
        hot = RedisMatchStateStore.from_url(settings.redis_url, ttl_seconds=settings.hot_store_ttl_seconds)
        return cls(durable, hot, settings=settings, **kwargs)

    # -- use cases ----------------------------------------------------------

    def start_match(self, requester_id: UUID, request: StartMatchInput) -> UUID:
        with tracer.start_as_current_span("service.start_match") as span:
            span.set_attribute("player", str(requester_id))
            if request.opponent_id == requester_id:
                raise ValidationError("A player cannot challenge themselves.")

            active = self.durable.find_active_match_id(requester_id)
            if active is not None:
                raise ActiveMatchConflictError(active)
            if (
                request.opponent_id is not None
                and self.durable.find_active_match_id(request.opponent_id) is not None
            ):
                raise OpponentBusyError(request.opponent_id)

            difficulty = None
            if request.against_ai:
                difficulty = request.ai_difficulty or Difficulty.BASIC
            match = Match(
                player1_id=requester_id,
                player2_id=request.opponent_id,
                mode=request.mode,
                ai_difficulty=difficulty,
                turn_time_limit=self.settings.turn_time_limit,
                max_consecutive_timeouts=self.settings.max_consecutive_timeouts,
                clock=self.clock,
                rng=self.rng_factory(),
            )
            if match.is_ai_match:
                match.auto_place_ai_fleet()
                match.mark_ready(AI_PLAYER_ID)

            self.durable.save(match)
            span.set_attribute("match.id", str(match.id))
            logger.info(
                "match_created",
                extra={
                    "match_id": str(match.id),
                    "mode": match.mode.value,
                    "difficulty": difficulty.value if difficulty else None,
                },
            )
            return match.id

    def setup_fleet(self, match_id: UUID, player_id: UUID, request: PlaceShipsInput) -> MatchStateView:
        with tracer.start_as_current_span("service.setup_fleet") as span, self.locks.hold(match_id):
            span.set_attribute("match.id", str(match_id))
            match = self._load_durable(match_id)
            self._require_participant(match, player_id)

            match.place_fleet(player_id, request.to_ships())
            started = match.mark_ready(player_id)
            self.durable.save(match)
            if started:
                self.hot.save(match)
                if match.is_ai_turn:
                    self._drive_ai(match)
            return self._view(match, player_id)

    def shoot(self, match_id: UUID, player_id: UUID, request: ShootInput) -> TurnResult:
        with tracer.start_as_current_span("service.shoot") as span, self.locks.hold(match_id):
            span.set_attribute("match.id", str(match_id))
            match = self._load_live(match_id)
            self._require_participant(match, player_id)
            try:
                outcome = match.shoot(player_id, request.x, request.y)
            except InactivityTerminationError as exc:
                self._finalize(match)
                return TurnResult(match_id=match.id, game_over=True, winner_id=exc.winner_id)
            except TurnTimeoutError:
                ai_shots = self._persist_after_timeout(match)
                if match.is_finished:
                    return TurnResult(
                        match_id=match.id,
                        game_over=True,
                        winner_id=match.winner_id,
                        ai_shots=ai_shots,
                    )
                raise

            result = TurnResult(
                match_id=match.id,
                hit=outcome.hit,
                sunk=outcome.sunk,
                game_over=outcome.game_over,
                winner_id=outcome.winner_id,
            )
            return self._settle(match, result)

    def move(self, match_id: UUID, player_id: UUID, request: MoveShipInput) -> TurnResult:
        with tracer.start_as_current_span("service.move") as span, self.locks.hold(match_id):
            span.set_attribute("match.id", str(match_id))
            match = self._load_live(match_id)
            self._require_participant(match, player_id)
            try:
                coordinates = match.move(player_id, request.ship_id, request.direction)
            except InactivityTerminationError as exc:
                self._finalize(match)
                return TurnResult(match_id=match.id, game_over=True, winner_id=exc.winner_id)
            except TurnTimeoutError:
                ai_shots = self._persist_after_timeout(match)
                if match.is_finished:
                    return TurnResult(
                        match_id=match.id,
                        game_over=True,
                        winner_id=match.winner_id,
                        ai_shots=ai_shots,
                    )
                raise

            result = TurnResult(
                match_id=match.id,
                moved_coordinates=[CoordinateView(x=c.x, y=c.y) for c in coordinates],
            )
            return self._settle(match, result)

    def cancel(self, match_id: UUID, player_id: UUID) -> None:
        """Drop a match in setup, or forfeit it for `player_id` once it started."""
        with tracer.start_as_current_span("service.cancel") as span, self.locks.hold(match_id):
            span.set_attribute("match.id", str(match_id))
            match = self._load_durable(match_id)
            self._require_participant(match, player_id)

            if match.status is MatchStatus.FINISHED:
                raise TurnViolationError("The match has already finished.")
            if match.status is MatchStatus.SETUP:
                self.durable.delete(match.id)
                self.hot.delete(match.id)
                logger.info("match_cancelled_in_setup", extra={"match_id": str(match.id)})
                return

            # Shots since the start only live in the hot copy.
            match = self.hot.load(match_id) or match
            match.clock = self.clock
            match.forfeit(player_id)
            self._finalize(match)
            self.hot.delete(match.id)

    def get_state(self, match_id: UUID, player_id: UUID) -> MatchStateView:
        with tracer.start_as_current_span("service.get_state"), self.locks.hold(match_id):
            match = self._load_live(match_id)
            self._require_participant(match, player_id)
            return self._view(match, player_id)

    def check_turn_timeout(self, match_id: UUID) -> TimeoutCheckResult:
        """Apply the timeout transition outside of any player request."""
        with tracer.start_as_current_span("service.check_turn_timeout") as span, self.locks.hold(match_id):
            span.set_attribute("match.id", str(match_id))
            match = self._load_live(match_id)
            if match.status is not MatchStatus.IN_PROGRESS:
                return TimeoutCheckResult(turn_switched=False, is_game_over=match.is_finished)

            outcome = match.apply_timeout_if_expired()
            if outcome is None:
                return TimeoutCheckResult(turn_switched=False, is_game_over=False)
            span.set_attribute("timeout.charged", str(outcome.charged_player_id))
            if outcome.terminated:
                self._finalize(match)
                return TimeoutCheckResult(turn_switched=True, is_game_over=True)

            self._persist_after_timeout(match)
            return TimeoutCheckResult(turn_switched=True, is_game_over=match.is_finished)

    # -- helpers ------------------------------------------------------------

    def _settle(self, match: Match, result: TurnResult) -> TurnResult:
        if match.is_finished:
            self._finalize(match)
        else:
            self.hot.save(match)
            if match.is_ai_turn:
                result.ai_shots = self._drive_ai(match)
        result.game_over = match.is_finished
        result.winner_id = match.winner_id
        result.current_turn_player_id = None if match.is_finished else match.current_turn_player_id
        return result

    def _persist_after_timeout(self, match: Match) -> list[CoordinateView]:
        self.hot.save(match)
        if match.is_ai_turn:
            return self._drive_ai(match)
        return []

    def _drive_ai(self, match: Match) -> list[CoordinateView]:
        """Let the AI fire until it misses or the match ends, then persist once."""
        strategy = self.strategy_factory(match.ai_difficulty, self.rng_factory())
        shots: list[CoordinateView] = []
        with tracer.start_as_current_span("service.ai_turn") as span:
            span.set_attribute("match.id", str(match.id))
            while match.is_ai_turn:
                target = strategy.choose_target(match.player1_board)
                try:
                    outcome = match.shoot(AI_PLAYER_ID, target.x, target.y)
                except TurnTimeoutError as exc:
                    logger.warning(
                        "ai_turn_timed_out",
                        extra={"match_id": str(match.id), "charged": str(exc.charged_player_id)},
                    )
                    break
                shots.append(CoordinateView(x=target.x, y=target.y, hit=outcome.hit))
            span.set_attribute("ai.shots", len(shots))

        if match.is_finished:
            self._finalize(match)
        else:
            self.hot.save(match)
        logger.info("ai_turn_completed", extra={"match_id": str(match.id), "shots": len(shots)})
        return shots

    def _finalize(self, match: Match) -> None:
        """Write the final state everywhere and settle both players' profiles."""
        with tracer.start_as_current_span("service.finalize") as span:
            span.set_attribute("match.id", str(match.id))
            self.durable.save(match)
            self.hot.save(match)

            for player_id in match.participants():
                profile = self.durable.get_profile(player_id)
                hit_points = match.stats_of(player_id).hits * self.settings.points_per_hit
                if player_id == match.winner_id:
                    profile.wins += 1
                    profile.rank_points += self.settings.points_per_win + hit_points
                    profile.current_streak += 1
                    profile.max_streak = max(profile.max_streak, profile.current_streak)
                    if not any(ship.damaged for ship in match.board_of(player_id).ships):
                        profile.award(FLAWLESS_MEDAL)
                else:
                    profile.losses += 1
                    profile.rank_points += hit_points
                    profile.current_streak = 0
                self.durable.save_profile(profile)

            self.hot.invalidate_ranking()
            winner = "ai" if match.winner_id == AI_PLAYER_ID else "player"
            record_match_metric("seabattle_matches_finished", 1, {"mode": match.mode.value, "winner": winner})
            logger.info(
                "match_finalized",
                extra={"match_id": str(match.id), "winner": str(match.winner_id)},
            )

    def _load_durable(self, match_id: UUID) -> Match:
        match = self.durable.load(match_id)
        if match is None:
            raise ResourceNotFoundError(f"Match {match_id} does not exist.")
        match.clock = self.clock
        return match

    def _load_live(self, match_id: UUID) -> Match:
        match = self.hot.load(match_id)
        if match is None:
            match = self._load_durable(match_id)
            if match.status is MatchStatus.IN_PROGRESS:
                self.hot.save(match)
                logger.info("hot_store_reseeded", extra={"match_id": str(match_id)})
        match.clock = self.clock
        return match

    @staticmethod
    def _require_participant(match: Match, player_id: UUID) -> None:
        if not match.is_participant(player_id):
            raise PermissionDeniedError(f"Player {player_id} does not take part in match {match.id}.")

    @staticmethod
    def _view(match: Match, player_id: UUID) -> MatchStateView:
        opponent = match.opponent_of(player_id)
        return MatchStateView(
            match_id=match.id,
            status=match.status,
            mode=match.mode,
            ai_difficulty=match.ai_difficulty,
            player1_id=match.player1_id,
            player2_id=match.player2_id,
            current_turn_player_id=match.current_turn_player_id,
            is_my_turn=match.status is MatchStatus.IN_PROGRESS and match.current_turn_player_id == player_id,
            winner_id=match.winner_id,
            turn_started_at=match.last_move_at,
            my_board=BoardView.own(match.board_of(player_id)),
            opponent_board=BoardView.opponent(match.board_of(opponent)),
            my_stats=PlayerStatsView.of(match.stats_of(player_id)),
            opponent_stats=PlayerStatsView.of(match.stats_of(opponent)),
        )
