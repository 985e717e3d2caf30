"""Exception taxonomy shared by the engine and the orchestrator.

Every rule violation is raised synchronously at the point it is detected,
before any state is mutated. The single exception is `TurnTimeoutError`:
the turn has already been passed to the opponent when it is raised.
"""

from __future__ import annotations

from enum import Enum
from uuid import UUID


class SeaBattleError(Exception):
    """Base class for every error raised by the match engine."""


class ValidationError(SeaBattleError, ValueError):
    """Malformed placement, move or shot request."""


class PlacementReason(Enum):
    OUT_OF_BOUNDS = "out_of_bounds"
    COLLISION = "collision"
    FIRED_UPON = "fired_upon"


class PlacementError(ValidationError):
    """A ship footprint cannot be placed (or moved) on the board."""

    def __init__(self, reason: PlacementReason, x: int, y: int) -> None:
        self.reason = reason
        self.x = x
        self.y = y
        messages = {
            PlacementReason.OUT_OF_BOUNDS: f"({x}, {y}) is outside the board.",
            PlacementReason.COLLISION: f"({x}, {y}) is occupied by another ship.",
            PlacementReason.FIRED_UPON: f"({x}, {y}) has already been fired upon.",
        }
        super().__init__(messages[reason])


class DamagedShipError(ValidationError):
    """A ship with any hit segment cannot move."""


class AxisViolationError(ValidationError):
    """A multi-cell ship tried to move off its own axis."""


class AlreadyTargetedError(ValidationError):
    """The cell was already resolved as a hit or a miss."""

    def __init__(self, x: int, y: int) -> None:
        self.x = x
        self.y = y
        super().__init__(f"({x}, {y}) has already been targeted.")


class TurnViolationError(SeaBattleError, RuntimeError):
    """Wrong player, wrong phase, or an action repeated within one turn."""


class TurnTimeoutError(TurnViolationError):
    """The turn budget ran out; the turn has been passed as a side effect."""

    def __init__(self, charged_player_id: UUID, next_player_id: UUID) -> None:
        self.charged_player_id = charged_player_id
        self.next_player_id = next_player_id
        super().__init__("Turn time exceeded; the turn passed to the opponent.")


class InactivityTerminationError(TurnTimeoutError):
    """The match ended because one side timed out too many times in a row."""

    def __init__(self, charged_player_id: UUID, winner_id: UUID) -> None:
        super().__init__(charged_player_id, winner_id)
        self.winner_id = winner_id
        self.args = ("Match finished by inactivity.",)


class ResourceNotFoundError(SeaBattleError, LookupError):
    """Unknown match, ship or player."""


class PermissionDeniedError(SeaBattleError):
    """The acting player does not take part in the match."""


class ConflictError(SeaBattleError):
    """A match cannot be created because a participant is busy."""


class ActiveMatchConflictError(ConflictError):
    def __init__(self, match_id: UUID) -> None:
        self.match_id = match_id
        super().__init__(f"Player already has an active match: {match_id}.")


class OpponentBusyError(ConflictError):
    def __init__(self, opponent_id: UUID) -> None:
        self.opponent_id = opponent_id
        super().__init__(f"Opponent {opponent_id} is already in another match.")
