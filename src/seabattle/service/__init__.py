"""Use cases exposed to the boundary layer."""

from .locks import MatchLockRegistry
from .orchestrator import FLAWLESS_MEDAL, MatchService
from .sweeper import TimeoutSweeper

__all__ = ["FLAWLESS_MEDAL", "MatchLockRegistry", "MatchService", "TimeoutSweeper"]
