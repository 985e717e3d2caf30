"""Runtime settings for the match engine and its stores."""

from __future__ import annotations

import os
from datetime import timedelta
from functools import lru_cache
from typing import Any, Dict

from pydantic import BaseModel, Field

_ENV_NAMES = {
    "database_url": "SEABATTLE_DATABASE_URL",
    "redis_url": "SEABATTLE_REDIS_URL",
    "turn_time_limit_seconds": "SEABATTLE_TURN_TIME_LIMIT",
    "max_consecutive_timeouts": "SEABATTLE_MAX_TIMEOUTS",
    "hot_store_ttl_seconds": "SEABATTLE_HOT_STORE_TTL",
    "sweep_interval_seconds": "SEABATTLE_SWEEP_INTERVAL",
    "points_per_win": "SEABATTLE_POINTS_PER_WIN",
    "points_per_hit": "SEABATTLE_POINTS_PER_HIT",
}


class EngineSettings(BaseModel):
    database_url: str = "sqlite:///seabattle.sqlite3"
    redis_url: str = "redis://localhost:6379/0"
    turn_time_limit_seconds: int = Field(default=31, gt=0)
    max_consecutive_timeouts: int = Field(default=4, gt=0)
    hot_store_ttl_seconds: int = Field(default=3600, gt=0)
    sweep_interval_seconds: int = Field(default=5, gt=0)
    points_per_win: int = Field(default=100, ge=0)
    points_per_hit: int = Field(default=10, ge=0)

    @classmethod
    def from_env(cls, **overrides: Any) -> "EngineSettings":
        """Read `SEABATTLE_*` variables; explicit overrides win."""

        data: Dict[str, Any] = {}
        for field_name, env_name in _ENV_NAMES.items():
            raw = os.getenv(env_name)
            if raw is not None and raw.strip():
                data[field_name] = raw.strip()
        data.update(overrides)
        return cls(**data)

    @property
    def turn_time_limit(self) -> timedelta:
        return timedelta(seconds=self.turn_time_limit_seconds)


@lru_cache(maxsize=1)
def load_settings() -> EngineSettings:
    """Load and cache engine settings from the environment."""

    return EngineSettings.from_env()
