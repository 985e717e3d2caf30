"""Hot-store and durable-store adapters for matches."""

from .durable import PlayerProfile, SqlMatchRepository, build_engine, build_session_factory
from .hot_store import InMemoryMatchStateStore, MatchStateStore, RedisMatchStateStore
from .snapshot import MatchSnapshot, from_snapshot, to_snapshot

__all__ = [
    "InMemoryMatchStateStore",
    "MatchSnapshot",
    "MatchStateStore",
    "PlayerProfile",
    "RedisMatchStateStore",
    "SqlMatchRepository",
    "build_engine",
    "build_session_factory",
    "from_snapshot",
    "to_snapshot",
]
