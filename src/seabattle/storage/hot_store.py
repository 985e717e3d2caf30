"""Hot store: low-latency, expiring copies of live matches."""

from __future__ import annotations

import logging
import random
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from redis import Redis

from seabattle.engine.match import Match, utcnow
from seabattle.telemetry import get_tracer, record_match_metric

from .snapshot import MatchSnapshot, from_snapshot, to_snapshot

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.storage.hot_store")

DEFAULT_TTL_SECONDS = 3600
RANKING_CACHE_KEY = "global_ranking"


def match_key(match_id: UUID) -> str:
    return f"match:{match_id}"


class MatchStateStore(ABC):
    """Snapshot storage keyed by match id, with a sliding expiry."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utcnow,
        rng_factory: Callable[[], random.Random] = random.Random,
    ) -> None:
        self.clock = clock
        self.rng_factory = rng_factory

    def save(self, match: Match) -> None:
        with tracer.start_as_current_span("hot_store.save") as span:
            span.set_attribute("match.id", str(match.id))
            self._write(match_key(match.id), to_snapshot(match).model_dump_json())

    def load(self, match_id: UUID) -> Match | None:
        """Return the cached match, or None on a miss or an unreadable entry."""
        with tracer.start_as_current_span("hot_store.load") as span:
            span.set_attribute("match.id", str(match_id))
            try:
                raw = self._read(match_key(match_id))
                if raw is None:
                    span.set_attribute("hot_store.hit", False)
                    record_match_metric("seabattle_hot_store_misses", 1, {"reason": "absent"})
                    return None
                snapshot = MatchSnapshot.model_validate_json(raw)
                match = from_snapshot(snapshot, clock=self.clock, rng=self.rng_factory())
            except ValueError as exc:  # includes UnicodeDecodeError from the client
                span.set_attribute("hot_store.hit", False)
                record_match_metric("seabattle_hot_store_misses", 1, {"reason": "corrupt"})
                logger.warning(
                    "hot_store_corrupt_entry", extra={"match_id": str(match_id), "error": str(exc)}
                )
                return None
            span.set_attribute("hot_store.hit", True)
            return match

    def delete(self, match_id: UUID) -> None:
        self._remove(match_key(match_id))

    def exists(self, match_id: UUID) -> bool:
        return self._contains(match_key(match_id))

    def invalidate_ranking(self) -> None:
        self._remove(RANKING_CACHE_KEY)

    @abstractmethod
    def _write(self, key: str, value: str) -> None: ...

    @abstractmethod
    def _read(self, key: str) -> str | None: ...

    @abstractmethod
    def _remove(self, key: str) -> None: ...

    @abstractmethod
    def _contains(self, key: str) -> bool: ...


class RedisMatchStateStore(MatchStateStore):
    """Redis-backed store; every read and write pushes the expiry out again."""

    def __init__(
        self,
        client: Redis,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
        rng_factory: Callable[[], random.Random] = random.Random,
    ) -> None:
        super().__init__(clock, rng_factory)
        self.client = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = DEFAULT_TTL_SECONDS, **kwargs) -> RedisMatchStateStore:
        client = Redis.from_url(url, decode_responses=True, health_check_interval=30)
        return cls(client, ttl_seconds=ttl_seconds, **kwargs)

    def _write(self, key: str, value: str) -> None:
        self.client.set(key, value, ex=self.ttl_seconds)

    def _read(self, key: str) -> str | None:
        raw = self.client.getex(key, ex=self.ttl_seconds)
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return raw

    def _remove(self, key: str) -> None:
        self.client.delete(key)

    def _contains(self, key: str) -> bool:
        return bool(self.client.exists(key))


class InMemoryMatchStateStore(MatchStateStore):
    """Process-local store for single-process play and tests."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
        rng_factory: Callable[[], random.Random] = random.Random,
    ) -> None:
        super().__init__(clock, rng_factory)
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def _expiry(self) -> datetime:
        return self.clock() + timedelta(seconds=self.ttl_seconds)

    def _live(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self.clock():
            del self._entries[key]
            return None
        return value

    def _write(self, key: str, value: str) -> None:
        with self._lock:
            self._entries[key] = (value, self._expiry())

    def _read(self, key: str) -> str | None:
        with self._lock:
            value = self._live(key)
            if value is not None:
                self._entries[key] = (value, self._expiry())
            return value

    def _remove(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def _contains(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not None
