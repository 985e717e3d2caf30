"""Shared fixtures: a controllable clock, a redis double and a fixed fleet."""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import Callable
from uuid import UUID

import pytest
from seabattle.config import EngineSettings
from seabattle.engine.ship import Ship, ShipOrientation
from seabattle.service.orchestrator import MatchService
from seabattle.service.schemas import PlaceShipsInput, ShipPlacement
from seabattle.storage.durable import SqlMatchRepository, build_engine, build_session_factory
from seabattle.storage.hot_store import InMemoryMatchStateStore

# Every ship horizontal, one per row, starting at column 0.
FLEET_LAYOUT = [
    ("Carrier", 6, 0, 0),
    ("Carrier", 6, 0, 1),
    ("Battleship", 4, 0, 2),
    ("Battleship", 4, 0, 3),
    ("Cruiser", 3, 0, 4),
    ("Submarine", 1, 0, 5),
]
FLEET_CELLS = [(x + offset, y) for _, size, x, y in FLEET_LAYOUT for offset in range(size)]

HUMAN = UUID("11111111-1111-1111-1111-111111111111")
RIVAL = UUID("22222222-2222-2222-2222-222222222222")
STRANGER = UUID("33333333-3333-3333-3333-333333333333")


class MutableClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeRedis:
    """The handful of redis-py calls the hot store makes, backed by a dict."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttl: dict[str, int | None] = {}

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.data[key] = value
        self.ttl[key] = ex
        return True

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def getex(self, key: str, ex: int | None = None) -> str | None:
        if key in self.data and ex is not None:
            self.ttl[key] = ex
        return self.data.get(key)

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttl.pop(key, None)
        return removed

    def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if key in self.data)


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def standard_fleet() -> Callable[[], list[Ship]]:
    def build() -> list[Ship]:
        return [
            Ship.build(name, size, x, y, ShipOrientation.HORIZONTAL)
            for name, size, x, y in FLEET_LAYOUT
        ]

    return build


@pytest.fixture
def fleet_input() -> PlaceShipsInput:
    return PlaceShipsInput(
        ships=[
            ShipPlacement(name=name, size=size, x=x, y=y, orientation=ShipOrientation.HORIZONTAL)
            for name, size, x, y in FLEET_LAYOUT
        ]
    )


@pytest.fixture
def repository(clock: MutableClock) -> SqlMatchRepository:
    return SqlMatchRepository(build_session_factory(build_engine("sqlite://")), clock=clock)


@pytest.fixture
def hot_store(clock: MutableClock) -> InMemoryMatchStateStore:
    return InMemoryMatchStateStore(clock=clock)


@pytest.fixture
def service(
    repository: SqlMatchRepository, hot_store: InMemoryMatchStateStore, clock: MutableClock
) -> MatchService:
    return MatchService(
        repository,
        hot_store,
        settings=EngineSettings(),
        clock=clock,
        rng_factory=lambda: random.Random(7),
    )
