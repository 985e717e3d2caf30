"""Hot store adapter tests."""

from __future__ import annotations

import random

import pytest
from conftest import HUMAN, RIVAL
from seabattle.engine.match import Match
from seabattle.storage.hot_store import (
    RANKING_CACHE_KEY,
    InMemoryMatchStateStore,
    RedisMatchStateStore,
    match_key,
)


@pytest.fixture
def match(clock, standard_fleet) -> Match:
    match = Match(player1_id=HUMAN, player2_id=RIVAL, clock=clock, rng=random.Random(0))
    for player in (HUMAN, RIVAL):
        match.place_fleet(player, standard_fleet())
        match.mark_ready(player)
    return match


def test_redis_save_uses_match_key_and_ttl(fake_redis, match) -> None:
    store = RedisMatchStateStore(fake_redis, ttl_seconds=3600)

    store.save(match)

    assert match_key(match.id) == f"match:{match.id}"
    assert fake_redis.ttl[match_key(match.id)] == 3600
    assert store.exists(match.id)


def test_redis_load_slides_the_expiry(fake_redis, match, clock) -> None:
    store = RedisMatchStateStore(fake_redis, ttl_seconds=3600, clock=clock)
    store.save(match)
    fake_redis.ttl[match_key(match.id)] = 12

    loaded = store.load(match.id)

    assert loaded is not None
    assert loaded.id == match.id
    assert loaded.current_turn_player_id == match.current_turn_player_id
    assert fake_redis.ttl[match_key(match.id)] == 3600


def test_redis_corrupt_entry_is_a_miss(fake_redis, match) -> None:
    store = RedisMatchStateStore(fake_redis)
    fake_redis.set(match_key(match.id), "{not json")

    assert store.load(match.id) is None


def test_redis_undecodable_bytes_are_a_miss(fake_redis, match) -> None:
    store = RedisMatchStateStore(fake_redis)
    fake_redis.data[match_key(match.id)] = b"\xff\xfe garbage"

    assert store.load(match.id) is None


def test_redis_decode_failure_inside_the_client_is_a_miss(fake_redis, match, monkeypatch) -> None:
    store = RedisMatchStateStore(fake_redis)
    store.save(match)

    def failing_getex(key, ex=None):
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

    monkeypatch.setattr(fake_redis, "getex", failing_getex)

    assert store.load(match.id) is None


def test_redis_entry_with_wrong_shape_is_a_miss(fake_redis, match) -> None:
    store = RedisMatchStateStore(fake_redis)
    fake_redis.set(match_key(match.id), '{"match_id": "nope"}')

    assert store.load(match.id) is None


def test_redis_delete_and_ranking_invalidation(fake_redis, match) -> None:
    store = RedisMatchStateStore(fake_redis)
    store.save(match)
    fake_redis.set(RANKING_CACHE_KEY, "[]")

    store.delete(match.id)
    store.invalidate_ranking()

    assert not store.exists(match.id)
    assert store.load(match.id) is None
    assert RANKING_CACHE_KEY not in fake_redis.data


def test_in_memory_entries_expire(clock, match) -> None:
    store = InMemoryMatchStateStore(ttl_seconds=3600, clock=clock)
    store.save(match)

    clock.advance(3000)
    assert store.load(match.id) is not None
    clock.advance(3000)
    assert store.exists(match.id)

    clock.advance(3601)
    assert store.load(match.id) is None
    assert not store.exists(match.id)
