"""Durable store adapter tests against in-memory SQLite."""

from __future__ import annotations

import random
from uuid import uuid4

from conftest import HUMAN, RIVAL, STRANGER
from seabattle.engine.match import AI_PLAYER_ID, Difficulty, Match, MatchStatus


def ai_match(clock, standard_fleet, player=HUMAN, start: bool = True) -> Match:
    match = Match(
        player1_id=player, ai_difficulty=Difficulty.INTERMEDIATE, clock=clock, rng=random.Random(2)
    )
    match.place_fleet(AI_PLAYER_ID, standard_fleet())
    match.mark_ready(AI_PLAYER_ID)
    if start:
        match.place_fleet(player, standard_fleet())
        match.mark_ready(player)
    return match


def test_save_and_load_round_trip(repository, clock, standard_fleet) -> None:
    match = ai_match(clock, standard_fleet)
    match.shoot(HUMAN, 0, 0)
    match.shoot(HUMAN, 9, 9)

    repository.save(match)
    loaded = repository.load(match.id)

    assert loaded is not None
    assert loaded.player1_board.grid() == match.player1_board.grid()
    assert loaded.player2_board.grid() == match.player2_board.grid()
    assert loaded.player2_board.shots == match.player2_board.shots
    assert loaded.player1_stats == match.player1_stats
    assert loaded.current_turn_player_id == AI_PLAYER_ID
    assert loaded.ai_difficulty is Difficulty.INTERMEDIATE
    assert loaded.player1_ready and loaded.player2_ready
    assert loaded.last_move_at == match.last_move_at
    assert loaded.last_move_at.tzinfo is not None


def test_save_overwrites_existing_row(repository, clock, standard_fleet) -> None:
    match = ai_match(clock, standard_fleet)
    repository.save(match)

    match.forfeit(HUMAN)
    repository.save(match)

    loaded = repository.load(match.id)
    assert loaded.status is MatchStatus.FINISHED
    assert loaded.winner_id == AI_PLAYER_ID


def test_load_unknown_match_returns_none(repository) -> None:
    assert repository.load(uuid4()) is None


def test_delete_removes_the_row(repository, clock, standard_fleet) -> None:
    match = ai_match(clock, standard_fleet, start=False)
    repository.save(match)

    repository.delete(match.id)

    assert repository.load(match.id) is None


def test_active_match_lookup(repository, clock, standard_fleet) -> None:
    setup = ai_match(clock, standard_fleet, start=False)
    pvp = Match(player1_id=RIVAL, player2_id=STRANGER, clock=clock)
    repository.save(setup)
    repository.save(pvp)

    assert repository.find_active_match_id(HUMAN) == setup.id
    assert repository.find_active_match_id(STRANGER) == pvp.id

    setup.status = MatchStatus.FINISHED
    repository.save(setup)
    assert repository.find_active_match_id(HUMAN) is None


def test_active_ai_matches_are_listed(repository, clock, standard_fleet) -> None:
    running = ai_match(clock, standard_fleet)
    waiting = ai_match(clock, standard_fleet, player=RIVAL, start=False)
    human_only = Match(player1_id=STRANGER, player2_id=uuid4(), clock=clock)
    for match in (running, waiting, human_only):
        repository.save(match)

    assert repository.list_active_ai_match_ids() == [running.id]


def test_profiles_are_created_on_first_access(repository) -> None:
    profile = repository.get_profile(HUMAN)

    assert (profile.rank_points, profile.wins, profile.losses, profile.medals) == (0, 0, 0, [])

    profile.wins = 2
    profile.max_streak = 2
    profile.award("ADMIRAL")
    profile.award("ADMIRAL")
    repository.save_profile(profile)

    reloaded = repository.get_profile(HUMAN)
    assert reloaded.wins == 2
    assert reloaded.max_streak == 2
    assert reloaded.medals == ["ADMIRAL"]
