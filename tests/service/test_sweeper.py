"""Timeout sweeper tests."""

from __future__ import annotations

from unittest.mock import MagicMock

from conftest import HUMAN, RIVAL
from seabattle.engine.errors import ResourceNotFoundError
from seabattle.service.schemas import StartMatchInput
from seabattle.service.sweeper import SWEEP_JOB_ID, TimeoutSweeper


def start_ai_match(service, player, fleet_input):
    match_id = service.start_match(player, StartMatchInput())
    service.setup_fleet(match_id, player, fleet_input)
    return match_id


def test_start_registers_an_interval_job(service) -> None:
    scheduler = MagicMock()
    sweeper = TimeoutSweeper(service, scheduler=scheduler)

    sweeper.start()
    sweeper.shutdown()

    scheduler.add_job.assert_called_once()
    args, kwargs = scheduler.add_job.call_args
    assert args == (sweeper.sweep, "interval")
    assert kwargs["seconds"] == 5
    assert kwargs["id"] == SWEEP_JOB_ID
    scheduler.start.assert_called_once()
    scheduler.shutdown.assert_called_once_with(wait=True)


def test_sweep_forces_expired_turns(service, hot_store, clock, fleet_input) -> None:
    first = start_ai_match(service, HUMAN, fleet_input)
    second = start_ai_match(service, RIVAL, fleet_input)
    sweeper = TimeoutSweeper(service, scheduler=MagicMock())

    assert all(not r.turn_switched for r in sweeper.sweep().values())

    clock.advance(32)
    results = sweeper.sweep()

    assert set(results) == {first, second}
    assert all(r.turn_switched and not r.is_game_over for r in results.values())
    assert hot_store.load(first).player1_timeouts == 1


def test_sweep_ends_matches_after_four_strikes(service, repository, clock, fleet_input) -> None:
    match_id = start_ai_match(service, HUMAN, fleet_input)
    sweeper = TimeoutSweeper(service, scheduler=MagicMock())

    for _ in range(3):
        clock.advance(32)
        assert not sweeper.sweep()[match_id].is_game_over
    clock.advance(32)
    result = sweeper.sweep()[match_id]

    assert result.is_game_over
    assert repository.list_active_ai_match_ids() == []
    assert repository.get_profile(HUMAN).losses == 1


def test_one_failing_match_does_not_stop_the_sweep(service, clock, fleet_input, monkeypatch) -> None:
    broken = start_ai_match(service, HUMAN, fleet_input)
    healthy = start_ai_match(service, RIVAL, fleet_input)
    original = service.check_turn_timeout

    def flaky(match_id):
        if match_id == broken:
            raise ResourceNotFoundError("gone")
        return original(match_id)

    monkeypatch.setattr(service, "check_turn_timeout", flaky)
    clock.advance(32)

    results = TimeoutSweeper(service, scheduler=MagicMock()).sweep()

    assert broken not in results
    assert results[healthy].turn_switched
