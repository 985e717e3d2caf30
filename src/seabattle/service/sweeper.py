"""Periodic enforcement of turn timeouts in matches against the AI."""

from __future__ import annotations

import logging
from uuid import UUID

from apscheduler.schedulers.background import BackgroundScheduler

from seabattle.telemetry import get_tracer

from .orchestrator import MatchService
from .schemas import TimeoutCheckResult

logger = logging.getLogger(__name__)
tracer = get_tracer("seabattle.service.sweeper")

SWEEP_JOB_ID = "seabattle-timeout-sweep"


class TimeoutSweeper:
    """Runs `MatchService.check_turn_timeout` for every live AI match on an interval."""

    def __init__(
        self,
        service: MatchService,
        interval_seconds: int | None = None,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        self.service = service
        self.interval_seconds = interval_seconds or service.settings.sweep_interval_seconds
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")

    def sweep(self) -> dict[UUID, TimeoutCheckResult]:
        """One pass; a failing match is logged and skipped."""
        results: dict[UUID, TimeoutCheckResult] = {}
        with tracer.start_as_current_span("sweeper.sweep") as span:
            match_ids = self.service.durable.list_active_ai_match_ids()
            span.set_attribute("sweeper.matches", len(match_ids))
            for match_id in match_ids:
                try:
                    results[match_id] = self.service.check_turn_timeout(match_id)
                except Exception:
                    logger.exception("timeout_sweep_failed", extra={"match_id": str(match_id)})
                    continue
                if results[match_id].turn_switched:
                    logger.info(
                        "timeout_sweep_applied",
                        extra={
                            "match_id": str(match_id),
                            "game_over": results[match_id].is_game_over,
                        },
                    )
        return results

    def start(self) -> None:
        self.scheduler.add_job(
            self.sweep,
            "interval",
            seconds=self.interval_seconds,
            id=SWEEP_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info("timeout_sweeper_started", extra={"interval_seconds": self.interval_seconds})

    def shutdown(self, wait: bool = True) -> None:
        self.scheduler.shutdown(wait=wait)
        logger.info("timeout_sweeper_stopped")
