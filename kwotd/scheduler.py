"""KWOTD Notifier — Host Scheduler.

Decides when runs happen, using APScheduler:
  - a daily cron job fires the scheduled run
  - a run asking to be rescheduled gets a one-off retry after
    `retry_delay_minutes`, replacing any retry already pending
  - a successful run clears the pending retry

Each run holds a RunLease from trigger to completion. The lease is
released exactly once by `complete()`; a cancelled run drops its lease
without rescheduling.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from kwotd.config import ScheduleConfig
from kwotd.pipeline.runner import RunResult, RunTrigger
from kwotd.utils.logger import get_logger

logger = get_logger(__name__)

DAILY_JOB_ID = "kwotd_daily"
RETRY_JOB_ID = "kwotd_retry"

RunCallback = Callable[[RunTrigger], Awaitable[RunResult]]


@dataclass
class RunLease:
    """Held by the active run until the scheduler is told it finished."""

    run_id: str
    force: bool
    acquired_at: datetime = field(default_factory=datetime.now)
    released: bool = False


class HostScheduler:
    """APScheduler-backed trigger source and completion sink for runs.

    Attributes:
        config: ScheduleConfig with the daily time and retry delay.
        scheduler: The underlying AsyncIOScheduler.
        lease: Lease of the active run, if any.
    """

    def __init__(
        self,
        config: ScheduleConfig,
        run_callback: RunCallback,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            config: Schedule settings.
            run_callback: Executes one run for a trigger.
            scheduler: Optional pre-built scheduler, mainly for tests.
        """
        self.config = config
        self.run_callback = run_callback
        self.scheduler = scheduler or AsyncIOScheduler(timezone=config.timezone)
        self.lease: Optional[RunLease] = None
        self._counter = itertools.count(1)

    # ── Lifecycle ────────────────────────────────────────

    def start(self) -> None:
        """Register the daily job and start the scheduler."""
        self.scheduler.add_job(
            self.trigger,
            CronTrigger(
                hour=self.config.daily_hour,
                minute=self.config.daily_minute,
                timezone=self.config.timezone,
            ),
            id=DAILY_JOB_ID,
            max_instances=1,
            misfire_grace_time=3600,
            replace_existing=True,
            name=f"Daily KWOTD ({self.config.daily_hour}:{self.config.daily_minute:02d})",
        )
        self.scheduler.start()
        logger.info(
            "Scheduler started: daily run at %d:%02d %s",
            self.config.daily_hour, self.config.daily_minute, self.config.timezone,
        )

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    # ── Runs ─────────────────────────────────────────────

    def _next_run_id(self) -> str:
        return f"{datetime.now():%Y%m%d-%H%M%S}-{next(self._counter)}"

    async def trigger(self, force: bool = False) -> Optional[RunResult]:
        """Start a run unless one is already active.

        Args:
            force: Bypass deduplication for this run.

        Returns:
            The run result, or None if the trigger was skipped.
        """
        if self.lease is not None:
            logger.warning(
                "Run %s still active, skipping trigger", self.lease.run_id,
            )
            return None

        lease = RunLease(run_id=self._next_run_id(), force=force)
        self.lease = lease
        try:
            return await self.run_callback(RunTrigger(lease.run_id, force))
        except asyncio.CancelledError:
            self.abandon(lease.run_id)
            raise

    async def complete(self, run_id: str, reschedule: bool) -> None:
        """Completion contract: release the run's lease, maybe reschedule.

        Calls for an unknown or already released run are ignored, so a
        lease is never released twice.
        """
        lease = self.lease
        if lease is None or lease.run_id != run_id or lease.released:
            logger.warning("Ignoring completion for inactive run %s", run_id)
            return

        lease.released = True
        self.lease = None
        held = (datetime.now() - lease.acquired_at).total_seconds()
        logger.debug("Released lease for run %s after %.1fs", run_id, held)

        if reschedule:
            self.schedule_retry()
        else:
            self.cancel_retry()

    def abandon(self, run_id: str) -> None:
        """Drop a cancelled run's lease without rescheduling."""
        if self.lease is not None and self.lease.run_id == run_id:
            self.lease = None
            logger.info("Run %s abandoned; not rescheduled", run_id)

    # ── Retry job ────────────────────────────────────────

    def schedule_retry(self) -> datetime:
        """Schedule a one-off run after the retry delay.

        Returns:
            When the retry will fire.
        """
        run_date = datetime.now(timezone.utc) + timedelta(
            minutes=self.config.retry_delay_minutes
        )
        self.scheduler.add_job(
            self.trigger,
            DateTrigger(run_date=run_date),
            id=RETRY_JOB_ID,
            replace_existing=True,
            misfire_grace_time=600,
            name="KWOTD retry",
        )
        logger.info("Next attempt in %d minutes", self.config.retry_delay_minutes)
        return run_date

    def cancel_retry(self) -> None:
        try:
            self.scheduler.remove_job(RETRY_JOB_ID)
            logger.debug("Pending retry cancelled")
        except JobLookupError:
            pass

    @property
    def pending_retry(self) -> Optional[datetime]:
        """Fire time of the pending retry, if one is scheduled."""
        job = self.scheduler.get_job(RETRY_JOB_ID)
        return job.next_run_time if job else None

    @property
    def next_daily_run(self) -> Optional[datetime]:
        job = self.scheduler.get_job(DAILY_JOB_ID)
        return job.next_run_time if job else None
