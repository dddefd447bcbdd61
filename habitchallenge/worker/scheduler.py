"""
habitchallenge.worker.scheduler — Daily Cron Jobs
==================================================

The four scheduled jobs are registered on an APScheduler
``AsyncIOScheduler``, each under its own daily :class:`CronTrigger` in the
configured timezone.  A fired job runs on a worker thread via
:func:`~habitchallenge.database.engine.run_db`.  A failing run is logged
and never unschedules the job, and one job never waits on another.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import time
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from habitchallenge.database.engine import run_db

if TYPE_CHECKING:
    from habitchallenge.config import JobSchedule
    from habitchallenge.services.scheduler_service import SchedulerService

logger = logging.getLogger(__name__)

# A run missed by up to an hour (worker restart, long GC) still fires once.
MISFIRE_GRACE_SECONDS = 3600


@dataclass(frozen=True, slots=True)
class DailyJob:
    name: str
    at: time
    func: Callable[[], dict]


def build_jobs(service: SchedulerService, schedule: JobSchedule) -> list[DailyJob]:
    return [
        DailyJob("daily_reminder", schedule.daily_reminder, service.send_daily_reminders),
        DailyJob("approval_summary", schedule.approval_summary, service.send_approval_summaries),
        DailyJob("challenge_start", schedule.challenge_start, service.start_due_challenges),
        DailyJob("challenge_end", schedule.challenge_end, service.complete_due_challenges),
    ]


def build_trigger(job: DailyJob, timezone: str) -> CronTrigger:
    return CronTrigger(hour=job.at.hour, minute=job.at.minute, timezone=timezone)


async def run_once(job: DailyJob) -> dict | None:
    """Run *job* on a thread; return its summary or ``None`` on failure."""
    try:
        result = await run_db(job.func)
    except Exception:
        logger.exception("Scheduled job %s failed", job.name, extra={"task": job.name})
        return None
    logger.info("Scheduled job %s finished: %s", job.name, result)
    return result


class JobScheduler:
    """Registers every :class:`DailyJob` on one ``AsyncIOScheduler``."""

    def __init__(self, jobs: list[DailyJob], timezone: str) -> None:
        self.jobs = jobs
        self.timezone = timezone
        self.scheduler = AsyncIOScheduler(
            timezone=timezone,
            job_defaults={"coalesce": True, "misfire_grace_time": MISFIRE_GRACE_SECONDS},
        )

    def start(self) -> None:
        """Must be called with the asyncio event loop running."""
        for job in self.jobs:
            self.scheduler.add_job(
                run_once,
                build_trigger(job, self.timezone),
                args=[job],
                id=job.name,
                name=job.name,
                replace_existing=True,
            )
        self.scheduler.start()
        for scheduled in self.scheduler.get_jobs():
            logger.info("Next %s run at %s", scheduled.id, scheduled.next_run_time)

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def run_forever(self) -> None:
        self.start()
        try:
            await asyncio.Event().wait()
        finally:
            self.stop()
