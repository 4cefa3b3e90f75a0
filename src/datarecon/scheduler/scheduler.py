"""
APScheduler-based reconciliation scheduler.
"""

import logging
from collections.abc import Callable
from typing import Any

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class ReconciliationScheduler:
    """
    Runs reconciliation jobs on an interval or a cron schedule

    A job never overlaps with itself: a run still going when the next one
    is due makes APScheduler skip that firing.
    """

    def __init__(self, scheduler: BlockingScheduler | None = None):
        self.scheduler = scheduler or BlockingScheduler()
        self.jobs = []

    def add_interval_job(
        self,
        job_func: Callable,
        interval_seconds: int,
        job_id: str,
        **kwargs,
    ) -> None:
        """
        Add a job that runs every `interval_seconds`

        Args:
            job_func: Function to execute
            interval_seconds: Interval in seconds
            job_id: Unique identifier for the job
            **kwargs: Keyword arguments for job_func
        """
        if interval_seconds < 1:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")

        job = self.scheduler.add_job(
            job_func,
            trigger=IntervalTrigger(seconds=interval_seconds),
            id=job_id,
            kwargs=kwargs,
            replace_existing=True,
            max_instances=1,
        )
        self.jobs.append(job)
        logger.info(f"Added interval job '{job_id}' with {interval_seconds}s interval")

    def add_cron_job(
        self,
        job_func: Callable,
        cron_expression: str,
        job_id: str,
        **kwargs,
    ) -> None:
        """
        Add a job that runs on a 5-field cron schedule

        Example cron expressions:
            "0 */6 * * *"  - Every 6 hours
            "0 2 * * *"    - Daily at 02:00
            "*/30 * * * *" - Every 30 minutes
        """
        parts = cron_expression.split()
        if len(parts) != 5:
            raise ValueError(
                "Cron expression must have 5 parts: minute hour day month day_of_week"
            )
        minute, hour, day, month, day_of_week = parts

        job = self.scheduler.add_job(
            job_func,
            trigger=CronTrigger(
                minute=minute, hour=hour, day=day, month=month, day_of_week=day_of_week
            ),
            id=job_id,
            kwargs=kwargs,
            replace_existing=True,
            max_instances=1,
        )
        self.jobs.append(job)
        logger.info(f"Added cron job '{job_id}' with schedule '{cron_expression}'")

    def start(self) -> None:
        """Block and run scheduled jobs until Ctrl+C."""
        logger.info(f"Starting scheduler with {len(self.jobs)} job(s)")
        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler stopped by user")
            self.stop()

    def stop(self) -> None:
        self.scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")

    def list_jobs(self) -> list[dict[str, Any]]:
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": (
                    job.next_run_time.isoformat()
                    if getattr(job, "next_run_time", None) else None
                ),
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        ]
