"""Scheduler service for periodic workflow runs."""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_MISSED,
    JobEvent,
)
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from jobwatch.logging import get_logger

logger = get_logger(__name__, component="scheduler")

JOB_ID = "jobwatch-run"


class SchedulerService:
    """
    Triggers workflow runs on a fixed interval from a background thread.

    Runs never overlap (``max_instances=1``): a tick that fires while the
    previous run is still going is dropped and logged. A run delayed past
    several ticks executes once (``coalesce=True``). The first run starts
    immediately.
    """

    def __init__(
        self,
        run_callable: Callable[[], object],
        interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        """
        Initialize the scheduler service.

        Args:
            run_callable: Called on each scheduled run (e.g. WorkflowService.run_once)
            interval_seconds: Seconds between runs
            shutdown_event: Set on shutdown so the main thread can exit
            scheduler: Scheduler instance override
        """
        self.run_callable = run_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event
        self.scheduler = scheduler or BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )
        self.scheduler.add_listener(
            self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED | EVENT_JOB_MAX_INSTANCES
        )

    def start(self) -> None:
        """Register the run job and start the scheduler thread.

        Calling it on a running scheduler logs a warning and does nothing.
        """
        if self.scheduler.running:
            logger.warning(
                "Scheduler already running, ignoring start",
                extra={"event": "scheduler.already_running"},
            )
            return

        next_run = datetime.now(timezone.utc)
        self.scheduler.add_job(
            func=self.run_callable,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=JOB_ID,
            name="jobwatch workflow run",
            replace_existing=True,
            next_run_time=next_run,
        )
        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": next_run.isoformat(),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """Stop the scheduler; with ``wait`` the running job finishes first."""
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
        if self.shutdown_event is not None:
            self.shutdown_event.set()
        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self):
        """Run the callable synchronously in the calling thread and return its result."""
        logger.info("Triggering immediate workflow run", extra={"event": "scheduler.trigger_now"})
        return self.run_callable()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def _on_job_event(self, event: JobEvent) -> None:
        if event.code == EVENT_JOB_MAX_INSTANCES:
            logger.warning(
                "Scheduled run skipped: previous run still in progress",
                extra={"event": "scheduler.run.skipped", "job_id": event.job_id},
            )
        elif event.code == EVENT_JOB_MISSED:
            logger.warning(
                "Scheduled run missed its start time",
                extra={"event": "scheduler.run.missed", "job_id": event.job_id},
            )
        else:
            logger.error(
                f"Scheduled run raised: {getattr(event, 'exception', None)}",
                extra={"event": "scheduler.run.failed", "job_id": event.job_id},
            )
