"""In-memory registry of one-shot reminder jobs.

Jobs are keyed by id. Scheduling an id that is already registered cancels
the previous timer first, so a rescheduled job fires once, at its latest
time. The registry lives in process memory only; ``ReminderLoader`` rebuilds
it on startup. A multi-worker deployment would swap this class for a shared
queue with the same replace-by-id semantics.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable

import structlog

from onschedule.core.errors import SchedulingError
from onschedule.core.metrics import scheduled_jobs, jobs_fired_total

logger = structlog.get_logger()

JobCallback = Callable[[], Awaitable[object]]


@dataclass
class ScheduledJob:
    """A pending one-shot job."""

    id: str
    fire_at: datetime
    callback: JobCallback = field(repr=False)
    handle: asyncio.TimerHandle | None = field(default=None, repr=False)

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()


class JobScheduler:
    """Schedules async callbacks to run once at a wall-clock time."""

    def __init__(self):
        self._jobs: dict[str, ScheduledJob] = {}
        self._running: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def schedule_job(
        self,
        job_id: str,
        fire_at: datetime,
        callback: JobCallback,
    ) -> ScheduledJob:
        """Register ``callback`` to run at ``fire_at``, replacing any job with the same id.

        Args:
            job_id: Registry key
            fire_at: Timezone-aware fire time; past times fire on the next loop pass
            callback: Async callable with no arguments

        Returns:
            The registered job
        """
        if fire_at.tzinfo is None:
            raise ValueError("fire_at must be timezone-aware")

        loop = asyncio.get_running_loop()

        previous = self._jobs.pop(job_id, None)
        if previous is not None:
            previous.cancel()
            logger.info("Previous job cancelled", job_id=job_id, fire_at=previous.fire_at.isoformat())

        delay = max(0.0, (fire_at - datetime.now(timezone.utc)).total_seconds())
        job = ScheduledJob(id=job_id, fire_at=fire_at, callback=callback)
        job.handle = loop.call_later(delay, self._fire, job)
        self._jobs[job_id] = job
        scheduled_jobs.set(len(self._jobs))

        logger.info("Job scheduled", job_id=job_id, fire_at=fire_at.isoformat())
        return job

    def cancel_job(self, job_id: str) -> bool:
        """Cancel and remove a job. Returns False if no such job was pending."""
        job = self._jobs.pop(job_id, None)
        if job is None:
            return False

        job.cancel()
        scheduled_jobs.set(len(self._jobs))
        logger.info("Job cancelled", job_id=job_id)
        return True

    def get_job(self, job_id: str) -> ScheduledJob | None:
        return self._jobs.get(job_id)

    def pending_job_ids(self) -> list[str]:
        return sorted(self._jobs)

    def _fire(self, job: ScheduledJob) -> None:
        # A replaced or cancelled job may still have a timer in flight
        if self._jobs.get(job.id) is not job:
            return

        del self._jobs[job.id]
        scheduled_jobs.set(len(self._jobs))

        task = asyncio.create_task(self._run(job), name=f"job:{job.id}")
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self, job: ScheduledJob) -> None:
        logger.info("Job triggered", job_id=job.id)
        try:
            await job.callback()
        except Exception as e:
            error = SchedulingError(job.id, e)
            jobs_fired_total.labels(outcome="error").inc()
            logger.error("Job callback failed", job_id=job.id, error=str(error))
            return

        jobs_fired_total.labels(outcome="success").inc()
        logger.info("Job completed", job_id=job.id)

    async def wait_for_running(self) -> None:
        """Wait until every job that has already fired finishes."""
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel pending timers and in-flight callbacks."""
        for job in self._jobs.values():
            job.cancel()
        cancelled = len(self._jobs)
        self._jobs.clear()
        scheduled_jobs.set(0)

        for task in list(self._running):
            task.cancel()
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

        logger.info("Job scheduler stopped", cancelled_jobs=cancelled)
