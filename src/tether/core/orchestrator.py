"""Orchestrator - runs periodic maintenance jobs on the event loop."""

import asyncio
import contextlib
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from tether.core.logging import get_logger

logger = get_logger("core.orchestrator")


class JobPriority(Enum):
    LOW = 1
    NORMAL = 2
    HIGH = 3


@dataclass
class Job:
    """Maintenance callback (sync or async) run by the orchestrator."""

    id: str
    name: str
    callback: Callable
    interval: timedelta | None = None  # None = run once
    priority: JobPriority = JobPriority.NORMAL
    next_run: datetime = field(default_factory=datetime.now)
    last_run: datetime | None = None
    in_progress: bool = False
    failures: int = 0

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    def is_due(self, now: datetime) -> bool:
        return not self.in_progress and self.next_run <= now


class Orchestrator:
    """Interval jobs for the engine: decay sweep, WAL checkpoint, timer sync.

    Jobs run one after another on a single loop; a slow job delays the
    rest but never runs concurrently with itself.
    """

    def __init__(self, tick: float = 1.0):
        self._jobs: dict[str, Job] = {}
        self._loop_task: asyncio.Task | None = None
        self._tick = tick

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def schedule_job(
        self,
        job_id: str,
        name: str,
        callback: Callable,
        interval: timedelta | None = None,
        priority: JobPriority = JobPriority.NORMAL,
        delay: timedelta | None = None,
    ) -> None:
        """Add a job, replacing any job with the same id.

        Args:
            interval: Repeat period; None runs the job once
            delay: Postpone the first run
        """
        first_run = datetime.now() + (delay or timedelta(0))
        self._jobs[job_id] = Job(
            id=job_id,
            name=name,
            callback=callback,
            interval=interval,
            priority=priority,
            next_run=first_run,
        )
        logger.info(f"Scheduled job: {name} (interval: {interval})")

    def cancel_job(self, job_id: str) -> bool:
        return self._jobs.pop(job_id, None) is not None

    def get_job(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    async def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._job_loop(), name="orchestrator")
        logger.info("Orchestrator started")

    async def stop(self) -> None:
        if self._loop_task is None:
            return
        self._loop_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._loop_task
        self._loop_task = None
        logger.info("Orchestrator stopped")

    async def run_pending(self, now: datetime | None = None) -> int:
        """Run every due job once, highest priority first.

        Returns:
            Number of jobs run
        """
        now = now or datetime.now()
        due = sorted(
            (job for job in self._jobs.values() if job.is_due(now)),
            key=lambda job: job.priority.value,
            reverse=True,
        )
        for job in due:
            await self._run_job(job)
        return len(due)

    async def _run_job(self, job: Job) -> None:
        job.in_progress = True
        try:
            outcome = job.callback()
            if asyncio.iscoroutine(outcome):
                await outcome
        except Exception as e:
            # Logged only; the job keeps its schedule
            job.failures += 1
            logger.error(f"Job {job.name} failed: {e}", exc_info=True)
        finally:
            job.in_progress = False
            job.last_run = datetime.now()

        if job.repeating:
            job.next_run = job.last_run + job.interval
        else:
            self._jobs.pop(job.id, None)

    async def _job_loop(self) -> None:
        while True:
            await self.run_pending()
            await asyncio.sleep(self._tick)
