"""Cron timers and the registry that owns them."""

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from datetime import datetime, timezone

from tether.core.logging import get_logger
from tether.tasks.parser import CronSchedule

logger = get_logger("tasks.timer")

FireCallback = Callable[[], Awaitable[object]]
ScheduledCallback = Callable[[datetime], Awaitable[None]]


class CronTimer:
    """Fires a callback on every occurrence of a cron schedule.

    Firings are serialized: the next occurrence is computed only after the
    previous callback returns, so a slow firing delays but never overlaps
    the next one. stop() prevents future firings and leaves an in-flight
    firing to finish.
    """

    def __init__(
        self,
        task_id: int,
        schedule: CronSchedule,
        callback: FireCallback,
        on_scheduled: ScheduledCallback | None = None,
    ):
        self.task_id = task_id
        self.schedule = schedule
        self._callback = callback
        self._on_scheduled = on_scheduled
        self._task: asyncio.Task | None = None
        self._stopped = False
        self._firing = False
        self._last_fire: datetime | None = None
        self.next_fire: datetime | None = None
        self.fire_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    @property
    def firing(self) -> bool:
        return self._firing

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name=f"task-{self.task_id}")

    def stop(self) -> None:
        """Prevent future firings. An in-flight firing is not cancelled."""
        self._stopped = True
        if self._task is not None and not self._firing:
            self._task.cancel()

    async def wait(self) -> None:
        """Wait for the timer coroutine to exit (after stop())."""
        if self._task is None:
            return
        await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self) -> None:
        while not self._stopped:
            now = datetime.now(timezone.utc)
            # Never re-fire the same occurrence if the sleep woke early
            reference = max(now, self._last_fire) if self._last_fire else now
            fire_at = self.schedule.next_after(reference)
            self.next_fire = fire_at

            if self._on_scheduled is not None:
                try:
                    await self._on_scheduled(fire_at)
                except Exception as e:
                    logger.warning(f"Could not persist next run of task {self.task_id}: {e}")

            delay = (fire_at - datetime.now(timezone.utc)).total_seconds()
            await asyncio.sleep(max(0.0, delay))
            if self._stopped:
                break

            self._last_fire = fire_at
            self._firing = True
            try:
                await self._callback()
            except Exception as e:
                logger.error(f"Scheduled task {self.task_id} error: {e}", exc_info=True)
            finally:
                self._firing = False
                self.fire_count += 1

        logger.debug(f"Timer for task {self.task_id} exited")


class TimerRegistry:
    """task id -> live timer. Owned by exactly one TaskManager.

    Stopped timers are kept aside until they exit, so shutdown can wait
    for a firing that was in flight when its timer was stopped.
    """

    def __init__(self) -> None:
        self._timers: dict[int, CronTimer] = {}
        self._retired: list[CronTimer] = []

    def __contains__(self, task_id: int) -> bool:
        return task_id in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._timers))

    def get(self, task_id: int) -> CronTimer | None:
        return self._timers.get(task_id)

    def add(self, timer: CronTimer) -> None:
        """Track a timer, stopping any previous one for the same task."""
        previous = self._timers.pop(timer.task_id, None)
        if previous is not None:
            self._retire(previous)
        self._timers[timer.task_id] = timer

    def remove(self, task_id: int) -> bool:
        """Stop and forget a task's timer. False if none was tracked."""
        timer = self._timers.pop(task_id, None)
        if timer is None:
            return False
        self._retire(timer)
        return True

    def stop_all(self) -> int:
        count = len(self._timers)
        for task_id, timer in self._timers.items():
            self._retire(timer)
            logger.debug(f"Timer for task {task_id} stopped")
        self._timers.clear()
        return count

    async def drain(self, timeout: float | None = None) -> int:
        """
        Wait for stopped timers to exit.

        Firings still running after `timeout` seconds are cancelled.

        Returns:
            Number of firings cancelled
        """
        pending_tasks = [t.task for t in self._retired if t.running]
        self._retired.clear()
        if not pending_tasks:
            return 0

        _, pending = await asyncio.wait(pending_tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return len(pending)

    def _retire(self, timer: CronTimer) -> None:
        timer.stop()
        self._retired = [t for t in self._retired if t.running]
        self._retired.append(timer)
