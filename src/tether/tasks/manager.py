"""Task manager - task lifecycle, timer arming, and startup recovery."""

import asyncio
from datetime import datetime

from tether.core.logging import get_logger
from tether.tasks.executor import TaskExecutor
from tether.tasks.parser import CronSchedule, InvalidScheduleError
from tether.tasks.store import TaskStore
from tether.tasks.timer import CronTimer, TimerRegistry
from tether.tasks.types import ScheduledTask, TaskStatus

logger = get_logger("tasks.manager")


class TaskManager:
    """Owns scheduled tasks and their live timers.

    Without an executor the manager runs in admin mode: status changes are
    persisted but no timers are armed. The process that does own timers
    picks such changes up through reconcile() or on its next start().
    """

    def __init__(
        self,
        store: TaskStore,
        executor: TaskExecutor | None = None,
        registry: TimerRegistry | None = None,
        default_timezone: str = "America/Chicago",
    ):
        """
        Initialize task manager.

        Args:
            store: Task persistence
            executor: Firing pipeline; None disables timers
            registry: Timer registry owned by this manager
            default_timezone: Zone for tasks created without one
        """
        self.store = store
        self.executor = executor
        self.registry = registry if registry is not None else TimerRegistry()
        self.default_timezone = default_timezone
        self._fire_locks: dict[int, asyncio.Lock] = {}

    @property
    def timers_enabled(self) -> bool:
        return self.executor is not None

    async def start(self) -> int:
        """
        Arm every active task (startup recovery).

        Occurrences missed while the process was down are not backfilled;
        each task next fires at its next future occurrence.

        Returns:
            Number of timers armed
        """
        tasks = await self.store.list_active()
        logger.info(f"Loading {len(tasks)} scheduled tasks")
        return sum(1 for task in tasks if self.arm(task))

    async def create(
        self,
        channel_id: str,
        prompt: str,
        schedule: str,
        timezone: str | None = None,
    ) -> ScheduledTask:
        """
        Validate, persist as active, and arm a new task.

        Raises:
            InvalidScheduleError: Bad cron expression or timezone (nothing stored)
        """
        tz_name = timezone or self.default_timezone
        cron = CronSchedule.parse(schedule, tz_name)

        task = await self.store.create(channel_id, prompt, cron.expression, tz_name)
        task.next_run = int(cron.next_run().timestamp())
        await self.store.set_next_run(task.id, task.next_run)

        logger.info(f"Created task {task.id}: {cron.expression!r} ({tz_name}) for {channel_id}")
        self.arm(task)
        return task

    async def get(self, task_id: int) -> ScheduledTask | None:
        return await self.store.get(task_id)

    async def list_tasks(self, channel_id: str | None = None) -> list[ScheduledTask]:
        """Non-deleted tasks, optionally for one channel."""
        return await self.store.list_visible(channel_id)

    async def pause(self, task_id: int) -> bool:
        """Stop the task's timer and persist 'paused'.

        Returns:
            False if no such non-deleted task exists
        """
        self.registry.remove(task_id)
        if not await self.store.set_status(task_id, TaskStatus.PAUSED):
            logger.warning(f"Cannot pause task {task_id}: not found or deleted")
            return False
        logger.info(f"Task {task_id} paused")
        return True

    async def resume(self, task_id: int) -> bool:
        """Persist 'active' and re-arm from the stored schedule if untracked.

        Returns:
            False if no such non-deleted task exists
        """
        if not await self.store.set_status(task_id, TaskStatus.ACTIVE):
            logger.warning(f"Cannot resume task {task_id}: not found or deleted")
            return False

        if self.timers_enabled and task_id not in self.registry:
            task = await self.store.get(task_id)
            if task is not None:
                self.arm(task)
        logger.info(f"Task {task_id} resumed")
        return True

    async def delete(self, task_id: int) -> bool:
        """Stop the timer and soft-delete. Idempotent.

        Returns:
            False only if the task id never existed
        """
        self.registry.remove(task_id)
        lock = self._fire_locks.get(task_id)
        if lock is not None and not lock.locked():
            del self._fire_locks[task_id]
        if not await self.store.set_status(task_id, TaskStatus.DELETED):
            logger.warning(f"Cannot delete task {task_id}: not found")
            return False
        logger.info(f"Task {task_id} deleted")
        return True

    async def drain(self, timeout: float | None = None) -> int:
        """Wait for stopped timers to finish their in-flight firings.

        Returns:
            Number of firings cancelled after `timeout` seconds
        """
        return await self.registry.drain(timeout)

    def stop_all(self) -> int:
        """Stop every timer without touching persisted status (shutdown)."""
        count = self.registry.stop_all()
        logger.info(f"Stopped {count} task timers")
        return count

    async def reconcile(self) -> dict[str, int]:
        """
        Align live timers with persisted status.

        Arms active tasks that have no timer and stops timers whose task is
        no longer active (e.g. changed from the admin CLI).
        """
        result = {"armed": 0, "disarmed": 0}
        if not self.timers_enabled:
            return result

        active = {task.id: task for task in await self.store.list_active()}

        for task_id in self.registry:
            if task_id not in active:
                self.registry.remove(task_id)
                result["disarmed"] += 1

        for task_id, task in active.items():
            if task_id not in self.registry and self.arm(task):
                result["armed"] += 1

        if result["armed"] or result["disarmed"]:
            logger.info(f"Reconciled timers: {result}")
        return result

    def arm(self, task: ScheduledTask) -> bool:
        """
        Start a timer for the task, replacing any existing one.

        Returns:
            True if a timer is now live for the task
        """
        if self.executor is None:
            logger.debug(f"Timers disabled, not arming task {task.id}")
            return False

        try:
            cron = CronSchedule.parse(task.schedule, task.timezone)
        except InvalidScheduleError as e:
            logger.error(f"Failed to schedule task {task.id}: {e}")
            return False

        executor = self.executor
        # A timer replaced mid-firing may still be running this task
        lock = self._fire_locks.setdefault(task.id, asyncio.Lock())

        async def fire() -> None:
            async with lock:
                await executor.execute(task)

        async def persist_next_run(fire_at: datetime) -> None:
            await self.store.set_next_run(task.id, int(fire_at.timestamp()))

        timer = CronTimer(task.id, cron, fire, on_scheduled=persist_next_run)
        self.registry.add(timer)
        timer.start()
        logger.debug(f"Task {task.id} scheduled: {cron.expression!r} tz={task.timezone}")
        return True
