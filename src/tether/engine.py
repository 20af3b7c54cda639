"""Engine - wires store, memory, scheduler and maintenance jobs together.

Startup order: lock, database, initial decay sweep, maintenance jobs,
scheduler recovery. Shutdown runs the reverse: timers, jobs, in-flight firings, database,
lock, so a second instance can only start once everything is closed.
"""

from datetime import timedelta

from tether.core.config import Settings
from tether.core.lock import ProcessLock
from tether.core.logging import get_logger
from tether.core.orchestrator import JobPriority, Orchestrator
from tether.memory.manager import MemoryManager
from tether.memory.store import SQLiteMemoryStore
from tether.storage.database import Database
from tether.tasks.executor import Notifier, PromptExecutor, TaskExecutor
from tether.tasks.manager import TaskManager
from tether.tasks.store import TaskStore
from tether.usage.costs import CostLedger
from tether.usage.sessions import SessionStore

logger = get_logger("engine")


class Engine:
    """Memory and scheduling engine for one data directory."""

    def __init__(
        self,
        settings: Settings,
        prompt_executor: PromptExecutor | None = None,
        notifier: Notifier | None = None,
        orchestrator: Orchestrator | None = None,
    ):
        """
        Args:
            settings: Paths and intervals
            prompt_executor: Agent runtime for scheduled prompts; None
                leaves the scheduler in admin mode (no timers)
            notifier: Delivers scheduled results to channels
            orchestrator: Job loop for maintenance (created if omitted)
        """
        self.settings = settings
        self.lock = ProcessLock(settings.lock_path)
        self.db = Database(settings.db_path)
        self.memory = MemoryManager(SQLiteMemoryStore(self.db), settings.command_prefix)
        self.costs = CostLedger(self.db)
        # Read and written by the chat transport, not by scheduled tasks
        self.sessions = SessionStore(self.db)

        task_store = TaskStore(self.db)
        executor = (
            TaskExecutor(task_store, prompt_executor, notifier, self.costs)
            if prompt_executor is not None
            else None
        )
        self.tasks = TaskManager(
            task_store, executor, default_timezone=settings.default_timezone
        )
        self.orchestrator = orchestrator or Orchestrator()
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """
        Bring the engine up.

        Raises:
            InstanceLockError: Another live process owns the data directory
        """
        if self._started:
            return

        # Fatal before anything else initializes
        self.lock.acquire()
        try:
            await self.db.connect()
            await self._decay_sweep()
            self._schedule_maintenance()
            await self.orchestrator.start()
            armed = await self.tasks.start()
        except BaseException:
            await self._teardown()
            raise

        self._started = True
        logger.info(f"Engine running ({armed} tasks armed)")

    async def stop(self) -> None:
        """Stop timers, jobs, close the store, release the lock."""
        if not self._started:
            return
        logger.info("Shutting down...")
        self._started = False
        await self._teardown()

    async def _teardown(self) -> None:
        self.tasks.stop_all()
        await self.orchestrator.stop()
        # Firings still write their result, so the database must stay open
        cancelled = await self.tasks.drain(timeout=self.settings.shutdown_grace_seconds)
        if cancelled:
            logger.warning(f"Cancelled {cancelled} scheduled tasks still running at shutdown")
        if self.db.connected:
            await self.db.close()
        self.lock.release()

    def _schedule_maintenance(self) -> None:
        s = self.settings
        self.orchestrator.schedule_job(
            "memory-decay",
            "Memory decay sweep",
            self._decay_sweep,
            interval=timedelta(hours=s.decay_interval_hours),
            priority=JobPriority.LOW,
            delay=timedelta(hours=s.decay_interval_hours),
        )
        self.orchestrator.schedule_job(
            "wal-checkpoint",
            "WAL checkpoint",
            self.db.wal_checkpoint,
            interval=timedelta(hours=s.wal_checkpoint_interval_hours),
            priority=JobPriority.LOW,
            delay=timedelta(hours=s.wal_checkpoint_interval_hours),
        )
        if self.tasks.timers_enabled:
            self.orchestrator.schedule_job(
                "task-sync",
                "Task timer reconciliation",
                self.tasks.reconcile,
                interval=timedelta(seconds=s.task_sync_interval_seconds),
                priority=JobPriority.NORMAL,
                delay=timedelta(seconds=s.task_sync_interval_seconds),
            )

    async def _decay_sweep(self) -> None:
        try:
            await self.memory.decay_sweep()
        except Exception as e:
            logger.error(f"Decay sweep failed: {e}", exc_info=True)

    async def __aenter__(self) -> "Engine":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
