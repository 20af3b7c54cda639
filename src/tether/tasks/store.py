"""Scheduled task persistence."""

import time

from tether.core.logging import get_logger
from tether.storage.database import Database
from tether.tasks.types import ScheduledTask, TaskStatus

logger = get_logger("tasks.store")

RESULT_LIMIT = 1000


class TaskStore:
    """CRUD over scheduled_tasks. Rows are soft-deleted, never removed."""

    def __init__(self, db: Database):
        self.db = db

    async def create(
        self, channel_id: str, prompt: str, schedule: str, timezone: str
    ) -> ScheduledTask:
        """Insert an active task and return it."""
        now = int(time.time())
        task_id = await self.db.insert(
            """INSERT INTO scheduled_tasks
               (channel_id, prompt, schedule, timezone, status, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (channel_id, prompt, schedule, timezone, TaskStatus.ACTIVE.value, now),
        )
        return ScheduledTask(
            id=task_id,
            channel_id=channel_id,
            prompt=prompt,
            schedule=schedule,
            timezone=timezone,
            created_at=now,
        )

    async def get(self, task_id: int) -> ScheduledTask | None:
        rows = await self.db.query("SELECT * FROM scheduled_tasks WHERE id = ?", (task_id,))
        return ScheduledTask.from_row(rows[0]) if rows else None

    async def list_active(self) -> list[ScheduledTask]:
        rows = await self.db.query(
            "SELECT * FROM scheduled_tasks WHERE status = ? ORDER BY id",
            (TaskStatus.ACTIVE.value,),
        )
        return [ScheduledTask.from_row(r) for r in rows]

    async def list_visible(self, channel_id: str | None = None) -> list[ScheduledTask]:
        """Non-deleted tasks, optionally for one channel."""
        sql = "SELECT * FROM scheduled_tasks WHERE status != ?"
        args: list = [TaskStatus.DELETED.value]
        if channel_id is not None:
            sql += " AND channel_id = ?"
            args.append(channel_id)
        sql += " ORDER BY id"
        rows = await self.db.query(sql, args)
        return [ScheduledTask.from_row(r) for r in rows]

    async def set_status(self, task_id: int, status: TaskStatus) -> bool:
        """Persist a status change. Deleted rows never leave 'deleted'.

        Returns:
            True if a row was updated (or already deleted, for DELETED)
        """
        if status == TaskStatus.DELETED:
            changed = await self.db.execute(
                "UPDATE scheduled_tasks SET status = ? WHERE id = ?",
                (status.value, task_id),
            )
        else:
            changed = await self.db.execute(
                "UPDATE scheduled_tasks SET status = ? WHERE id = ? AND status != ?",
                (status.value, task_id, TaskStatus.DELETED.value),
            )
        return changed > 0

    async def record_run(self, task_id: int, result: str, ran_at: int | None = None) -> None:
        """Store the outcome of a firing (result truncated)."""
        ran_at = int(time.time()) if ran_at is None else ran_at
        await self.db.execute(
            "UPDATE scheduled_tasks SET last_run = ?, last_result = ? WHERE id = ?",
            (ran_at, result[:RESULT_LIMIT], task_id),
        )

    async def set_next_run(self, task_id: int, next_run: int | None) -> None:
        await self.db.execute(
            "UPDATE scheduled_tasks SET next_run = ? WHERE id = ?", (next_run, task_id)
        )
