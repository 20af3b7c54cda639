"""Task type definitions."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class TaskStatus(Enum):
    """Lifecycle states of a scheduled task."""

    ACTIVE = "active"  # Armed, will fire
    PAUSED = "paused"  # Persisted, no timer, resumable
    DELETED = "deleted"  # Terminal soft delete


@dataclass
class ScheduledTask:
    """A stored prompt fired on a cron cadence."""

    id: int
    channel_id: str
    prompt: str
    schedule: str  # cron expression
    timezone: str  # IANA zone name
    status: TaskStatus = TaskStatus.ACTIVE
    next_run: int | None = None  # unix seconds, advisory only
    last_run: int | None = None
    last_result: str | None = None
    created_at: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == TaskStatus.ACTIVE

    @property
    def next_run_at(self) -> datetime | None:
        return _from_epoch(self.next_run)

    @property
    def last_run_at(self) -> datetime | None:
        return _from_epoch(self.last_run)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ScheduledTask":
        """Create from a scheduled_tasks row."""
        return cls(
            id=row["id"],
            channel_id=row["channel_id"],
            prompt=row["prompt"],
            schedule=row["schedule"],
            timezone=row["timezone"],
            status=TaskStatus(row["status"]),
            next_run=row["next_run"],
            last_run=row["last_run"],
            last_result=row["last_result"],
            created_at=row["created_at"],
        )


def _from_epoch(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)
