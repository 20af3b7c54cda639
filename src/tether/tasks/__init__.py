"""Cron task scheduling and execution."""

from tether.tasks.executor import Notifier, PromptExecutor, PromptResult, TaskExecutor
from tether.tasks.manager import TaskManager
from tether.tasks.parser import CronSchedule, InvalidScheduleError
from tether.tasks.store import TaskStore
from tether.tasks.timer import CronTimer, TimerRegistry
from tether.tasks.types import ScheduledTask, TaskStatus

__all__ = [
    "CronSchedule",
    "CronTimer",
    "InvalidScheduleError",
    "Notifier",
    "PromptExecutor",
    "PromptResult",
    "ScheduledTask",
    "TaskExecutor",
    "TaskManager",
    "TaskStatus",
    "TaskStore",
    "TimerRegistry",
]
