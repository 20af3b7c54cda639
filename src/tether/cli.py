"""
Administrative CLI.

Commands:
- create <channel> <cron> <timezone> <prompt...>: Add a scheduled task
- list [channel]: Show non-deleted tasks
- delete|pause|resume <id>: Change a task's status
- memory <channel>: Count stored memories
- forget <channel>: Delete a channel's memories
- cost <channel>: Show today's and all-time cost
- reset <channel>: Clear the channel's agent session
- sweep: Run one memory decay sweep
- checkpoint: Flush the WAL
- init: Create the data directory

Flags:
- --debug: Enable debug logging

Runs alongside a live engine: changes are written to the store and the
engine's timer reconciliation picks them up.
"""

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from tether.core.config import Settings, get_settings
from tether.core.logging import get_logger, setup_logging
from tether.memory.manager import MemoryManager
from tether.memory.store import SQLiteMemoryStore
from tether.storage.database import Database
from tether.tasks.manager import TaskManager
from tether.tasks.parser import InvalidScheduleError
from tether.tasks.store import TaskStore
from tether.tasks.types import ScheduledTask
from tether.usage.costs import CostLedger
from tether.usage.sessions import SessionStore

USAGE = """\
Tether Schedule CLI

Usage:
  tether [--debug] create <channel_id> <cron_expr> <timezone> <prompt>
  tether [--debug] list [channel_id]
  tether [--debug] delete <task_id>
  tether [--debug] pause <task_id>
  tether [--debug] resume <task_id>
  tether [--debug] memory <channel_id>
  tether [--debug] forget <channel_id>
  tether [--debug] cost <channel_id>
  tether [--debug] reset <channel_id>
  tether [--debug] sweep
  tether [--debug] checkpoint
  tether [--debug] init

Examples:
  tether create 12345 "0 9 * * *" "America/Chicago" "Good morning summary"
  tether list
  tether delete 3
"""


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = list(sys.argv[1:] if argv is None else argv)
    settings = get_settings()

    debug_mode = "--debug" in args
    if debug_mode:
        args.remove("--debug")

    log_level = logging.DEBUG if debug_mode else logging.WARNING
    setup_logging(level=log_level, log_file=settings.log_path)
    logger = get_logger("cli")

    if not args:
        print(USAGE)
        return 1

    command, rest = args[0], args[1:]

    if command == "init":
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized data directory: {settings.data_dir}")
        print(f"Created: {settings.data_dir}")
        return 0

    handler = COMMANDS.get(command)
    if handler is None:
        print(f"Unknown command: {command}")
        print(USAGE)
        return 1

    return asyncio.run(_with_store(settings, handler, rest))


async def _with_store(
    settings: Settings,
    handler: Callable[[Settings, Database, list[str]], Awaitable[int]],
    args: list[str],
) -> int:
    db = Database(settings.db_path)
    await db.connect()
    try:
        return await handler(settings, db, args)
    finally:
        await db.close()


def _task_manager(settings: Settings, db: Database) -> TaskManager:
    # No executor: persist status only, the running engine owns timers
    return TaskManager(TaskStore(db), default_timezone=settings.default_timezone)


def _parse_task_id(args: list[str]) -> int | None:
    if not args:
        print("Missing task ID", file=sys.stderr)
        return None
    try:
        return int(args[0])
    except ValueError:
        print("Invalid task ID", file=sys.stderr)
        return None


def _format_ts(value: int | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


def _print_task(task: ScheduledTask) -> None:
    print(
        f'#{task.id} [{task.status.value}] channel={task.channel_id} '
        f'cron="{task.schedule}" tz={task.timezone}'
    )
    print(f"  prompt: {task.prompt[:100]}")
    if task.next_run is not None:
        print(f"  next_run: {_format_ts(task.next_run)}")
    if task.last_run is not None:
        print(f"  last_run: {_format_ts(task.last_run)}")
    if task.last_result:
        print(f"  last_result: {task.last_result[:100]}")
    print()


async def _cmd_create(settings: Settings, db: Database, args: list[str]) -> int:
    if len(args) < 4:
        print("Missing arguments for create", file=sys.stderr)
        print(USAGE)
        return 1

    channel_id, cron_expr, tz_name, *prompt_parts = args
    prompt = " ".join(prompt_parts).strip()
    if not prompt:
        print("Missing arguments for create", file=sys.stderr)
        return 1

    try:
        task = await _task_manager(settings, db).create(channel_id, prompt, cron_expr, tz_name)
    except InvalidScheduleError as e:
        print(str(e), file=sys.stderr)
        return 1

    print(f"Created task #{task.id}")
    return 0


async def _cmd_list(settings: Settings, db: Database, args: list[str]) -> int:
    channel_id = args[0] if args else None
    tasks = await _task_manager(settings, db).list_tasks(channel_id)
    if not tasks:
        print("No tasks found.")
        return 0
    for task in tasks:
        _print_task(task)
    return 0


def _status_command(action: str) -> Callable[[Settings, Database, list[str]], Awaitable[int]]:
    async def _cmd(settings: Settings, db: Database, args: list[str]) -> int:
        task_id = _parse_task_id(args)
        if task_id is None:
            return 1
        manager = _task_manager(settings, db)
        if not await getattr(manager, action)(task_id):
            print(f"Task #{task_id} not found", file=sys.stderr)
            return 1
        print(f"Task #{task_id} {action}d")
        return 0

    return _cmd


async def _cmd_memory(settings: Settings, db: Database, args: list[str]) -> int:
    if not args:
        print("Missing channel ID", file=sys.stderr)
        return 1
    count = await MemoryManager(SQLiteMemoryStore(db)).stats(args[0])
    print(f"Memories for {args[0]}: {count}")
    return 0


async def _cmd_forget(settings: Settings, db: Database, args: list[str]) -> int:
    if not args:
        print("Missing channel ID", file=sys.stderr)
        return 1
    deleted = await MemoryManager(SQLiteMemoryStore(db)).forget(args[0])
    print(f"Deleted {deleted} memories for {args[0]}")
    return 0


async def _cmd_cost(settings: Settings, db: Database, args: list[str]) -> int:
    if not args:
        print("Missing channel ID", file=sys.stderr)
        return 1
    summary = await CostLedger(db).summary(args[0])
    print(f"Cost for {args[0]}: today ${summary['today_total']:.4f}, total ${summary['total']:.4f}")
    return 0


async def _cmd_reset(settings: Settings, db: Database, args: list[str]) -> int:
    if not args:
        print("Missing channel ID", file=sys.stderr)
        return 1
    if await SessionStore(db).clear(args[0]):
        print(f"Session cleared for {args[0]}")
    else:
        print(f"No session for {args[0]}")
    return 0


async def _cmd_sweep(settings: Settings, db: Database, args: list[str]) -> int:
    report = await MemoryManager(SQLiteMemoryStore(db)).decay_sweep()
    print(f"Decayed {report.decayed}, deleted {report.deleted}")
    return 0


async def _cmd_checkpoint(settings: Settings, db: Database, args: list[str]) -> int:
    busy, log_frames, checkpointed = await db.wal_checkpoint()
    print(f"Checkpoint: busy={busy} log={log_frames} checkpointed={checkpointed}")
    return 0


COMMANDS: dict[str, Callable[[Settings, Database, list[str]], Awaitable[int]]] = {
    "create": _cmd_create,
    "list": _cmd_list,
    "delete": _status_command("delete"),
    "pause": _status_command("pause"),
    "resume": _status_command("resume"),
    "memory": _cmd_memory,
    "forget": _cmd_forget,
    "cost": _cmd_cost,
    "reset": _cmd_reset,
    "sweep": _cmd_sweep,
    "checkpoint": _cmd_checkpoint,
}


if __name__ == "__main__":
    sys.exit(main())
