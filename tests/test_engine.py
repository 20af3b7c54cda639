"""Tests for engine startup and shutdown."""

import asyncio
import os
from pathlib import Path

import pytest

from tether.core.config import Settings
from tether.core.lock import InstanceLockError
from tether.engine import Engine
from tether.memory.base import MemorySector
from tether.storage.database import Database
from tether.tasks.executor import PromptResult
from tether.tasks.store import TaskStore


class EchoExecutor:
    async def run(self, prompt: str) -> PromptResult:
        return PromptResult(text=prompt)


class RecordingNotifier:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def send(self, channel_id: str, text: str) -> None:
        self.sent.append((channel_id, text))


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(data_dir=tmp_path / "store", _env_file=None)


@pytest.mark.asyncio
async def test_start_and_stop(settings: Settings):
    """Engine takes the lock, opens the store and schedules maintenance."""
    engine = Engine(settings, EchoExecutor(), RecordingNotifier())

    await engine.start()
    try:
        assert engine.started
        assert settings.lock_path.read_text() == str(os.getpid())
        assert engine.db.connected
        assert engine.orchestrator.running
        assert engine.orchestrator.get_job("memory-decay") is not None
        assert engine.orchestrator.get_job("wal-checkpoint") is not None
        assert engine.orchestrator.get_job("task-sync") is not None
    finally:
        await engine.stop()

    assert not engine.started
    assert not engine.db.connected
    assert not engine.orchestrator.running
    assert not settings.lock_path.exists()


@pytest.mark.asyncio
async def test_admin_engine_skips_task_sync(settings: Settings):
    """Without a prompt executor no timers or sync job exist."""
    async with Engine(settings) as engine:
        assert not engine.tasks.timers_enabled
        assert engine.orchestrator.get_job("task-sync") is None


@pytest.mark.asyncio
async def test_start_refused_when_locked(settings: Settings):
    """A live owner of the lock stops startup before the store opens."""
    settings.data_dir.mkdir(parents=True)
    settings.lock_path.write_text(str(os.getppid()))

    engine = Engine(settings, EchoExecutor())
    with pytest.raises(InstanceLockError):
        await engine.start()

    assert not engine.started
    assert not engine.db.connected
    assert not settings.db_path.exists()


@pytest.mark.asyncio
async def test_restart_recovers_tasks(settings: Settings):
    """Tasks created in one run are armed again by the next."""
    async with Engine(settings, EchoExecutor()) as engine:
        task = await engine.tasks.create("c1", "Digest", "0 9 * * *", "UTC")
        assert task.id in engine.tasks.registry

    async with Engine(settings, EchoExecutor()) as engine:
        assert task.id in engine.tasks.registry
        assert (await engine.tasks.get(task.id)).is_active


@pytest.mark.asyncio
async def test_memory_survives_restart(settings: Settings):
    async with Engine(settings) as engine:
        await engine.memory.save_conversation_turn(
            "c1", "my favorite editor is vim", "Got it."
        )

    async with Engine(settings) as engine:
        context = await engine.memory.build_context("c1", "editor")
        assert "[fact] User: my favorite editor is vim" in context
        (entry,) = await engine.memory.store.recent("c1")
        assert entry.sector == MemorySector.SEMANTIC


class SlowExecutor:
    def __init__(self, delay: float):
        self.delay = delay
        self.started = asyncio.Event()

    async def run(self, prompt: str) -> PromptResult:
        self.started.set()
        await asyncio.sleep(self.delay)
        return PromptResult(text=f"late: {prompt}")


async def _stored_task(settings: Settings, task_id: int):
    db = Database(settings.db_path)
    await db.connect()
    try:
        return await TaskStore(db).get(task_id)
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_stop_waits_for_inflight_firing(settings: Settings):
    """A firing running at shutdown records its result before the store closes."""
    slow = SlowExecutor(1.0)
    engine = Engine(settings, slow)
    await engine.start()
    try:
        task = await engine.tasks.create("c1", "Digest", "* * * * * *", "UTC")
        await asyncio.wait_for(slow.started.wait(), timeout=3)
    finally:
        await engine.stop()

    stored = await _stored_task(settings, task.id)
    assert stored.last_result == "late: Digest"
    assert stored.last_run is not None


@pytest.mark.asyncio
async def test_stop_cancels_firing_after_grace(tmp_path: Path):
    settings = Settings(data_dir=tmp_path / "store", shutdown_grace_seconds=0.2, _env_file=None)
    slow = SlowExecutor(30)
    engine = Engine(settings, slow)
    await engine.start()
    try:
        task = await engine.tasks.create("c1", "Digest", "* * * * * *", "UTC")
        await asyncio.wait_for(slow.started.wait(), timeout=3)
    finally:
        await asyncio.wait_for(engine.stop(), timeout=5)

    assert not engine.db.connected
    assert not settings.lock_path.exists()
    assert (await _stored_task(settings, task.id)).last_result is None
