"""Tests for the SQLite durable store."""

import sqlite3
from pathlib import Path

import pytest

from tether.storage.database import Database, Transaction, placeholders


@pytest.fixture
async def db(tmp_path: Path):
    """Create a temporary database."""
    database = Database(tmp_path / "test.db")
    await database.connect()
    yield database
    await database.close()


async def _memory_count(db: Database) -> int:
    rows = await db.query("SELECT COUNT(*) FROM memory_entries")
    return rows[0][0]


async def _fts_count(db: Database, term: str) -> int:
    rows = await db.query(
        "SELECT COUNT(*) FROM memory_entries_fts WHERE memory_entries_fts MATCH ?", (term,)
    )
    return rows[0][0]


async def _insert_memory(db: Database, content: str, channel: str = "c1") -> int:
    return await db.insert(
        "INSERT INTO memory_entries (channel_id, content, sector) VALUES (?, ?, 'episodic')",
        (channel, content),
    )


@pytest.mark.asyncio
async def test_wal_mode_enabled(db: Database):
    """Connection runs in WAL journal mode."""
    assert await db.journal_mode() == "wal"


@pytest.mark.asyncio
async def test_schema_is_idempotent(tmp_path: Path):
    """Reconnecting to an existing file keeps data."""
    path = tmp_path / "reopen.db"
    first = Database(path)
    await first.connect()
    await _insert_memory(first, "persisted across restarts")
    await first.close()

    second = Database(path)
    await second.connect()
    try:
        assert await _memory_count(second) == 1
    finally:
        await second.close()


@pytest.mark.asyncio
async def test_transaction_commits(db: Database):
    """All statements of a successful transaction are visible."""

    async def work(tx: Transaction) -> int:
        await tx.insert(
            "INSERT INTO memory_entries (channel_id, content, sector) VALUES ('c', 'a', 'semantic')"
        )
        await tx.insert(
            "INSERT INTO memory_entries (channel_id, content, sector) VALUES ('c', 'b', 'semantic')"
        )
        return 2

    assert await db.transaction(work) == 2
    assert await _memory_count(db) == 2


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(db: Database):
    """A failure inside a transaction leaves no partial writes."""

    async def work(tx: Transaction) -> None:
        await tx.insert(
            "INSERT INTO memory_entries (channel_id, content, sector) VALUES ('c', 'a', 'semantic')"
        )
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await db.transaction(work)

    assert await _memory_count(db) == 0
    assert await _fts_count(db, "a") == 0


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_constraint_violation(db: Database):
    """A CHECK failure undoes earlier statements in the same transaction."""

    async def work(tx: Transaction) -> None:
        await tx.insert(
            "INSERT INTO memory_entries (channel_id, content, sector) VALUES ('c', 'ok', 'semantic')"
        )
        await tx.insert(
            "INSERT INTO memory_entries (channel_id, content, sector) VALUES ('c', 'bad', 'bogus')"
        )

    with pytest.raises(sqlite3.IntegrityError):
        await db.transaction(work)

    assert await _memory_count(db) == 0


@pytest.mark.asyncio
async def test_fts_follows_insert_update_delete(db: Database):
    """Full-text index stays in sync with the entries table."""
    entry_id = await _insert_memory(db, "pancakes for breakfast")
    assert await _fts_count(db, "pancakes") == 1

    await db.execute(
        "UPDATE memory_entries SET content = 'waffles for breakfast' WHERE id = ?", (entry_id,)
    )
    assert await _fts_count(db, "pancakes") == 0
    assert await _fts_count(db, "waffles") == 1

    await db.execute("DELETE FROM memory_entries WHERE id = ?", (entry_id,))
    assert await _fts_count(db, "waffles") == 0


@pytest.mark.asyncio
async def test_task_status_check_constraint(db: Database):
    """Only known task statuses can be stored."""
    with pytest.raises(sqlite3.IntegrityError):
        await db.insert(
            """INSERT INTO scheduled_tasks (channel_id, prompt, schedule, status)
               VALUES ('c', 'p', '* * * * *', 'sleeping')"""
        )


@pytest.mark.asyncio
async def test_wal_checkpoint(db: Database):
    """Checkpoint succeeds and truncates the log."""
    for i in range(10):
        await _insert_memory(db, f"entry number {i}")

    busy, log_frames, checkpointed = await db.wal_checkpoint()
    assert busy == 0
    assert log_frames == checkpointed


@pytest.mark.asyncio
async def test_conn_requires_connect(tmp_path: Path):
    """Using a closed database raises."""
    database = Database(tmp_path / "closed.db")
    assert not database.connected
    with pytest.raises(RuntimeError):
        await database.query("SELECT 1")


def test_placeholders():
    assert placeholders([1, 2, 3]) == "?,?,?"
    assert placeholders([]) == ""
