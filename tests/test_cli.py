"""Tests for the administrative CLI."""

import asyncio
from pathlib import Path

import pytest

from tether.cli import main
from tether.storage.database import Database
from tether.usage.costs import CostLedger
from tether.usage.sessions import SessionStore


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch):
    """Point the CLI at a temporary data directory."""
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "store"
    monkeypatch.setenv("TETHER_DATA_DIR", str(path))
    return path


def test_no_args_prints_usage(data_dir, capsys):
    assert main([]) == 1
    assert "Usage:" in capsys.readouterr().out


def test_unknown_command(data_dir, capsys):
    assert main(["explode"]) == 1
    assert "Unknown command: explode" in capsys.readouterr().out


def test_init(data_dir, capsys):
    assert main(["init"]) == 0
    assert data_dir.is_dir()


def test_create_and_list(data_dir, capsys):
    assert main(["create", "12345", "0 9 * * *", "America/Chicago", "Good", "morning"]) == 0
    assert "Created task #1" in capsys.readouterr().out

    assert main(["list"]) == 0
    out = capsys.readouterr().out
    assert '#1 [active] channel=12345 cron="0 9 * * *" tz=America/Chicago' in out
    assert "prompt: Good morning" in out
    assert "next_run:" in out


def test_create_invalid_cron(data_dir, capsys):
    """Invalid cron exits non-zero and stores nothing."""
    assert main(["create", "12345", "60 * * * *", "UTC", "Digest"]) == 1
    assert "Invalid cron expression" in capsys.readouterr().err

    assert main(["list"]) == 0
    assert "No tasks found." in capsys.readouterr().out


def test_create_invalid_timezone(data_dir, capsys):
    assert main(["create", "12345", "0 9 * * *", "Atlantis/Capital", "Digest"]) == 1
    assert "Unknown timezone" in capsys.readouterr().err


def test_create_missing_arguments(data_dir, capsys):
    assert main(["create", "12345", "0 9 * * *"]) == 1
    assert "Missing arguments" in capsys.readouterr().err


def test_status_commands(data_dir, capsys):
    main(["create", "c1", "0 9 * * *", "UTC", "Digest"])
    capsys.readouterr()

    assert main(["pause", "1"]) == 0
    assert "Task #1 paused" in capsys.readouterr().out
    main(["list"])
    assert "[paused]" in capsys.readouterr().out

    assert main(["resume", "1"]) == 0
    assert "Task #1 resumed" in capsys.readouterr().out

    assert main(["delete", "1"]) == 0
    assert "Task #1 deleted" in capsys.readouterr().out
    main(["list"])
    assert "No tasks found." in capsys.readouterr().out

    # Deleted tasks stay deleted
    assert main(["resume", "1"]) == 1


def test_status_unknown_or_bad_id(data_dir, capsys):
    assert main(["pause", "42"]) == 1
    assert "Task #42 not found" in capsys.readouterr().err

    assert main(["delete", "abc"]) == 1
    assert "Invalid task ID" in capsys.readouterr().err

    assert main(["resume"]) == 1
    assert "Missing task ID" in capsys.readouterr().err


def test_list_filters_by_channel(data_dir, capsys):
    main(["create", "alpha", "0 9 * * *", "UTC", "A"])
    main(["create", "beta", "0 9 * * *", "UTC", "B"])
    capsys.readouterr()

    assert main(["list", "beta"]) == 0
    out = capsys.readouterr().out
    assert "channel=beta" in out
    assert "channel=alpha" not in out


def test_memory_commands(data_dir, capsys):
    assert main(["memory", "c1"]) == 0
    assert "Memories for c1: 0" in capsys.readouterr().out

    assert main(["forget", "c1"]) == 0
    assert "Deleted 0 memories for c1" in capsys.readouterr().out

    assert main(["sweep"]) == 0
    assert "Decayed 0, deleted 0" in capsys.readouterr().out

    assert main(["checkpoint"]) == 0
    assert "Checkpoint: busy=0" in capsys.readouterr().out


def _with_db(data_dir: Path, fn):
    async def run():
        db = Database(data_dir / "tether.db")
        await db.connect()
        try:
            return await fn(db)
        finally:
            await db.close()

    return asyncio.run(run())


def test_cost_command(data_dir, capsys):
    assert main(["cost", "c1"]) == 0
    assert "Cost for c1: today $0.0000, total $0.0000" in capsys.readouterr().out

    async def seed(db):
        ledger = CostLedger(db)
        await ledger.log("c1", 0.25, 3)
        await ledger.log("c1", 1.0, 1, logged_at=86400)  # 1970-01-02
        await ledger.log("c2", 5.0, 1)

    _with_db(data_dir, seed)

    assert main(["cost", "c1"]) == 0
    assert "Cost for c1: today $0.2500, total $1.2500" in capsys.readouterr().out

    assert main(["cost"]) == 1
    assert "Missing channel ID" in capsys.readouterr().err


def test_reset_command(data_dir, capsys):
    _with_db(data_dir, lambda db: SessionStore(db).save("c1", "sess-1"))

    assert main(["reset", "c1"]) == 0
    assert "Session cleared for c1" in capsys.readouterr().out
    assert _with_db(data_dir, lambda db: SessionStore(db).get("c1")) is None

    assert main(["reset", "c1"]) == 0
    assert "No session for c1" in capsys.readouterr().out
