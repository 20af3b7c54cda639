"""Tests for the single-instance lock file."""

import os
from pathlib import Path

import pytest

from tether.core.lock import InstanceLockError, ProcessLock, pid_alive

# Far above any default pid_max
DEAD_PID = 2**30


def test_pid_alive():
    assert pid_alive(os.getpid())
    assert not pid_alive(DEAD_PID)
    assert not pid_alive(0)


def test_acquire_and_release(tmp_path: Path):
    lock = ProcessLock(tmp_path / "tether.pid")

    lock.acquire()
    assert lock.held
    assert lock.read_pid() == os.getpid()

    lock.release()
    assert not lock.held
    assert not lock.path.exists()


def test_stale_lock_reclaimed(tmp_path: Path):
    """A lock left by a dead process is taken over."""
    path = tmp_path / "tether.pid"
    path.write_text(str(DEAD_PID))

    lock = ProcessLock(path)
    lock.acquire()
    assert lock.read_pid() == os.getpid()
    lock.release()


def test_garbage_lock_reclaimed(tmp_path: Path):
    path = tmp_path / "tether.pid"
    path.write_text("not a pid")

    with ProcessLock(path) as lock:
        assert lock.read_pid() == os.getpid()
    assert not path.exists()


def test_live_lock_refused(tmp_path: Path):
    """A lock held by another live process is fatal."""
    path = tmp_path / "tether.pid"
    other = os.getppid()
    path.write_text(str(other))

    lock = ProcessLock(path)
    with pytest.raises(InstanceLockError) as exc_info:
        lock.acquire()

    assert exc_info.value.pid == other
    assert not lock.held
    assert path.read_text() == str(other)


def test_release_leaves_foreign_lock(tmp_path: Path):
    """Release never removes a lock file rewritten by someone else."""
    path = tmp_path / "tether.pid"
    lock = ProcessLock(path)
    lock.acquire()
    path.write_text("12345")

    lock.release()
    assert path.read_text() == "12345"
