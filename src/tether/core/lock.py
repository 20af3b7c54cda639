"""Single-instance protection via a PID lock file."""

import os
from pathlib import Path

from tether.core.logging import get_logger

logger = get_logger("core.lock")


class InstanceLockError(RuntimeError):
    """Another live process holds the lock file."""

    def __init__(self, path: Path, pid: int):
        super().__init__(f"Another instance is running (pid {pid}, lock {path})")
        self.path = path
        self.pid = pid


def pid_alive(pid: int) -> bool:
    """Check whether a process with this PID exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by another user
        return True
    return True


class ProcessLock:
    """Exclusive-access lock file holding the owning process id."""

    def __init__(self, path: Path):
        self.path = path
        self.pid = os.getpid()
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def read_pid(self) -> int | None:
        """PID recorded in the lock file, or None if missing/unreadable."""
        try:
            return int(self.path.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return None
        except ValueError:
            logger.warning(f"Lock file {self.path} has unreadable contents")
            return None

    def acquire(self) -> None:
        """Take the lock, reclaiming it if the recorded owner is gone.

        Raises:
            InstanceLockError: If a live process other than us holds it
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if self.path.exists():
            existing = self.read_pid()
            if existing is not None and existing != self.pid and pid_alive(existing):
                logger.error(f"Another instance is running (pid {existing})")
                raise InstanceLockError(self.path, existing)
            logger.warning(f"Removing stale lock file {self.path} (pid {existing})")

        self.path.write_text(str(self.pid), encoding="utf-8")
        self._held = True
        logger.info(f"Acquired lock {self.path} (pid {self.pid})")

    def release(self) -> None:
        """Remove the lock file if it is still ours."""
        if not self._held:
            return
        self._held = False
        if self.read_pid() != self.pid:
            logger.warning(f"Lock file {self.path} no longer ours, leaving it")
            return
        self.path.unlink(missing_ok=True)
        logger.info(f"Released lock {self.path}")

    def __enter__(self) -> "ProcessLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
