"""SQLite durable store: WAL mode, atomic transactions, WAL checkpointing."""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from pathlib import Path
from typing import Any, TypeVar

import aiosqlite

from tether.core.logging import get_logger
from tether.storage.schema import SCHEMA

logger = get_logger("storage.database")

T = TypeVar("T")

Params = Sequence[Any] | dict[str, Any]


class Transaction:
    """Statement handle valid only inside Database.transaction()."""

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def execute(self, sql: str, args: Params = ()) -> int:
        """Run a write statement, return affected row count."""
        async with self._conn.execute(sql, args) as cursor:
            return cursor.rowcount

    async def insert(self, sql: str, args: Params = ()) -> int:
        """Run an INSERT, return the new rowid."""
        async with self._conn.execute(sql, args) as cursor:
            return cursor.lastrowid

    async def query(self, sql: str, args: Params = ()) -> list[aiosqlite.Row]:
        """Run a SELECT, return all rows."""
        async with self._conn.execute(sql, args) as cursor:
            return list(await cursor.fetchall())


class Database:
    """Single-connection SQLite store shared by memory and scheduler.

    The connection runs in autocommit mode; multi-statement writes go
    through transaction(), which issues BEGIN IMMEDIATE/COMMIT/ROLLBACK
    explicitly. An asyncio lock keeps statements from different coroutines
    from interleaving inside an open transaction.
    """

    def __init__(self, db_path: Path, busy_timeout_ms: int = 5000):
        self.db_path = db_path
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the connection, enable WAL, apply schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.db_path, isolation_level=None)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA journal_mode = WAL")
        await self._conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
        await self._conn.execute("PRAGMA synchronous = NORMAL")
        await self._conn.executescript(SCHEMA)
        logger.info(f"Database initialized: {self.db_path}")

    async def close(self) -> None:
        """Close the connection once any in-flight transaction settles."""
        async with self._lock:
            if self._conn:
                await self._conn.close()
                self._conn = None
                logger.info("Database closed")

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    async def execute(self, sql: str, args: Params = ()) -> int:
        """Run one write statement atomically, return affected row count."""
        async with self._lock:
            return await Transaction(self.conn).execute(sql, args)

    async def insert(self, sql: str, args: Params = ()) -> int:
        """Run one INSERT, return the new rowid."""
        async with self._lock:
            return await Transaction(self.conn).insert(sql, args)

    async def query(self, sql: str, args: Params = ()) -> list[aiosqlite.Row]:
        """Run a SELECT, return all rows."""
        async with self._lock:
            return await Transaction(self.conn).query(sql, args)

    async def transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        """Run fn(tx) atomically and return its result.

        Any exception raised inside fn (cancellation included) rolls back
        every statement executed so far and is re-raised.
        """
        async with self._lock:
            conn = self.conn
            await conn.execute("BEGIN IMMEDIATE")
            try:
                result = await fn(Transaction(conn))
            except BaseException:
                # SQLite may already have rolled back on some errors
                if conn.in_transaction:
                    await conn.execute("ROLLBACK")
                logger.debug("Transaction rolled back")
                raise
            await conn.execute("COMMIT")
            return result

    async def wal_checkpoint(self) -> tuple[int, int, int]:
        """Flush the WAL into the main file and truncate it.

        Returns:
            (busy, log_frames, checkpointed_frames) as reported by SQLite
        """
        async with self._lock:
            async with self.conn.execute("PRAGMA wal_checkpoint(TRUNCATE)") as cursor:
                row = await cursor.fetchone()
        busy, log_frames, checkpointed = (int(v) for v in row)
        logger.debug(f"WAL checkpoint complete: busy={busy} log={log_frames} done={checkpointed}")
        return busy, log_frames, checkpointed

    async def journal_mode(self) -> str:
        rows = await self.query("PRAGMA journal_mode")
        return str(rows[0][0]).lower()


def placeholders(values: Iterable[Any]) -> str:
    """Comma-separated '?' list for an IN (...) clause."""
    return ",".join("?" for _ in values)
