"""SQLite memory store: FTS5 search, recency, reinforcement, decay."""

import re
import time

from tether.core.logging import get_logger
from tether.memory.base import (
    DECAY_FACTOR,
    DECAY_MIN_AGE_SECONDS,
    DELETE_THRESHOLD,
    MAX_SALIENCE,
    REINFORCE_STEP,
    DecayReport,
    MemoryEntry,
    MemorySector,
)
from tether.storage.database import Database, Transaction, placeholders

logger = get_logger("memory.store")

_NON_WORD = re.compile(r"[^\w\s]")

SEARCH_LIMIT = 3
RECENT_LIMIT = 5


def build_fts_query(text: str) -> str | None:
    """Turn free text into an FTS5 prefix query.

    Punctuation is stripped; every remaining token becomes a quoted prefix
    term so FTS5 operators (AND, OR, NOT, NEAR) are matched literally.
    Returns None when nothing searchable is left.
    """
    sanitized = _NON_WORD.sub(" ", text).strip()
    if not sanitized:
        return None
    return " ".join(f'"{token}"*' for token in sanitized.split())


class SQLiteMemoryStore:
    """Memory entry persistence on top of the shared Database."""

    def __init__(self, db: Database):
        self.db = db

    async def save(
        self,
        channel_id: str,
        content: str,
        sector: MemorySector,
        topic_key: str = "",
    ) -> int:
        """Insert one entry; its FTS row is written in the same transaction."""
        now = int(time.time())

        async def _insert(tx: Transaction) -> int:
            return await tx.insert(
                """INSERT INTO memory_entries
                   (channel_id, topic_key, content, sector, created_at, accessed_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (channel_id, topic_key, content, sector.value, now, now),
            )

        entry_id = await self.db.transaction(_insert)
        logger.debug(f"Saved memory {entry_id} ({sector.value}) for {channel_id}")
        return entry_id

    async def get(self, entry_id: int) -> MemoryEntry | None:
        rows = await self.db.query("SELECT * FROM memory_entries WHERE id = ?", (entry_id,))
        return MemoryEntry.from_row(rows[0]) if rows else None

    async def search(
        self, channel_id: str, text: str, limit: int = SEARCH_LIMIT
    ) -> list[MemoryEntry]:
        """Top entries for the channel by FTS5 rank."""
        fts_query = build_fts_query(text)
        if fts_query is None:
            return []

        rows = await self.db.query(
            """SELECT m.* FROM memory_entries m
               JOIN memory_entries_fts f ON f.rowid = m.id
               WHERE m.channel_id = ? AND memory_entries_fts MATCH ?
               ORDER BY rank
               LIMIT ?""",
            (channel_id, fts_query, limit),
        )
        return [MemoryEntry.from_row(r) for r in rows]

    async def recent(self, channel_id: str, limit: int = RECENT_LIMIT) -> list[MemoryEntry]:
        """Most recently accessed entries for the channel."""
        rows = await self.db.query(
            """SELECT * FROM memory_entries WHERE channel_id = ?
               ORDER BY accessed_at DESC, id DESC LIMIT ?""",
            (channel_id, limit),
        )
        return [MemoryEntry.from_row(r) for r in rows]

    async def touch(self, entry_ids: list[int], now: int | None = None) -> int:
        """Reinforce entries: bump accessed_at and salience (capped)."""
        if not entry_ids:
            return 0
        now = int(time.time()) if now is None else now
        return await self.db.execute(
            f"""UPDATE memory_entries
                SET accessed_at = ?, salience = MIN(salience + ?, ?)
                WHERE id IN ({placeholders(entry_ids)})""",
            (now, REINFORCE_STEP, MAX_SALIENCE, *entry_ids),
        )

    async def count(self, channel_id: str) -> int:
        rows = await self.db.query(
            "SELECT COUNT(*) AS cnt FROM memory_entries WHERE channel_id = ?", (channel_id,)
        )
        return rows[0]["cnt"]

    async def delete_for_channel(self, channel_id: str) -> int:
        """Purge every entry of a channel (FTS rows go with them)."""
        deleted = await self.db.execute(
            "DELETE FROM memory_entries WHERE channel_id = ?", (channel_id,)
        )
        logger.info(f"Deleted {deleted} memories for {channel_id}")
        return deleted

    async def decay_sweep(self, now: int | None = None) -> DecayReport:
        """Age entries older than a day, then prune low-salience ones.

        Both steps run in one transaction.
        """
        now = int(time.time()) if now is None else now
        cutoff = now - DECAY_MIN_AGE_SECONDS

        async def _sweep(tx: Transaction) -> DecayReport:
            decayed = await tx.execute(
                "UPDATE memory_entries SET salience = salience * ? WHERE created_at < ?",
                (DECAY_FACTOR, cutoff),
            )
            deleted = await tx.execute(
                "DELETE FROM memory_entries WHERE salience < ?", (DELETE_THRESHOLD,)
            )
            return DecayReport(decayed=decayed, deleted=deleted)

        report = await self.db.transaction(_sweep)
        logger.info(f"Memory decay sweep: decayed={report.decayed} deleted={report.deleted}")
        return report
