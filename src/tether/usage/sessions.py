"""Agent session ids per channel.

The chat transport resumes a channel's conversation from the stored
session and clears it on reset. Scheduled prompts always start fresh.
"""

import time

from tether.core.logging import get_logger
from tether.storage.database import Database

logger = get_logger("usage.sessions")


class SessionStore:
    def __init__(self, db: Database):
        self.db = db

    async def get(self, channel_id: str) -> str | None:
        rows = await self.db.query(
            "SELECT session_id FROM sessions WHERE channel_id = ?", (channel_id,)
        )
        return rows[0]["session_id"] if rows else None

    async def save(self, channel_id: str, session_id: str) -> None:
        """Store or replace the channel's session."""
        await self.db.execute(
            """INSERT INTO sessions (channel_id, session_id, updated_at)
               VALUES (?, ?, ?)
               ON CONFLICT(channel_id) DO UPDATE SET
                   session_id = excluded.session_id,
                   updated_at = excluded.updated_at""",
            (channel_id, session_id, int(time.time())),
        )
        logger.debug(f"Session saved for {channel_id}")

    async def clear(self, channel_id: str) -> bool:
        """Forget the channel's session. False if there was none."""
        deleted = await self.db.execute(
            "DELETE FROM sessions WHERE channel_id = ?", (channel_id,)
        )
        if deleted:
            logger.info(f"Session cleared for {channel_id}")
        return deleted > 0
