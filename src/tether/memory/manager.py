"""Memory manager - hybrid retrieval, context rendering, turn capture."""

import time
from dataclasses import replace

from tether.core.logging import get_logger
from tether.memory.base import DecayReport, MemoryEntry, MemorySector, reinforce
from tether.memory.classifier import classify_turn, format_turn
from tether.memory.store import RECENT_LIMIT, SEARCH_LIMIT, SQLiteMemoryStore

logger = get_logger("memory.manager")

SECTOR_TAGS = {
    MemorySector.SEMANTIC: "[fact]",
    MemorySector.EPISODIC: "[memory]",
}


class MemoryManager:
    """Decides what to remember and what to resurface for a request."""

    def __init__(self, store: SQLiteMemoryStore, command_prefix: str = "/"):
        self.store = store
        self.command_prefix = command_prefix

    async def retrieve(self, channel_id: str, query_text: str) -> list[MemoryEntry]:
        """Full-text hits first, then recent entries, de-duplicated by id.

        Every returned entry is reinforced in one batched update; the
        returned objects carry the reinforced values.
        """
        fts_results = await self.store.search(channel_id, query_text, SEARCH_LIMIT)
        recents = await self.store.recent(channel_id, RECENT_LIMIT)

        seen: set[int] = set()
        combined: list[MemoryEntry] = []
        for entry in [*fts_results, *recents]:
            if entry.id not in seen:
                seen.add(entry.id)
                combined.append(entry)

        if not combined:
            return []

        now = int(time.time())
        await self.store.touch([e.id for e in combined], now=now)
        return [replace(e, accessed_at=now, salience=reinforce(e.salience)) for e in combined]

    async def build_context(self, channel_id: str, query_text: str) -> str:
        """Render retrieved memories as a tagged block, or "" if none.

        Memory failures are logged and yield no context; they never block
        a response.
        """
        try:
            entries = await self.retrieve(channel_id, query_text)
        except Exception as e:
            logger.error(f"Memory retrieval failed for {channel_id}: {e}", exc_info=True)
            return ""

        if not entries:
            return ""

        lines = [f"{SECTOR_TAGS[e.sector]} {e.content}" for e in entries]
        logger.debug(f"Memory context built: {len(entries)} entries for {channel_id}")
        return "<memory>\n" + "\n".join(lines) + "\n</memory>"

    async def save_conversation_turn(
        self, channel_id: str, user_text: str, reply_text: str
    ) -> bool:
        """Store a turn if it qualifies. Returns whether a row was written."""
        sector = classify_turn(user_text, self.command_prefix)
        if sector is None:
            return False

        try:
            await self.store.save(channel_id, format_turn(user_text, reply_text), sector)
        except Exception as e:
            logger.error(f"Failed to save conversation turn: {e}", exc_info=True)
            return False

        logger.debug(f"Conversation turn saved ({sector.value}) for {channel_id}")
        return True

    async def forget(self, channel_id: str) -> int:
        """User-initiated reset of a channel's memory."""
        return await self.store.delete_for_channel(channel_id)

    async def stats(self, channel_id: str) -> int:
        return await self.store.count(channel_id)

    async def decay_sweep(self) -> DecayReport:
        return await self.store.decay_sweep()
