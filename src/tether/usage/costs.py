"""
Cost tracking.

Every completed prompt appends one row to cost_log; totals are summed
per channel on demand.
"""

import time
from datetime import datetime

from tether.core.logging import get_logger
from tether.storage.database import Database

logger = get_logger("usage.costs")


class CostLedger:
    """Per-channel cost log over the cost_log table."""

    def __init__(self, db: Database):
        self.db = db

    async def log(
        self,
        channel_id: str,
        cost_usd: float,
        turns: int,
        model: str = "",
        logged_at: int | None = None,
    ) -> int:
        """Record the cost of one completed prompt.

        Args:
            channel_id: Channel the prompt ran for
            cost_usd: Cost in USD
            turns: Agent turns the prompt took
            model: Model name, if the runtime reports one
            logged_at: Unix seconds; defaults to now

        Returns:
            Row id of the new entry
        """
        logged_at = int(time.time()) if logged_at is None else logged_at
        entry_id = await self.db.insert(
            """INSERT INTO cost_log (channel_id, cost_usd, turns, model, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (channel_id, cost_usd, turns, model, logged_at),
        )
        logger.debug(f"Logged ${cost_usd:.4f} ({turns} turns) for {channel_id}")
        return entry_id

    async def total(self, channel_id: str) -> float:
        """All-time cost for a channel in USD."""
        return await self._sum(channel_id, since=0)

    async def today(self, channel_id: str, now: datetime | None = None) -> float:
        """Cost since local midnight.

        Args:
            now: Reference time; its zone decides where the day starts
                (system local time if omitted or naive)
        """
        now = (now or datetime.now()).astimezone()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return await self._sum(channel_id, since=int(midnight.timestamp()))

    async def summary(self, channel_id: str, now: datetime | None = None) -> dict[str, float]:
        """Get cost summary.

        Returns:
            Dict with today_total, total
        """
        return {
            "today_total": await self.today(channel_id, now),
            "total": await self.total(channel_id),
        }

    async def _sum(self, channel_id: str, since: int) -> float:
        rows = await self.db.query(
            """SELECT COALESCE(SUM(cost_usd), 0) FROM cost_log
               WHERE channel_id = ? AND created_at >= ?""",
            (channel_id, since),
        )
        return float(rows[0][0])
