"""
Memory types and salience constants.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

# Salience bounds and dynamics
DEFAULT_SALIENCE = 1.0
MAX_SALIENCE = 5.0
REINFORCE_STEP = 0.1
DECAY_FACTOR = 0.98
DELETE_THRESHOLD = 0.1
DECAY_MIN_AGE_SECONDS = 24 * 60 * 60


class MemorySector(Enum):
    SEMANTIC = "semantic"  # Durable fact about the user
    EPISODIC = "episodic"  # Situational memory of a conversation turn


@dataclass
class MemoryEntry:
    """Single memory record."""

    id: int
    channel_id: str
    content: str
    sector: MemorySector
    salience: float = DEFAULT_SALIENCE
    created_at: int = 0
    accessed_at: int = 0
    topic_key: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "MemoryEntry":
        """Create from a memory_entries row."""
        return cls(
            id=row["id"],
            channel_id=row["channel_id"],
            content=row["content"],
            sector=MemorySector(row["sector"]),
            salience=row["salience"],
            created_at=row["created_at"],
            accessed_at=row["accessed_at"],
            topic_key=row["topic_key"],
        )


@dataclass
class DecayReport:
    """Counts from one decay sweep."""

    decayed: int = 0
    deleted: int = 0


def reinforce(salience: float) -> float:
    """Salience after one retrieval hit, capped at MAX_SALIENCE."""
    return min(salience + REINFORCE_STEP, MAX_SALIENCE)


def decay(salience: float) -> float:
    """Salience after one sweep."""
    return salience * DECAY_FACTOR
