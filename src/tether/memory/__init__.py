"""
Memory module - salience-weighted conversational memory.

Sectors:
- semantic: Durable facts (first-person declarations, preferences)
- episodic: Situational memories of conversation turns

Retrieval merges FTS5 hits with recent entries and reinforces whatever it
returns; a periodic sweep decays and prunes the rest.
"""

from tether.memory.base import DecayReport, MemoryEntry, MemorySector
from tether.memory.manager import MemoryManager
from tether.memory.store import SQLiteMemoryStore

__all__ = ["DecayReport", "MemoryEntry", "MemoryManager", "MemorySector", "SQLiteMemoryStore"]
