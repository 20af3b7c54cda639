"""Durable store - SQLite in WAL mode with an FTS5 memory index."""

from tether.storage.database import Database, Transaction

__all__ = ["Database", "Transaction"]
