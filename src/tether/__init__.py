"""
Tether - durable memory and scheduling engine for a personal assistant bridge.

Package structure:
- core: Config, logging, shared types, process lock, interval orchestrator
- storage: SQLite store (WAL, transactions, FTS5 schema)
- memory: Salience-weighted memory with hybrid retrieval and decay
- tasks: Cron task scheduler, timers, firing pipeline
- usage: Per-channel cost ledger and agent sessions
- security: Tool-use policy
"""

__version__ = "0.1.0"
