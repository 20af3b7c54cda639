"""
Usage module - per-channel spend and agent sessions.

- costs: Append-only log of what each completed prompt cost
- sessions: The agent session a channel's conversation continues
"""

from tether.usage.costs import CostLedger
from tether.usage.sessions import SessionStore

__all__ = ["CostLedger", "SessionStore"]
