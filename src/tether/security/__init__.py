"""Tool-use policy - closed category set with declared defaults."""

from tether.security.policy import (
    DEFAULT_DECISIONS,
    Decision,
    PolicyDecision,
    ToolCategory,
    can_use_tool,
    categorize,
)

__all__ = [
    "DEFAULT_DECISIONS",
    "Decision",
    "PolicyDecision",
    "ToolCategory",
    "can_use_tool",
    "categorize",
]
