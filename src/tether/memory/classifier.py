"""Decide whether a conversation turn is remembered, and as what."""

import re

from tether.memory.base import MemorySector

MIN_STORED_LENGTH = 20
USER_TEXT_LIMIT = 300
REPLY_TEXT_LIMIT = 500

# First-person declarations and preferences mark durable facts
SEMANTIC_SIGNALS = re.compile(
    r"\b(my|i am|i'm|i prefer|remember|always|never|i like|i hate|i need|i want|my name|call me)\b",
    re.IGNORECASE,
)


def should_store(user_text: str, command_prefix: str = "/") -> bool:
    """Short messages and commands are not remembered."""
    if len(user_text) <= MIN_STORED_LENGTH:
        return False
    return not (command_prefix and user_text.startswith(command_prefix))


def classify_sector(user_text: str) -> MemorySector:
    if SEMANTIC_SIGNALS.search(user_text):
        return MemorySector.SEMANTIC
    return MemorySector.EPISODIC


def classify_turn(user_text: str, command_prefix: str = "/") -> MemorySector | None:
    """Sector for a turn, or None if the turn should not be stored."""
    if not should_store(user_text, command_prefix):
        return None
    return classify_sector(user_text)


def format_turn(user_text: str, reply_text: str) -> str:
    """Two-line record stored as memory content."""
    return f"User: {user_text[:USER_TEXT_LIMIT]}\nAssistant: {reply_text[:REPLY_TEXT_LIMIT]}"
