"""
Shared type definitions.

Core data structures used across modules.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class ActionResult:
    """Result of an executed action.

    Used where a failure is an expected outcome rather than an exception,
    e.g. best-effort notification delivery.
    """

    success: bool
    data: Any = None
    error: str | None = None
