"""
Core module - configuration, shared types, process lifecycle helpers.

Components:
- config: Settings management via pydantic-settings
- types: Shared data structures (ActionResult)
- lock: Single-instance PID lock file
- orchestrator: Interval job loop for maintenance work
- logging: Structured logging setup
"""

from tether.core.config import Settings
from tether.core.types import ActionResult

__all__ = ["Settings", "ActionResult"]
