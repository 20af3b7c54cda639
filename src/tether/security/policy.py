"""Tool-use policy for the agent runtime.

Every tool maps to one of a closed set of categories, and every category
declares its default decision. A tool name that is not mapped falls into
UNKNOWN, whose default is deny; adding a category without a default fails
at import time.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from tether.core.logging import get_logger

logger = get_logger("security.policy")


class ToolCategory(Enum):
    SHELL = "shell"
    FILE_WRITE = "file_write"
    FILE_READ = "file_read"
    WEB = "web"
    UNKNOWN = "unknown"


class Decision(Enum):
    ALLOW = "allow"
    CHECK = "check"  # allowed unless a category rule blocks the input
    DENY = "deny"


DEFAULT_DECISIONS: dict[ToolCategory, Decision] = {
    ToolCategory.SHELL: Decision.CHECK,
    ToolCategory.FILE_WRITE: Decision.CHECK,
    ToolCategory.FILE_READ: Decision.ALLOW,
    ToolCategory.WEB: Decision.ALLOW,
    ToolCategory.UNKNOWN: Decision.DENY,
}

_undeclared = set(ToolCategory) - set(DEFAULT_DECISIONS)
if _undeclared:
    raise RuntimeError(f"Tool categories without a default decision: {_undeclared}")

TOOL_CATEGORIES: dict[str, ToolCategory] = {
    "Bash": ToolCategory.SHELL,
    "Write": ToolCategory.FILE_WRITE,
    "Edit": ToolCategory.FILE_WRITE,
    "MultiEdit": ToolCategory.FILE_WRITE,
    "NotebookEdit": ToolCategory.FILE_WRITE,
    "Read": ToolCategory.FILE_READ,
    "Glob": ToolCategory.FILE_READ,
    "Grep": ToolCategory.FILE_READ,
    "LS": ToolCategory.FILE_READ,
    "WebFetch": ToolCategory.WEB,
    "WebSearch": ToolCategory.WEB,
}

DESTRUCTIVE_PATTERNS = [
    re.compile(r"\brm\s+(-[rRf]+\s+)?/"),  # rm -rf /
    re.compile(r"\bmkfs\b"),
    re.compile(r"\bdd\s+if="),
    re.compile(r"\bkill\s+-9\s+1\b"),  # kill init
    re.compile(r"\bchmod\s+777\s+/"),
    re.compile(r">\s*/dev/sda"),
    re.compile(r"\bsudo\s+rm\b"),
    re.compile(r"\bformat\s+[cC]:"),
    re.compile(r":\(\)\s*\{\s*:\|:&\s*\};:"),  # fork bomb
    re.compile(r"\bshutdown\b"),
    re.compile(r"\breboot\b"),
]

SYSTEM_WRITE_PATHS = ("/etc/", "/usr/", "/System/", "/Library/", "/bin/", "/sbin/", "/var/")

SENSITIVE_FILE_PATTERNS = [
    re.compile(r"\.env$"),
    re.compile(r"credentials", re.IGNORECASE),
    re.compile(r"\.pem$"),
    re.compile(r"\.key$"),
    re.compile(r"id_rsa"),
    re.compile(r"id_ed25519"),
    re.compile(r"\.ssh/config"),
]


@dataclass
class PolicyDecision:
    allowed: bool
    category: ToolCategory
    reason: str | None = None


def categorize(tool_name: str) -> ToolCategory:
    return TOOL_CATEGORIES.get(tool_name, ToolCategory.UNKNOWN)


def _check_shell(tool_input: Mapping[str, Any]) -> str | None:
    command = str(tool_input.get("command", ""))
    for pattern in DESTRUCTIVE_PATTERNS:
        if pattern.search(command):
            return f"Destructive command blocked: {pattern.pattern}"
    return None


def _check_write(tool_input: Mapping[str, Any]) -> str | None:
    file_path = str(tool_input.get("file_path") or tool_input.get("filePath") or "")
    for prefix in SYSTEM_WRITE_PATHS:
        if file_path.startswith(prefix):
            return f"Write to system path blocked: {prefix}"
    for pattern in SENSITIVE_FILE_PATTERNS:
        if pattern.search(file_path):
            return f"Write to sensitive file blocked: {file_path}"
    return None


_CHECKS = {
    ToolCategory.SHELL: _check_shell,
    ToolCategory.FILE_WRITE: _check_write,
}


def can_use_tool(tool_name: str, tool_input: Mapping[str, Any]) -> PolicyDecision:
    """Decide whether the agent may invoke a tool with this input."""
    category = categorize(tool_name)
    default = DEFAULT_DECISIONS[category]

    if default == Decision.DENY:
        decision = PolicyDecision(False, category, f"Tool {tool_name!r} is not permitted")
    elif default == Decision.CHECK:
        reason = _CHECKS[category](tool_input)
        decision = PolicyDecision(reason is None, category, reason)
    else:
        if category == ToolCategory.WEB:
            logger.debug(f"Web access via {tool_name}: {tool_input.get('url') or tool_input.get('query')}")
        decision = PolicyDecision(True, category)

    if not decision.allowed:
        logger.warning(f"Tool use DENIED: {tool_name} ({decision.reason})")
    return decision
