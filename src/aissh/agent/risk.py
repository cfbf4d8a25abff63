"""Risk gate — keyword heuristic for commands that need the user's OK."""

from __future__ import annotations

# Substrings marking destructive or irreversible operations
RISKY_KEYWORDS = (
    "rm ",
    "kill ",
    "reboot",
    "shutdown",
    "mkfs",
    "dd ",
    "mv ",
    "chmod",
    "chown",
    "systemctl stop",
    "systemctl disable",
    "halt",
    "poweroff",
    "> /",
    "format",
)


def is_risky_command(command: str) -> bool:
    lowered = command.lower()
    return any(keyword in lowered for keyword in RISKY_KEYWORDS)
