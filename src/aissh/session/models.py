"""
Session Models — data structures for multiplexed remote shell sessions.

A Session is one logical SSH connection carried over the shared transport.
LogEntry is the line-oriented view of everything a session printed, used by
the log panel, the search coordinator and the agent.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Reserved session ids for events that belong to no single session
GLOBAL_SESSION = "global"  # transport-wide data (connection failures)
SYSTEM_SESSION = "system"  # system log lines shown in every session

# Log lines kept per session
DEFAULT_BUFFER_SIZE = 5000


class SessionStatus(str, Enum):
    """Connection status of a session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"

    @classmethod
    def parse(cls, value: str) -> "SessionStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.ERROR


class LogType(str, Enum):
    INFO = "info"
    ERROR = "error"
    COMMAND = "command"
    SYSTEM = "system"


@dataclass(frozen=True)
class LogEntry:
    """One line of session output."""

    type: LogType
    content: str
    session_id: str
    timestamp: str = field(default_factory=lambda: datetime.now().strftime("%H:%M:%S"))


@dataclass(frozen=True)
class StatusEvent:
    """A session status change, as broadcast to status listeners."""

    session_id: str
    status: SessionStatus
    message: str | None = None


@dataclass
class Session:
    """A logical remote shell, owned by the SessionRegistry."""

    id: str
    ip: str = ""
    username: str = ""
    status: SessionStatus = SessionStatus.DISCONNECTED
    buffer_size: int = DEFAULT_BUFFER_SIZE
    logs: deque[LogEntry] = field(init=False)

    def __post_init__(self) -> None:
        self.logs = deque(maxlen=self.buffer_size)

    def lines(self) -> list[str]:
        """Buffered output as plain text lines, oldest first."""
        return [entry.content for entry in self.logs]

    def clear(self) -> None:
        self.logs.clear()


def split_log_lines(data: str) -> list[str]:
    """Split raw terminal data into loggable lines.

    Carriage returns are stripped and blank lines skipped.
    """
    lines = []
    for line in data.split("\n"):
        if line.strip():
            lines.append(line.replace("\r", ""))
    return lines
