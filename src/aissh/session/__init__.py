"""
Session layer — logical shells multiplexed over the transport.

  - models: Session, LogEntry, status values and reserved session ids
  - registry: SessionRegistry, the data/log/status listener streams
  - commands: CommandExecutor for correlated and fire-and-forget commands
"""

from aissh.session.commands import NOT_CONNECTED, CommandExecutor, SessionCommandRunner
from aissh.session.models import (
    GLOBAL_SESSION,
    SYSTEM_SESSION,
    LogEntry,
    LogType,
    Session,
    SessionStatus,
    StatusEvent,
)
from aissh.session.registry import SessionRegistry

__all__ = [
    "NOT_CONNECTED",
    "CommandExecutor",
    "SessionCommandRunner",
    "GLOBAL_SESSION",
    "SYSTEM_SESSION",
    "LogEntry",
    "LogType",
    "Session",
    "SessionStatus",
    "StatusEvent",
    "SessionRegistry",
]
