"""
Command execution over the shared transport.

Two modes:
  - execute(): correlated request/ack, returns the command's output as text.
    Backend failures come back as "Error: ..." text rather than exceptions,
    so callers that reason over output (the agent) always get something to
    read.
  - send_command() / send_input(): fire-and-forget, for typed commands and
    raw keystrokes.

Both echo the command into the session's log and data streams before the
result arrives, so the terminal shows cause before effect.
"""

from __future__ import annotations

import asyncio
import logging
import time

from aissh.core.errors import ConnectionLostError, NotConnectedError
from aissh.session.models import LogType, split_log_lines
from aissh.session.registry import CYAN, MAGENTA, RED, SessionRegistry, paint
from aissh.transport.frames import Event

logger = logging.getLogger(__name__)

NOT_CONNECTED = "Error: Not connected to backend"

CRLF = "\r\n"


def to_terminal(output: str) -> str:
    """Convert line breaks to CRLF and make sure the text ends with one."""
    formatted = output.replace("\r\n", "\n").replace("\n", CRLF)
    if not formatted.endswith(CRLF):
        formatted += CRLF
    return formatted


class CommandExecutor:
    """Runs commands in sessions through the registry's transport."""

    def __init__(self, registry: SessionRegistry, timeout: float = 120.0) -> None:
        self.registry = registry
        self.timeout = timeout

    async def execute(self, command: str, session_id: str) -> str:
        """Run command in session_id and return its output.

        Never raises for backend, connection or timeout failures; those are
        returned as text starting with "Error:".
        """
        registry = self.registry
        registry.emit_log(LogType.COMMAND, f"$ {command}", session_id)
        registry.write_raw(paint(f"[AI] $ {command}", MAGENTA), session_id)

        if not registry.transport.connected:
            logger.warning(
                "Cannot execute in %s: not connected", session_id,
                extra={"session_id": session_id},
            )
            return NOT_CONNECTED

        started = time.monotonic()
        try:
            response = await registry.transport.request(
                Event.EXEC,
                {"serverId": session_id, "command": command},
                timeout=self.timeout,
            )
        except NotConnectedError:
            return NOT_CONNECTED
        except ConnectionLostError as e:
            return self._fail(str(e), session_id)
        except asyncio.TimeoutError:
            return self._fail(f"Command timed out after {self.timeout:.0f}s", session_id)

        logger.debug(
            "exec in %s finished (%s)", session_id, response.get("status"),
            extra={
                "session_id": session_id,
                "status": response.get("status"),
                "duration_ms": round((time.monotonic() - started) * 1000),
            },
        )

        if response.get("status") != "ok":
            return self._fail(response.get("message") or "Unknown error", session_id)

        output = response.get("output") or ""
        if output:
            for line in split_log_lines(output):
                registry.emit_log(LogType.INFO, line, session_id)
            registry.write_raw(to_terminal(output), session_id)
        return output

    def _fail(self, message: str, session_id: str) -> str:
        self.registry.emit_log(LogType.ERROR, message, session_id)
        self.registry.write_raw(paint(f"[AI Error]: {message}", RED), session_id)
        return f"Error: {message}"

    async def send_command(self, command: str, session_id: str) -> None:
        """Send a typed command. The output arrives on the data stream."""
        self.registry.emit_log(LogType.COMMAND, f"$ {command}", session_id)
        self.registry.write_raw(paint(f"$ {command}", CYAN), session_id)
        await self.registry.transport.emit(
            Event.COMMAND, {"serverId": session_id, "command": command}
        )

    async def send_input(self, data: str, session_id: str) -> None:
        await self.registry.send_input(data, session_id)


class SessionCommandRunner:
    """An executor bound to one session, as the agent loop consumes it."""

    def __init__(self, executor: CommandExecutor, session_id: str) -> None:
        self.executor = executor
        self.session_id = session_id

    async def execute(self, command: str) -> str:
        return await self.executor.execute(command, self.session_id)
