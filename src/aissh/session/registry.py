"""
Session Registry — many logical shells over one transport.

Maps session ids to Session objects and fans inbound frames out to three
typed listener streams:

  on_data(cb(data, session_id))  — raw terminal bytes, verbatim
  on_log(cb(LogEntry))           — one entry per non-blank output line
  on_status(cb(StatusEvent))     — session status changes, unmodified

Dispatch is synchronous: every listener has seen an event before the next
inbound frame is processed.
"""

from __future__ import annotations

import logging
from typing import Callable

from aissh.core.listeners import ListenerSet, Unsubscribe
from aissh.session.models import (
    DEFAULT_BUFFER_SIZE,
    GLOBAL_SESSION,
    SYSTEM_SESSION,
    LogEntry,
    LogType,
    Session,
    SessionStatus,
    StatusEvent,
    split_log_lines,
)
from aissh.transport.frames import Event, Frame
from aissh.transport.manager import TransportManager

logger = logging.getLogger(__name__)

DataListener = Callable[[str, str], None]
LogListener = Callable[[LogEntry], None]
StatusListener = Callable[[StatusEvent], None]

# ANSI colors for the messages we write into terminal streams ourselves
RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
MAGENTA = "\x1b[35m"
CYAN = "\x1b[36m"
RESET = "\x1b[0m"


def paint(text: str, color: str) -> str:
    """Wrap text as a colored line of its own."""
    return f"\r\n{color}{text}{RESET}\r\n"


class SessionRegistry:
    """Owns every Session and the listener streams built on the transport."""

    def __init__(
        self,
        transport: TransportManager,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        self.transport = transport
        self._buffer_size = buffer_size
        self._sessions: dict[str, Session] = {}

        self._data: ListenerSet[DataListener] = ListenerSet("data")
        self._log: ListenerSet[LogListener] = ListenerSet("log")
        self._status: ListenerSet[StatusListener] = ListenerSet("status")

        # Handles of listeners bound to one session, dropped on disconnect
        self._session_listeners: dict[str, list[Unsubscribe]] = {}

        transport.on_frame(self._dispatch)
        transport.on_failure(self._on_transport_failure)

    # ─── Listener Registration ───────────────────────────────────

    def on_data(self, listener: DataListener, session_id: str | None = None) -> Unsubscribe:
        """Subscribe to raw data. With session_id, only that session's data
        (plus transport-wide messages) is delivered."""
        if session_id is None:
            return self._data.subscribe(listener)

        def scoped(data: str, sid: str) -> None:
            if sid in (session_id, GLOBAL_SESSION):
                listener(data, sid)

        return self._bind(session_id, self._data.subscribe(scoped))

    def on_log(self, listener: LogListener, session_id: str | None = None) -> Unsubscribe:
        if session_id is None:
            return self._log.subscribe(listener)

        def scoped(entry: LogEntry) -> None:
            if entry.session_id in (session_id, SYSTEM_SESSION):
                listener(entry)

        return self._bind(session_id, self._log.subscribe(scoped))

    def on_status(self, listener: StatusListener, session_id: str | None = None) -> Unsubscribe:
        if session_id is None:
            return self._status.subscribe(listener)

        def scoped(event: StatusEvent) -> None:
            if event.session_id in (session_id, GLOBAL_SESSION):
                listener(event)

        return self._bind(session_id, self._status.subscribe(scoped))

    def _bind(self, session_id: str, unsubscribe: Unsubscribe) -> Unsubscribe:
        self._session_listeners.setdefault(session_id, []).append(unsubscribe)
        return unsubscribe

    # ─── Sessions ────────────────────────────────────────────────

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    @property
    def sessions(self) -> list[Session]:
        """Open sessions in the order they were created."""
        return list(self._sessions.values())

    def status_of(self, session_id: str) -> SessionStatus:
        session = self._sessions.get(session_id)
        return session.status if session else SessionStatus.DISCONNECTED

    async def connect(
        self,
        ip: str,
        username: str,
        password: str,
        session_id: str,
    ) -> bool:
        """
        Open (or reopen) a remote shell for session_id.

        Returns False when the backend itself is unreachable; that failure has
        already been broadcast to every listener by then.
        """
        logger.info(
            "Connect request for %s (session %s)",
            ip,
            session_id,
            extra={"session_id": session_id, "event": Event.CONNECT.value},
        )
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(id=session_id, buffer_size=self._buffer_size)
            self._sessions[session_id] = session
        session.ip = ip
        session.username = username
        self._set_status(session_id, SessionStatus.CONNECTING)

        if not await self.transport.ensure_connected():
            return False

        self.write_raw(paint(f"[Status] Connecting to {ip}...", CYAN), session_id)
        return await self.transport.emit(
            Event.CONNECT,
            {"ip": ip, "username": username, "password": password, "serverId": session_id},
        )

    async def disconnect(self, session_id: str) -> None:
        """Close a session and destroy it: buffer cleared, its listeners removed."""
        if not self.transport.connected:
            self._set_status(
                session_id, SessionStatus.DISCONNECTED, "Disconnected (socket idle)"
            )
        else:
            self.write_raw(paint("[Status] Disconnecting...", YELLOW), session_id)
            await self.transport.emit(Event.DISCONNECT, {"serverId": session_id})
            self._set_status(session_id, SessionStatus.DISCONNECTED, "Disconnected by user")

        for unsubscribe in self._session_listeners.pop(session_id, []):
            unsubscribe()
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.clear()
        logger.info(
            "Session %s closed",
            session_id,
            extra={"session_id": session_id, "event": Event.DISCONNECT.value},
        )

    # ─── Raw Streams ─────────────────────────────────────────────

    async def send_input(self, data: str, session_id: str) -> None:
        """Raw keystrokes for an interactive shell. No reply is expected."""
        await self.transport.emit(Event.INPUT, {"serverId": session_id, "data": data})

    async def resize(self, cols: int, rows: int, session_id: str) -> None:
        await self.transport.emit(
            Event.RESIZE, {"serverId": session_id, "cols": cols, "rows": rows}
        )

    def write_raw(self, data: str, session_id: str) -> None:
        """Write data to the local data stream without touching the backend."""
        self._data.emit(data, session_id)

    def emit_log(self, type: LogType, content: str, session_id: str) -> LogEntry:
        entry = LogEntry(type=type, content=content, session_id=session_id)
        session = self._sessions.get(session_id)
        if session is not None:
            session.logs.append(entry)
        self._log.emit(entry)
        return entry

    # ─── Inbound Dispatch ────────────────────────────────────────

    def _dispatch(self, frame: Frame) -> None:
        session_id = frame.session_id or GLOBAL_SESSION

        if frame.event == Event.DATA.value:
            data = str(frame.data.get("data", ""))
            self.write_raw(data, session_id)
            for line in split_log_lines(data):
                self.emit_log(LogType.INFO, line, session_id)

        elif frame.event == Event.ERROR.value:
            message = str(frame.data.get("message", "Unknown error"))
            logger.warning(
                "Session %s error: %s",
                session_id,
                message,
                extra={"session_id": session_id, "event": frame.event},
            )
            self.emit_log(LogType.ERROR, message, session_id)
            self.write_raw(paint(f"[Error] {message}", RED), session_id)
            self._set_status(session_id, SessionStatus.ERROR, message)

        elif frame.event == Event.STATUS.value:
            status = SessionStatus.parse(str(frame.data.get("status", "")))
            message = frame.data.get("message")
            if message:
                self.emit_log(LogType.INFO, message, session_id)
                color = GREEN if status is SessionStatus.CONNECTED else YELLOW
                self.write_raw(paint(f"[Status] {message}", color), session_id)
            self._set_status(session_id, status, message)

        else:
            logger.debug("Ignoring %s frame", frame.event, extra={"event": frame.event})

    def _set_status(
        self, session_id: str, status: SessionStatus, message: str | None = None
    ) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.status = status
        logger.debug(
            "Session %s is %s",
            session_id,
            status.value,
            extra={"session_id": session_id, "status": status.value},
        )
        self._status.emit(StatusEvent(session_id=session_id, status=status, message=message))

    def _on_transport_failure(self, message: str) -> None:
        """The shared channel failed: every session hears about it."""
        self.write_raw(
            paint(f"[Error] {message}. Please check if the backend is running.", RED),
            GLOBAL_SESSION,
        )
        self.emit_log(LogType.ERROR, message, SYSTEM_SESSION)
        for session in self.sessions:
            if session.status in (SessionStatus.CONNECTING, SessionStatus.CONNECTED):
                self._set_status(session.id, SessionStatus.ERROR, message)
