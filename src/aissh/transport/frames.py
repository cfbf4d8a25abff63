"""
Wire Frames — the message format between the client and the backend
execution service.

Every websocket text message carries exactly one JSON object:

    {"event": "ssh-data", "data": {"serverId": "srv-1", "data": "..."}}

Correlated requests add an "id"; the backend answers with an "ack" frame
carrying the same id:

    → {"event": "ssh-exec", "id": "4f1c...", "data": {"serverId": ..., "command": ...}}
    ← {"event": "ack", "id": "4f1c...", "data": {"status": "ok", "output": "..."}}
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Event(str, Enum):
    """Event names on the wire."""

    CONNECT = "ssh-connect"  # out: {ip, username, password, serverId}
    DATA = "ssh-data"  # in: {serverId, data}
    ERROR = "ssh-error"  # in: {serverId, message}
    STATUS = "ssh-status"  # in: {serverId, status, message?}
    EXEC = "ssh-exec"  # out (correlated): {serverId, command}
    COMMAND = "ssh-command"  # out: {serverId, command}
    INPUT = "ssh-input"  # out: {serverId, data}
    RESIZE = "ssh-resize"  # out: {serverId, cols, rows}
    DISCONNECT = "ssh-disconnect"  # out: {serverId}
    ACK = "ack"  # in: reply to a correlated request


class FrameError(ValueError):
    """Inbound text that is not a valid frame."""


@dataclass
class Frame:
    """One event on the wire."""

    event: str
    data: dict[str, Any] = field(default_factory=dict)
    id: str | None = None

    @classmethod
    def request(cls, event: str, data: dict[str, Any]) -> "Frame":
        """Create a frame that expects an ack, with a fresh correlation id."""
        return cls(event=_event_name(event), data=data, id=uuid.uuid4().hex)

    @classmethod
    def notify(cls, event: str, data: dict[str, Any]) -> "Frame":
        return cls(event=_event_name(event), data=data)

    @property
    def session_id(self) -> str | None:
        return self.data.get("serverId")

    def encode(self) -> str:
        payload: dict[str, Any] = {"event": self.event, "data": self.data}
        if self.id is not None:
            payload["id"] = self.id
        return json.dumps(payload)

    @classmethod
    def decode(cls, raw: str | bytes) -> "Frame":
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise FrameError(f"Invalid JSON frame: {e}") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("event"), str):
            raise FrameError("Frame must be an object with a string 'event'")

        data = payload.get("data")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise FrameError(f"Frame data for {payload['event']} must be an object")

        frame_id = payload.get("id")
        return cls(
            event=payload["event"],
            data=data,
            id=str(frame_id) if frame_id is not None else None,
        )


def _event_name(event: str) -> str:
    return event.value if isinstance(event, Event) else event
