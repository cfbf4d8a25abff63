"""
Shared fixtures for aissh tests.

Provides an in-memory Channel in place of the websocket (records opens,
closes and sent frames; answers correlated requests through a handler) and
a scripted LLM provider — no backend or model API needed.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncGenerator, Callable

import pytest

from aissh.llm.base import LLMProvider
from aissh.session.commands import CommandExecutor
from aissh.session.registry import SessionRegistry
from aissh.transport.channel import Channel
from aissh.transport.frames import Event, Frame
from aissh.transport.manager import TransportManager


class FakeChannel(Channel):
    """Channel double. exec_handler(frame) returns the ack payload (or None)."""

    name = "fake"

    def __init__(self) -> None:
        super().__init__()
        self._open = False
        self.opened: list[str] = []
        self.closes = 0
        self.sent: list[Frame] = []
        self.history: list[tuple[str, str | None]] = []  # ("open"/"close", uri)
        self.fail_with: Exception | None = None
        self.open_delay = 0.0
        self.exec_handler: Callable[[Frame], dict | None] | None = lambda f: {
            "status": "ok",
            "output": "",
        }
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def connected(self) -> bool:
        return self._open

    async def open(self, uri: str) -> None:
        self.target = uri
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.open_delay:
                await asyncio.sleep(self.open_delay)
            if self.fail_with is not None:
                raise self.fail_with
            if self._open:
                raise RuntimeError("second physical connection")
            self._open = True
            self.opened.append(uri)
            self.history.append(("open", uri))
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        if self._open:
            self._open = False
            self.closes += 1
            self.history.append(("close", self.target))

    async def send(self, frame: Frame) -> None:
        if not self._open:
            raise ConnectionError("Channel is not open")
        self.sent.append(frame)
        if frame.id is not None and self.exec_handler is not None:
            reply = self.exec_handler(frame)
            if reply is not None:
                ack = Frame(event=Event.ACK.value, data=reply, id=frame.id)
                asyncio.get_running_loop().call_soon(self.deliver, ack)

    # ─── Test helpers ────────────────────────────────────────────

    def deliver(self, frame: Frame) -> None:
        self._notify_frame(frame)

    def receive(self, event: Event, **data: Any) -> None:
        self.deliver(Frame.notify(event, data))

    def drop(self, reason: str = "server went away") -> None:
        self._open = False
        self._notify_close(reason)

    def sent_events(self) -> list[str]:
        return [f.event for f in self.sent]


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def transport(channel: FakeChannel) -> TransportManager:
    return TransportManager(channel_factory=lambda: channel).initialize()


@pytest.fixture
def registry(transport: TransportManager) -> SessionRegistry:
    return SessionRegistry(transport)


@pytest.fixture
def executor(registry: SessionRegistry) -> CommandExecutor:
    return CommandExecutor(registry, timeout=1.0)


class ScriptedLLM(LLMProvider):
    """
    LLM double. complete() returns the scripted answers in order (dicts are
    JSON-encoded, exceptions raised); the last one repeats. stream() yields
    summary_chunks, then raises stream_error if set.
    """

    def __init__(
        self,
        answers: list[Any],
        summary_chunks: tuple[str, ...] = ("Report",),
        stream_error: Exception | None = None,
    ) -> None:
        self.answers = answers
        self.summary_chunks = summary_chunks
        self.stream_error = stream_error
        self.calls: list[list[dict]] = []
        self.stream_calls: list[list[dict]] = []
        self.complete_kwargs: list[dict] = []

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def complete(self, messages, response_format=None, temperature=None) -> str:
        self.calls.append(messages)
        self.complete_kwargs.append({"response_format": response_format, "temperature": temperature})
        answer = self.answers[min(len(self.calls) - 1, len(self.answers) - 1)]
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, dict):
            return json.dumps(answer)
        return answer

    async def stream(self, messages, temperature=None) -> AsyncGenerator[str, None]:
        self.stream_calls.append(messages)
        for chunk in self.summary_chunks:
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error
