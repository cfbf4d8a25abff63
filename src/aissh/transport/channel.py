"""
Channel — the single physical duplex connection to the backend.

The TransportManager talks to the backend only through this interface, so
tests can swap the websocket for an in-memory channel.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import websockets

from aissh.transport.frames import Frame, FrameError

logger = logging.getLogger(__name__)

FrameCallback = Callable[[Frame], None]
CloseCallback = Callable[[str], None]


class Channel(ABC):
    """
    Base class for backend channels.

    A channel is created disconnected. open() dials the given URI; close()
    hangs up. Inbound frames are handed to the frame callback in arrival
    order; an unexpected hang-up is reported once through the close callback.
    """

    name: str = "base"

    def __init__(self) -> None:
        self._frame_callback: Optional[FrameCallback] = None
        self._close_callback: Optional[CloseCallback] = None
        self.target: str | None = None

    @property
    @abstractmethod
    def connected(self) -> bool:
        ...

    @abstractmethod
    async def open(self, uri: str) -> None:
        """Connect to uri. Raises on failure; the channel stays closed."""

    @abstractmethod
    async def close(self) -> None:
        """Disconnect. Safe to call when already closed."""

    @abstractmethod
    async def send(self, frame: Frame) -> None:
        ...

    # ─── Callback Registration ────────────────────────────────────

    def on_frame(self, callback: FrameCallback) -> None:
        self._frame_callback = callback

    def on_close(self, callback: CloseCallback) -> None:
        self._close_callback = callback

    # ─── Helper Methods ───────────────────────────────────────────

    def _notify_frame(self, frame: Frame) -> None:
        if self._frame_callback:
            try:
                self._frame_callback(frame)
            except Exception as e:
                logger.error(
                    "Error handling %s frame on %s: %s", frame.event, self.name, e,
                    exc_info=True,
                )

    def _notify_close(self, reason: str) -> None:
        if self._close_callback:
            try:
                self._close_callback(reason)
            except Exception as e:
                logger.error("Error in close callback for %s: %s", self.name, e, exc_info=True)

    def __repr__(self) -> str:
        state = "connected" if self.connected else "disconnected"
        return f"<{self.name} Channel target={self.target} {state}>"


class WebSocketChannel(Channel):
    """Channel over a websocket, one JSON frame per text message."""

    name = "websocket"

    def __init__(self, open_timeout: float = 15.0) -> None:
        super().__init__()
        self._open_timeout = open_timeout
        self._ws = None
        self._reader: asyncio.Task | None = None
        self._closing = False

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def open(self, uri: str) -> None:
        if self._ws is not None:
            raise RuntimeError(f"Channel already open to {self.target}")

        self.target = uri
        self._closing = False
        self._ws = await websockets.connect(uri, open_timeout=self._open_timeout)
        self._reader = asyncio.create_task(self._read_loop(self._ws), name="aissh-ws-reader")
        logger.info("Connected to backend at %s", uri)

    async def close(self) -> None:
        ws, reader = self._ws, self._reader
        if ws is None:
            return

        self._closing = True
        self._ws = None
        self._reader = None
        try:
            await ws.close()
        except Exception as e:
            logger.debug("Error closing websocket to %s: %s", self.target, e)
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        logger.info("Disconnected from backend at %s", self.target)

    async def send(self, frame: Frame) -> None:
        if self._ws is None:
            raise ConnectionError("Channel is not open")
        await self._ws.send(frame.encode())

    async def _read_loop(self, ws) -> None:
        reason = "connection closed"
        try:
            async for raw in ws:
                try:
                    frame = Frame.decode(raw)
                except FrameError as e:
                    logger.warning("Dropping malformed frame from backend: %s", e)
                    continue
                self._notify_frame(frame)
        except websockets.ConnectionClosed as e:
            reason = str(e) or reason
        except Exception as e:
            logger.error("Backend reader failed: %s", e, exc_info=True)
            reason = str(e)

        # A hang-up we did not ask for
        if not self._closing and self._ws is ws:
            self._ws = None
            self._reader = None
            logger.warning("Backend connection to %s lost: %s", self.target, reason)
            self._notify_close(reason)
