"""
TransportManager — owns the one connection every session shares.

The TransportManager:
  - Creates the channel lazily (initialize() does no I/O)
  - Tracks the backend endpoint, redirecting when discovery resolves a new one
  - Guarantees at most one connect attempt in flight and at most one open
    connection; a redirect hangs up before the next connect
  - Correlates request/ack pairs for one-shot command execution
  - Broadcasts connection failures to every listener instead of raising them
    at whichever session happened to trigger the connect
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from aissh.core.errors import ConnectionLostError, NotConnectedError
from aissh.core.listeners import ListenerSet, Unsubscribe
from aissh.transport.channel import Channel, WebSocketChannel
from aissh.transport.endpoint import EndpointResolver, PortSource, TransportEndpoint
from aissh.transport.frames import Event, Frame

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = TransportEndpoint(host="localhost", port=3001)


class TransportManager:
    """
    Facade over the backend channel.

    Flow:
      SessionRegistry.connect → ensure_connected → Channel.open
      Channel frame → acks resolve pending requests, everything else → on_frame listeners
      Channel hang-up → pending requests fail, on_failure listeners notified
    """

    def __init__(
        self,
        default_endpoint: TransportEndpoint = DEFAULT_ENDPOINT,
        channel_factory: Callable[[], Channel] | None = None,
        endpoint_timeout: float = 10.0,
    ) -> None:
        self.default_endpoint = default_endpoint
        self._channel_factory = channel_factory or WebSocketChannel
        self._endpoint_timeout = endpoint_timeout

        self.channel: Optional[Channel] = None
        self._endpoint = default_endpoint
        self._resolver: EndpointResolver | None = None
        self._redirect_task: asyncio.Task | None = None

        self._pending: dict[str, asyncio.Future] = {}
        self._lock = asyncio.Lock()

        self._frames: ListenerSet[Callable[[Frame], None]] = ListenerSet("frame")
        self._failures: ListenerSet[Callable[[str], None]] = ListenerSet("failure")

    @classmethod
    def from_config(cls, cfg, channel_factory: Callable[[], Channel] | None = None) -> "TransportManager":
        """Build from a TransportConfig."""
        return cls(
            default_endpoint=TransportEndpoint(host=cfg.host, port=cfg.port),
            channel_factory=channel_factory
            or (lambda: WebSocketChannel(open_timeout=cfg.connect_timeout)),
            endpoint_timeout=cfg.endpoint_timeout,
        )

    # ─── Lifecycle ───────────────────────────────────────────────

    def initialize(self) -> "TransportManager":
        """Create the channel in a disconnected state."""
        if self.channel is None:
            self.channel = self._channel_factory()
            self.channel.on_frame(self._handle_frame)
            self.channel.on_close(self._handle_close)
            logger.info("Transport initialized (target %s)", self._endpoint.uri)
        return self

    async def teardown(self) -> None:
        if self._resolver is not None:
            self._resolver.cancel()
        if self._redirect_task is not None and not self._redirect_task.done():
            self._redirect_task.cancel()
            try:
                await self._redirect_task
            except asyncio.CancelledError:
                pass
        if self.channel is not None:
            await self.channel.close()
        self._fail_pending(ConnectionLostError("Transport shut down"))
        self._frames.clear()
        self._failures.clear()
        logger.info("Transport torn down")

    # ─── Endpoint Discovery ──────────────────────────────────────

    def resolve_endpoint(self, source: PortSource) -> asyncio.Task[TransportEndpoint]:
        """
        Start resolving the backend endpoint from the hosting environment.

        Runs at most once per manager; later calls return the first task.
        When the answer arrives it is applied immediately, so a channel that
        is already talking to the default endpoint gets redirected.
        """
        if self._resolver is not None:
            logger.warning("Endpoint resolution already started, ignoring new source")
            return self._resolver.start()

        self._resolver = EndpointResolver(
            default=self.default_endpoint,
            source=source,
            timeout=self._endpoint_timeout,
        )
        task = self._resolver.start()
        task.add_done_callback(self._on_resolved)
        return task

    def _on_resolved(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        self._redirect_task = asyncio.create_task(
            self._apply_endpoint(task.result()), name="aissh-redirect"
        )
        self._redirect_task.add_done_callback(self._on_redirected)

    def _on_redirected(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.error("Backend redirect failed: %s", task.exception())

    async def _apply_endpoint(self, endpoint: TransportEndpoint) -> None:
        async with self._lock:
            await self._redirect(endpoint)

    async def _redirect(self, endpoint: TransportEndpoint) -> None:
        """Point the channel at endpoint. Caller holds the lock."""
        if endpoint == self._endpoint:
            return

        logger.info("Updating backend target from %s to %s", self._endpoint.uri, endpoint.uri)
        self._endpoint = endpoint
        if self.channel is not None and self.channel.connected:
            # Connected to the wrong address: hang up before the next connect
            await self.channel.close()
            self._fail_pending(ConnectionLostError(f"Transport redirected to {endpoint}"))

    @property
    def endpoint(self) -> TransportEndpoint:
        return self._endpoint

    # ─── Connection ──────────────────────────────────────────────

    @property
    def connected(self) -> bool:
        return self.channel is not None and self.channel.connected

    async def ensure_connected(self) -> bool:
        """
        Make sure the channel is open to the current endpoint.

        Waits for a pending endpoint resolution first (bounded by the
        endpoint timeout). Returns False after broadcasting the failure when
        the backend cannot be reached; the next call simply tries again.
        """
        channel = self.initialize().channel
        assert channel is not None

        async with self._lock:
            if self._resolver is not None:
                await self._redirect(await self._resolver.resolve())

            if channel.connected:
                return True

            logger.info("Connecting to backend at %s", self._endpoint.uri)
            try:
                await channel.open(self._endpoint.uri)
            except Exception as e:
                message = f"Connection failed to backend: {e}"
                logger.error("%s (target %s)", message, self._endpoint.uri)
                self._failures.emit(message)
                return False
            return True

    # ─── Outbound ────────────────────────────────────────────────

    async def emit(self, event: Event | str, data: dict[str, Any]) -> bool:
        """Fire-and-forget send. Returns False when the frame was dropped."""
        frame = Frame.notify(event, data)
        if not self.connected:
            logger.debug("Dropping %s frame: not connected", frame.event)
            return False
        try:
            await self.channel.send(frame)
        except Exception as e:
            logger.error("Failed to send %s frame: %s", frame.event, e)
            return False
        return True

    async def request(
        self,
        event: Event | str,
        data: dict[str, Any],
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """
        Send a correlated request and wait for its ack payload.

        Raises NotConnectedError immediately when the channel is down,
        ConnectionLostError when it drops before the ack arrives, and
        asyncio.TimeoutError when the ack does not arrive within timeout.
        """
        if not self.connected:
            raise NotConnectedError()

        frame = Frame.request(event, data)
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[frame.id] = future
        try:
            try:
                await self.channel.send(frame)
            except Exception as e:
                raise ConnectionLostError(f"Failed to send {frame.event}: {e}") from e
            return await asyncio.wait_for(future, timeout=timeout)
        finally:
            self._pending.pop(frame.id, None)

    # ─── Inbound ─────────────────────────────────────────────────

    def on_frame(self, listener: Callable[[Frame], None]) -> Unsubscribe:
        return self._frames.subscribe(listener)

    def on_failure(self, listener: Callable[[str], None]) -> Unsubscribe:
        return self._failures.subscribe(listener)

    def _handle_frame(self, frame: Frame) -> None:
        if frame.event == Event.ACK.value:
            future = self._pending.get(frame.id or "")
            if future is None:
                logger.debug("Ack for unknown request %s", frame.id)
            elif not future.done():
                future.set_result(frame.data)
            return
        self._frames.emit(frame)

    def _handle_close(self, reason: str) -> None:
        self._fail_pending(ConnectionLostError(f"Connection to backend lost: {reason}"))
        self._failures.emit(f"Connection to backend lost: {reason}")

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    # ─── Status & Info ───────────────────────────────────────────

    def get_status(self) -> dict:
        return {
            "endpoint": str(self._endpoint),
            "connected": self.connected,
            "resolving": self._resolver is not None and self._resolver.resolved is None,
            "pending_requests": len(self._pending),
        }

    def __repr__(self) -> str:
        return f"<TransportManager(target={self._endpoint.uri}, connected={self.connected})>"
