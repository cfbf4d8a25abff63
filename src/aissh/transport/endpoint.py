"""
Endpoint discovery — where the backend execution service is listening.

The hosting environment may start the backend on a port it only learns at
runtime. It exposes that port through an async source (an env var, a port
file the launcher writes, an IPC call...). Until the source answers, the
default endpoint from config is used; a source that does not answer within
the timeout degrades to the default rather than blocking connects forever.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

PortSource = Callable[[], Awaitable[int]]


@dataclass(frozen=True)
class TransportEndpoint:
    """Host and port of the backend execution service."""

    host: str
    port: int

    @property
    def uri(self) -> str:
        return f"ws://{self.host}:{self.port}/"

    def with_port(self, port: int) -> "TransportEndpoint":
        return TransportEndpoint(host=self.host, port=port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class EndpointResolver:
    """
    Resolves the backend endpoint from a port source, at most once.

    resolve() may be awaited from any number of places; the source is
    queried by a single shared task and every caller gets the same answer.
    """

    def __init__(
        self,
        default: TransportEndpoint,
        source: PortSource,
        timeout: float = 10.0,
    ) -> None:
        self.default = default
        self._source = source
        self._timeout = timeout
        self._task: asyncio.Task[TransportEndpoint] | None = None

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def resolved(self) -> TransportEndpoint | None:
        """The resolved endpoint, or None while resolution is still pending."""
        if self._task is None or not self._task.done() or self._task.cancelled():
            return None
        return self._task.result()

    def start(self) -> asyncio.Task[TransportEndpoint]:
        if self._task is None:
            self._task = asyncio.create_task(
                self._resolve(), name="aissh-endpoint-resolve"
            )
        return self._task

    async def resolve(self) -> TransportEndpoint:
        return await asyncio.shield(self.start())

    async def _resolve(self) -> TransportEndpoint:
        try:
            port = await asyncio.wait_for(self._source(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Backend port not known after %.0fs, using default %s",
                self._timeout,
                self.default,
            )
            return self.default
        except Exception as e:
            logger.error("Failed to get backend port, using default %s: %s", self.default, e)
            return self.default

        endpoint = self.default.with_port(int(port))
        logger.info("Backend port received: %d (target %s)", endpoint.port, endpoint.uri)
        return endpoint

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()


# ─── Port Sources ────────────────────────────────────────────────


def port_from_env(var: str = "AISSH_BACKEND_PORT") -> PortSource:
    """A source that reads the port from an environment variable."""

    async def source() -> int:
        raw = os.getenv(var)
        if not raw:
            raise LookupError(f"{var} is not set")
        return int(raw)

    return source


def wait_for_port_file(path: str | Path, poll_interval: float = 0.1) -> PortSource:
    """A source that waits for the launcher to write the port into a file."""
    port_path = Path(path)

    async def source() -> int:
        while True:
            if port_path.exists():
                text = port_path.read_text().strip()
                if text:
                    return int(text)
            await asyncio.sleep(poll_interval)

    return source
