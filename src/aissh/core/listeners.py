"""
Listener sets — synchronous pub/sub with unsubscribe handles.

Each event stream (raw data, log entries, status changes) owns one
ListenerSet. Emitting calls every listener in registration order before
returning, so listeners observe events in exactly the order they arrived.

Usage:
    data = ListenerSet()
    unsubscribe = data.subscribe(lambda chunk, session_id: ...)
    data.emit("hello", "srv-1")
    unsubscribe()
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., object])

Unsubscribe = Callable[[], None]


class ListenerSet(Generic[F]):
    """Ordered set of callbacks for one event stream."""

    def __init__(self, name: str = "listeners") -> None:
        self.name = name
        self._listeners: list[F] = []

    def subscribe(self, listener: F) -> Unsubscribe:
        """Register a listener. Returns a handle that removes it again.

        Registering the same callable twice is a no-op, like adding to a set.
        The handle is safe to call more than once.
        """
        if listener not in self._listeners:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def emit(self, *args: object) -> int:
        """Deliver an event to every listener. Returns how many were called.

        A listener that raises is logged and skipped; the rest still run.
        """
        delivered = 0
        # Snapshot so listeners may unsubscribe themselves mid-dispatch
        for listener in list(self._listeners):
            try:
                listener(*args)
            except Exception as e:
                logger.error("Error in %s listener: %s", self.name, e, exc_info=True)
                continue
            delivered += 1
        return delivered

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
