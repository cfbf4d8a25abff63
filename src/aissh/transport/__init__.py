"""
AISSH Transport Layer — the one connection to the backend execution service.

Components:
  - Frame: JSON wire format with request/ack correlation
  - Channel: abstract physical connection (WebSocketChannel in production)
  - EndpointResolver: async discovery of a dynamically assigned backend port
  - TransportManager: lifecycle, redirects, correlation, failure broadcast
"""

from aissh.transport.channel import Channel, WebSocketChannel
from aissh.transport.endpoint import (
    EndpointResolver,
    TransportEndpoint,
    port_from_env,
    wait_for_port_file,
)
from aissh.transport.frames import Event, Frame, FrameError
from aissh.transport.manager import DEFAULT_ENDPOINT, TransportManager

__all__ = [
    "Channel",
    "WebSocketChannel",
    "EndpointResolver",
    "TransportEndpoint",
    "port_from_env",
    "wait_for_port_file",
    "Event",
    "Frame",
    "FrameError",
    "DEFAULT_ENDPOINT",
    "TransportManager",
]
