"""Exception hierarchy shared across the transport, LLM and agent layers."""

from __future__ import annotations


class AISSHError(Exception):
    """Base class for every error raised by aissh."""


class TransportError(AISSHError):
    """The backend channel could not carry a request."""


class NotConnectedError(TransportError):
    """Raised when a correlated request is issued while the channel is down."""

    def __init__(self, message: str = "Not connected to backend"):
        super().__init__(message)


class ConnectionLostError(TransportError):
    """The channel closed while a correlated request was still pending."""


class LLMError(AISSHError):
    """The language-model backend failed or returned an unusable response."""


class AgentPlanError(AISSHError):
    """The model's structured plan could not be parsed."""
