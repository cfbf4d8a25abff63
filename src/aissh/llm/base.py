"""
LLM provider interface — the boundary to the language-model backend.

Two calls cover everything the agent and the assistant need:
  - complete(): one full response (optionally a JSON object)
  - stream(): the response as incremental text fragments

Implementations raise LLMError for any backend failure so callers have a
single exception type to handle per call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncGenerator


class LLMProvider(ABC):
    """Language model provider interface."""

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[dict],
        response_format: dict | None = None,
        temperature: float | None = None,
    ) -> str:
        """Return the full text of one response."""
        ...

    @abstractmethod
    async def stream(
        self,
        messages: list[dict],
        temperature: float | None = None,
    ) -> AsyncGenerator[str, None]:
        """Stream response text. Yields fragments as they arrive."""
        yield  # type: ignore

    async def health_check(self) -> dict:
        return {"provider": self.__class__.__name__, "status": "unknown"}
