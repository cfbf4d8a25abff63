"""
OpenAI LLM Provider — chat completions, plain or streamed.

Works with any OpenAI-compatible API (DashScope, OpenRouter, a local
server...) via OPENAI_BASE_URL.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator

import openai
from openai import AsyncOpenAI

import aissh.core.config as config_module
from aissh.core.config import LLMConfig
from aissh.core.errors import LLMError
from aissh.llm.base import LLMProvider

logger = logging.getLogger(__name__)


class OpenAILLMProvider(LLMProvider):
    def __init__(self, cfg: LLMConfig | None = None):
        self.cfg = cfg or config_module.config.llm
        self.client: AsyncOpenAI | None = None

    @property
    def model(self) -> str:
        return self.cfg.model

    async def start(self) -> None:
        if self.client:
            return  # Already started

        client_kwargs: dict = {"timeout": self.cfg.timeout}
        if self.cfg.api_key:
            client_kwargs["api_key"] = self.cfg.api_key
        if self.cfg.base_url:
            client_kwargs["base_url"] = self.cfg.base_url
            logger.info("Using custom base_url: %s", self.cfg.base_url)

        try:
            self.client = AsyncOpenAI(**client_kwargs)
        except openai.OpenAIError as e:
            raise LLMError(
                "No usable AI configuration. Set OPENAI_API_KEY "
                "(and OPENAI_BASE_URL for a compatible API)."
            ) from e

        logger.info("LLM ready (model=%s)", self.model)

    async def stop(self) -> None:
        if self.client:
            await self.client.close()
        self.client = None

    def _require_client(self) -> AsyncOpenAI:
        if not self.client:
            raise LLMError("OpenAI LLM not started")
        return self.client

    async def complete(
        self,
        messages: list[dict],
        response_format: dict | None = None,
        temperature: float | None = None,
    ) -> str:
        client = self._require_client()
        kwargs: dict = {"model": self.model, "messages": messages}
        if response_format:
            kwargs["response_format"] = response_format
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = await client.chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            raise LLMError(str(e)) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def stream(
        self,
        messages: list[dict],
        temperature: float | None = None,
    ) -> AsyncGenerator[str, None]:
        client = self._require_client()
        kwargs: dict = {"model": self.model, "messages": messages, "stream": True}
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            stream = await client.chat.completions.create(**kwargs)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except openai.OpenAIError as e:
            raise LLMError(str(e)) from e

    async def health_check(self) -> dict:
        return {
            "provider": "openai",
            "model": self.model,
            "base_url": self.cfg.base_url or "default",
            "status": "ready" if self.client else "not_started",
        }
