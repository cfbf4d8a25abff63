"""
Provider Registry — factory to get the right LLM provider by config.

Add a new provider? Just add an elif.
"""

from __future__ import annotations

import aissh.core.config as config_module
from aissh.llm.base import LLMProvider


def get_llm_provider() -> LLMProvider:
    provider = config_module.config.llm.provider.lower()
    if provider == "openai":
        from aissh.llm.openai_llm import OpenAILLMProvider

        return OpenAILLMProvider()
    raise ValueError(f"Unknown LLM provider: {provider}")
