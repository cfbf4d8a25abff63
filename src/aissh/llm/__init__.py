"""
AISSH LLM layer — provider interface, the OpenAI-compatible implementation
and the chat-side assistant features.
"""

from aissh.llm.assistant import CommandRisk, OpsAssistant, trim_history
from aissh.llm.base import LLMProvider
from aissh.llm.profile import DeviceProfile
from aissh.llm.registry import get_llm_provider

__all__ = [
    "CommandRisk",
    "OpsAssistant",
    "trim_history",
    "LLMProvider",
    "DeviceProfile",
    "get_llm_provider",
]
