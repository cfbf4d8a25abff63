"""
AISSH Configuration — single source of truth for all settings.

Reads from environment variables with sensible defaults.
No config files, no YAML. Just env vars (and an optional .env).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class TransportConfig:
    """Backend execution service connection settings."""

    host: str = "localhost"
    port: int = 3001
    endpoint_timeout: float = 10.0  # seconds to wait for a dynamic port
    connect_timeout: float = 15.0
    exec_timeout: float = 120.0
    # Written by the hosting process once it knows the backend's port
    port_file: str = ""

    @classmethod
    def from_env(cls) -> TransportConfig:
        return cls(
            host=os.getenv("AISSH_BACKEND_HOST", "localhost"),
            port=int(os.getenv("AISSH_BACKEND_PORT", "3001")),
            endpoint_timeout=float(os.getenv("AISSH_ENDPOINT_TIMEOUT", "10.0")),
            connect_timeout=float(os.getenv("AISSH_CONNECT_TIMEOUT", "15.0")),
            exec_timeout=float(os.getenv("AISSH_EXEC_TIMEOUT", "120.0")),
            port_file=os.getenv("AISSH_BACKEND_PORT_FILE", ""),
        )


@dataclass(frozen=True)
class LLMConfig:
    """Language model provider settings."""

    provider: str = "openai"
    api_key: str = ""
    base_url: str = ""
    model: str = "qwen-max"
    timeout: float = 60.0
    temperature: float = 0.7

    @classmethod
    def from_env(cls) -> LLMConfig:
        return cls(
            provider=os.getenv("AISSH_LLM_PROVIDER", "openai"),
            api_key=os.getenv("OPENAI_API_KEY", ""),
            base_url=os.getenv("OPENAI_BASE_URL", ""),
            model=os.getenv("AISSH_LLM_MODEL", "qwen-max"),
            timeout=float(os.getenv("AISSH_LLM_TIMEOUT", "60.0")),
            temperature=float(os.getenv("AISSH_LLM_TEMPERATURE", "0.7")),
        )


@dataclass(frozen=True)
class AgentConfig:
    """Autonomous agent loop defaults."""

    max_attempts: int = 15
    temperature: float = 0.2
    safe_mode: bool = True
    max_memory_messages: int = 10

    @classmethod
    def from_env(cls) -> AgentConfig:
        return cls(
            max_attempts=int(os.getenv("AISSH_AGENT_MAX_ATTEMPTS", "15")),
            temperature=float(os.getenv("AISSH_AGENT_TEMPERATURE", "0.2")),
            safe_mode=_env_bool("AISSH_AGENT_SAFE_MODE", True),
            max_memory_messages=int(os.getenv("AISSH_AGENT_MAX_MEMORY", "10")),
        )


@dataclass(frozen=True)
class AISSHConfig:
    """Root configuration."""

    transport: TransportConfig = field(default_factory=TransportConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)

    @classmethod
    def from_env(cls) -> AISSHConfig:
        return cls(
            transport=TransportConfig.from_env(),
            llm=LLMConfig.from_env(),
            agent=AgentConfig.from_env(),
        )


# Singleton. Import the module and read `config_module.config` where
# tests may reload it.
config = AISSHConfig.from_env()


def reload_config() -> AISSHConfig:
    """Rebuild the singleton from the current environment."""
    global config
    config = AISSHConfig.from_env()
    return config
