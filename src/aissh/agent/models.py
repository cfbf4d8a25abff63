"""
Agent Models — plans, steps and settings for the autonomous command agent.

A run moves through these states:

  PLANNING → (CONFIRMATION_PENDING) → EXECUTING → OBSERVING → PLANNING …
  … → SUMMARIZING → TERMINAL

Every step reported to the caller is tagged with the state it was emitted
in; every run ends with exactly one TERMINAL step.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from aissh.core.errors import AgentPlanError


class AgentState(str, Enum):
    PLANNING = "planning"
    CONFIRMATION_PENDING = "confirmation_pending"
    EXECUTING = "executing"
    OBSERVING = "observing"
    SUMMARIZING = "summarizing"
    TERMINAL = "terminal"


class AgentOutcome(str, Enum):
    """How a run ended."""

    COMPLETED = "completed"  # model declared the goal met
    EXHAUSTED = "exhausted"  # forced completion after max_attempts
    ABORTED = "aborted"  # should_stop() was true
    FAILED = "failed"  # model backend error or malformed plan


@dataclass(frozen=True)
class AgentSettings:
    max_attempts: int = 15
    temperature: float | None = None
    safe_mode: bool = True
    max_memory_messages: int = 10

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.max_memory_messages < 1:
            raise ValueError("max_memory_messages must be at least 1")

    @classmethod
    def from_config(cls, cfg) -> "AgentSettings":
        """Build from an AgentConfig."""
        return cls(
            max_attempts=cfg.max_attempts,
            temperature=cfg.temperature,
            safe_mode=cfg.safe_mode,
            max_memory_messages=cfg.max_memory_messages,
        )


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


@dataclass(frozen=True)
class AgentPlan:
    """One action unit proposed by the model."""

    thought: str = ""
    command: str | None = None
    is_done: bool = False
    summary: str | None = None
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def parse(cls, text: str) -> "AgentPlan":
        """Parse the model's JSON answer. Raises AgentPlanError when unusable."""
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            raise AgentPlanError(f"Model returned an unparseable plan: {e}") from e
        if not isinstance(data, dict):
            raise AgentPlanError(f"Model plan must be a JSON object, got {type(data).__name__}")

        command = data.get("command")
        command = str(command).strip() if command is not None else ""
        summary = data.get("summary")
        return cls(
            thought=str(data.get("thought") or ""),
            command=command or None,
            is_done=_as_bool(data.get("isDone", False)),
            summary=str(summary) if summary is not None else None,
            raw=data,
        )

    def to_json(self) -> str:
        """Serialize for the conversation history, as the model sent it."""
        payload = self.raw or {
            "thought": self.thought,
            "command": self.command or "",
            "isDone": self.is_done,
            "summary": self.summary or "",
        }
        return json.dumps(payload, ensure_ascii=False)


@dataclass(frozen=True)
class AgentStep:
    """A progress report from the agent loop."""

    state: AgentState
    thought: str
    command: str | None = None
    result: str | None = None
    is_done: bool = False
    summary: str | None = None
    requires_confirmation: bool = False


@dataclass(frozen=True)
class AgentResult:
    outcome: AgentOutcome
    summary: str
    attempts: int  # planning calls made


# ─── Collaborators ───────────────────────────────────────────────

StepReporter = Callable[[AgentStep], Awaitable[None]]
ConfirmationRequest = Callable[[str], Awaitable[bool]]
StopCheck = Callable[[], bool]


class CommandRunner(Protocol):
    """Executes a command somewhere and returns its output as text.

    Must not raise for command failures; they come back as text.
    """

    async def execute(self, command: str) -> str:
        ...
