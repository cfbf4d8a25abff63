"""
Ops assistant — the chat-side uses of the language model.

Everything here fails soft: errors become text (or a placeholder value) so
the chat panel always has something to show.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable

from aissh.core.errors import LLMError
from aissh.llm.base import LLMProvider
from aissh.llm.profile import DeviceProfile, render_profile

logger = logging.getLogger(__name__)

# Each history message is cut to this many characters before it is sent
MAX_HISTORY_MESSAGE_CHARS = 4000

CHAT_SYSTEM_PROMPT = """You are an expert operations engineer.
{profile}
Answer according to the device profile and operating rules above. Use Markdown.

When analyzing logs:
1. Show raw log excerpts in ```log code blocks.
2. For a structured overview, end the answer with a ```json code block shaped like:
{{
  "log_analysis": {{
    "summary": {{ "Errors": 0, "Warnings": 0, "Info": 0 }},
    "details": ["anomaly 1", "anomaly 2"],
    "recommendations": ["suggestion 1", "suggestion 2"]
  }}
}}
Keep answers concise and professional."""

RISK_SYSTEM_PROMPT = """You are a Linux security expert.
{profile}
Analyze the command and answer with a JSON object:
1. explanation: a short description of what the command does.
2. riskLevel: "low", "medium" or "high".
3. warning: why it is risky when riskLevel is medium or high, otherwise empty."""

LOG_SYSTEM_PROMPT = """You are a Linux log analysis expert.
{profile}
Analyze the following log and give a concise result."""


@dataclass(frozen=True)
class CommandRisk:
    explanation: str
    risk_level: str  # "low" | "medium" | "high"
    warning: str = ""


def trim_history(
    history: list[dict],
    max_messages: int,
    message: str | None = None,
) -> list[dict]:
    """
    Prepare chat history for a request.

    Drops a trailing entry that repeats the message about to be sent, keeps
    the most recent max_messages entries and cuts each to
    MAX_HISTORY_MESSAGE_CHARS.
    """
    recent = list(history)
    if message is not None and recent and recent[-1].get("content") == message:
        recent = recent[:-1]
    if len(recent) > max_messages:
        recent = recent[-max_messages:]

    trimmed = []
    for m in recent:
        role = m.get("role")
        if role not in ("assistant", "system"):
            role = "user"
        content = str(m.get("content") or "")
        if len(content) > MAX_HISTORY_MESSAGE_CHARS:
            content = content[:MAX_HISTORY_MESSAGE_CHARS] + "..."
        trimmed.append({"role": role, "content": content})
    return trimmed


class OpsAssistant:
    """Chat, command risk prediction and log analysis over one LLM provider."""

    def __init__(
        self,
        llm: LLMProvider,
        profile: DeviceProfile | None = None,
        max_memory_messages: int = 10,
    ) -> None:
        self.llm = llm
        self.profile = profile
        self.max_memory_messages = max_memory_messages

    def _system(self, template: str) -> dict:
        return {"role": "system", "content": template.format(profile=render_profile(self.profile))}

    async def chat_stream(
        self,
        message: str,
        history: list[dict],
        on_chunk: Callable[[str], None],
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        """Stream an answer to message, chunk by chunk, into on_chunk."""
        messages = [
            self._system(CHAT_SYSTEM_PROMPT),
            *trim_history(history, self.max_memory_messages, message),
            {"role": "user", "content": message},
        ]
        try:
            async for chunk in self.llm.stream(messages):
                if should_stop and should_stop():
                    break
                on_chunk(chunk)
        except LLMError as e:
            logger.error("Chat stream failed: %s", e)
            on_chunk(f"\n\n**[AI Error]**: {e}")

    async def chat(self, prompt: str, history: list[dict]) -> str:
        messages = [
            self._system("You are an expert Linux operations AI.\n{profile}"),
            *[{"role": m.get("role", "user"), "content": m.get("content", "")} for m in history],
            {"role": "user", "content": prompt},
        ]
        try:
            return await self.llm.complete(messages)
        except LLMError as e:
            logger.error("Chat failed: %s", e)
            return f"[AI Error]: {e}"

    async def predict_command_risk(self, command: str) -> CommandRisk | None:
        """Explain a command and rate its risk. None for trivial input."""
        if len(command.strip()) < 2:
            return None

        messages = [
            self._system(RISK_SYSTEM_PROMPT),
            {"role": "user", "content": f"Command: {command}"},
        ]
        try:
            raw = await self.llm.complete(messages, response_format={"type": "json_object"})
            data = json.loads(raw or "{}")
        except (LLMError, json.JSONDecodeError) as e:
            logger.warning("Risk prediction failed for %r: %s", command, e)
            return CommandRisk(
                explanation="Could not get a detailed explanation",
                risk_level="medium",
                warning=str(e),
            )

        level = str(data.get("riskLevel", "medium")).lower()
        if level not in ("low", "medium", "high"):
            level = "medium"
        return CommandRisk(
            explanation=str(data.get("explanation", "")),
            risk_level=level,
            warning=str(data.get("warning") or ""),
        )

    async def analyze_logs(self, log: str) -> str:
        messages = [
            self._system(LOG_SYSTEM_PROMPT),
            {"role": "user", "content": log},
        ]
        try:
            return await self.llm.complete(messages)
        except LLMError as e:
            logger.error("Log analysis failed: %s", e)
            return f"[AI Error]: {e}"
