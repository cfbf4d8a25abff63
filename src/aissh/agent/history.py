"""
Agent history — the conversation the planner sees, with bounded memory.

Index 0 holds the system prompt for the whole run. Whenever the history
grows past 2 * max_memory_messages entries, it is compacted to the system
prompt plus the most recent 2 * max_memory_messages entries (one
plan/observation pair per iteration).
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

# A single command's output is cut to this many characters
MAX_RESULT_LENGTH = 6000

TRUNCATION_MARKER = (
    "\n\n(Output too long and was truncated. Work with what is shown here; "
    "run another command to fetch more if needed.)"
)


def truncate_output(output: str, limit: int = MAX_RESULT_LENGTH) -> str:
    if len(output) > limit:
        return output[:limit] + TRUNCATION_MARKER
    return output


class AgentHistory:
    """Ordered role-tagged messages for one agent run."""

    def __init__(self, system_prompt: str, max_memory_messages: int = 10) -> None:
        self.max_memory_messages = max_memory_messages
        self._messages: list[dict] = [{"role": "system", "content": system_prompt}]

    @property
    def limit(self) -> int:
        """Entries kept after the system prompt."""
        return 2 * self.max_memory_messages

    @property
    def system_prompt(self) -> str:
        return self._messages[0]["content"]

    def append(self, role: str, content: str) -> None:
        self._messages.append({"role": role, "content": content})
        self.compact()

    def compact(self) -> bool:
        """Drop the oldest entries after index 0. Returns True if any were dropped."""
        if len(self._messages) <= self.limit + 1:
            return False
        dropped = len(self._messages) - 1 - self.limit
        self._messages = [self._messages[0], *self._messages[-self.limit:]]
        logger.debug("Agent history compacted, dropped %d messages", dropped)
        return dropped > 0

    def as_messages(self, *extra: dict) -> list[dict]:
        """A copy of the history, optionally followed by extra messages."""
        return [dict(m) for m in self._messages] + list(extra)

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index: int) -> dict:
        return self._messages[index]
