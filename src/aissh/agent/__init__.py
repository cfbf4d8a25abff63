"""
Autonomous command agent — a bounded plan/act/observe loop over one session.
"""

from aissh.agent.history import MAX_RESULT_LENGTH, TRUNCATION_MARKER, AgentHistory, truncate_output
from aissh.agent.loop import AgentLoop
from aissh.agent.models import (
    AgentOutcome,
    AgentPlan,
    AgentResult,
    AgentSettings,
    AgentState,
    AgentStep,
    CommandRunner,
)
from aissh.agent.risk import RISKY_KEYWORDS, is_risky_command

__all__ = [
    "MAX_RESULT_LENGTH",
    "TRUNCATION_MARKER",
    "AgentHistory",
    "truncate_output",
    "AgentLoop",
    "AgentOutcome",
    "AgentPlan",
    "AgentResult",
    "AgentSettings",
    "AgentState",
    "AgentStep",
    "CommandRunner",
    "RISKY_KEYWORDS",
    "is_risky_command",
]
