"""
Agent Loop — plan, act, observe until the goal is met or attempts run out.

Each iteration:
  1. Stop if should_stop() says so
  2. Ask the model for one JSON plan {thought, command?, isDone, summary?}
  3. Done (or last attempt) → stream a Markdown report and finish
  4. Otherwise run the plan's command, behind the risk gate in safe mode
  5. Record plan and (truncated) output in history, then loop

At most one model call and one command are in flight at any time. A failed
model call or an unparseable plan ends the run; nothing is retried.

Usage:
    loop = AgentLoop(llm, runner, reporter, AgentSettings(max_attempts=5))
    result = await loop.run("free up disk space in /var/log", confirm, should_stop)
"""

from __future__ import annotations

import logging
import time
from contextlib import aclosing

from aissh.agent import prompts
from aissh.agent.history import AgentHistory, truncate_output
from aissh.agent.models import (
    AgentOutcome,
    AgentPlan,
    AgentResult,
    AgentSettings,
    AgentState,
    AgentStep,
    CommandRunner,
    ConfirmationRequest,
    StepReporter,
    StopCheck,
)
from aissh.agent.risk import is_risky_command
from aissh.llm.base import LLMProvider
from aissh.llm.profile import DeviceProfile, render_profile

logger = logging.getLogger(__name__)


class AgentLoop:
    """
    Drives one autonomous run against a single command runner.

    The step reporter and the command runner are separate collaborators:
    reporting never executes anything, and the runner never reports.
    Independent runs may share a transport; each owns its history.
    """

    def __init__(
        self,
        llm: LLMProvider,
        runner: CommandRunner,
        reporter: StepReporter,
        settings: AgentSettings | None = None,
        profile: DeviceProfile | None = None,
    ) -> None:
        self.llm = llm
        self.runner = runner
        self.reporter = reporter
        self.settings = settings or AgentSettings()
        self.profile = profile
        self.planning_calls = 0

    async def run(
        self,
        goal: str,
        request_confirmation: ConfirmationRequest,
        should_stop: StopCheck,
    ) -> AgentResult:
        settings = self.settings
        history = AgentHistory(
            prompts.planner_prompt(goal, render_profile(self.profile), settings.safe_mode),
            max_memory_messages=settings.max_memory_messages,
        )
        self.planning_calls = 0
        attempts = 0
        logger.info("Agent run started: %s", goal)

        while True:
            if should_stop():
                logger.info("Agent run stopped by user after %d attempts", attempts)
                await self._report(
                    AgentState.TERMINAL,
                    prompts.ABORTED_THOUGHT,
                    is_done=True,
                    summary=prompts.ABORTED_SUMMARY,
                )
                return AgentResult(AgentOutcome.ABORTED, prompts.ABORTED_SUMMARY, self.planning_calls)

            try:
                plan = await self._plan(history, attempts)
            except Exception as e:
                # Any planning failure ends the run; nothing is retried
                logger.error("Agent planning failed on attempt %d: %s", attempts + 1, e)
                await self._report(
                    AgentState.TERMINAL,
                    f"AI connection error: {e}",
                    is_done=True,
                    summary=prompts.FAILED_SUMMARY,
                )
                return AgentResult(AgentOutcome.FAILED, prompts.FAILED_SUMMARY, self.planning_calls)

            exhausted = not plan.is_done and attempts + 1 >= settings.max_attempts
            if plan.is_done or exhausted:
                return await self._summarize(history, plan, exhausted, should_stop)

            result = await self._act(plan, request_confirmation)
            history.append("assistant", plan.to_json())
            history.append(
                "user", prompts.COMMAND_RESULT.format(output=result or prompts.NO_OUTPUT)
            )
            attempts += 1

    # ─── Planning ────────────────────────────────────────────────

    async def _plan(self, history: AgentHistory, attempts: int) -> AgentPlan:
        hint = prompts.ATTEMPT_HINT.format(
            attempt=attempts + 1, max_attempts=self.settings.max_attempts
        )
        self.planning_calls += 1
        started = time.monotonic()
        raw = await self.llm.complete(
            history.as_messages({"role": "user", "content": hint}),
            response_format={"type": "json_object"},
            temperature=self.settings.temperature,
        )
        plan = AgentPlan.parse(raw)
        logger.debug(
            "Plan received (done=%s, command=%r)", plan.is_done, plan.command,
            extra={
                "attempt": attempts + 1,
                "duration_ms": round((time.monotonic() - started) * 1000),
            },
        )
        return plan

    # ─── Acting ──────────────────────────────────────────────────

    async def _act(self, plan: AgentPlan, request_confirmation: ConfirmationRequest) -> str:
        """Run the plan's command, if any. Returns the observation text."""
        if not plan.command:
            await self._report(AgentState.PLANNING, plan.thought)
            return ""

        command = plan.command
        if self.settings.safe_mode and is_risky_command(command):
            await self._report(
                AgentState.CONFIRMATION_PENDING,
                plan.thought,
                command=command,
                requires_confirmation=True,
            )
            if not await request_confirmation(command):
                logger.info("User declined risky command: %s", command)
                result = prompts.DECLINED_RESULT
                await self._report(AgentState.OBSERVING, plan.thought, command=command, result=result)
                return result
        else:
            await self._report(AgentState.EXECUTING, plan.thought, command=command)

        result = truncate_output(await self.runner.execute(command))
        await self._report(AgentState.OBSERVING, plan.thought, command=command, result=result)
        return result

    # ─── Summarizing ─────────────────────────────────────────────

    async def _summarize(
        self,
        history: AgentHistory,
        plan: AgentPlan,
        exhausted: bool,
        should_stop: StopCheck,
    ) -> AgentResult:
        if exhausted:
            logger.warning("Agent hit max attempts (%d), forcing completion", self.settings.max_attempts)
            thought = prompts.EXHAUSTED_THOUGHT
            done_thought = prompts.EXHAUSTED_DONE_THOUGHT
            summary_prompt = prompts.EXHAUSTED_SUMMARY_PROMPT.format(
                max_attempts=self.settings.max_attempts
            )
        else:
            thought = done_thought = plan.thought
            summary_prompt = prompts.SUMMARY_PROMPT.format(profile=render_profile(self.profile))

        await self._report(AgentState.SUMMARIZING, thought, is_done=True, summary="")
        history.append("assistant", plan.to_json())

        summary = ""
        try:
            stream = self.llm.stream(
                history.as_messages({"role": "user", "content": summary_prompt})
            )
            async with aclosing(stream):
                async for chunk in stream:
                    if should_stop():
                        break
                    if not chunk:
                        continue
                    summary += chunk
                    await self._report(
                        AgentState.SUMMARIZING, done_thought, is_done=True, summary=summary
                    )
        except Exception as e:
            logger.error("Summary generation failed: %s", e)
            summary = summary or prompts.SUMMARY_FALLBACK

        await self._report(AgentState.TERMINAL, done_thought, is_done=True, summary=summary)
        outcome = AgentOutcome.EXHAUSTED if exhausted else AgentOutcome.COMPLETED
        logger.info("Agent run finished: %s after %d planning calls", outcome.value, self.planning_calls)
        return AgentResult(outcome, summary, self.planning_calls)

    async def _report(self, state: AgentState, thought: str, **fields) -> None:
        await self.reporter(AgentStep(state=state, thought=thought, **fields))
