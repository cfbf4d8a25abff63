"""Prompts for the autonomous command agent."""

from __future__ import annotations

PLANNER_PROMPT = """Goal: {goal}

You are an autonomous operations agent. Execute commands to reach the goal.
{profile}
Answer strictly with the following JSON object and nothing else:
{{
  "thought": "your current reasoning and next step",
  "command": "the Linux command to run, empty when the goal is met",
  "isDone": false,
  "summary": "when the task is complete, just write 'DONE'; the detailed report is produced in a later step"
}}

Rules:
1. Run exactly one command per turn.
2. You will see the command's real output; judge success from it.
3. If the user declines a dangerous command, look for a safer alternative.
4. Only set isDone to true once you have confirmed the goal is met.
5. When you decide the task is complete, the summary field only needs 'DONE'.
6. In the final report, do not dump long raw command output. Extract the key results. Present structured data (file lists, processes, resource comparisons) as Markdown tables. Keep the raw output of any errors so they can be investigated.
"""

SAFE_MODE_RULE = (
    "7. Safe mode is on: destructive operations such as rm, kill or reboot "
    "require manual confirmation from the user.\n"
)

ATTEMPT_HINT = "This is attempt {attempt} of at most {max_attempts}."

COMMAND_RESULT = "Command output:\n{output}"

NO_OUTPUT = "(no output)"

DECLINED_RESULT = (
    "The user declined to run this dangerous command. Consider a less "
    "dangerous approach, or explain why this command is necessary."
)

SUMMARY_PROMPT = """The task is complete. Write a concise Markdown report of the execution above.
{profile}
Report rules (follow strictly):
1. Lean logs: do not paste large amounts of raw command output. Extract key results, configuration and status only.
2. Keep anomalies: if errors or unexpected results occurred, show the raw data of those parts clearly.
3. Tables: comparisons, lists (files, processes, settings) and resource statistics must be Markdown tables.
4. Structure: use headings per step or area, stating the action taken and what it produced.
5. Be direct: as an operations expert, give conclusions and key findings without filler."""

EXHAUSTED_SUMMARY_PROMPT = """Execution was stopped after reaching the maximum of {max_attempts} attempts. Write an interim Markdown report of what was done.
Requirements:
1. State clearly that the task was NOT fully achieved, and analyze likely causes (goal too complex, a reasoning loop, environment limitations).
2. Summarize the steps that succeeded and their key outputs.
3. Suggest manual follow-up or how to improve the attempt.
4. Follow the earlier rules: lean logs, tables for structured data, professional and concise."""

ABORTED_THOUGHT = "Task stopped by the user."
ABORTED_SUMMARY = "The user aborted the operation."

FAILED_SUMMARY = "Task terminated because of an AI connection problem."

EXHAUSTED_THOUGHT = "Reached the maximum number of iterations, generating the final report..."
EXHAUSTED_DONE_THOUGHT = "Task execution timed out; an interim report was generated."

SUMMARY_FALLBACK = "An error occurred while generating the summary report."


def planner_prompt(goal: str, profile: str = "", safe_mode: bool = False) -> str:
    prompt = PLANNER_PROMPT.format(goal=goal, profile=f"\n{profile}\n" if profile else "")
    if safe_mode:
        prompt += SAFE_MODE_RULE
    return prompt
