"""
aissh command line — run a command or an autonomous goal on a remote host.

Usage:
    aissh exec  --ip 10.0.0.5 --user root "df -h"
    aissh agent --ip 10.0.0.5 --user root "find what is filling /var"

The backend execution service must be running (AISSH_BACKEND_HOST/PORT, or
AISSH_BACKEND_PORT_FILE when the launcher assigns the port dynamically).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
import uuid

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm
from rich.text import Text

import aissh.core.config as config_module
from aissh.agent import AgentLoop, AgentOutcome, AgentResult, AgentSettings, AgentState, AgentStep
from aissh.core.errors import LLMError
from aissh.core.logging import setup_logging
from aissh.llm import DeviceProfile, LLMProvider, get_llm_provider
from aissh.session import CommandExecutor, SessionCommandRunner, SessionRegistry, SessionStatus, StatusEvent
from aissh.transport import TransportManager, wait_for_port_file

logger = logging.getLogger("aissh.cli")

# Characters of command output echoed per agent step
RESULT_PREVIEW_CHARS = 2000


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aissh", description=__doc__.split("\n\n")[0].strip())
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log verbosity (default: $AISSH_LOG_LEVEL or WARNING)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_target(p: argparse.ArgumentParser) -> None:
        p.add_argument("--ip", required=True, help="Remote host to open a shell on")
        p.add_argument("--user", required=True, help="SSH username")
        p.add_argument(
            "--password",
            default=os.getenv("AISSH_SSH_PASSWORD", ""),
            help="SSH password (default: $AISSH_SSH_PASSWORD)",
        )
        p.add_argument("--session", default=None, help="Session id (default: random)")

    p_exec = sub.add_parser("exec", help="Run one command and print its output")
    add_target(p_exec)
    p_exec.add_argument("cmd", help="Command to run")
    p_exec.set_defaults(func=run_exec)

    p_agent = sub.add_parser("agent", help="Hand a goal to the autonomous agent")
    add_target(p_agent)
    p_agent.add_argument("goal", help="What the agent should achieve")
    p_agent.add_argument("--max-attempts", type=int, default=None)
    p_agent.add_argument("--temperature", type=float, default=None)
    p_agent.add_argument(
        "--unsafe",
        action="store_true",
        help="Run risky commands without asking for confirmation",
    )
    p_agent.add_argument("--profile", default=None, help="Device profile JSON file")
    p_agent.set_defaults(func=run_agent)

    return parser


# ─── Session Setup ───────────────────────────────────────────────


async def open_session(args: argparse.Namespace) -> tuple[TransportManager, SessionRegistry, str]:
    """Connect the transport and open a session. Raises SystemExit on failure."""
    cfg = config_module.config.transport
    transport = TransportManager.from_config(cfg).initialize()
    if cfg.port_file:
        transport.resolve_endpoint(wait_for_port_file(cfg.port_file))

    registry = SessionRegistry(transport)
    session_id = args.session or f"cli-{uuid.uuid4().hex[:8]}"

    settled = asyncio.get_running_loop().create_future()

    def on_status(event: StatusEvent) -> None:
        if settled.done():
            return
        if event.status in (SessionStatus.CONNECTED, SessionStatus.ERROR):
            settled.set_result(event)

    unsubscribe = registry.on_status(on_status, session_id=session_id)
    try:
        if not await registry.connect(args.ip, args.user, args.password, session_id):
            await transport.teardown()
            raise SystemExit(f"Backend unreachable at {transport.endpoint}")
        event = await asyncio.wait_for(settled, timeout=cfg.connect_timeout)
    except asyncio.TimeoutError:
        await transport.teardown()
        raise SystemExit(f"Timed out connecting to {args.ip}")
    finally:
        unsubscribe()

    if event.status is not SessionStatus.CONNECTED:
        await transport.teardown()
        raise SystemExit(f"Could not connect to {args.ip}: {event.message or 'error'}")
    return transport, registry, session_id


# ─── exec ────────────────────────────────────────────────────────


async def run_exec(args: argparse.Namespace, console: Console) -> int:
    transport, registry, session_id = await open_session(args)
    try:
        output = await CommandExecutor(registry, timeout=config_module.config.transport.exec_timeout).execute(
            args.cmd, session_id
        )
        console.print(Text(output.rstrip("\n")))
        return 1 if output.startswith("Error:") else 0
    finally:
        await registry.disconnect(session_id)
        await transport.teardown()


# ─── agent ───────────────────────────────────────────────────────


class StepPrinter:
    """Renders agent steps; the final report is redrawn live as it streams."""

    def __init__(self, console: Console) -> None:
        self.console = console
        self._live: Live | None = None

    async def __call__(self, step: AgentStep) -> None:
        if step.state is AgentState.SUMMARIZING:
            if self._live is None:
                self.console.print(Text(step.thought, style="bold cyan"))
                self._live = Live(Markdown(step.summary or ""), console=self.console)
                self._live.start()
            else:
                self._live.update(Markdown(step.summary or ""))
            return

        if step.state is AgentState.TERMINAL:
            if self._live is not None:
                self._live.update(Markdown(step.summary or ""))
                self._live.stop()
                self._live = None
            else:
                self.console.print(Text(step.thought, style="bold red"))
                if step.summary:
                    self.console.print(Markdown(step.summary))
            return

        self.console.print(Text(step.thought, style="dim"))
        if step.state is AgentState.CONFIRMATION_PENDING:
            self.console.print(Text(f"! risky command: {step.command}", style="bold yellow"))
        elif step.state is AgentState.EXECUTING:
            self.console.print(Text(f"$ {step.command}", style="bold magenta"))
        elif step.state is AgentState.OBSERVING and step.result is not None:
            preview = step.result[:RESULT_PREVIEW_CHARS]
            self.console.print(Panel(Text(preview), title=step.command, border_style="dim"))


async def run_agent(args: argparse.Namespace, console: Console) -> int:
    defaults = config_module.config.agent
    settings = AgentSettings(
        max_attempts=args.max_attempts or defaults.max_attempts,
        temperature=args.temperature if args.temperature is not None else defaults.temperature,
        safe_mode=defaults.safe_mode and not args.unsafe,
        max_memory_messages=defaults.max_memory_messages,
    )
    profile = DeviceProfile.load(args.profile) if args.profile else None

    llm = get_llm_provider()
    try:
        await llm.start()
    except LLMError as e:
        console.print(Text(str(e), style="bold red"))
        return 2

    try:
        result = await _drive_agent(args, console, llm, settings, profile)
    finally:
        await llm.stop()

    console.print(Text(f"[{result.outcome.value}] after {result.attempts} planning calls", style="dim"))
    return 0 if result.outcome is AgentOutcome.COMPLETED else 1


async def _drive_agent(
    args: argparse.Namespace,
    console: Console,
    llm: LLMProvider,
    settings: AgentSettings,
    profile: DeviceProfile | None,
) -> AgentResult:
    """Open the session and run the loop on it. The caller owns the LLM."""
    transport, registry, session_id = await open_session(args)
    executor = CommandExecutor(registry, timeout=config_module.config.transport.exec_timeout)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler unavailable; Ctrl-C will interrupt immediately")

    async def confirm(command: str) -> bool:
        return await asyncio.to_thread(
            Confirm.ask, f"Run [bold]{command}[/bold]?", console=console, default=False
        )

    agent = AgentLoop(
        llm,
        SessionCommandRunner(executor, session_id),
        StepPrinter(console),
        settings=settings,
        profile=profile,
    )
    try:
        return await agent.run(args.goal, confirm, stop.is_set)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        await registry.disconnect(session_id)
        await transport.teardown()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    console = Console()
    try:
        return asyncio.run(args.func(args, console))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
