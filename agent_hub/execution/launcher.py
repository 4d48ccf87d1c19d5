"""
Process Launcher
================
Starts one external agent process and reports how it ended.

The agent runs detached in its own session (its own console on Windows) in
its working directory, with the hub's full environment plus the agent's
overrides. By default the launcher then waits for the operator to say the
agent is done rather than for process exit, since agents are often
interactive. If the process is still running after acknowledgement, the
operator is asked once more and the process is polled one last time; it is
never killed. A process that is still running at that point is reported as
``UNKNOWN`` rather than as a success.
"""

from __future__ import annotations

import subprocess
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from loguru import logger

from agent_hub.agents.models import AgentCategory, AgentDescriptor, ExecutionResult, ExecutionStatus
from agent_hub.config import LAUNCH
from agent_hub.execution.operator import Operator
from agent_hub.utils.subprocess_env import build_agent_env

PostLaunchHook = Callable[[AgentDescriptor, ExecutionResult], None]


class WaitMode(Enum):
    ACKNOWLEDGE = "acknowledge"
    EXIT = "exit"


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def quote_argument(arg: str) -> str:
    if any(ch.isspace() for ch in arg):
        return f'"{arg}"'
    return arg


def build_command_line(agent: AgentDescriptor) -> str:
    """Single display command line; arguments with whitespace are quoted."""
    parts = [quote_argument(agent.executable_path)]
    parts.extend(quote_argument(a) for a in agent.arguments)
    return " ".join(parts)


def _detach_kwargs() -> Dict[str, Any]:
    if sys.platform == "win32":
        return {"creationflags": getattr(subprocess, "CREATE_NEW_CONSOLE", 0)}
    return {"start_new_session": True}


def _configured_wait_mode() -> WaitMode:
    try:
        return WaitMode(LAUNCH.WAIT_MODE)
    except ValueError:
        logger.warning(f"Unknown HUB_WAIT_MODE '{LAUNCH.WAIT_MODE}'; using acknowledge")
        return WaitMode.ACKNOWLEDGE


class ProcessLauncher:
    """
    Launches agents and waits on the operator's acknowledgement.

    Usage:
        launcher = ProcessLauncher(ConsoleOperator())
        result = launcher.launch(agent)
    """

    def __init__(
        self,
        operator: Operator,
        *,
        wait_mode: Optional[WaitMode] = None,
        exit_grace_seconds: Optional[float] = None,
        assume_success_when_running: Optional[bool] = None,
        post_launch_hooks: Optional[Mapping[AgentCategory, PostLaunchHook]] = None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
    ):
        """
        Args:
            operator: Who acknowledges completion.
            wait_mode: ACKNOWLEDGE (default) or EXIT for unattended runs.
            exit_grace_seconds: Final poll window after the second acknowledgement.
            assume_success_when_running: Legacy optimistic handling of a
                still-running process.
            post_launch_hooks: Display hooks keyed by agent category.
            popen: Process factory, replaceable in tests.
        """
        self.operator = operator
        self.wait_mode = wait_mode or _configured_wait_mode()
        self.exit_grace_seconds = float(
            exit_grace_seconds if exit_grace_seconds is not None else LAUNCH.EXIT_GRACE_SECONDS
        )
        self.assume_success_when_running = (
            bool(assume_success_when_running)
            if assume_success_when_running is not None
            else LAUNCH.ASSUME_SUCCESS_WHEN_RUNNING
        )
        self.post_launch_hooks: Dict[AgentCategory, PostLaunchHook] = dict(post_launch_hooks or {})
        self._popen = popen

    def launch(self, agent: AgentDescriptor) -> ExecutionResult:
        """Run ``agent`` and report its outcome. Never raises for launch problems."""
        logger.info(f"Executing agent: {agent.name}")
        started_at = _now_utc_iso()
        command_line = build_command_line(agent)

        working_dir = Path(agent.working_directory)
        if not working_dir.is_dir():
            message = f"Working directory not found: {agent.working_directory}"
            logger.error(message)
            return ExecutionResult.failure(
                agent.name,
                message,
                command_line=command_line,
                started_at=started_at,
                finished_at=_now_utc_iso(),
            )

        argv: List[str] = [agent.executable_path, *agent.arguments]
        env = build_agent_env(agent.environment_variables)

        try:
            process = self._popen(argv, cwd=str(working_dir), env=env, **_detach_kwargs())
        except OSError as e:
            message = f"Failed to start agent: {type(e).__name__}: {e}"
            logger.error(f"{agent.name}: {message}")
            return ExecutionResult.failure(
                agent.name,
                message,
                command_line=command_line,
                started_at=started_at,
                finished_at=_now_utc_iso(),
            )

        logger.info(f"Agent {agent.name} started with PID: {process.pid} in {working_dir}")

        exit_code = self._wait(agent, process)
        finished_at = _now_utc_iso()

        if exit_code is None:
            status = ExecutionStatus.SUCCEEDED if self.assume_success_when_running else ExecutionStatus.UNKNOWN
            logger.warning(f"Agent {agent.name} is still running (PID {process.pid}); reporting {status.value}")
            result = ExecutionResult(
                agent_name=agent.name,
                status=status,
                command_line=command_line,
                started_at=started_at,
                finished_at=finished_at,
            )
        else:
            logger.info(f"Agent {agent.name} completed with exit code: {exit_code}")
            result = ExecutionResult.from_exit_code(
                agent.name,
                exit_code,
                command_line=command_line,
                started_at=started_at,
                finished_at=finished_at,
            )

        self._run_hooks(agent, result)
        return result

    def _wait(self, agent: AgentDescriptor, process: subprocess.Popen) -> Optional[int]:
        if self.wait_mode is WaitMode.EXIT:
            return process.wait()

        self.operator.acknowledge(agent)
        code = process.poll()
        if code is not None:
            return code

        self.operator.acknowledge(agent, still_running=True)
        try:
            return process.wait(timeout=self.exit_grace_seconds)
        except subprocess.TimeoutExpired:
            return None

    def _run_hooks(self, agent: AgentDescriptor, result: ExecutionResult) -> None:
        hook = self.post_launch_hooks.get(agent.kind)
        if hook is None:
            return
        try:
            hook(agent, result)
        except Exception as e:
            # Display only; the step outcome stands
            logger.warning(f"Post-launch hook for {agent.name} failed: {type(e).__name__}: {e}")
