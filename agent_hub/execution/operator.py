"""
Operator Interaction
====================
The two points where a workflow run waits on a human:

- acknowledging that a launched agent is done (agents run in their own
  session and may be interactive, so process exit alone is not a reliable
  signal), and
- deciding whether to continue after a step fails or is still running.

``ConsoleOperator`` asks on the terminal with rich; ``UnattendedOperator``
answers from a fixed policy for scripted runs.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Protocol

from rich.console import Console
from rich.prompt import Confirm

from agent_hub.agents.models import AgentDescriptor, ExecutionResult, ExecutionStatus


class FailurePolicy(Enum):
    """What to do when a step does not succeed."""
    PROMPT = "prompt"
    CONTINUE = "continue"
    ABORT = "abort"


class Operator(Protocol):
    def acknowledge(self, agent: AgentDescriptor, *, still_running: bool = False) -> None:
        ...

    def confirm_continue(self, step_index: int, agent: AgentDescriptor, result: ExecutionResult) -> bool:
        ...


def describe_outcome(result: ExecutionResult) -> str:
    """One-line operator-facing description of a non-successful step."""
    if result.status is ExecutionStatus.UNKNOWN:
        return "is still running; its outcome is unknown"
    if result.error:
        return f"failed: {result.error}"
    if result.exit_code is not None:
        return f"failed with exit code {result.exit_code}"
    return "failed"


class ConsoleOperator:
    """Interactive operator on the hub's terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def acknowledge(self, agent: AgentDescriptor, *, still_running: bool = False) -> None:
        if still_running:
            self.console.print(
                f"[yellow]{agent.name} is still running.[/] "
                "Wait for it to complete or press Enter again to return."
            )
        else:
            self.console.print("Press Enter in this window to return when the agent is done...")
        self.console.input()

    def confirm_continue(self, step_index: int, agent: AgentDescriptor, result: ExecutionResult) -> bool:
        self.console.print(f"[bold red]Workflow step {step_index + 1} {describe_outcome(result)}:[/] {agent.name}")
        return Confirm.ask("Do you want to continue with the next workflow step?", default=False, console=self.console)


class UnattendedOperator:
    """Non-interactive operator that never blocks."""

    def __init__(self, policy: FailurePolicy = FailurePolicy.ABORT):
        if policy is FailurePolicy.PROMPT:
            raise ValueError("UnattendedOperator cannot prompt; choose CONTINUE or ABORT")
        self.policy = policy

    def acknowledge(self, agent: AgentDescriptor, *, still_running: bool = False) -> None:
        return None

    def confirm_continue(self, step_index: int, agent: AgentDescriptor, result: ExecutionResult) -> bool:
        return self.policy is FailurePolicy.CONTINUE
