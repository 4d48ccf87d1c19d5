"""Drive the agent hub from a terminal.

Subcommands:
- agents: list registered agents grouped by category
- workflows: list workflows, optionally filtered by keyword
- run-agent NAME: launch one agent
- run-workflow NAME: run a workflow and print its output summary

Exit codes: 0 on success, 1 for usage errors and unknown names, 2 when a
run does not complete.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run lecture-processing agents and workflows")
    parser.add_argument("--root-dir", default=None, help="Solution root (default: HUB_ROOT_DIR or cwd)")
    parser.add_argument("--config", default=None, help="Agent/workflow config file (default: <root>/hub_config.json)")
    parser.add_argument("--agent-data-dir", default=None, help="Fixed AgentData directory for every agent")

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("agents", help="List registered agents")

    wf = sub.add_parser("workflows", help="List workflows")
    wf.add_argument("--keyword", default=None, help="Case-insensitive keyword or name filter")

    ra = sub.add_parser("run-agent", help="Launch a single agent")
    ra.add_argument("name")
    ra.add_argument("--unattended", action="store_true", help="Wait for process exit instead of prompting")

    rw = sub.add_parser("run-workflow", help="Run a workflow")
    rw.add_argument("name")
    rw.add_argument("--source-language", default=None)
    rw.add_argument("--target-language", default=None)
    rw.add_argument(
        "--on-failure",
        choices=["prompt", "continue", "abort"],
        default=None,
        help="Behavior when a step does not succeed (default: prompt, or abort with --unattended)",
    )
    rw.add_argument("--unattended", action="store_true", help="Wait for process exit and never prompt")
    rw.add_argument("--report", default=None, help="Write the run report JSON to this path")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Allow running this script directly without requiring installation.
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

    from rich.console import Console
    from rich.table import Table

    from agent_hub.agents.models import UnknownAgentError
    from agent_hub.execution.launcher import WaitMode
    from agent_hub.execution.operator import FailurePolicy
    from agent_hub.hub import AgentHub

    console = Console()

    unattended = bool(getattr(args, "unattended", False))
    on_failure = getattr(args, "on_failure", None)
    if on_failure is None:
        on_failure = "abort" if unattended else "prompt"
    if unattended and on_failure == "prompt":
        console.print("[red]--unattended cannot be combined with --on-failure prompt[/]")
        return 1

    hub = AgentHub.from_config(
        root_dir=Path(args.root_dir) if args.root_dir else None,
        config_path=Path(args.config) if args.config else None,
        agent_data_dir=Path(args.agent_data_dir) if args.agent_data_dir else None,
        failure_policy=FailurePolicy(on_failure),
        wait_mode=WaitMode.EXIT if unattended else None,
        console=console,
    )

    if args.command == "agents":
        table = Table(title="Available agents")
        table.add_column("Category", style="bold")
        table.add_column("Name", style="cyan")
        table.add_column("Description")
        for category, agents in hub.registry.group_by_category().items():
            for agent in agents:
                table.add_row(category, agent.name, agent.description)
        console.print(table)
        return 0

    if args.command == "workflows":
        workflows = hub.catalog.find(args.keyword) if args.keyword else hub.list_workflows()
        table = Table(title="Workflows")
        table.add_column("Name", style="cyan")
        table.add_column("Agents")
        table.add_column("Description")
        for workflow in workflows:
            table.add_row(workflow.name, " -> ".join(workflow.agent_names), workflow.description)
        console.print(table)
        return 0

    if args.command == "run-agent":
        try:
            result = hub.run_agent(args.name)
        except UnknownAgentError as e:
            console.print(f"[red]Unknown agent: {e}[/]")
            return 1
        console.print(f"{result.agent_name}: {result.status.value}")
        for path in result.discovered_outputs:
            console.print(f"  {path}")
        return 0 if result.success else 2

    try:
        workflow = hub.catalog.get(args.name).clone()
    except UnknownAgentError as e:
        console.print(f"[red]Unknown workflow: {e}[/]")
        return 1

    if args.source_language:
        workflow.source_language = args.source_language
    if args.target_language:
        workflow.target_language = args.target_language

    report = hub.run_workflow(workflow)
    if report.summary is not None:
        report.summary.print(console)
    for error in report.errors:
        console.print(f"[red]{error}[/]")
    if args.report:
        path = report.write_json(Path(args.report))
        console.print(f"Run report written to {path}")

    console.print(f"Workflow '{report.workflow_name}': {report.state.value}")
    return 0 if report.success else 2


if __name__ == "__main__":
    raise SystemExit(main())
