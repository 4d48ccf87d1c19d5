"""
Post-Launch Display Hooks
=========================
Convenience output shown to the operator after certain agents finish.
Hooks never influence a step's result.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.console import Console
from rich.panel import Panel

from agent_hub.agents.models import AgentDescriptor, ExecutionResult
from agent_hub.execution.resolver import ArtifactResolver


def read_summary_text(payload: object) -> Optional[str]:
    """Pull the summary text out of a summarization agent's JSON output."""
    if not isinstance(payload, dict):
        return None
    for key in ("Summary", "summary"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class SummaryDisplayHook:
    """Shows the latest summary after the summarization agent runs."""

    def __init__(self, resolver: ArtifactResolver, console: Optional[Console] = None):
        self.resolver = resolver
        self.console = console or Console()

    def __call__(self, agent: AgentDescriptor, result: ExecutionResult) -> None:
        layout = self.resolver.layout_for(agent)
        pointer = self.resolver.summary_pointer(layout, Path(agent.working_directory)).refresh()
        if pointer is None:
            logger.debug(f"No summary output to display for {agent.name}")
            return

        try:
            payload = json.loads(pointer.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read summary {pointer}: {type(e).__name__}")
            return

        text = read_summary_text(payload)
        if text is None:
            logger.warning(f"Summary file {pointer} has no summary text")
            return

        subtitle = payload.get("Timestamp") or payload.get("timestamp")
        self.console.print(Panel(text, title="Summary", subtitle=str(subtitle) if subtitle else None))
