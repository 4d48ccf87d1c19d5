"""Output summary.

Renders what a completed run produced, grouped by agent category in a fixed
display order. Categories with no files are left out entirely.

Before rendering, the collector sweeps the known output locations of the
run's agents once more and backfills any of their categories the live run
missed, e.g. when an agent wrote its file after its own discovery ran.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from rich.console import Console
from rich.table import Table

from agent_hub.agents.models import AgentCategory
from agent_hub.execution.resolver import ArtifactResolver
from agent_hub.pipeline.report import WorkflowRunReport

DISPLAY_ORDER: Tuple[str, ...] = (
    AgentCategory.SPEECH_TRANSLATOR.label,
    AgentCategory.BOARD_CAPTURE.label,
    AgentCategory.VOCABULARY.label,
    AgentCategory.SUMMARIZATION.label,
    AgentCategory.DIAGRAM.label,
)


def ordered_keys(keys) -> List[str]:
    """Fixed display order first, anything else after in sorted order."""
    present = set(keys)
    head = [k for k in DISPLAY_ORDER if k in present]
    tail = sorted(k for k in present if k not in DISPLAY_ORDER)
    return head + tail


def transcript_label(path: str) -> str:
    name = Path(path).name.lower()
    if "recognized" in name:
        return "Original"
    if "translated" in name:
        return "Translated"
    return ""


@dataclass(frozen=True)
class SummarySection:
    title: str
    entries: Tuple[Tuple[str, str], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "entries": [{"label": label, "path": path} for label, path in self.entries],
        }


@dataclass
class RenderedSummary:
    workflow_name: str
    sections: List[SummarySection] = field(default_factory=list)
    backfilled: List[str] = field(default_factory=list)

    @property
    def titles(self) -> List[str]:
        return [s.title for s in self.sections]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow_name": self.workflow_name,
            "sections": [s.to_dict() for s in self.sections],
            "backfilled": list(self.backfilled),
        }

    def render_text(self) -> str:
        lines = [f"Generated files for {self.workflow_name}"]
        if not self.sections:
            lines.append("  (no output files found)")
        for section in self.sections:
            lines.append(f"{section.title}:")
            for label, path in section.entries:
                lines.append(f"  {label}: {path}" if label else f"  {path}")
        return "\n".join(lines) + "\n"

    def print(self, console: Optional[Console] = None) -> None:
        console = console or Console()
        if not self.sections:
            console.print(f"[yellow]No output files found for {self.workflow_name}.[/]")
            return

        table = Table(title=f"Generated files: {self.workflow_name}", show_lines=False)
        table.add_column("Agent", style="bold cyan", no_wrap=True)
        table.add_column("File")
        for section in self.sections:
            for i, (label, path) in enumerate(section.entries):
                shown = f"{label}: {path}" if label else path
                table.add_row(section.title if i == 0 else "", shown)
        console.print(table)


class OutputSummaryCollector:
    """
    Builds the end-of-run summary from a report's generated files.

    Usage:
        collector = OutputSummaryCollector(ArtifactResolver())
        summary = collector.summarize(report)
        summary.print()
    """

    def __init__(self, resolver: ArtifactResolver):
        self.resolver = resolver

    def backfill(self, report: WorkflowRunReport) -> List[str]:
        """Discover files for categories the run's agents cover but the report lacks.

        Returns:
            Category labels that gained files.
        """
        if report.workflow is None:
            return []

        agents = report.workflow.agents
        filled: List[str] = []
        for kind in dict.fromkeys(a.kind for a in agents):
            label = kind.label
            if report.generated_files.get(label):
                continue
            for agent in agents:
                found = self.resolver.discover_category(
                    kind,
                    self.resolver.layout_for(agent),
                    Path(agent.working_directory),
                )
                if report.add_generated_files(label, found) and label not in filled:
                    filled.append(label)

        for label in filled:
            logger.info(f"Backfilled outputs for {label}")
        return filled

    def summarize(self, report: WorkflowRunReport) -> RenderedSummary:
        backfilled = self.backfill(report)

        sections: List[SummarySection] = []
        for key in ordered_keys(report.generated_files):
            files = report.generated_files.get(key) or []
            if not files:
                continue
            if key == AgentCategory.SPEECH_TRANSLATOR.label:
                entries = tuple((transcript_label(p), p) for p in files)
            else:
                entries = tuple(("", p) for p in files)
            sections.append(SummarySection(title=key, entries=entries))

        return RenderedSummary(workflow_name=report.workflow_name, sections=sections, backfilled=backfilled)
