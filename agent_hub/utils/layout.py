"""
AgentData Layout
================
Helpers for the shared on-disk AgentData tree the agents exchange files through.

Agents are sibling folders of one solution; each writes under
``<agent working directory>/../AgentData``::

    AgentData/
        Recording/   recognized_transcript.txt, translated_transcript.txt
        Vocabulary/  *_flashcards.json
        Summary/     summary_*.json, summary_JSON.json (latest pointer)
        Captures/    capture_*.jpg, capture_*.txt, translated_text.txt
        Diagrams/    *_diagram.md, *mindmap*.md
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

AGENT_DATA_DIRNAME = "AgentData"

RECOGNIZED_TRANSCRIPT = "recognized_transcript.txt"
TRANSLATED_TRANSCRIPT = "translated_transcript.txt"
SUMMARY_POINTER = "summary_JSON.json"
CAPTURE_TRANSLATION = "translated_text.txt"


@dataclass(frozen=True)
class AgentDataLayout:
    """Resolved AgentData paths."""

    root: Path
    recording_dir: Path
    vocabulary_dir: Path
    summary_dir: Path
    captures_dir: Path
    diagrams_dir: Path

    @property
    def recognized_transcript(self) -> Path:
        return self.recording_dir / RECOGNIZED_TRANSCRIPT

    @property
    def translated_transcript(self) -> Path:
        return self.recording_dir / TRANSLATED_TRANSCRIPT

    @property
    def summary_pointer(self) -> Path:
        return self.summary_dir / SUMMARY_POINTER

    @property
    def capture_translation(self) -> Path:
        return self.captures_dir / CAPTURE_TRANSLATION


def agent_data_layout(root: str | Path) -> AgentDataLayout:
    """Return the canonical AgentData layout under ``root``."""

    r = Path(root).expanduser().resolve()
    return AgentDataLayout(
        root=r,
        recording_dir=r / "Recording",
        vocabulary_dir=r / "Vocabulary",
        summary_dir=r / "Summary",
        captures_dir=r / "Captures",
        diagrams_dir=r / "Diagrams",
    )


def layout_for_working_directory(
    working_directory: str | Path,
    *,
    override_root: Optional[Path] = None,
) -> AgentDataLayout:
    """Return the layout an agent running in ``working_directory`` writes to.

    Args:
        working_directory: The agent's working directory.
        override_root: Explicit AgentData root (``HUB_AGENT_DATA_DIR``).
    """
    if override_root is not None:
        return agent_data_layout(override_root)
    return agent_data_layout(Path(working_directory).expanduser() / ".." / AGENT_DATA_DIRNAME)


def ensure_agent_data_layout(root: str | Path) -> AgentDataLayout:
    """Ensure the AgentData folders exist.

    Creates only empty folders and is idempotent.
    """

    layout = agent_data_layout(root)
    for d in (
        layout.recording_dir,
        layout.vocabulary_dir,
        layout.summary_dir,
        layout.captures_dir,
        layout.diagrams_dir,
    ):
        d.mkdir(parents=True, exist_ok=True)
    return layout
