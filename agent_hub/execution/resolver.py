"""
Artifact Resolver
=================
Routes files produced by one agent into the arguments of the next.

Three responsibilities:

1. Pre-step injection: before step i > 0, a dispatch table keyed by the
   step's agent category and the workflow intent names the input file the
   agent needs (the translated lecture transcript, or the translated text of
   the latest whiteboard capture). When it exists, any argument containing
   the rule's filename fragment is removed and the absolute path appended.
2. Generic mapping: after step i, the output patterns a workflow declares for
   that agent are resolved and appended to step i+1's arguments.
3. Post-step discovery: a per-category table of directories, fixed names and
   glob patterns locates what an agent produced for the run summary.

All argument edits return new tuples; nothing here mutates a descriptor.
Missing files are reported as degradation events, never raised.
"""

from __future__ import annotations

import glob as globlib
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from agent_hub.agents.models import AgentCategory, AgentDescriptor, Workflow, WorkflowIntent
from agent_hub.config import DISCOVERY, PATHS
from agent_hub.execution.pointers import LatestPointer, newest_first, newest_match
from agent_hub.pipeline.degradation import (
    CAPTURE_MARKER_MISSING,
    INJECTION_SOURCE_MISSING,
    MAPPED_OUTPUT_MISSING,
    make_degradation_event,
)
from agent_hub.utils.layout import (
    CAPTURE_TRANSLATION,
    RECOGNIZED_TRANSCRIPT,
    SUMMARY_POINTER,
    TRANSLATED_TRANSCRIPT,
    AgentDataLayout,
    layout_for_working_directory,
)

TRANSLATED_TEXT_MARKER = "TRANSLATED TEXT"
TRANSLATED_TEXT_LINE = re.compile(r"^TRANSLATED TEXT \([^)]*\):$")
SOURCE_LANGUAGE_FLAG = "--source-language"
TARGET_LANGUAGE_FLAG = "--target-language"


class InjectionSource(Enum):
    """Where a pre-step injection takes its input file from."""
    TRANSLATED_TRANSCRIPT = "translated_transcript"
    CAPTURE_TRANSLATION = "capture_translation"

    @property
    def fragment(self) -> str:
        """Loose match for arguments this injection replaces."""
        if self is InjectionSource.TRANSLATED_TRANSCRIPT:
            return "transcript"
        return "translated_text"


_AUDIO_OR_WHITEBOARD: Dict[WorkflowIntent, Optional[InjectionSource]] = {
    WorkflowIntent.AUDIO: InjectionSource.TRANSLATED_TRANSCRIPT,
    WorkflowIntent.WHITEBOARD: InjectionSource.CAPTURE_TRANSLATION,
    WorkflowIntent.NONE: None,
}
_NO_INJECTION: Dict[WorkflowIntent, Optional[InjectionSource]] = {intent: None for intent in WorkflowIntent}

# Every category must appear; tests check the table is exhaustive
INJECTION_TABLE: Dict[AgentCategory, Dict[WorkflowIntent, Optional[InjectionSource]]] = {
    AgentCategory.SPEECH_TRANSLATOR: _NO_INJECTION,
    AgentCategory.BOARD_CAPTURE: _NO_INJECTION,
    AgentCategory.VOCABULARY: _AUDIO_OR_WHITEBOARD,
    AgentCategory.SUMMARIZATION: _AUDIO_OR_WHITEBOARD,
    AgentCategory.DIAGRAM: _AUDIO_OR_WHITEBOARD,
    AgentCategory.GENERIC: _NO_INJECTION,
}

# Categories whose agents take --source-language/--target-language
LANGUAGE_AWARE = frozenset(
    {AgentCategory.SPEECH_TRANSLATOR, AgentCategory.BOARD_CAPTURE, AgentCategory.VOCABULARY}
)


@dataclass(frozen=True)
class DiscoveryRule:
    """Where to look for one category's outputs."""
    directories: Callable[[AgentDataLayout, Path], List[Path]]
    fixed_names: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()


DISCOVERY_TABLE: Dict[AgentCategory, Optional[DiscoveryRule]] = {
    AgentCategory.SPEECH_TRANSLATOR: DiscoveryRule(
        directories=lambda layout, wd: [layout.recording_dir, wd],
        fixed_names=(RECOGNIZED_TRANSCRIPT, TRANSLATED_TRANSCRIPT),
    ),
    AgentCategory.BOARD_CAPTURE: DiscoveryRule(
        directories=lambda layout, wd: [layout.captures_dir],
        fixed_names=(CAPTURE_TRANSLATION,),
        patterns=("capture_*.txt", "capture_*.jpg"),
    ),
    AgentCategory.VOCABULARY: DiscoveryRule(
        directories=lambda layout, wd: [layout.vocabulary_dir, wd],
        patterns=("*flashcards*.json", "*flashcards*.csv", "*flashcards*.html"),
    ),
    AgentCategory.SUMMARIZATION: DiscoveryRule(
        directories=lambda layout, wd: [layout.summary_dir, wd / "data" / "outputs"],
        fixed_names=(SUMMARY_POINTER,),
        patterns=("summary_*.json",),
    ),
    AgentCategory.DIAGRAM: DiscoveryRule(
        directories=lambda layout, wd: [
            layout.diagrams_dir,
            layout.recording_dir,
            layout.captures_dir,
            wd,
            wd / "diagrams",
        ],
        patterns=("*diagram*.md", "*diagram*.json", "*diagram*.html", "*mindmap*.md"),
    ),
    AgentCategory.GENERIC: None,
}


@dataclass(frozen=True)
class StepArguments:
    """Argument snapshot for one step plus what went into it."""
    arguments: Tuple[str, ...]
    injected: Optional[str] = None
    degradations: Tuple[Dict[str, Any], ...] = ()


@dataclass(frozen=True)
class MappingOutcome:
    """Result of forwarding declared outputs to the next step."""
    arguments: Tuple[str, ...]
    forwarded: Tuple[str, ...] = ()
    degradations: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)


def inject_argument(arguments: Sequence[str], path: str, fragment: str) -> Tuple[str, ...]:
    """Drop arguments containing ``fragment`` and append ``path``.

    Applying this twice with the same inputs yields the same tuple.
    """
    kept = [a for a in arguments if fragment not in a]
    kept.append(path)
    return tuple(kept)


def _set_flag(arguments: Sequence[str], flag: str, value: Optional[str]) -> List[str]:
    out: List[str] = []
    skip_next = False
    for arg in arguments:
        if skip_next:
            skip_next = False
            continue
        if arg == flag:
            skip_next = True
            continue
        out.append(arg)
    if value:
        out.extend([flag, value])
    return out


def apply_language_parameters(
    arguments: Sequence[str],
    kind: AgentCategory,
    *,
    source_language: Optional[str] = None,
    target_language: Optional[str] = None,
) -> Tuple[str, ...]:
    """Set the workflow-wide language flags on agents that accept them."""
    if kind not in LANGUAGE_AWARE or not (source_language or target_language):
        return tuple(arguments)
    out = list(arguments)
    if source_language:
        out = _set_flag(out, SOURCE_LANGUAGE_FLAG, source_language)
    if target_language:
        out = _set_flag(out, TARGET_LANGUAGE_FLAG, target_language)
    return tuple(out)


def split_capture_translation(capture_file: Path, destination: Path) -> Optional[Path]:
    """Write the text after the ``TRANSLATED TEXT (xx):`` marker line to ``destination``.

    The board capture agent saves ``ORIGINAL TEXT (xx):`` and
    ``TRANSLATED TEXT (yy):`` blocks in one file; downstream agents only want
    the translation. The marker is matched exactly and the last one wins, so
    OCR text that happens to start with "Translated text" stays in the
    original block.

    Returns:
        ``destination``, or None when the marker is absent.
    """
    lines = capture_file.read_text(encoding="utf-8", errors="replace").splitlines()
    markers = [idx for idx, line in enumerate(lines) if TRANSLATED_TEXT_LINE.match(line.strip())]
    if not markers:
        return None
    translated = "\n".join(lines[markers[-1] + 1:]).strip() + "\n"
    if not destination.exists() or destination.read_text(encoding="utf-8", errors="replace") != translated:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(translated, encoding="utf-8")
    return destination


def _has_glob(pattern: str) -> bool:
    return globlib.has_magic(pattern)


class ArtifactResolver:
    """
    Computes step arguments and discovers agent outputs.

    Usage:
        resolver = ArtifactResolver()
        step = resolver.build_step_arguments(agent, 1, workflow)
        outputs = resolver.discover_outputs(agent)
    """

    def __init__(
        self,
        *,
        agent_data_dir: Optional[Path] = None,
        max_matches_per_pattern: Optional[int] = None,
    ):
        """
        Args:
            agent_data_dir: Fixed AgentData root; defaults to each agent's
                ``<working_directory>/../AgentData``.
            max_matches_per_pattern: Cap on most-recent matches kept per glob.
        """
        self.agent_data_dir = agent_data_dir if agent_data_dir is not None else PATHS.AGENT_DATA_DIR
        self.max_matches_per_pattern = (
            int(max_matches_per_pattern)
            if max_matches_per_pattern is not None
            else int(DISCOVERY.MAX_MATCHES_PER_PATTERN)
        )

    def layout_for(self, agent: AgentDescriptor) -> AgentDataLayout:
        return layout_for_working_directory(agent.working_directory, override_root=self.agent_data_dir)

    def summary_pointer(self, layout: AgentDataLayout, working_directory: Path) -> LatestPointer:
        """The ``summary_JSON.json`` pointer over every folder summaries land in."""
        rule = DISCOVERY_TABLE[AgentCategory.SUMMARIZATION]
        assert rule is not None
        return LatestPointer(
            pointer_path=layout.summary_pointer,
            directories=tuple(rule.directories(layout, Path(working_directory))),
            pattern="summary_*.json",
        )

    def refresh_pointers(self, layout: AgentDataLayout, working_directory: Path) -> None:
        self.summary_pointer(layout, working_directory).refresh()

    # ------------------------------------------------------------------
    # Pre-step injection
    # ------------------------------------------------------------------

    def injection_source(self, kind: AgentCategory, intent: WorkflowIntent) -> Optional[InjectionSource]:
        return INJECTION_TABLE[kind][intent]

    def resolve_injection_path(
        self,
        agent: AgentDescriptor,
        source: InjectionSource,
    ) -> Tuple[Optional[Path], List[Dict[str, Any]]]:
        """Locate (or, for captures, derive) the file an injection needs."""
        layout = self.layout_for(agent)
        degradations: List[Dict[str, Any]] = []

        if source is InjectionSource.TRANSLATED_TRANSCRIPT:
            candidate = layout.translated_transcript
            if candidate.is_file():
                return candidate, degradations
            logger.warning(f"Translated transcript not found for {agent.name}: {candidate}")
            degradations.append(
                make_degradation_event(
                    stage=agent.name,
                    reason_code=INJECTION_SOURCE_MISSING,
                    message=f"Translated transcript not found at {candidate}",
                    recommended_action="Run the Speech Translator first or check its AgentData/Recording output.",
                    details={"path": str(candidate)},
                )
            )
            return None, degradations

        capture = newest_match(layout.captures_dir, "capture_*.txt")
        if capture is None:
            logger.warning(f"No capture text files found for {agent.name} in {layout.captures_dir}")
            degradations.append(
                make_degradation_event(
                    stage=agent.name,
                    reason_code=INJECTION_SOURCE_MISSING,
                    message=f"No capture_*.txt files in {layout.captures_dir}",
                    recommended_action="Run the Classroom Board Capture agent until it saves at least one analyzed capture.",
                    details={"directory": str(layout.captures_dir)},
                )
            )
            return None, degradations

        derived = split_capture_translation(capture, layout.capture_translation)
        if derived is None:
            logger.warning(f"Capture {capture.name} has no '{TRANSLATED_TEXT_MARKER}' section")
            degradations.append(
                make_degradation_event(
                    stage=agent.name,
                    reason_code=CAPTURE_MARKER_MISSING,
                    message=f"Capture {capture.name} has no '{TRANSLATED_TEXT_MARKER}' section",
                    recommended_action="Check that the board capture translation step succeeded.",
                    details={"path": str(capture)},
                )
            )
            return None, degradations

        logger.info(f"Using latest capture {capture.name} for {agent.name}")
        return derived, degradations

    def build_step_arguments(self, agent: AgentDescriptor, step_index: int, workflow: Workflow) -> StepArguments:
        """Argument snapshot for ``agent`` running as step ``step_index``.

        Language flags apply to every step; file injection only to steps
        after the first, which have a predecessor to take input from.
        """
        args = apply_language_parameters(
            agent.arguments,
            agent.kind,
            source_language=workflow.source_language,
            target_language=workflow.target_language,
        )

        intent = workflow.intent or WorkflowIntent.NONE
        source = self.injection_source(agent.kind, intent) if step_index > 0 else None
        if source is None:
            return StepArguments(arguments=args)

        path, degradations = self.resolve_injection_path(agent, source)
        if path is None:
            return StepArguments(arguments=args, degradations=tuple(degradations))

        resolved = str(path.resolve())
        logger.info(f"Injecting {resolved} into {agent.name}")
        return StepArguments(
            arguments=inject_argument(args, resolved, source.fragment),
            injected=resolved,
            degradations=tuple(degradations),
        )

    # ------------------------------------------------------------------
    # Generic output mapping
    # ------------------------------------------------------------------

    def resolve_output_pattern(self, agent: AgentDescriptor, pattern: str) -> Path:
        """Absolute path for a declared output; relative to the agent's working directory."""
        raw = Path(pattern).expanduser()
        full = raw if raw.is_absolute() else Path(agent.working_directory) / raw
        if _has_glob(full.name):
            match = newest_match(full.parent.resolve(), full.name)
            if match is not None:
                return match.resolve()
        return full.resolve()

    def apply_output_mappings(
        self,
        completed: AgentDescriptor,
        patterns: Sequence[str],
        next_agent: AgentDescriptor,
    ) -> MappingOutcome:
        """Append each existing declared output of ``completed`` to ``next_agent``'s arguments."""
        args = list(next_agent.arguments)
        forwarded: List[str] = []
        degradations: List[Dict[str, Any]] = []

        logger.info(f"Passing output from {completed.name} to {next_agent.name}")
        for pattern in patterns:
            path = self.resolve_output_pattern(completed, pattern)
            if not path.is_file():
                logger.warning(f"Output file not found at {path}")
                degradations.append(
                    make_degradation_event(
                        stage=completed.name,
                        reason_code=MAPPED_OUTPUT_MISSING,
                        message=f"Declared output '{pattern}' not found at {path}",
                        recommended_action=f"Check that {completed.name} wrote its output before {next_agent.name} runs.",
                        details={"pattern": pattern, "path": str(path), "next_agent": next_agent.name},
                    )
                )
                continue
            s = str(path)
            if s not in args:
                args.append(s)
                logger.debug(f"Added file to next agent: {s}")
            forwarded.append(s)

        return MappingOutcome(arguments=tuple(args), forwarded=tuple(forwarded), degradations=tuple(degradations))

    # ------------------------------------------------------------------
    # Post-step discovery
    # ------------------------------------------------------------------

    def discover_outputs(self, agent: AgentDescriptor) -> List[str]:
        """Files ``agent`` produced, per its category's conventions."""
        return self.discover_category(agent.kind, self.layout_for(agent), Path(agent.working_directory))

    def discover_category(self, kind: AgentCategory, layout: AgentDataLayout, working_directory: Path) -> List[str]:
        rule = DISCOVERY_TABLE[kind]
        if rule is None:
            return []

        if kind is AgentCategory.SUMMARIZATION:
            self.refresh_pointers(layout, working_directory)

        directories = [d for d in rule.directories(layout, working_directory) if d.is_dir()]
        found: List[Path] = []

        for name in rule.fixed_names:
            hits = [d / name for d in directories if (d / name).is_file()]
            if hits:
                found.append(newest_first(hits)[0])

        for pattern in rule.patterns:
            matches: List[Path] = []
            for d in directories:
                matches.extend(p for p in d.glob(pattern) if p.is_file() and p.name not in rule.fixed_names)
            found.extend(newest_first(matches)[: self.max_matches_per_pattern])

        out: List[str] = []
        for p in found:
            s = str(p.resolve())
            if s not in out:
                out.append(s)
        return out
