"""
Agent and Workflow Models
=========================
Core data types shared by the registry, the launcher, the resolver and the
workflow executor.

Descriptors are immutable: a workflow step never edits an agent's argument
list in place, it builds a new descriptor with ``with_arguments()``. This
keeps repeated runs of the same workflow from accumulating stale arguments.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class WorkflowDefinitionError(ValueError):
    """Raised when a workflow definition is structurally invalid."""


class UnknownAgentError(KeyError):
    """Raised when an agent or workflow name is not registered."""


class AgentCategory(Enum):
    """What kind of pipeline task an agent performs.

    Assigned once when the registry loads; the resolver dispatches on it.
    """
    SPEECH_TRANSLATOR = "speech_translator"
    VOCABULARY = "vocabulary"
    SUMMARIZATION = "summarization"
    DIAGRAM = "diagram"
    BOARD_CAPTURE = "board_capture"
    GENERIC = "generic"

    @property
    def label(self) -> str:
        """Display label, also the key used in a run's generated files."""
        return _CATEGORY_LABELS[self]

    @classmethod
    def infer(cls, name: str) -> "AgentCategory":
        """Best-effort category for an agent that did not declare one."""
        lowered = (name or "").lower()
        for needle, category in _NAME_HINTS:
            if needle in lowered:
                return category
        return cls.GENERIC

    @classmethod
    def parse(cls, value: Optional[str], *, name: str = "") -> "AgentCategory":
        if value:
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.infer(name)


_CATEGORY_LABELS: Dict[AgentCategory, str] = {
    AgentCategory.SPEECH_TRANSLATOR: "Speech Translator",
    AgentCategory.VOCABULARY: "Vocabulary Bank",
    AgentCategory.SUMMARIZATION: "Summarization",
    AgentCategory.DIAGRAM: "Diagram Generator",
    AgentCategory.BOARD_CAPTURE: "Board Capture",
    AgentCategory.GENERIC: "Other",
}

# Order matters: "board capture" before any shorter match
_NAME_HINTS: Tuple[Tuple[str, AgentCategory], ...] = (
    ("board capture", AgentCategory.BOARD_CAPTURE),
    ("whiteboard", AgentCategory.BOARD_CAPTURE),
    ("speech", AgentCategory.SPEECH_TRANSLATOR),
    ("vocabulary", AgentCategory.VOCABULARY),
    ("flashcard", AgentCategory.VOCABULARY),
    ("summar", AgentCategory.SUMMARIZATION),
    ("diagram", AgentCategory.DIAGRAM),
)


class WorkflowIntent(Enum):
    """What kind of source material a workflow processes."""
    AUDIO = "audio"
    WHITEBOARD = "whiteboard"
    NONE = "none"


class ExecutionStatus(Enum):
    """Outcome of one agent launch."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNKNOWN = "unknown"  # still running when the launcher stopped waiting


class RunState(Enum):
    """Workflow executor states."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    AWAITING_CONTINUE_DECISION = "awaiting_continue_decision"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class AgentDescriptor:
    """An external agent program and how to launch it."""
    name: str
    executable_path: str
    working_directory: str
    arguments: Tuple[str, ...] = ()
    environment_variables: Mapping[str, str] = field(default_factory=dict)
    description: str = ""
    category: str = ""                   # free-text group used for listing
    keywords: Tuple[str, ...] = ()
    kind: AgentCategory = AgentCategory.GENERIC

    def __post_init__(self) -> None:
        # Accept lists from callers; store tuples so snapshots stay immutable
        object.__setattr__(self, "arguments", tuple(str(a) for a in self.arguments))
        object.__setattr__(self, "keywords", tuple(str(k) for k in self.keywords))
        object.__setattr__(self, "environment_variables", dict(self.environment_variables or {}))

    def with_arguments(self, arguments: Sequence[str]) -> "AgentDescriptor":
        return replace(self, arguments=tuple(arguments))

    def with_working_directory(self, working_directory: str) -> "AgentDescriptor":
        return replace(self, working_directory=str(working_directory))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "category_kind": self.kind.value,
            "keywords": list(self.keywords),
            "executable_path": self.executable_path,
            "working_directory": self.working_directory,
            "arguments": list(self.arguments),
            "environment_variables": dict(self.environment_variables),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AgentDescriptor":
        name = str(data.get("name", "")).strip()
        return cls(
            name=name,
            description=str(data.get("description", "")),
            category=str(data.get("category", "")),
            keywords=tuple(data.get("keywords") or ()),
            executable_path=str(data.get("executable_path", "")),
            working_directory=str(data.get("working_directory", "")),
            arguments=tuple(data.get("arguments") or ()),
            environment_variables=dict(data.get("environment_variables") or {}),
            kind=AgentCategory.parse(data.get("category_kind"), name=name),
        )


@dataclass
class Workflow:
    """An ordered pipeline of agents plus output propagation rules."""
    name: str
    agents: List[AgentDescriptor]
    description: str = ""
    keywords: Tuple[str, ...] = ()
    output_mappings: Dict[str, List[str]] = field(default_factory=dict)
    target_language: Optional[str] = None
    source_language: Optional[str] = None
    intent: Optional[WorkflowIntent] = None
    full_summary: bool = False

    def __post_init__(self) -> None:
        self.agents = list(self.agents)
        self.keywords = tuple(self.keywords)
        self.output_mappings = {str(k): list(v) for k, v in (self.output_mappings or {}).items()}
        if self.intent is None:
            self.intent = self._infer_intent()

    def _infer_intent(self) -> WorkflowIntent:
        kinds = {a.kind for a in self.agents}
        if AgentCategory.BOARD_CAPTURE in kinds:
            return WorkflowIntent.WHITEBOARD
        if AgentCategory.SPEECH_TRANSLATOR in kinds:
            return WorkflowIntent.AUDIO
        return WorkflowIntent.NONE

    @property
    def agent_names(self) -> List[str]:
        return [a.name for a in self.agents]

    def validate(self) -> None:
        """Check structural invariants.

        Raises:
            WorkflowDefinitionError: No agents, or an output mapping keyed by
                an agent that is not in the workflow.
        """
        if not self.agents:
            raise WorkflowDefinitionError(f"Workflow '{self.name}' has no agents")

        names = set(self.agent_names)
        unknown = sorted(k for k in self.output_mappings if k not in names)
        if unknown:
            raise WorkflowDefinitionError(
                f"Workflow '{self.name}' maps outputs for unknown agents: {', '.join(unknown)}"
            )

    def clone(self) -> "Workflow":
        return Workflow(
            name=self.name,
            agents=list(self.agents),
            description=self.description,
            keywords=tuple(self.keywords),
            output_mappings={k: list(v) for k, v in self.output_mappings.items()},
            target_language=self.target_language,
            source_language=self.source_language,
            intent=self.intent,
            full_summary=self.full_summary,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "keywords": list(self.keywords),
            "agents": self.agent_names,
            "output_mappings": {k: list(v) for k, v in self.output_mappings.items()},
            "source_language": self.source_language,
            "target_language": self.target_language,
            "intent": self.intent.value if self.intent else WorkflowIntent.NONE.value,
            "full_summary": self.full_summary,
        }


@dataclass(frozen=True)
class ExecutionResult:
    """Result of launching one agent."""
    agent_name: str
    status: ExecutionStatus
    exit_code: Optional[int] = None
    discovered_outputs: Tuple[str, ...] = ()
    error: Optional[str] = None
    command_line: str = ""
    started_at: str = field(default_factory=_utc_now_iso)
    finished_at: str = field(default_factory=_utc_now_iso)

    @property
    def success(self) -> bool:
        return self.status is ExecutionStatus.SUCCEEDED

    def with_outputs(self, outputs: Sequence[str]) -> "ExecutionResult":
        return replace(self, discovered_outputs=tuple(outputs))

    @classmethod
    def from_exit_code(cls, agent_name: str, exit_code: int, **kwargs: Any) -> "ExecutionResult":
        status = ExecutionStatus.SUCCEEDED if exit_code == 0 else ExecutionStatus.FAILED
        return cls(agent_name=agent_name, status=status, exit_code=exit_code, **kwargs)

    @classmethod
    def failure(cls, agent_name: str, error: str, **kwargs: Any) -> "ExecutionResult":
        return cls(agent_name=agent_name, status=ExecutionStatus.FAILED, error=error, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_name": self.agent_name,
            "status": self.status.value,
            "success": self.success,
            "exit_code": self.exit_code,
            "discovered_outputs": list(self.discovered_outputs),
            "error": self.error,
            "command_line": self.command_line,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }
