"""
Workflow Catalog
================
Named multi-agent workflows built on top of the agent registry.

Workflows come from the ``workflows`` section of the hub config when present,
otherwise from the built-in catalog below. Agents are referenced by name (or,
for the built-ins, by category) and copied into the workflow by value.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from agent_hub.agents.models import (
    AgentCategory,
    AgentDescriptor,
    UnknownAgentError,
    Workflow,
    WorkflowDefinitionError,
    WorkflowIntent,
)
from agent_hub.agents.registry import AgentRegistry, read_hub_config
from agent_hub.utils.layout import AGENT_DATA_DIRNAME, TRANSLATED_TRANSCRIPT

# Relative to the speech agent's working directory
_TRANSCRIPT_MAPPING = f"../{AGENT_DATA_DIRNAME}/Recording/{TRANSLATED_TRANSCRIPT}"

_SPEECH = AgentCategory.SPEECH_TRANSLATOR
_BOARD = AgentCategory.BOARD_CAPTURE
_VOCAB = AgentCategory.VOCABULARY
_SUMMARY = AgentCategory.SUMMARIZATION
_DIAGRAM = AgentCategory.DIAGRAM

BUILTIN_WORKFLOWS: List[Dict[str, Any]] = [
    {
        "name": "Lecture Vocabulary",
        "description": "Transcribe and translate a lecture, then build flashcards from the translation",
        "keywords": ["lecture", "audio", "vocabulary", "flashcards"],
        "steps": [_SPEECH, _VOCAB],
        "map_transcript": True,
    },
    {
        "name": "Lecture Summary",
        "description": "Transcribe and translate a lecture, then summarize it",
        "keywords": ["lecture", "audio", "summary"],
        "steps": [_SPEECH, _SUMMARY],
        "map_transcript": True,
    },
    {
        "name": "Lecture Diagram",
        "description": "Transcribe and translate a lecture, then draw a concept diagram",
        "keywords": ["lecture", "audio", "diagram", "mindmap"],
        "steps": [_SPEECH, _DIAGRAM],
        "map_transcript": True,
    },
    {
        "name": "Whiteboard Vocabulary",
        "description": "Capture the classroom board, then build flashcards from its translated text",
        "keywords": ["whiteboard", "capture", "vocabulary"],
        "steps": [_BOARD, _VOCAB],
    },
    {
        "name": "Complete Lecture Pack",
        "description": "Transcript, flashcards, summary and diagram for one lecture",
        "keywords": ["lecture", "audio", "complete", "all"],
        "steps": [_SPEECH, _VOCAB, _SUMMARY, _DIAGRAM],
        "map_transcript": True,
        "full_summary": True,
    },
    {
        "name": "Whiteboard Study Pack",
        "description": "Flashcards, summary and diagram from captured whiteboard content",
        "keywords": ["whiteboard", "capture", "complete", "all"],
        "steps": [_BOARD, _VOCAB, _SUMMARY, _DIAGRAM],
        "full_summary": True,
    },
]


def _builtin_workflow(definition: Mapping[str, Any], registry: AgentRegistry) -> Optional[Workflow]:
    agents: List[AgentDescriptor] = []
    for kind in definition["steps"]:
        agent = registry.find_by_kind(kind)
        if agent is None:
            logger.warning(f"Skipping workflow '{definition['name']}': no {kind.label} agent registered")
            return None
        agents.append(agent)

    mappings: Dict[str, List[str]] = {}
    if definition.get("map_transcript"):
        mappings[agents[0].name] = [_TRANSCRIPT_MAPPING]

    return Workflow(
        name=definition["name"],
        description=definition["description"],
        keywords=tuple(definition["keywords"]),
        agents=agents,
        output_mappings=mappings,
        full_summary=bool(definition.get("full_summary", False)),
    )


def workflow_from_config(entry: Mapping[str, Any], registry: AgentRegistry) -> Workflow:
    """Build a workflow from a config entry that references agents by name.

    Raises:
        UnknownAgentError: When a referenced agent is not registered.
        WorkflowDefinitionError: When the result violates workflow invariants.
    """
    agents = [registry.get(name) for name in entry.get("agents") or []]
    intent_value = entry.get("intent")
    workflow = Workflow(
        name=str(entry["name"]),
        description=str(entry.get("description", "")),
        keywords=tuple(entry.get("keywords") or ()),
        agents=agents,
        output_mappings=dict(entry.get("output_mappings") or {}),
        source_language=entry.get("source_language"),
        target_language=entry.get("target_language"),
        intent=WorkflowIntent(intent_value) if intent_value else None,
        full_summary=bool(entry.get("full_summary", False)),
    )
    workflow.validate()
    return workflow


class WorkflowCatalog:
    """Indexes workflows by name."""

    def __init__(self, workflows: Sequence[Workflow] = ()):
        self._workflows: "OrderedDict[str, Workflow]" = OrderedDict()
        for wf in workflows:
            self.add(wf)

    @classmethod
    def from_registry(cls, registry: AgentRegistry, *, config: Optional[Mapping[str, Any]] = None) -> "WorkflowCatalog":
        """Build the catalog from config workflows, or the built-ins when none are configured."""
        if config is None:
            config = read_hub_config(registry.config_path) or {}

        catalog = cls()
        configured = config.get("workflows") or []
        if configured:
            for entry in configured:
                try:
                    catalog.add(workflow_from_config(entry, registry))
                except (UnknownAgentError, WorkflowDefinitionError) as e:
                    logger.warning(f"Skipping workflow '{entry.get('name')}': {type(e).__name__}: {e}")
            logger.info(f"Loaded {len(catalog)} workflows from configuration")
            return catalog

        for definition in BUILTIN_WORKFLOWS:
            wf = _builtin_workflow(definition, registry)
            if wf is not None:
                catalog.add(wf)
        logger.info(f"Created {len(catalog)} default workflows")
        return catalog

    def add(self, workflow: Workflow) -> None:
        workflow.validate()
        if workflow.name in self._workflows:
            logger.warning(f"Duplicate workflow name ignored: {workflow.name}")
            return
        self._workflows[workflow.name] = workflow

    def list_workflows(self) -> List[Workflow]:
        return list(self._workflows.values())

    def get(self, name: str) -> Workflow:
        try:
            return self._workflows[name]
        except KeyError:
            raise UnknownAgentError(name) from None

    def find(self, keyword: str) -> List[Workflow]:
        """Workflows whose name, description or keywords contain ``keyword``."""
        needle = (keyword or "").strip().lower()
        if not needle:
            return self.list_workflows()
        out: List[Workflow] = []
        for wf in self._workflows.values():
            haystack = [wf.name.lower(), wf.description.lower()] + [k.lower() for k in wf.keywords]
            if any(needle in h for h in haystack):
                out.append(wf)
        return out

    def __len__(self) -> int:
        return len(self._workflows)
