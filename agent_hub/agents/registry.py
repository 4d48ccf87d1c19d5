"""
Agent Registry
==============
Catalog of launchable agents with their commands, working directories and
argument templates.

Loading order:
1. Structured configuration (``hub_config.json`` ``agents`` section)
2. Built-in fallback list of the five LinguaLearn agents

Nothing here is fatal: an unreadable config falls back to the built-in list,
and a missing working directory is only a warning (the launch will fail later
and surface as a normal step failure). The resolved list is written to a cache
file for inspection.
"""

import json
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional

from filelock import FileLock
from loguru import logger

from agent_hub.agents.models import AgentCategory, AgentDescriptor, UnknownAgentError
from agent_hub.config import FILE_LOCK, PATHS
from agent_hub.utils.schema_validation import validate_hub_config


OTHER_CATEGORY = "Other"

# Built-in agent definitions; working directories are relative to root/..
BUILTIN_AGENTS: List[Dict[str, Any]] = [
    {
        "name": "Vocabulary Bank & Flashcards Generator",
        "description": "Creates flashcards from educational content with definitions and examples",
        "folder": "AI-Agent-VocabularyBank",
        "keywords": ["vocabulary", "flashcards", "education", "learning", "terms"],
        "category": "Education",
        "kind": AgentCategory.VOCABULARY,
    },
    {
        "name": "AI Summarization Agent",
        "description": "Summarizes text content automatically",
        "folder": "AI-Summarization-agent",
        "keywords": ["summary", "summarize", "text", "condense"],
        "category": "Content",
        "kind": AgentCategory.SUMMARIZATION,
    },
    {
        "name": "Speech Translator",
        "description": "Translates spoken language in real-time",
        "folder": "AI-agent-SpeechTranslator",
        "keywords": ["speech", "translate", "language", "audio"],
        "category": "Language",
        "kind": AgentCategory.SPEECH_TRANSLATOR,
    },
    {
        "name": "Diagram Generator",
        "description": "Generates visual diagrams from text content",
        "folder": "AI-agent-DiagramGenerator",
        "keywords": ["diagram", "visual", "chart", "mindmap", "flowchart"],
        "category": "Visualization",
        "kind": AgentCategory.DIAGRAM,
    },
    {
        "name": "Classroom Board Capture",
        "description": "Captures, analyzes, and translates whiteboard content",
        "folder": "AI-Agent-BoardCapture",
        "keywords": ["whiteboard", "capture", "classroom", "ocr", "image"],
        "category": "Education",
        "kind": AgentCategory.BOARD_CAPTURE,
    },
]

DEFAULT_EXECUTABLE = "dotnet"
DEFAULT_ARGUMENTS = ("run", "--project", ".")


def builtin_agents(root_dir: Path) -> List[AgentDescriptor]:
    """Return the hardcoded agent list with working directories under root/.."""
    agents_dir = (root_dir / "..").resolve()
    return [
        AgentDescriptor(
            name=definition["name"],
            description=definition["description"],
            executable_path=DEFAULT_EXECUTABLE,
            working_directory=str(agents_dir / definition["folder"]),
            arguments=DEFAULT_ARGUMENTS,
            keywords=tuple(definition["keywords"]),
            category=definition["category"],
            kind=definition["kind"],
        )
        for definition in BUILTIN_AGENTS
    ]


def read_hub_config(config_path: Path) -> Optional[Dict[str, Any]]:
    """Read and validate the hub configuration file.

    Returns:
        The parsed config, or None when the file is absent or invalid.
    """
    if not config_path.exists() or not config_path.is_file():
        return None

    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read hub config {config_path}: {type(e).__name__}: {e}")
        return None

    try:
        validate_hub_config(payload)
    except ValueError as e:
        logger.warning(f"Ignoring invalid hub config {config_path}: {e}")
        return None

    return payload


class AgentRegistry:
    """
    Loads and indexes agent descriptors by name.

    Usage:
        registry = AgentRegistry()
        agents = registry.load()
        speech = registry.get("Speech Translator")
    """

    def __init__(
        self,
        *,
        root_dir: Optional[Path] = None,
        config_path: Optional[Path] = None,
        cache_path: Optional[Path] = None,
    ):
        """
        Args:
            root_dir: Solution root. Built-in agents live under root/..
            config_path: Structured config file with an ``agents`` list.
            cache_path: Where the resolved agent list is persisted. Pass a
                path to override the default; writes are skipped only on error.
        """
        self.root_dir = Path(root_dir if root_dir is not None else PATHS.ROOT_DIR).expanduser().resolve()
        self.config_path = Path(config_path) if config_path is not None else PATHS.CONFIG_PATH
        self.cache_path = Path(cache_path) if cache_path is not None else PATHS.AGENT_CACHE_PATH
        self.warnings: List[str] = []
        self.source: Optional[str] = None
        self._agents: "OrderedDict[str, AgentDescriptor]" = OrderedDict()
        self._loaded = False

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def load(self) -> List[AgentDescriptor]:
        """Load agents from configuration, falling back to the built-in list."""
        logger.info("Discovering available AI agents...")
        logger.info(f"Root directory: {self.root_dir}")

        self._agents.clear()
        self.warnings.clear()

        config = read_hub_config(self.config_path)
        configured = (config or {}).get("agents") or []

        if configured:
            for entry in configured:
                self.register(AgentDescriptor.from_dict(entry))
            self.source = "config"
            logger.info(f"Loaded {len(self._agents)} agents from configuration")
        else:
            for agent in builtin_agents(self.root_dir):
                self.register(self._verify_working_directory(agent))
            self.source = "builtin"
            logger.info(f"Created {len(self._agents)} default agents")
            self._write_cache()

        self._loaded = True
        return self.list_agents()

    def _verify_working_directory(self, agent: AgentDescriptor) -> AgentDescriptor:
        """Check the working directory, trying root/<agent name> once when missing."""
        if Path(agent.working_directory).is_dir():
            logger.info(f"Verified path for {agent.name}: {agent.working_directory}")
            return agent

        self._warn(f"Working directory not found for {agent.name}: {agent.working_directory}")

        alt_path = (self.root_dir / agent.name).resolve()
        if alt_path.is_dir():
            logger.info(f"Found alternative path for {agent.name}: {alt_path}")
            return agent.with_working_directory(str(alt_path))

        self._warn(f"Alternative path not found either: {alt_path}")
        return agent

    def _write_cache(self) -> Optional[Path]:
        """Persist the resolved list for debugging. Failures only warn."""
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            lock = FileLock(str(self.cache_path) + ".lock", timeout=FILE_LOCK.TIMEOUT)
            with lock:
                self.cache_path.write_text(
                    json.dumps([a.to_dict() for a in self._agents.values()], indent=2) + "\n",
                    encoding="utf-8",
                )
        except Exception as e:
            self._warn(f"Could not write agent cache {self.cache_path}: {type(e).__name__}: {e}")
            return None
        logger.debug(f"Agent list cached at {self.cache_path}")
        return self.cache_path

    def register(self, agent: AgentDescriptor) -> bool:
        """Add an agent. Duplicate names keep the first registration."""
        if not agent.name:
            self._warn("Skipping agent without a name")
            return False
        if agent.name in self._agents:
            self._warn(f"Duplicate agent name ignored: {agent.name}")
            return False
        self._agents[agent.name] = agent
        return True

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def list_agents(self) -> List[AgentDescriptor]:
        self._ensure_loaded()
        return list(self._agents.values())

    def get(self, name: str) -> AgentDescriptor:
        """Look up an agent by exact name.

        Raises:
            UnknownAgentError: When no agent has that name.
        """
        self._ensure_loaded()
        try:
            return self._agents[name]
        except KeyError:
            raise UnknownAgentError(name) from None

    def find(self, name: str) -> Optional[AgentDescriptor]:
        self._ensure_loaded()
        return self._agents.get(name)

    def find_by_kind(self, kind: AgentCategory) -> Optional[AgentDescriptor]:
        """First agent of a category, in registration order."""
        self._ensure_loaded()
        for agent in self._agents.values():
            if agent.kind is kind:
                return agent
        return None

    def group_by_category(self) -> "OrderedDict[str, List[AgentDescriptor]]":
        """Agents grouped by their listing category, "Other" last."""
        self._ensure_loaded()
        groups: Dict[str, List[AgentDescriptor]] = {}
        for agent in self._agents.values():
            key = agent.category or OTHER_CATEGORY
            groups.setdefault(key, []).append(agent)

        ordered = sorted(groups, key=lambda k: (k == OTHER_CATEGORY, k))
        return OrderedDict((k, groups[k]) for k in ordered)

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._agents)

    def __contains__(self, name: object) -> bool:
        self._ensure_loaded()
        return name in self._agents
