"""
Centralized Configuration
=========================
Centralized configuration values and constants for the Agent Hub orchestrator.

This module provides:
- Filesystem locations (hub root, config file, agent cache, AgentData tree)
- Launch behavior (acknowledgement vs. exit wait, grace period)
- Artifact discovery limits
- Tracing configuration

Values are read from the environment once at import time. Call
``load_env_file_lenient()`` before importing when a .env file should apply.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from agent_hub.utils.env_file import load_env_file_lenient

load_env_file_lenient()


def _optional_path(value: Optional[str]) -> Optional[Path]:
    if value is None or not value.strip():
        return None
    return Path(value).expanduser()


_ROOT_DIR = Path(os.getenv("HUB_ROOT_DIR", os.getcwd())).expanduser()


@dataclass(frozen=True)
class HubPathsConfig:
    """Filesystem locations used by the registry and resolver."""

    # Solution root; built-in agents live next to it (root/../AI-Agent-*)
    ROOT_DIR: Path = _ROOT_DIR

    # Optional structured agent/workflow configuration
    CONFIG_PATH: Path = Path(os.getenv("HUB_CONFIG_PATH", str(_ROOT_DIR / "hub_config.json"))).expanduser()

    # Resolved agent list, written for inspection/debugging
    AGENT_CACHE_PATH: Path = Path(
        os.getenv("HUB_AGENT_CACHE", str(_ROOT_DIR / ".agent_hub" / "agents.json"))
    ).expanduser()

    # Overrides <working_directory>/../AgentData when set
    AGENT_DATA_DIR: Optional[Path] = _optional_path(os.getenv("HUB_AGENT_DATA_DIR"))


@dataclass(frozen=True)
class LaunchConfig:
    """Process launch configuration."""

    # "acknowledge" waits for the operator, "exit" blocks on process exit
    WAIT_MODE: str = os.getenv("HUB_WAIT_MODE", "acknowledge").strip().lower()

    # Final poll after the second acknowledgement, in seconds
    EXIT_GRACE_SECONDS: float = float(os.getenv("HUB_EXIT_GRACE_SECONDS", "2"))

    # Legacy behavior: treat a still-running process as a success
    ASSUME_SUCCESS_WHEN_RUNNING: bool = os.getenv("HUB_ASSUME_SUCCESS_WHEN_RUNNING", "false").lower() == "true"


@dataclass(frozen=True)
class DiscoveryConfig:
    """Artifact discovery limits."""

    MAX_MATCHES_PER_PATTERN: int = int(os.getenv("HUB_MAX_MATCHES_PER_PATTERN", "3"))


@dataclass(frozen=True)
class FileLockConfig:
    """File lock acquisition timeout in seconds."""

    TIMEOUT: int = int(os.getenv("HUB_FILE_LOCK_TIMEOUT", "30"))


@dataclass(frozen=True)
class TracingConfig:
    """Tracing configuration."""

    SERVICE_NAME: str = "agent-hub"
    OTLP_ENDPOINT: str = os.getenv("OTLP_ENDPOINT", "http://localhost:4318/v1/traces")
    ENABLED: bool = os.getenv("ENABLE_TRACING", "false").lower() == "true"


# Global singleton instances
PATHS = HubPathsConfig()
LAUNCH = LaunchConfig()
DISCOVERY = DiscoveryConfig()
FILE_LOCK = FileLockConfig()
TRACING = TracingConfig()
