"""
Subprocess Environment Utilities
================================
Helpers for building environment dictionaries for launched agents.
"""

from __future__ import annotations

import os
from typing import Dict, Mapping, Optional


def build_agent_env(
    overrides: Optional[Mapping[str, str]] = None,
    *,
    base: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Return the environment for an agent process.

    Agents need the full parent environment (API keys, dotnet paths), so
    nothing is filtered out. Per-agent overrides win over inherited values.

    Args:
        overrides: Agent-specific variables.
        base: Environment to inherit. Defaults to ``os.environ``.

    Returns:
        Dict[str, str] to pass as subprocess env.
    """
    env: Dict[str, str] = dict(os.environ if base is None else base)

    if overrides:
        for key, value in overrides.items():
            if not isinstance(key, str) or not key:
                continue
            env[key] = "" if value is None else str(value)

    return env
