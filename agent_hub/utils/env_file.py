"""
Environment File Loading
========================
Lenient .env loading for the hub and the agents it launches.

Agents inherit the hub's environment, so keys defined in the hub's .env file
(API keys for the translation or summarization services, for example) reach
every launched agent without extra wiring.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def load_env_file_lenient(env_path: Optional[Path] = None) -> int:
    """Load KEY=VALUE lines from a .env file without raising or overriding.

    Args:
        env_path: File to read. Defaults to ``.env`` in the current directory.

    Returns:
        Number of keys newly set in ``os.environ``.
    """
    path = env_path if env_path is not None else Path.cwd() / ".env"
    if not path.exists():
        return 0

    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError):
        return 0

    loaded = 0
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if not key or not _KEY_RE.match(key):
            continue
        if key not in os.environ:
            os.environ[key] = value
            loaded += 1
    return loaded
