"""
Latest Pointers
===============
Fixed-name files that always hold a copy of the newest artifact of one kind.

Agents write timestamped outputs (``summary_2025-01-01_10-00-00.json``) while
downstream steps and the operator want a stable name (``summary_JSON.json``).
The pointer is a plain copy rather than a symlink, so it works the same on
every platform; the cost is that it can go stale, which ``is_stale()`` makes
explicit and ``refresh()`` repairs.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from loguru import logger


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return float("-inf")


def newest_first(paths: Iterable[Path]) -> List[Path]:
    """Sort files newest first; ties break on name, descending, for stability."""
    return sorted(paths, key=lambda p: (_mtime(p), p.name), reverse=True)


def newest_match(directory: Path, pattern: str, *, exclude: Iterable[str] = ()) -> Optional[Path]:
    """Most recent file in ``directory`` matching ``pattern``."""
    if not directory.is_dir():
        return None
    skip = set(exclude)
    candidates = [p for p in directory.glob(pattern) if p.is_file() and p.name not in skip]
    if not candidates:
        return None
    return newest_first(candidates)[0]


@dataclass(frozen=True)
class LatestPointer:
    """A fixed-name copy of the newest ``pattern`` match across ``directories``."""

    pointer_path: Path
    directories: Tuple[Path, ...]
    pattern: str

    def newest(self) -> Optional[Path]:
        candidates: List[Path] = []
        for directory in self.directories:
            match = newest_match(directory, self.pattern, exclude=[self.pointer_path.name])
            if match is not None:
                candidates.append(match)
        if not candidates:
            return None
        return newest_first(candidates)[0]

    def is_stale(self) -> bool:
        """True when a newer candidate exists than the pointer's copy."""
        newest = self.newest()
        if newest is None:
            return False
        if not self.pointer_path.exists():
            return True
        return _mtime(newest) > _mtime(self.pointer_path)

    def refresh(self) -> Optional[Path]:
        """Copy the newest candidate over the pointer when it is stale.

        Returns:
            The pointer path when it exists after the call, else None.
        """
        if self.is_stale():
            source = self.newest()
            assert source is not None
            self.pointer_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, self.pointer_path)
            logger.debug(f"Latest pointer {self.pointer_path.name} -> {source.name}")
        return self.pointer_path if self.pointer_path.exists() else None

    def clear(self) -> bool:
        """Remove the pointer copy. Candidates are left untouched."""
        try:
            self.pointer_path.unlink()
        except FileNotFoundError:
            return False
        return True
