"""Workflow run report.

This module defines the state object a workflow run accumulates: per-step
results, the files each agent category produced, recorded degradations and
checkpoints. It serializes to stable primitives so a finished run can be
written next to the agent outputs for debugging.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional
from uuid import uuid4

from agent_hub.agents.models import ExecutionResult, RunState, Workflow
from agent_hub.pipeline.degradation import summarize_degradations
from agent_hub.utils.schema_validation import validate_run_report

if TYPE_CHECKING:
    from agent_hub.pipeline.summary import RenderedSummary


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class WorkflowRunReport:
    """Everything one workflow run produced."""

    workflow_name: str
    run_id: str = field(default_factory=lambda: uuid4().hex)
    created_at: str = field(default_factory=_utc_now_iso)

    state: RunState = RunState.NOT_STARTED
    steps: List[ExecutionResult] = field(default_factory=list)
    generated_files: Dict[str, List[str]] = field(default_factory=dict)
    degradations: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    checkpoints: Dict[str, str] = field(default_factory=dict)

    # Run-owned copy of the workflow with the final argument snapshots
    workflow: Optional[Workflow] = None
    summary: Optional["RenderedSummary"] = None

    @property
    def success(self) -> bool:
        return self.state is RunState.COMPLETED

    @property
    def aborted(self) -> bool:
        return self.state is RunState.ABORTED

    def mark_checkpoint(self, name: str) -> None:
        if not name.strip():
            return
        self.checkpoints[name] = _utc_now_iso()

    def add_generated_files(self, key: str, paths: Iterable[str]) -> List[str]:
        """Merge paths under ``key``, keeping first-seen order without duplicates.

        Returns:
            The paths that were actually new.
        """
        existing = self.generated_files.setdefault(key, [])
        added: List[str] = []
        for p in paths:
            s = str(p)
            if s and s not in existing:
                existing.append(s)
                added.append(s)
        if not existing:
            del self.generated_files[key]
        return added

    def record_step(self, result: ExecutionResult) -> None:
        self.steps.append(result)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "schema_version": "1.0",
            "run_id": self.run_id,
            "created_at": self.created_at,
            "workflow_name": self.workflow_name,
            "state": self.state.value,
            "success": self.success,
            "steps": [s.to_dict() for s in self.steps],
            "generated_files": {k: list(v) for k, v in self.generated_files.items()},
            "degradations": list(self.degradations),
            "degradation_counts": summarize_degradations(self.degradations),
            "errors": list(self.errors),
            "checkpoints": dict(self.checkpoints),
            "workflow": self.workflow.to_dict() if self.workflow is not None else None,
            "summary": self.summary.to_dict() if self.summary is not None else None,
        }

    def write_json(self, path: Path) -> Path:
        payload = self.to_payload()
        validate_run_report(payload)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return path

    @classmethod
    def read_json(cls, path: Path) -> Optional[Dict[str, Any]]:
        """Load a previously written report payload, or None when unreadable."""
        if not path.exists() or not path.is_file():
            return None

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return None

        if not isinstance(payload, dict):
            return None
        return payload
