"""Graceful degradation protocol.

This module standardizes how workflow steps report degraded operation when an
expected artifact is missing or an input could not be prepared. Degradations
never stop a run; they are collected on the run report so the operator can see
what a downstream agent was missing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from agent_hub.utils.schema_validation import validate_degradation_event

INJECTION_SOURCE_MISSING = "injection_source_missing"
MAPPED_OUTPUT_MISSING = "mapped_output_missing"
CAPTURE_MARKER_MISSING = "capture_marker_missing"


def _utc_now_iso_z() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class DegradationEvent:
    stage: str
    reason_code: str
    message: str
    created_at: str
    recommended_action: Optional[str] = None
    severity: str = "warning"
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "schema_version": "1.0",
            "created_at": self.created_at,
            "stage": self.stage,
            "reason_code": self.reason_code,
            "message": self.message,
            "recommended_action": self.recommended_action,
            "severity": self.severity,
            "details": self.details,
        }
        validate_degradation_event(payload)
        return payload


def make_degradation_event(
    *,
    stage: str,
    reason_code: str,
    message: str,
    recommended_action: Optional[str] = None,
    severity: str = "warning",
    details: Optional[Dict[str, Any]] = None,
    created_at: Optional[str] = None,
) -> Dict[str, Any]:
    evt = DegradationEvent(
        stage=str(stage).strip(),
        reason_code=str(reason_code).strip(),
        message=str(message).strip(),
        created_at=created_at or _utc_now_iso_z(),
        recommended_action=recommended_action,
        severity=severity,
        details=details,
    )
    return evt.to_dict()


def summarize_degradations(events: List[Dict[str, Any]]) -> Dict[str, Any]:
    by_stage: Dict[str, int] = {}
    by_reason: Dict[str, int] = {}

    for evt in events:
        if not isinstance(evt, dict):
            continue
        stage = str(evt.get("stage") or "").strip() or "unknown"
        reason = str(evt.get("reason_code") or "").strip() or "unknown"
        by_stage[stage] = by_stage.get(stage, 0) + 1
        by_reason[reason] = by_reason.get(reason, 0) + 1

    return {
        "total": len(events),
        "by_stage": dict(sorted(by_stage.items())),
        "by_reason_code": dict(sorted(by_reason.items())),
    }
