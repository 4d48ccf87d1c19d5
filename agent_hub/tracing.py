"""
Workflow Tracing
================
OpenTelemetry spans for workflow runs and their steps.

``workflow_span`` opens one span per run named after the workflow, and
``step_span`` one per step named after its position and agent. Spans are
exported over OTLP/HTTP when ``ENABLE_TRACING=true``; otherwise the global
no-op tracer is used and nothing leaves the process.
"""

from __future__ import annotations

import atexit
import json
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, Mapping, Optional

from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from agent_hub.config import TRACING

if TYPE_CHECKING:
    from agent_hub.agents.models import AgentDescriptor, ExecutionResult, Workflow

MAX_ATTRIBUTE_CHARS = 2048
MAX_SEQUENCE_ITEMS = 25

_tracer: Optional[trace.Tracer] = None


def init_tracing() -> trace.Tracer:
    """
    Install the OTLP exporter on first use when tracing is enabled.

    Returns:
        The hub tracer (a no-op tracer when tracing is disabled)
    """
    global _tracer
    if _tracer is None:
        if TRACING.ENABLED:
            provider = TracerProvider(resource=Resource.create({SERVICE_NAME: TRACING.SERVICE_NAME}))
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=TRACING.OTLP_ENDPOINT)))
            trace.set_tracer_provider(provider)
            # Flush pending workflow spans on interpreter exit
            atexit.register(provider.shutdown)
            logger.info(f"Exporting workflow spans to {TRACING.OTLP_ENDPOINT}")
        _tracer = trace.get_tracer(TRACING.SERVICE_NAME)
    return _tracer


def get_tracer(name: str = TRACING.SERVICE_NAME) -> trace.Tracer:
    return trace.get_tracer(name)


def _attribute_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return value[:MAX_ATTRIBUTE_CHARS]
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (list, tuple)):
        return [str(x)[:256] for x in list(value)[:MAX_SEQUENCE_ITEMS]]
    if isinstance(value, dict):
        try:
            return json.dumps(value, sort_keys=True)[:MAX_ATTRIBUTE_CHARS]
        except (TypeError, ValueError):
            pass
    return str(value)[:MAX_ATTRIBUTE_CHARS]


def safe_set_span_attributes(span: Any, attributes: Mapping[str, Any]) -> None:
    """Best-effort attribute setter.

    None values and empty keys are skipped; sequences become lists of
    strings and dicts become sorted JSON. A span without ``set_attribute``
    is ignored.
    """
    setter = getattr(span, "set_attribute", None)
    if not callable(setter):
        return

    for key, value in attributes.items():
        if not isinstance(key, str) or not key:
            continue
        converted = _attribute_value(value)
        if converted is None:
            continue
        try:
            setter(key, converted)
        except Exception as e:
            logger.debug(f"Dropped span attribute {key}: {type(e).__name__}")


@contextmanager
def workflow_span(tracer: trace.Tracer, workflow: "Workflow", run_id: str) -> Iterator[Any]:
    """Span covering one whole workflow run."""
    with tracer.start_as_current_span(f"workflow {workflow.name}") as span:
        safe_set_span_attributes(
            span,
            {
                "hub.workflow": workflow.name,
                "hub.run_id": run_id,
                "hub.agents": workflow.agent_names,
                "hub.intent": workflow.intent.value if workflow.intent else "none",
                "hub.full_summary": workflow.full_summary,
            },
        )
        yield span


@contextmanager
def step_span(tracer: trace.Tracer, index: int, agent: "AgentDescriptor") -> Iterator[Any]:
    """Span covering one agent launch and the discovery of its outputs."""
    with tracer.start_as_current_span(f"step {index + 1}: {agent.name}") as span:
        safe_set_span_attributes(
            span,
            {
                "hub.step": index,
                "hub.agent": agent.name,
                "hub.category": agent.kind.value,
                "hub.arguments": list(agent.arguments),
            },
        )
        yield span


def record_step_result(span: Any, result: "ExecutionResult", outputs_added: int) -> None:
    safe_set_span_attributes(
        span,
        {
            "hub.status": result.status.value,
            "hub.exit_code": result.exit_code,
            "hub.outputs_added": outputs_added,
        },
    )
