"""
Agents
======
Agent descriptors, the agent registry and the workflow catalog.
"""

from .models import (
    AgentCategory,
    AgentDescriptor,
    ExecutionResult,
    ExecutionStatus,
    RunState,
    UnknownAgentError,
    Workflow,
    WorkflowDefinitionError,
    WorkflowIntent,
)
from .registry import AgentRegistry, builtin_agents, read_hub_config
from .workflows import WorkflowCatalog, workflow_from_config

__all__ = [
    "AgentCategory",
    "AgentDescriptor",
    "ExecutionResult",
    "ExecutionStatus",
    "RunState",
    "UnknownAgentError",
    "Workflow",
    "WorkflowDefinitionError",
    "WorkflowIntent",
    "AgentRegistry",
    "builtin_agents",
    "read_hub_config",
    "WorkflowCatalog",
    "workflow_from_config",
]
