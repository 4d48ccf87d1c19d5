"""
Utility Functions
=================
Common utilities for environment handling, schema validation and the
AgentData filesystem layout.
"""

from .env_file import load_env_file_lenient

from .layout import (
    AgentDataLayout,
    agent_data_layout,
    ensure_agent_data_layout,
    layout_for_working_directory,
)

from .schema_validation import (
    validate_against_schema,
    validate_hub_config,
    validate_degradation_event,
    validate_run_report,
    is_valid_hub_config,
)

from .subprocess_env import build_agent_env

__all__ = [
    "load_env_file_lenient",
    "AgentDataLayout",
    "agent_data_layout",
    "ensure_agent_data_layout",
    "layout_for_working_directory",
    "validate_against_schema",
    "validate_hub_config",
    "validate_degradation_event",
    "validate_run_report",
    "is_valid_hub_config",
    "build_agent_env",
]
