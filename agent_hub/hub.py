"""
Agent Hub
=========
Facade over the registry, the workflow catalog and the executor.

``AgentHub.from_config()`` wires every collaborator explicitly; tests and
embedding code can instead construct the pieces themselves and pass them in.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union

from loguru import logger
from rich.console import Console

from agent_hub.agents.models import AgentCategory, AgentDescriptor, ExecutionResult, Workflow
from agent_hub.agents.registry import AgentRegistry
from agent_hub.agents.workflows import WorkflowCatalog
from agent_hub.config import PATHS
from agent_hub.execution.executor import WorkflowExecutor
from agent_hub.execution.hooks import SummaryDisplayHook
from agent_hub.execution.launcher import ProcessLauncher, WaitMode
from agent_hub.execution.operator import ConsoleOperator, FailurePolicy, Operator, UnattendedOperator
from agent_hub.execution.resolver import ArtifactResolver
from agent_hub.pipeline.report import WorkflowRunReport
from agent_hub.pipeline.summary import OutputSummaryCollector
from agent_hub.utils.layout import ensure_agent_data_layout


class AgentHub:
    """
    Entry point for listing and running agents and workflows.

    Usage:
        hub = AgentHub.from_config()
        report = hub.run_workflow("Complete Lecture Pack")
    """

    def __init__(
        self,
        registry: AgentRegistry,
        catalog: WorkflowCatalog,
        executor: WorkflowExecutor,
    ):
        self.registry = registry
        self.catalog = catalog
        self.executor = executor

    @classmethod
    def from_config(
        cls,
        *,
        root_dir: Optional[Path] = None,
        config_path: Optional[Path] = None,
        cache_path: Optional[Path] = None,
        agent_data_dir: Optional[Path] = None,
        operator: Optional[Operator] = None,
        failure_policy: FailurePolicy = FailurePolicy.PROMPT,
        wait_mode: Optional[WaitMode] = None,
        console: Optional[Console] = None,
    ) -> "AgentHub":
        """
        Build a hub from configuration and environment defaults.

        Args:
            root_dir: Solution root; defaults to ``HUB_ROOT_DIR`` or the cwd.
            config_path: Structured agent/workflow config file.
            cache_path: Where the resolved agent list is written.
            agent_data_dir: Fixed AgentData root for every agent; defaults to
                ``HUB_AGENT_DATA_DIR``. Its folders are created when set.
            operator: Acknowledgement and continue decisions; console by default,
                unattended when ``failure_policy`` is not PROMPT.
            failure_policy: What to do when a step does not succeed.
            wait_mode: Override ``HUB_WAIT_MODE``.
            console: rich console for operator output.
        """
        console = console or Console()
        if operator is None:
            if failure_policy is FailurePolicy.PROMPT:
                operator = ConsoleOperator(console)
            else:
                operator = UnattendedOperator(failure_policy)

        registry = AgentRegistry(root_dir=root_dir, config_path=config_path, cache_path=cache_path)
        registry.load()
        catalog = WorkflowCatalog.from_registry(registry)

        data_dir = agent_data_dir if agent_data_dir is not None else PATHS.AGENT_DATA_DIR
        if data_dir is not None:
            layout = ensure_agent_data_layout(data_dir)
            logger.debug(f"Shared AgentData tree at {layout.root}")
        resolver = ArtifactResolver(agent_data_dir=data_dir)
        launcher = ProcessLauncher(
            operator,
            wait_mode=wait_mode,
            post_launch_hooks={AgentCategory.SUMMARIZATION: SummaryDisplayHook(resolver, console)},
        )
        collector = OutputSummaryCollector(resolver)
        executor = WorkflowExecutor(launcher, resolver, collector, operator, failure_policy=failure_policy)

        logger.info(f"Agent hub ready: {len(registry)} agents, {len(catalog)} workflows ({registry.source})")
        return cls(registry, catalog, executor)

    def list_agents(self) -> List[AgentDescriptor]:
        return self.registry.list_agents()

    def list_workflows(self) -> List[Workflow]:
        return self.catalog.list_workflows()

    def run_workflow(self, workflow: Union[Workflow, str]) -> WorkflowRunReport:
        """Run a workflow object, or a catalog workflow by name.

        Raises:
            UnknownAgentError: If ``workflow`` names no catalog workflow.
            WorkflowDefinitionError: If the workflow is structurally invalid.
        """
        if isinstance(workflow, str):
            workflow = self.catalog.get(workflow)
        return self.executor.run(workflow)

    def run_agent(self, agent: Union[AgentDescriptor, str]) -> ExecutionResult:
        """Launch a single agent outside any workflow.

        Raises:
            UnknownAgentError: If ``agent`` names no registered agent.
        """
        if isinstance(agent, str):
            agent = self.registry.get(agent)
        result = self.executor.launcher.launch(agent)
        return result.with_outputs(self.executor.resolver.discover_outputs(agent))
