"""
Workflow Executor
=================
Runs a workflow's agents strictly in order and decides what happens when a
step does not succeed.

States: NOT_STARTED -> RUNNING -> {RUNNING | AWAITING_CONTINUE_DECISION |
COMPLETED | ABORTED}.

Each run works on ``workflow.clone()``. Every step gets a fresh descriptor
with its argument snapshot, so the caller's workflow is never edited and
running it twice starts from the same arguments. The final snapshots are on
``report.workflow``.

A failed or still-running step goes to the failure-policy gate. Declining
ends the run ABORTED with no summary; accepting carries on, and output
mapping is still attempted. Unexpected exceptions are logged with their
traceback and also end the run ABORTED.
"""

from __future__ import annotations

import time
from typing import Optional, Protocol

from loguru import logger
from opentelemetry import trace

from agent_hub.agents.models import (
    AgentDescriptor,
    ExecutionResult,
    ExecutionStatus,
    RunState,
    Workflow,
)
from agent_hub.execution.operator import FailurePolicy, Operator, describe_outcome
from agent_hub.execution.resolver import ArtifactResolver
from agent_hub.pipeline.report import WorkflowRunReport
from agent_hub.pipeline.summary import RenderedSummary
from agent_hub.tracing import (
    init_tracing,
    record_step_result,
    safe_set_span_attributes,
    step_span,
    workflow_span,
)


class Launcher(Protocol):
    def launch(self, agent: AgentDescriptor) -> ExecutionResult:
        ...


class SummaryCollector(Protocol):
    def summarize(self, report: WorkflowRunReport) -> RenderedSummary:
        ...


class WorkflowExecutor:
    """
    Sequential workflow runner with an operator-facing failure gate.

    Usage:
        executor = WorkflowExecutor(launcher, resolver, collector, ConsoleOperator())
        report = executor.run(workflow)
    """

    def __init__(
        self,
        launcher: Launcher,
        resolver: ArtifactResolver,
        collector: Optional[SummaryCollector],
        operator: Operator,
        *,
        failure_policy: FailurePolicy = FailurePolicy.PROMPT,
        tracer: Optional[trace.Tracer] = None,
    ):
        self.launcher = launcher
        self.resolver = resolver
        self.collector = collector
        self.operator = operator
        self.failure_policy = failure_policy

        self.tracer = tracer or init_tracing()

    def run(self, workflow: Workflow) -> WorkflowRunReport:
        """
        Execute every step of ``workflow``.

        Args:
            workflow: The workflow to run; it is not modified.

        Returns:
            WorkflowRunReport with per-step results, generated files and the
            final argument snapshots

        Raises:
            WorkflowDefinitionError: If the workflow is structurally invalid.
        """
        workflow.validate()
        run_workflow = workflow.clone()
        report = WorkflowRunReport(workflow_name=workflow.name, workflow=run_workflow)
        start_time = time.time()

        with workflow_span(self.tracer, run_workflow, report.run_id) as run_span:
            logger.info(f"Starting workflow '{workflow.name}' with {len(run_workflow.agents)} agents")

            try:
                self._run_steps(run_workflow, report)
            except Exception as e:
                logger.exception(f"Workflow '{workflow.name}' failed unexpectedly: {e}")
                report.errors.append(f"Unexpected error: {type(e).__name__}: {e}")
                report.state = RunState.ABORTED
                report.summary = None

            safe_set_span_attributes(
                run_span,
                {
                    "hub.state": report.state.value,
                    "hub.steps_run": len(report.steps),
                    "hub.degradations": len(report.degradations),
                    "hub.errors": report.errors,
                },
            )

        elapsed = time.time() - start_time
        logger.info(f"Workflow '{workflow.name}' finished {report.state.value} in {elapsed:.1f}s")
        return report

    def _run_steps(self, workflow: Workflow, report: WorkflowRunReport) -> None:
        report.state = RunState.RUNNING
        total = len(workflow.agents)

        for index in range(total):
            agent = self._prepare_step(workflow, index, report)
            logger.info(f"Step {index + 1}/{total}: Running {agent.name}...")

            with step_span(self.tracer, index, agent) as span:
                result = self.launcher.launch(agent)
                outputs = self.resolver.discover_outputs(agent)
                result = result.with_outputs(outputs)
                added = report.add_generated_files(agent.kind.label, outputs)
                report.record_step(result)
                report.mark_checkpoint(f"step_{index}:{agent.name}")
                record_step_result(span, result, len(added))

            if not result.success:
                report.state = RunState.AWAITING_CONTINUE_DECISION
                if result.status is ExecutionStatus.UNKNOWN:
                    logger.warning(f"Step {index + 1}/{total}: {agent.name} {describe_outcome(result)}")
                else:
                    logger.error(f"Step {index + 1}/{total}: {agent.name} {describe_outcome(result)}")

                if not self._should_continue(index, agent, result):
                    logger.warning(f"Workflow '{workflow.name}' aborted at step {index + 1}")
                    report.errors.append(f"Step {index + 1} ({agent.name}) {describe_outcome(result)}")
                    report.state = RunState.ABORTED
                    return

                logger.info(f"Continuing past step {index + 1} at the operator's request")
                report.state = RunState.RUNNING

            if index + 1 < total and agent.name in workflow.output_mappings:
                self._forward_outputs(workflow, index, report)

        report.state = RunState.COMPLETED
        logger.info(f"Workflow '{workflow.name}' completed")

        if workflow.full_summary and self.collector is not None:
            report.summary = self.collector.summarize(report)

    def _prepare_step(self, workflow: Workflow, index: int, report: WorkflowRunReport) -> AgentDescriptor:
        agent = workflow.agents[index]
        step = self.resolver.build_step_arguments(agent, index, workflow)
        report.degradations.extend(step.degradations)
        if step.arguments != agent.arguments:
            agent = agent.with_arguments(step.arguments)
            workflow.agents[index] = agent
        return agent

    def _forward_outputs(self, workflow: Workflow, index: int, report: WorkflowRunReport) -> None:
        completed = workflow.agents[index]
        next_agent = workflow.agents[index + 1]
        outcome = self.resolver.apply_output_mappings(
            completed,
            workflow.output_mappings[completed.name],
            next_agent,
        )
        report.degradations.extend(outcome.degradations)
        if outcome.arguments != next_agent.arguments:
            workflow.agents[index + 1] = next_agent.with_arguments(outcome.arguments)

    def _should_continue(self, index: int, agent: AgentDescriptor, result: ExecutionResult) -> bool:
        if self.failure_policy is FailurePolicy.CONTINUE:
            return True
        if self.failure_policy is FailurePolicy.ABORT:
            return False
        return bool(self.operator.confirm_continue(index, agent, result))
