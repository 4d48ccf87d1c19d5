from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from agent_hub.agents.models import (
    AgentCategory,
    AgentDescriptor,
    ExecutionResult,
    ExecutionStatus,
)
from agent_hub.execution.resolver import ArtifactResolver


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StubLauncher:
    """Records launches instead of starting processes.

    ``statuses`` maps agent names to the status to report (SUCCEEDED by
    default). ``effects`` maps agent names to callables run during the
    launch, e.g. to write the files a real agent would produce.
    """

    def __init__(
        self,
        statuses: Optional[Dict[str, ExecutionStatus]] = None,
        effects: Optional[Dict[str, Callable[[AgentDescriptor], None]]] = None,
    ):
        self.statuses = dict(statuses or {})
        self.effects = dict(effects or {})
        self.calls: List[AgentDescriptor] = []
        self.results: List[ExecutionResult] = []

    @property
    def names(self) -> List[str]:
        return [a.name for a in self.calls]

    def launch(self, agent: AgentDescriptor) -> ExecutionResult:
        started_at = _now()
        self.calls.append(agent)
        effect = self.effects.get(agent.name)
        if effect is not None:
            effect(agent)
        status = self.statuses.get(agent.name, ExecutionStatus.SUCCEEDED)
        exit_code = {ExecutionStatus.SUCCEEDED: 0, ExecutionStatus.FAILED: 1}.get(status)
        result = ExecutionResult(
            agent_name=agent.name,
            status=status,
            exit_code=exit_code,
            command_line=" ".join([agent.executable_path, *agent.arguments]),
            started_at=started_at,
            finished_at=_now(),
        )
        self.results.append(result)
        return result


class StubOperator:
    def __init__(self, answer: bool = True):
        self.answer = answer
        self.acknowledged: List[tuple] = []
        self.decisions: List[tuple] = []

    def acknowledge(self, agent: AgentDescriptor, *, still_running: bool = False) -> None:
        self.acknowledged.append((agent.name, still_running))

    def confirm_continue(self, step_index: int, agent: AgentDescriptor, result: ExecutionResult) -> bool:
        self.decisions.append((step_index, agent.name, result.status))
        return self.answer


class StubCollector:
    def __init__(self):
        self.calls = 0

    def summarize(self, report):
        from agent_hub.pipeline.summary import RenderedSummary

        self.calls += 1
        return RenderedSummary(workflow_name=report.workflow_name)


@pytest.fixture
def solution_dir(tmp_path: Path) -> Path:
    """A solution folder whose agents share ``AgentData`` as a sibling."""
    root = tmp_path / "solution"
    root.mkdir()
    return root


@pytest.fixture
def make_agent(solution_dir: Path) -> Callable[..., AgentDescriptor]:
    def _make(
        name: str,
        *,
        kind: AgentCategory = AgentCategory.GENERIC,
        arguments=(),
        folder: Optional[str] = None,
        executable: str = "agent",
    ) -> AgentDescriptor:
        wd = solution_dir / (folder or name.replace(" ", "-"))
        wd.mkdir(parents=True, exist_ok=True)
        return AgentDescriptor(
            name=name,
            executable_path=executable,
            working_directory=str(wd),
            arguments=tuple(arguments),
            kind=kind,
        )

    return _make


@pytest.fixture
def agent_data(solution_dir: Path) -> Path:
    return solution_dir / "AgentData"


@pytest.fixture
def resolver(agent_data: Path) -> ArtifactResolver:
    return ArtifactResolver(agent_data_dir=agent_data, max_matches_per_pattern=3)


@pytest.fixture
def stub_launcher_cls():
    return StubLauncher


@pytest.fixture
def stub_operator_cls():
    return StubOperator


@pytest.fixture
def stub_collector() -> StubCollector:
    return StubCollector()
