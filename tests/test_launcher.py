from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

from agent_hub.agents.models import AgentCategory, AgentDescriptor, ExecutionStatus
from agent_hub.execution.launcher import ProcessLauncher, WaitMode, build_command_line


class FakeProcess:
    def __init__(self, codes):
        self.pid = 4242
        self._codes = list(codes)

    def poll(self):
        return self._codes.pop(0) if self._codes else None

    def wait(self, timeout=None):
        code = self.poll()
        if code is None:
            raise subprocess.TimeoutExpired(cmd="agent", timeout=timeout)
        return code


class RecordingPopen:
    def __init__(self, process=None):
        self.process = process
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append((argv, kwargs))
        return self.process


class RealPopen:
    """Starts real processes and keeps them for cleanup."""

    def __init__(self):
        self.processes = []

    def __call__(self, argv, **kwargs):
        proc = subprocess.Popen(argv, **kwargs)
        self.processes.append(proc)
        return proc

    def cleanup(self):
        for proc in self.processes:
            if proc.poll() is None:
                proc.kill()
                proc.wait(timeout=5)


@pytest.fixture
def real_popen():
    popen = RealPopen()
    yield popen
    popen.cleanup()


def _python_agent(tmp_path: Path, code: str, **kwargs) -> AgentDescriptor:
    wd = tmp_path / "agent"
    wd.mkdir(exist_ok=True)
    return AgentDescriptor(
        name="Py Agent",
        executable_path=sys.executable,
        working_directory=str(wd),
        arguments=("-c", code),
        **kwargs,
    )


@pytest.mark.unit
def test_missing_working_directory_fails_without_starting_a_process(tmp_path, stub_operator_cls):
    popen = RecordingPopen()
    operator = stub_operator_cls()
    launcher = ProcessLauncher(operator, popen=popen)
    agent = AgentDescriptor(name="Ghost", executable_path="agent", working_directory=str(tmp_path / "nope"))

    result = launcher.launch(agent)

    assert result.status is ExecutionStatus.FAILED
    assert not result.success
    assert "Working directory not found" in result.error
    assert popen.calls == []
    assert operator.acknowledged == []


@pytest.mark.unit
def test_build_command_line_quotes_arguments_with_whitespace():
    agent = AgentDescriptor(
        name="A",
        executable_path="dotnet",
        working_directory="/w",
        arguments=("run", "/path with space/file.txt", "--flag"),
    )
    assert build_command_line(agent) == 'dotnet run "/path with space/file.txt" --flag'


@pytest.mark.unit
def test_process_is_started_detached_in_working_directory(tmp_path, stub_operator_cls):
    popen = RecordingPopen(FakeProcess([0]))
    agent = AgentDescriptor(
        name="A",
        executable_path="agent",
        working_directory=str(tmp_path),
        arguments=("a b", "c"),
        environment_variables={"HUB_TEST_ONLY": "1"},
    )

    result = ProcessLauncher(stub_operator_cls(), popen=popen).launch(agent)

    argv, kwargs = popen.calls[0]
    assert argv == ["agent", "a b", "c"]
    assert kwargs["cwd"] == str(tmp_path)
    assert kwargs["env"]["HUB_TEST_ONLY"] == "1"
    if sys.platform == "win32":
        assert "creationflags" in kwargs
    else:
        assert kwargs["start_new_session"] is True
    assert result.command_line == 'agent "a b" c'
    assert result.success


@pytest.mark.unit
def test_acknowledged_exit_is_reported_from_exit_code(tmp_path, stub_operator_cls):
    operator = stub_operator_cls()
    agent = AgentDescriptor(name="A", executable_path="agent", working_directory=str(tmp_path))

    result = ProcessLauncher(operator, popen=RecordingPopen(FakeProcess([2]))).launch(agent)

    assert result.status is ExecutionStatus.FAILED
    assert result.exit_code == 2
    assert operator.acknowledged == [("A", False)]


@pytest.mark.unit
def test_still_running_after_second_acknowledgement_is_unknown(tmp_path, stub_operator_cls):
    operator = stub_operator_cls()
    agent = AgentDescriptor(name="A", executable_path="agent", working_directory=str(tmp_path))
    launcher = ProcessLauncher(operator, exit_grace_seconds=0.01, popen=RecordingPopen(FakeProcess([])))

    result = launcher.launch(agent)

    assert result.status is ExecutionStatus.UNKNOWN
    assert result.exit_code is None
    assert not result.success
    assert operator.acknowledged == [("A", False), ("A", True)]


@pytest.mark.unit
def test_legacy_switch_treats_running_process_as_success(tmp_path, stub_operator_cls):
    agent = AgentDescriptor(name="A", executable_path="agent", working_directory=str(tmp_path))
    launcher = ProcessLauncher(
        stub_operator_cls(),
        exit_grace_seconds=0.01,
        assume_success_when_running=True,
        popen=RecordingPopen(FakeProcess([])),
    )

    assert launcher.launch(agent).status is ExecutionStatus.SUCCEEDED


@pytest.mark.unit
def test_second_poll_picks_up_late_exit(tmp_path, stub_operator_cls):
    operator = stub_operator_cls()
    agent = AgentDescriptor(name="A", executable_path="agent", working_directory=str(tmp_path))

    result = ProcessLauncher(operator, popen=RecordingPopen(FakeProcess([None, 0]))).launch(agent)

    assert result.status is ExecutionStatus.SUCCEEDED
    assert len(operator.acknowledged) == 2


@pytest.mark.unit
def test_start_failure_is_a_failed_result(tmp_path, stub_operator_cls):
    agent = AgentDescriptor(
        name="A",
        executable_path=str(tmp_path / "definitely-not-an-executable"),
        working_directory=str(tmp_path),
    )

    result = ProcessLauncher(stub_operator_cls(), wait_mode=WaitMode.EXIT).launch(agent)

    assert result.status is ExecutionStatus.FAILED
    assert "Failed to start agent" in result.error


@pytest.mark.unit
def test_hook_errors_do_not_change_the_result(tmp_path, stub_operator_cls):
    seen = []

    def broken_hook(agent, result):
        seen.append(result.status)
        raise RuntimeError("display failed")

    agent = AgentDescriptor(
        name="Notes",
        executable_path="agent",
        working_directory=str(tmp_path),
        kind=AgentCategory.SUMMARIZATION,
    )
    launcher = ProcessLauncher(
        stub_operator_cls(),
        post_launch_hooks={AgentCategory.SUMMARIZATION: broken_hook},
        popen=RecordingPopen(FakeProcess([0])),
    )

    result = launcher.launch(agent)

    assert result.success
    assert seen == [ExecutionStatus.SUCCEEDED]


@pytest.mark.unit
def test_real_process_exit_codes(tmp_path, stub_operator_cls, real_popen):
    launcher = ProcessLauncher(stub_operator_cls(), wait_mode=WaitMode.EXIT, popen=real_popen)

    ok = launcher.launch(_python_agent(tmp_path, "import sys; sys.exit(0)"))
    bad = launcher.launch(_python_agent(tmp_path, "import sys; sys.exit(3)"))

    assert ok.status is ExecutionStatus.SUCCEEDED and ok.exit_code == 0
    assert bad.status is ExecutionStatus.FAILED and bad.exit_code == 3
    assert ok.started_at <= ok.finished_at


@pytest.mark.unit
def test_real_process_gets_cwd_and_environment_overrides(tmp_path, stub_operator_cls, real_popen):
    code = "import os; open('env.txt', 'w').write(os.environ['HUB_AGENT_GREETING'])"
    agent = _python_agent(tmp_path, code, environment_variables={"HUB_AGENT_GREETING": "hola"})

    result = ProcessLauncher(stub_operator_cls(), wait_mode=WaitMode.EXIT, popen=real_popen).launch(agent)

    assert result.success
    assert (tmp_path / "agent" / "env.txt").read_text() == "hola"


@pytest.mark.unit
def test_real_running_process_is_not_killed(tmp_path, stub_operator_cls, real_popen):
    agent = _python_agent(tmp_path, "import time; time.sleep(30)")
    launcher = ProcessLauncher(stub_operator_cls(), exit_grace_seconds=0.1, popen=real_popen)

    result = launcher.launch(agent)

    assert result.status is ExecutionStatus.UNKNOWN
    assert real_popen.processes[0].poll() is None
