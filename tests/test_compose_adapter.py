"""Tests for the compose orchestrator adapter"""

import io
import json
import subprocess

import pytest

from devboxlab.exceptions import (
    BuildError,
    DependencyError,
    OrchestratorError,
    StartError,
    StopError,
)
from devboxlab.models.enums import HostState
from devboxlab.orchestrator import compose
from devboxlab.orchestrator.compose import ComposeAdapter, parse_ps_output


class Recorder:
    """Replacement for subprocess.run returning queued results."""

    def __init__(self, *results):
        self.results = list(results)
        self.commands = []

    def __call__(self, cmd, **kwargs):
        self.commands.append(cmd)
        if self.results:
            result = self.results.pop(0)
        else:
            result = (0, "", "")
        if isinstance(result, BaseException):
            raise result
        code, out, err = result
        return subprocess.CompletedProcess(cmd, code, out, err)


@pytest.fixture
def run(monkeypatch):
    def install(*results):
        recorder = Recorder(*results)
        monkeypatch.setattr(compose.subprocess, "run", recorder)
        return recorder

    return install


@pytest.fixture
def compose_adapter():
    return ComposeAdapter(["docker", "compose"])


class TestLifecycle:
    """Tests for build/up/down"""

    def test_build_command(self, run, compose_adapter, env):
        recorder = run()
        compose_adapter.build(env)
        cmd = recorder.commands[0]
        assert cmd[:4] == ["docker", "compose", "-p", "lab"]
        assert cmd[4] == "-f"
        assert cmd[-1] == "build"

    def test_build_failure_passes_engine_text(self, run, compose_adapter, env):
        run((17, "", "failed to solve: dev-box-1/Dockerfile not found\n"))
        with pytest.raises(BuildError) as exc:
            compose_adapter.build(env)
        assert str(exc.value) == "failed to solve: dev-box-1/Dockerfile not found"
        assert exc.value.returncode == 17
        assert exc.value.exit_code == 17

    def test_signal_exit_maps_to_failure_code(self, run, compose_adapter, env):
        run((-9, "", ""))
        with pytest.raises(BuildError) as exc:
            compose_adapter.build(env)
        assert exc.value.returncode == -9
        assert exc.value.exit_code == 1

    def test_up_detached(self, run, compose_adapter, env):
        recorder = run()
        compose_adapter.up(env)
        assert recorder.commands[0][-2:] == ["up", "-d"]

    def test_up_failure(self, run, compose_adapter, env):
        run((1, "", "Pool overlaps with other one on this address space"))
        with pytest.raises(StartError, match="Pool overlaps"):
            compose_adapter.up(env)

    def test_down_remove_volumes(self, run, compose_adapter, env):
        recorder = run()
        compose_adapter.down(env, remove_volumes=True)
        assert recorder.commands[0][-3:] == ["down", "--volumes", "--remove-orphans"]

    def test_down_not_found_is_success(self, run, compose_adapter, env):
        run((1, "", "Error response from daemon: No such container: A"))
        compose_adapter.down(env)

    def test_down_failure(self, run, compose_adapter, env):
        run((1, "", "permission denied while trying to connect"))
        with pytest.raises(StopError, match="permission denied"):
            compose_adapter.down(env)


    def test_unwritable_compose_dir(self, run, compose_adapter, env, tmp_path):
        (tmp_path / ".devboxlab").write_text("not a directory")
        recorder = run()
        with pytest.raises(OrchestratorError, match="Cannot write compose file"):
            compose_adapter.up(env)
        assert recorder.commands == []

    def test_missing_binary(self, run, compose_adapter, env):
        run(FileNotFoundError(2, "No such file or directory"))
        with pytest.raises(DependencyError, match="Cannot run docker"):
            compose_adapter.build(env)


class TestPs:
    """Tests for ps parsing"""

    def test_ndjson(self, run, compose_adapter, env):
        lines = [
            {"Service": "B", "Name": "B", "State": "running", "Status": "Up 2s"},
            {"Service": "A", "Name": "A", "State": "exited", "Status": "Exited (0)"},
        ]
        run((0, "\n".join(json.dumps(x) for x in lines), ""))
        statuses = compose_adapter.ps(env)
        assert [s.host for s in statuses] == ["A", "B"]
        assert statuses[0].state == HostState.EXITED
        assert statuses[1].running

    def test_json_array(self):
        entries = parse_ps_output('[{"Service": "A", "State": "running"}]')
        assert entries == [{"Service": "A", "State": "running"}]

    def test_empty_output(self, run, compose_adapter, env):
        run((0, "", ""))
        assert compose_adapter.ps(env) == []

    def test_unknown_services_omitted(self, run, compose_adapter, env):
        run((0, json.dumps({"Service": "stray", "State": "running"}), ""))
        assert compose_adapter.ps(env) == []

    def test_unparsable(self):
        with pytest.raises(OrchestratorError):
            parse_ps_output("{not json")

    def test_ps_failure(self, run, compose_adapter, env):
        run((1, "", "Cannot connect to the Docker daemon"))
        with pytest.raises(OrchestratorError, match="Cannot connect"):
            compose_adapter.ps(env)


class TestExec:
    """Tests for exec and run_in"""

    def test_run_in_captures(self, run, compose_adapter, env):
        recorder = run((0, "pong", ""))
        result = compose_adapter.run_in(env, "A", ["ping", "-c", "1", "B"])
        assert result.ok
        assert result.stdout == "pong"
        assert recorder.commands[0][-7:] == ["exec", "-T", "A", "ping", "-c", "1", "B"]

    def test_run_in_timeout(self, run, compose_adapter, env):
        run(subprocess.TimeoutExpired(["docker"], 5, output=b"partial"))
        result = compose_adapter.run_in(env, "A", ["ping", "B"], timeout=5)
        assert result.timed_out
        assert not result.ok
        assert result.stdout == "partial"

    def test_exec_missing_binary(self, run, compose_adapter, env):
        run(PermissionError(13, "Permission denied"))
        with pytest.raises(DependencyError, match="Permission denied"):
            compose_adapter.exec(env, "A", ["bash"])

    def test_exec_returns_exit_code(self, run, compose_adapter, env):
        recorder = run((3, None, None))
        assert compose_adapter.exec(env, "B", ["bash"]) == 3
        assert recorder.commands[0][-3:] == ["exec", "B", "bash"]


class FakePopen:
    instances = []

    def __init__(self, cmd, **kwargs):
        self.cmd = cmd
        self.stdout = io.StringIO("line one\nline two\n")
        self.returncode = None
        self.terminated = False
        self.pid = 4242
        FakePopen.instances.append(self)

    def poll(self):
        return self.returncode

    def terminate(self):
        self.terminated = True
        self.returncode = -15

    def kill(self):
        self.returncode = -9

    def wait(self, timeout=None):
        if self.returncode is None:
            self.returncode = 0
        return self.returncode


class TestLogs:
    """Tests for streaming logs"""

    @pytest.fixture(autouse=True)
    def popen(self, monkeypatch):
        FakePopen.instances = []
        monkeypatch.setattr(compose.subprocess, "Popen", FakePopen)

    def test_follow_flag(self, compose_adapter, env):
        list(compose_adapter.logs(env, follow=True))
        assert FakePopen.instances[0].cmd[-1] == "--follow"

    def test_lines_stripped(self, compose_adapter, env):
        assert list(compose_adapter.logs(env, follow=False)) == ["line one", "line two"]

    def test_close_terminates_process(self, compose_adapter, env):
        lines = compose_adapter.logs(env)
        assert next(lines) == "line one"
        lines.close()
        proc = FakePopen.instances[0]
        assert proc.terminated
        assert proc.stdout.closed


class TestLogsLaunch:
    def test_missing_binary(self, monkeypatch, compose_adapter, env):
        def refuse(cmd, **kwargs):
            raise FileNotFoundError(2, "No such file or directory")

        monkeypatch.setattr(compose.subprocess, "Popen", refuse)
        with pytest.raises(DependencyError):
            next(compose_adapter.logs(env))


class TestDetectCompose:
    """Tests for compose command detection"""

    def test_plugin_preferred(self, monkeypatch, run):
        monkeypatch.setattr(compose.shutil, "which", lambda name: f"/usr/bin/{name}")
        run((0, "Docker Compose version v2.27.0", ""))
        assert compose.detect_compose_command() == ["docker", "compose"]

    def test_standalone_fallback(self, monkeypatch, run):
        monkeypatch.setattr(
            compose.shutil,
            "which",
            lambda name: "/usr/bin/docker-compose" if name == "docker-compose" else None,
        )
        assert compose.detect_compose_command() == ["docker-compose"]

    def test_configured_command_must_exist(self, monkeypatch):
        monkeypatch.setattr(compose.config, "COMPOSE_COMMAND", "nonexistent-compose")
        monkeypatch.setattr(compose.shutil, "which", lambda name: None)
        with pytest.raises(DependencyError, match="nonexistent-compose"):
            compose.detect_compose_command()

    def test_missing(self, monkeypatch):
        monkeypatch.setattr(compose.shutil, "which", lambda name: None)
        with pytest.raises(DependencyError, match="Compose"):
            compose.detect_compose_command()
