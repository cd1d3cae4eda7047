"""Shared fixtures: a fake orchestrator adapter and a small environment."""

import pytest

from devboxlab.config import config
from devboxlab.core.controller import LifecycleController
from devboxlab.core.prober import ConnectivityProber
from devboxlab.models.enums import HostState
from devboxlab.models.environment import Environment, Host, NetworkSpec, SharedMount
from devboxlab.orchestrator.compose import ExecResult, HostStatus

PING_OK = """PING {dst} (10.0.0.3) 56(84) bytes of data.
64 bytes from {dst} (10.0.0.3): icmp_seq=1 ttl=64 time=0.071 ms
64 bytes from {dst} (10.0.0.3): icmp_seq=2 ttl=64 time=0.065 ms
64 bytes from {dst} (10.0.0.3): icmp_seq=3 ttl=64 time=0.080 ms

--- {dst} ping statistics ---
3 packets transmitted, 3 received, 0% packet loss, time 2041ms
rtt min/avg/max/mdev = 0.065/0.072/0.080/0.006 ms
"""


class FakeAdapter:
    """
    In-memory stand-in for ComposeAdapter.

    Tracks which hosts are "running" so repeated lifecycle calls behave
    like an idempotent engine.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.running: set[str] = set()
        self.failures: dict[str, Exception] = {}
        self.ping_results: dict[tuple[str, str], ExecResult] = {}
        self.log_lines: list[str] = []
        self.log_interrupt = False
        self.logs_closed = False
        self.exec_code = 0

    def _call(self, name, *args):
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    @property
    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def build(self, env):
        self._call("build")

    def up(self, env):
        self._call("up")
        self.running.update(env.host_names)

    def down(self, env, remove_volumes=False):
        self._call("down", remove_volumes)
        self.running.clear()

    def ps(self, env):
        self._call("ps")
        return [
            HostStatus(host=name, state=HostState.RUNNING, status="Up 5 seconds")
            for name in env.host_names
            if name in self.running
        ]

    def logs(self, env, follow=True):
        self._call("logs", follow)
        try:
            for line in self.log_lines:
                yield line
            if self.log_interrupt:
                raise KeyboardInterrupt
        finally:
            self.logs_closed = True

    def exec(self, env, host, command):
        self._call("exec", host, tuple(command))
        return self.exec_code

    def run_in(self, env, host, command, timeout=None):
        self._call("run_in", host, tuple(command))
        dst = command[-1]
        if (host, dst) in self.ping_results:
            return self.ping_results[(host, dst)]
        return ExecResult(0, PING_OK.format(dst=dst), "")


class FakeEngine:
    def __init__(self, calls: list):
        self.calls = calls

    def prune(self):
        self.calls.append(("prune",))
        return 2048

    def remove_environment_images(self, env):
        self.calls.append(("remove_images",))
        return [env.image_for(h) for h in env.hosts]


@pytest.fixture
def env(tmp_path) -> Environment:
    """Hosts A=10.0.0.2 and B=10.0.0.3 on 10.0.0.0/24 with one shared mount."""
    return Environment(
        name="lab",
        network=NetworkSpec(name="labnet", subnet="10.0.0.0/24"),
        hosts=(
            Host(name="A", address="10.0.0.2", build="./a"),
            Host(name="B", address="10.0.0.3", build="./b"),
        ),
        mounts=(SharedMount(host_path="./shared", container_path="/shared"),),
        base_dir=str(tmp_path),
    )


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def make_controller(env, adapter, sleeps):
    """Factory for controllers wired to fakes; keyword overrides pass through."""

    def factory(**overrides) -> LifecycleController:
        kwargs = dict(
            prober=ConnectivityProber(adapter, workers=1),
            engine_factory=lambda: FakeEngine(adapter.calls),
            dependency_check=lambda: None,
            sleep=sleeps.append,
            line_sink=lambda line: None,
        )
        kwargs.update(overrides)
        return LifecycleController(env, adapter, **kwargs)

    return factory


@pytest.fixture(autouse=True)
def _fast_config(monkeypatch):
    monkeypatch.setattr(config, "COMPOSE_COMMAND", "")
    monkeypatch.setattr(config, "READY_TIMEOUT_SECONDS", 0.0)
