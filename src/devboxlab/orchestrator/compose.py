"""
Compose orchestrator adapter.

Thin translation layer over ``docker compose``. Every lifecycle call renders
the environment's compose file, runs one compose subcommand and normalizes
the result: success returns, failure raises the matching error kind with
the engine's diagnostic text passed through verbatim. Nothing is retried.
"""

import json
import shlex
import shutil
import subprocess
from collections.abc import Iterator
from dataclasses import dataclass

from devboxlab.config import config
from devboxlab.exceptions import (
    BuildError,
    DependencyError,
    OrchestratorError,
    StartError,
    StopError,
)
from devboxlab.models.enums import HostState
from devboxlab.models.environment import Environment
from devboxlab.orchestrator.compose_file import write_compose
from devboxlab.orchestrator.naming import project_name
from devboxlab.utils.logger import get_logger

logger = get_logger(__name__)

# Engine responses that mean "already gone" for teardown purposes
_NOT_FOUND_MARKERS = ("no such", "not found", "no resource found")


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class HostStatus:
    """Runtime state of one host as reported by ``compose ps``."""

    host: str
    state: HostState
    status: str = ""  # e.g. "Up 3 minutes"
    container: str = ""

    @property
    def running(self) -> bool:
        return self.state == HostState.RUNNING


@dataclass
class ExecResult:
    """Captured result of a non-interactive command inside a host."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


# =============================================================================
# Command Helpers
# =============================================================================


def _run_docker_command(
    cmd: list[str], timeout: float | None = None
) -> subprocess.CompletedProcess:
    """
    Run a docker command via subprocess, capturing output.

    Args:
        cmd: Command list to run.
        timeout: Optional timeout in seconds.

    Returns:
        CompletedProcess result (never raises on non-zero exit).

    Raises:
        DependencyError: If the command cannot be started.
    """
    logger.debug(f"Running: {' '.join(shlex.quote(c) for c in cmd)}")
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except OSError as e:
        raise _launch_error(cmd, e) from e
    if result.returncode != 0:
        logger.debug(f"  Command returned non-zero: {result.returncode}")
        if result.stderr:
            logger.debug(f"  stderr: {result.stderr.strip()}")
    return result


def _launch_error(cmd: list[str], error: OSError) -> DependencyError:
    return DependencyError([f"Cannot run {cmd[0]}: {error.strerror or error}"])


def _engine_message(result: subprocess.CompletedProcess) -> str:
    return (result.stderr or "").strip() or (result.stdout or "").strip()


def detect_compose_command() -> list[str]:
    """
    Find a usable compose implementation.

    Prefers the ``docker compose`` plugin, falls back to the standalone
    ``docker-compose`` binary.

    Raises:
        DependencyError: If neither is available.
    """
    configured = config.get_compose_command()
    if configured:
        if not shutil.which(configured[0]):
            raise DependencyError([f"{configured[0]} not found (COMPOSE_COMMAND)"])
        return configured

    if shutil.which("docker"):
        try:
            probe = subprocess.run(
                ["docker", "compose", "version"],
                capture_output=True,
                text=True,
                timeout=15,
            )
            if probe.returncode == 0:
                return ["docker", "compose"]
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"docker compose plugin check failed: {e}")

    if shutil.which("docker-compose"):
        return ["docker-compose"]

    raise DependencyError(["Docker Compose is not installed or not in PATH"])


def parse_ps_output(output: str) -> list[dict]:
    """
    Parse ``compose ps --format json`` output.

    Compose v2.21+ prints one JSON object per line, older releases print a
    single JSON array. Both are accepted.
    """
    output = output.strip()
    if not output:
        return []

    if output.startswith("["):
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise OrchestratorError(f"unparsable ps output: {e}")
        return [d for d in data if isinstance(d, dict)]

    entries = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError as e:
            raise OrchestratorError(f"unparsable ps output: {e}")
        if isinstance(entry, dict):
            entries.append(entry)
    return entries


def _stop_process(proc: subprocess.Popen, timeout: float) -> None:
    """Terminate a child process, escalating to kill if it lingers."""
    if proc.poll() is None:
        proc.terminate()
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Process {proc.pid} ignored SIGTERM, killing")
            proc.kill()
            proc.wait()
    if proc.stdout is not None:
        proc.stdout.close()


# =============================================================================
# ComposeAdapter
# =============================================================================


class ComposeAdapter:
    """
    Issues lifecycle commands to the compose engine.

    The adapter holds no environment state; every method takes the
    environment it acts on. The compose command is detected on first use.
    """

    def __init__(self, compose_command: list[str] | None = None):
        self._compose_command = compose_command

    @property
    def compose_command(self) -> list[str]:
        if self._compose_command is None:
            self._compose_command = detect_compose_command()
        return self._compose_command

    def _base(self, env: Environment) -> list[str]:
        """Compose command prefix for an environment, rendering its file."""
        path = config.get_compose_path(env.base_dir)
        try:
            write_compose(env, path)
        except OSError as e:
            raise OrchestratorError(f"Cannot write compose file {path}: {e}") from e
        return [
            *self.compose_command,
            "-p",
            project_name(env.name),
            "-f",
            path,
            *config.COMPOSE_EXTRA_ARGS,
        ]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def build(self, env: Environment) -> None:
        """
        Build all host images.

        Raises:
            BuildError: With the engine's output if the build fails.
        """
        result = _run_docker_command(self._base(env) + ["build"])
        if result.returncode != 0:
            raise BuildError(_engine_message(result), result.returncode)

    def up(self, env: Environment) -> None:
        """
        Create and start all hosts in the background.

        Raises:
            StartError: If the engine fails to start the hosts.
        """
        result = _run_docker_command(self._base(env) + ["up", "-d"])
        if result.returncode != 0:
            raise StartError(_engine_message(result), result.returncode)

    def down(self, env: Environment, remove_volumes: bool = False) -> None:
        """
        Stop and remove all hosts and the network.

        Not-found responses are treated as success so repeated teardown
        is harmless.

        Raises:
            StopError: If the engine reports any other failure.
        """
        cmd = self._base(env) + ["down"]
        if remove_volumes:
            cmd += ["--volumes", "--remove-orphans"]
        result = _run_docker_command(cmd)
        if result.returncode == 0:
            return

        message = _engine_message(result)
        if any(marker in message.lower() for marker in _NOT_FOUND_MARKERS):
            logger.info(f"Nothing to tear down: {message}")
            return
        raise StopError(message, result.returncode)

    # =========================================================================
    # Queries
    # =========================================================================

    def ps(self, env: Environment) -> list[HostStatus]:
        """
        List hosts the engine knows about, in declaration order.

        Hosts the engine does not report are omitted.
        """
        result = _run_docker_command(
            self._base(env) + ["ps", "--all", "--format", "json"]
        )
        if result.returncode != 0:
            raise OrchestratorError(_engine_message(result), result.returncode)

        by_service: dict[str, HostStatus] = {}
        for entry in parse_ps_output(result.stdout):
            service = entry.get("Service") or entry.get("Name", "")
            by_service[service] = HostStatus(
                host=service,
                state=HostState.parse(entry.get("State")),
                status=entry.get("Status", ""),
                container=entry.get("Name", ""),
            )

        return [by_service[name] for name in env.host_names if name in by_service]

    def logs(self, env: Environment, follow: bool = True) -> Iterator[str]:
        """
        Stream log lines from all hosts.

        With ``follow`` the stream never ends on its own; closing the
        iterator (or an interrupt while iterating) terminates the engine
        process.

        Raises:
            OrchestratorError: If the engine exits non-zero on its own.
        """
        cmd = self._base(env) + ["logs", "--no-color"]
        if follow:
            cmd.append("--follow")
        logger.debug(f"Streaming: {' '.join(shlex.quote(c) for c in cmd)}")

        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise _launch_error(cmd, e) from e
        returncode = None
        try:
            for line in proc.stdout:
                yield line.rstrip("\n")
            returncode = proc.wait()
        finally:
            _stop_process(proc, config.LOG_STOP_TIMEOUT_SECONDS)

        if returncode:
            raise OrchestratorError(f"logs exited with status {returncode}", returncode)

    # =========================================================================
    # Exec
    # =========================================================================

    def exec(self, env: Environment, host: str, command: list[str]) -> int:
        """
        Attach an interactive session to a host.

        Blocks until the session ends.

        Returns:
            Exit code of the session.
        """
        cmd = self._base(env) + ["exec", host, *command]
        logger.debug(f"Attaching: {' '.join(shlex.quote(c) for c in cmd)}")
        try:
            return subprocess.run(cmd).returncode
        except OSError as e:
            raise _launch_error(cmd, e) from e

    def run_in(
        self,
        env: Environment,
        host: str,
        command: list[str],
        timeout: float | None = None,
    ) -> ExecResult:
        """Run a non-interactive command in a host and capture its output."""
        cmd = self._base(env) + ["exec", "-T", host, *command]
        try:
            result = _run_docker_command(cmd, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            return ExecResult(
                returncode=-1,
                stdout=_decode(e.stdout),
                stderr=_decode(e.stderr),
                timed_out=True,
            )
        return ExecResult(result.returncode, result.stdout, result.stderr)


def _decode(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data
