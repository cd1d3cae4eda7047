"""
Lifecycle controller.

Maps a verb to an explicit, ordered list of steps and runs them against an
injected orchestrator adapter. Each run is linear: a fatal step failure
aborts the remaining steps and leaves the engine as it is (no rollback);
non-fatal failures are recorded and the run continues.

Step plans:
    start    check dependencies -> prepare shared mounts -> write reference
             -> build -> up -> settle -> probe -> status -> report
    stop     down
    restart  check dependencies -> prepare shared mounts -> write reference
             -> down -> restart delay -> build -> up -> settle -> probe
             -> status -> report
    status   status -> report
    logs     follow logs
    connect  attach shell
    test     probe -> report
    cleanup  down (with volumes) -> prune -> remove images
"""

import contextlib
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from devboxlab.config import config
from devboxlab.core.dependencies import check_dependencies
from devboxlab.core.prober import ConnectivityProber, ProbeResult
from devboxlab.core.shared import ensure_mount_dirs, write_reference
from devboxlab.exceptions import DevboxError, UsageError
from devboxlab.models.enums import Verb
from devboxlab.models.environment import Environment
from devboxlab.orchestrator.compose import HostStatus
from devboxlab.orchestrator.engine import DockerEngine
from devboxlab.utils.logger import get_logger

logger = get_logger(__name__)

EXIT_INTERRUPTED = 130


# =============================================================================
# Commands and Results
# =============================================================================


@dataclass(frozen=True)
class LifecycleCommand:
    """A parsed verb with its optional target host."""

    verb: Verb
    target: str | None = None

    @classmethod
    def parse(cls, verb: str, target: str | None = None) -> "LifecycleCommand":
        """
        Parse a command-line verb.

        ``connectN`` becomes CONNECT with target ``N``; ``connect HOST``
        becomes CONNECT with target ``HOST``.

        Raises:
            UsageError: For unknown verbs or misplaced targets.
        """
        text = (verb or Verb.START.value).strip().lower()

        if text.startswith(Verb.CONNECT.value) and text != Verb.CONNECT.value:
            index = text[len(Verb.CONNECT.value) :]
            if not index.isdigit() or target is not None:
                raise UsageError(f"Unknown command: {verb}")
            return cls(Verb.CONNECT, index)

        try:
            parsed = Verb(text)
        except ValueError:
            raise UsageError(f"Unknown command: {verb}")

        if parsed == Verb.CONNECT:
            if not target:
                raise UsageError("connect needs a host name or index")
        elif target is not None:
            raise UsageError(f"{parsed.value} does not take a target")

        return cls(parsed, target)


@dataclass
class StepResult:
    name: str
    ok: bool
    message: str = ""


@dataclass
class RunReport:
    """Everything a run produced, consumed by the status reporter."""

    command: LifecycleCommand
    steps: list[StepResult] = field(default_factory=list)
    statuses: list[HostStatus] | None = None
    probes: list[ProbeResult] | None = None
    removed_images: list[str] = field(default_factory=list)
    reclaimed_bytes: int = 0
    error: DevboxError | None = None
    exit_code: int = 0
    interrupted: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.exit_code == 0


@dataclass
class Step:
    """
    One typed operation in a verb's plan.

    Attributes:
        name: Human-readable step name (shown as a header).
        action: Callable receiving the run report.
        fatal: Whether a failure aborts the remaining steps.
    """

    name: str
    action: Callable[[RunReport], None]
    fatal: bool = True


# =============================================================================
# Controller
# =============================================================================


class LifecycleController:
    """
    Runs lifecycle verbs against an environment.

    All collaborators are injected so step sequencing can be exercised
    with a fake adapter and no real engine.
    """

    def __init__(
        self,
        env: Environment,
        adapter,
        prober: ConnectivityProber | None = None,
        engine_factory: Callable[[], DockerEngine] | None = None,
        dependency_check: Callable[[], None] = check_dependencies,
        sleep: Callable[[float], None] = time.sleep,
        reporter: Callable[[RunReport], None] | None = None,
        on_step: Callable[[str], None] | None = None,
        line_sink: Callable[[str], None] = print,
        settle_delay: float | None = None,
        restart_delay: float | None = None,
        wait_ready: bool = False,
    ):
        self.env = env
        self.adapter = adapter
        self.prober = prober or ConnectivityProber(adapter)
        self.engine_factory = engine_factory or (
            lambda: DockerEngine(timeout=config.DOCKER_TIMEOUT)
        )
        self.dependency_check = dependency_check
        self.sleep = sleep
        self.reporter = reporter
        self.on_step = on_step
        self.line_sink = line_sink
        self.settle_delay = (
            config.SETTLE_DELAY_SECONDS if settle_delay is None else settle_delay
        )
        self.restart_delay = (
            config.RESTART_DELAY_SECONDS if restart_delay is None else restart_delay
        )
        self.wait_ready = wait_ready
        self._engine: DockerEngine | None = None

    # =========================================================================
    # Planning
    # =========================================================================

    def plan(self, command: LifecycleCommand) -> list[Step]:
        """
        Build the ordered step list for a command.

        Raises:
            UsageError: If the verb has no plan or the target is unknown.
        """
        start_tail = [
            Step("build", self._build),
            Step("up", self._up),
            Step("settle", self._settle),
            Step("probe", self._probe, fatal=False),
            Step("status", self._status, fatal=False),
            Step("report", self._report, fatal=False),
        ]
        prepare = [
            Step("check dependencies", self._check_dependencies),
            Step("prepare shared mounts", self._prepare_mounts),
            Step("write reference", self._write_reference, fatal=False),
        ]

        match command.verb:
            case Verb.START:
                return prepare + start_tail
            case Verb.STOP:
                return [Step("down", self._down)]
            case Verb.RESTART:
                return (
                    prepare
                    + [
                        Step("down", self._down),
                        Step("restart delay", self._restart_delay),
                    ]
                    + start_tail
                )
            case Verb.STATUS:
                return [
                    Step("status", self._status),
                    Step("report", self._report, fatal=False),
                ]
            case Verb.LOGS:
                return [Step("logs", self._logs)]
            case Verb.CONNECT:
                host = self.resolve_target(command.target)
                return [Step(f"connect {host}", lambda report: self._connect(report, host))]
            case Verb.TEST:
                return [
                    Step("probe", self._probe, fatal=False),
                    Step("report", self._report, fatal=False),
                ]
            case Verb.CLEANUP:
                return [
                    Step("down", self._down_all),
                    Step("prune", self._prune),
                    Step("remove images", self._remove_images),
                ]
        raise UsageError(f"{command.verb.value} is not a lifecycle verb")

    def resolve_target(self, target: str | None) -> str:
        """Resolve a 1-based index or host name to a declared host name."""
        if not target:
            raise UsageError("connect needs a host name or index")
        if target.isdigit():
            try:
                return self.env.host_by_index(int(target)).name
            except IndexError:
                raise UsageError(
                    f"No host #{target}; environment declares {len(self.env.hosts)}"
                )
        if target not in self.env.host_names:
            raise UsageError(
                f"Unknown host '{target}'; declared: {', '.join(self.env.host_names)}"
            )
        return target

    # =========================================================================
    # Running
    # =========================================================================

    def run(self, command: LifecycleCommand) -> RunReport:
        """
        Run a command's plan.

        Usage errors surface before any step runs. Fatal step failures set
        ``report.error`` and stop the run.
        """
        steps = self.plan(command)
        report = RunReport(command=command)

        for step in steps:
            if self.on_step:
                self.on_step(step.name)
            try:
                step.action(report)
            except DevboxError as e:
                report.steps.append(StepResult(step.name, False, str(e)))
                if step.fatal:
                    logger.error(f"Step '{step.name}' failed")
                    report.error = e
                    report.exit_code = e.exit_code
                    break
                logger.warning(f"Step '{step.name}' failed: {e}")
                continue
            report.steps.append(StepResult(step.name, True))
            if report.interrupted:
                break

        return report

    # =========================================================================
    # Step Actions
    # =========================================================================

    def _check_dependencies(self, report: RunReport) -> None:
        self.dependency_check()

    def _prepare_mounts(self, report: RunReport) -> None:
        ensure_mount_dirs(self.env)

    def _write_reference(self, report: RunReport) -> None:
        write_reference(self.env)

    def _build(self, report: RunReport) -> None:
        logger.info("Building Docker images...")
        self.adapter.build(self.env)

    def _up(self, report: RunReport) -> None:
        logger.info("Starting containers...")
        self.adapter.up(self.env)

    def _down(self, report: RunReport) -> None:
        logger.info("Stopping containers...")
        self.adapter.down(self.env)

    def _down_all(self, report: RunReport) -> None:
        logger.info("Stopping containers and removing volumes...")
        self.adapter.down(self.env, remove_volumes=True)

    def _restart_delay(self, report: RunReport) -> None:
        self.sleep(self.restart_delay)

    def _settle(self, report: RunReport) -> None:
        if self.wait_ready:
            self._wait_until_running()
        else:
            self.sleep(self.settle_delay)
        logger.info("Containers are starting up...")

    def _wait_until_running(self) -> None:
        """Poll ``ps`` until every host runs or the ready timeout passes."""
        expected = set(self.env.host_names)
        deadline = time.monotonic() + config.READY_TIMEOUT_SECONDS
        while True:
            running = {s.host for s in self.adapter.ps(self.env) if s.running}
            if expected <= running:
                logger.info("All hosts are running")
                return
            if time.monotonic() >= deadline:
                missing = ", ".join(sorted(expected - running))
                logger.warning(f"Hosts not running after timeout: {missing}")
                return
            self.sleep(config.READY_POLL_SECONDS)

    def _probe(self, report: RunReport) -> None:
        report.probes = self.prober.probe(self.env)

    def _status(self, report: RunReport) -> None:
        report.statuses = self.adapter.ps(self.env)

    def _report(self, report: RunReport) -> None:
        if self.reporter:
            self.reporter(report)

    def _logs(self, report: RunReport) -> None:
        with contextlib.closing(self.adapter.logs(self.env, follow=True)) as lines:
            try:
                for line in lines:
                    self.line_sink(line)
            except KeyboardInterrupt:
                logger.info("Stopped following logs")
                report.interrupted = True

    def _connect(self, report: RunReport, host_name: str) -> None:
        host = self.env.get_host(host_name)
        shell = host.shell or config.SHELL
        try:
            report.exit_code = self.adapter.exec(self.env, host_name, [shell])
        except KeyboardInterrupt:
            report.interrupted = True
            report.exit_code = EXIT_INTERRUPTED

    def _engine_client(self) -> DockerEngine:
        if self._engine is None:
            self._engine = self.engine_factory()
        return self._engine

    def _prune(self, report: RunReport) -> None:
        logger.info("Removing unused Docker resources...")
        report.reclaimed_bytes = self._engine_client().prune()

    def _remove_images(self, report: RunReport) -> None:
        logger.info("Removing Docker images for this project...")
        report.removed_images = self._engine_client().remove_environment_images(
            self.env
        )
