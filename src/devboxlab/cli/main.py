"""
devboxlab CLI entry point.

Usage:
    devboxlab [VERB] [TARGET] [OPTIONS]

Verbs:
    start     Build and start the containers (default)
    stop      Stop the containers
    restart   Restart the containers
    status    Show container status
    logs      Follow container logs
    cleanup   Stop containers and remove project resources
    connectN  Open a shell in the N-th declared host (connect1, connect2, ...)
    connect   Open a shell in the host named by TARGET
    test      Test network connectivity
    init      Write the default environment descriptor
"""

import os
from typing import Annotated

import typer

from devboxlab import __version__
from devboxlab.cli.output import (
    console,
    format_bytes,
    print_error,
    print_header,
    print_status,
    print_success,
    print_warning,
)
from devboxlab.cli.reporter import render_report
from devboxlab.config import config
from devboxlab.core.controller import LifecycleCommand, LifecycleController, RunReport
from devboxlab.core.dependencies import check_dependencies
from devboxlab.core.prober import ConnectivityProber
from devboxlab.exceptions import DevboxError, UsageError
from devboxlab.models.enums import LogLevel, Verb
from devboxlab.models.environment import (
    Environment,
    default_environment,
    dump_environment,
    load_environment,
)
from devboxlab.orchestrator.compose import ComposeAdapter
from devboxlab.utils.logger import (
    configure_logging,
    format_traceback,
    get_logger,
    tracebacks_enabled,
)

logger = get_logger(__name__)

app = typer.Typer(
    name="devboxlab",
    help="Lifecycle manager for container training labs",
    no_args_is_help=False,
    add_completion=False,
    rich_markup_mode="rich",
)

USAGE = """Usage: devboxlab {start|stop|restart|status|logs|cleanup|connect1|connect2|test|init}

Commands:
  start    - Build and start the containers (default)
  stop     - Stop the containers
  restart  - Restart the containers
  status   - Show container status
  logs     - Show container logs
  cleanup  - Stop containers and clean up project resources
  connect1 - Connect to the first host (connectN for the N-th)
  connect2 - Connect to the second host
  test     - Test network connectivity
  init     - Write the default environment descriptor"""

# Verbs whose steps are printed as section headers
_HEADED_VERBS = {Verb.START, Verb.RESTART, Verb.CLEANUP}

_SUCCESS_MESSAGES = {
    Verb.START: "Environment is up",
    Verb.STOP: "Containers stopped",
    Verb.RESTART: "Environment restarted",
    Verb.CLEANUP: "Cleanup completed - all resources removed",
}


def print_usage() -> None:
    console.print(USAGE, markup=False, highlight=False)


def _version_callback(value: bool):
    if value:
        console.print(f"devboxlab v{__version__}")
        raise typer.Exit()


# =============================================================================
# Wiring
# =============================================================================


def build_controller(
    env: Environment,
    command: LifecycleCommand,
    settle: float | None = None,
    wait_ready: bool = False,
    probe_workers: int | None = None,
) -> LifecycleController:
    """Wire the production collaborators for one run."""
    adapter = ComposeAdapter()
    show_info = command.verb in (Verb.START, Verb.RESTART)

    def on_step(name: str) -> None:
        if command.verb in _HEADED_VERBS and name not in ("report", "status", "probe"):
            print_header(name.title())

    return LifecycleController(
        env,
        adapter,
        prober=ConnectivityProber(adapter, workers=probe_workers),
        dependency_check=check_dependencies,
        reporter=lambda report: render_report(env, report, show_info=show_info),
        on_step=on_step,
        line_sink=lambda line: console.print(
            line, markup=False, highlight=False, soft_wrap=True
        ),
        settle_delay=settle,
        wait_ready=wait_ready,
    )


def _init_descriptor(path: str, force: bool) -> None:
    if os.path.exists(path) and not force:
        print_error(f"{path} already exists (use --force to overwrite)")
        raise typer.Exit(1)

    env = default_environment(os.path.dirname(os.path.abspath(path)))
    try:
        with open(path, "w") as f:
            f.write(dump_environment(env))
    except OSError as e:
        print_error(f"Cannot write {path}: {e}")
        raise typer.Exit(1)
    print_success(f"Environment descriptor written to: {path}")


def _finish(report: RunReport) -> None:
    verb = report.command.verb

    if report.error is not None:
        print_error(str(report.error))
        if tracebacks_enabled():
            console.print(format_traceback(report.error), markup=False)
        raise typer.Exit(report.exit_code or 1)

    if verb == Verb.CLEANUP:
        for ref in report.removed_images:
            print_status(f"Removed image {ref}")
        print_status(f"Reclaimed {format_bytes(report.reclaimed_bytes)}")

    if verb in _SUCCESS_MESSAGES:
        print_success(_SUCCESS_MESSAGES[verb])

    if report.probes and not all(p.success for p in report.probes):
        print_warning("Some connectivity checks failed; see the table above")

    if report.exit_code:
        raise typer.Exit(report.exit_code)


# =============================================================================
# Command
# =============================================================================


@app.command()
def main(
    verb: Annotated[
        str,
        typer.Argument(help="start|stop|restart|status|logs|cleanup|connectN|test|init"),
    ] = Verb.START.value,
    target: Annotated[
        str | None,
        typer.Argument(help="Host name or index for 'connect'"),
    ] = None,
    file: Annotated[
        str,
        typer.Option(
            "--file", "-f", help="Environment descriptor", envvar="DEVBOXLAB_FILE"
        ),
    ] = config.DESCRIPTOR_FILE,
    settle: Annotated[
        float | None,
        typer.Option("--settle", help="Seconds to wait after starting"),
    ] = None,
    wait_ready: Annotated[
        bool,
        typer.Option("--wait-ready", help="Poll until hosts run instead of sleeping"),
    ] = False,
    probe_workers: Annotated[
        int | None,
        typer.Option("--probe-workers", help="Host pairs probed concurrently"),
    ] = None,
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite an existing descriptor (init)")
    ] = False,
    log_level: Annotated[
        LogLevel,
        typer.Option("--log-level", "-l", help="Log verbosity"),
    ] = config.LOG_LEVEL,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version", callback=_version_callback, is_eager=True, help="Show version"
        ),
    ] = None,
):
    """
    Build, run and inspect a small container lab.

    The environment (hosts, addresses, network, shared mounts) is read from
    a YAML descriptor; without one the stock two-host lab is used.
    """
    configure_logging(log_level)

    try:
        command = LifecycleCommand.parse(verb, target)
    except UsageError as e:
        print_error(str(e))
        print_usage()
        raise typer.Exit(1)

    if command.verb == Verb.INIT:
        _init_descriptor(file, force)
        return

    try:
        env = load_environment(file)
        controller = build_controller(
            env,
            command,
            settle=settle,
            wait_ready=wait_ready,
            probe_workers=probe_workers,
        )
        report = controller.run(command)
    except UsageError as e:
        print_error(str(e))
        print_usage()
        raise typer.Exit(1)
    except DevboxError as e:
        print_error(str(e))
        raise typer.Exit(e.exit_code)

    _finish(report)


def run():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
