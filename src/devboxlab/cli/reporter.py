"""
Status reporter.

Pure formatting of a run report: host states, probe results, network
information and a static block of usage examples. Output failures are
logged and swallowed; reporting never changes a run's outcome.
"""

from rich.table import Table

from devboxlab.cli.output import console, print_header
from devboxlab.core.controller import RunReport
from devboxlab.core.prober import ProbeResult
from devboxlab.models.environment import Environment
from devboxlab.orchestrator.compose import HostStatus
from devboxlab.utils.logger import get_logger

logger = get_logger(__name__)

INSTALLED_TOOLS = [
    ("Network", "nmap, nc, curl, wget, tcpdump, ssh"),
    ("Development", "git, vim, nano, python3, nodejs"),
    ("System", "htop, tree, zip, unzip, jq"),
]


# =============================================================================
# Tables
# =============================================================================


def format_host_table(env: Environment, statuses: list[HostStatus]) -> Table:
    table = Table(title="Container Status", show_header=True)
    table.add_column("Host", style="bold cyan")
    table.add_column("Address")
    table.add_column("State", justify="center")
    table.add_column("Status", style="dim")

    for s in statuses:
        style = (
            "green" if s.running else "yellow" if s.state.value == "exited" else "dim"
        )
        address = next((h.address for h in env.hosts if h.name == s.host), "")
        table.add_row(
            s.host,
            address,
            f"[{style}]{s.state.value}[/{style}]",
            s.status,
        )
    return table


def format_probe_table(probes: list[ProbeResult]) -> Table:
    table = Table(title="Connectivity", show_header=True)
    table.add_column("Source", style="bold cyan")
    table.add_column("Destination", style="bold cyan")
    table.add_column("Result", justify="center")
    table.add_column("Detail")

    for p in probes:
        if p.success:
            result = "[green]pass[/green]"
            detail = f"{p.latency_ms:.3f} ms avg" if p.latency_ms is not None else ""
        else:
            result = "[red]fail[/red]"
            detail = p.reason or ""
        table.add_row(p.source, p.destination, result, detail)
    return table


# =============================================================================
# Reference Block
# =============================================================================


def usage_examples(env: Environment) -> list[str]:
    """Example commands for the declared hosts."""
    lines = []
    for index, host in enumerate(env.hosts, start=1):
        lines.append(
            f"Connect to {host.name}: devboxlab connect{index}  "
            f"(or docker exec -it {host.name} bash)"
        )

    first = env.hosts[0].name
    lines.append(f"Test network scan: docker exec {first} nmap -sn {env.network.subnet}")
    if len(env.hosts) > 1:
        second = env.hosts[1].name
        lines.append(f"Test netcat server: docker exec {second} nc -l -p 8080")
        lines.append(f"Test netcat client: docker exec {first} nc {second} 8080")
    return lines


def render_info(env: Environment) -> None:
    console.print("\n[bold blue]Network Information:[/bold blue]")
    for host in env.hosts:
        console.print(f"{host.name}: {host.address}", markup=False, highlight=False)
    console.print(f"Network: {env.network.subnet}", markup=False, highlight=False)

    console.print("\n[bold blue]Installed Tools:[/bold blue]")
    for category, tools in INSTALLED_TOOLS:
        console.print(f"{category}: {tools}", markup=False, highlight=False)

    console.print("\n[bold blue]Usage Examples:[/bold blue]")
    for line in usage_examples(env):
        console.print(line, markup=False, highlight=False)


# =============================================================================
# Entry Point
# =============================================================================


def render_report(env: Environment, report: RunReport, show_info: bool = True) -> None:
    """
    Print a run report.

    Args:
        env: Environment the run acted on.
        report: Report produced by the controller.
        show_info: Include the network/tools/usage reference block.
    """
    try:
        if report.probes is not None:
            print_header("Testing Network Connectivity")
            if report.probes:
                console.print(format_probe_table(report.probes))
            else:
                console.print("[dim]No host pairs to probe.[/dim]")

        if report.statuses is not None:
            print_header("Container Information")
            if report.statuses:
                console.print(format_host_table(env, report.statuses))
            else:
                console.print("[yellow]No containers found for this environment.[/yellow]")

        if show_info:
            render_info(env)
    except OSError as e:
        logger.warning(f"Failed to write report: {e}")
