"""Console output helpers shared by the CLI."""

from rich.console import Console
from rich.markup import escape

console = Console()


def print_status(message: str) -> None:
    console.print(f"[green]\\[INFO][/green] {escape(message)}")


def print_success(message: str) -> None:
    console.print(f"[bold green]✓[/bold green] {escape(message)}")


def print_warning(message: str) -> None:
    console.print(f"[yellow]\\[WARNING][/yellow] {escape(message)}")


def print_error(message: str) -> None:
    console.print(f"[red]\\[ERROR][/red] {escape(message)}")


def print_header(title: str) -> None:
    console.print(f"\n[bold blue]=== {escape(title)} ===[/bold blue]")


def format_bytes(num: int | float) -> str:
    """Format a byte count for display."""
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(num) < 1024:
            return f"{num:.1f} {unit}" if unit != "B" else f"{int(num)} B"
        num /= 1024
    return f"{num:.1f} PB"
