"""CLI output formatting using rich."""

from rich.console import Console
from rich.table import Table

from debian_bridge.core.policy import ProbeResult
from debian_bridge.core.registry import BridgeEntry

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    err_console.print(f"[red]error:[/red] {message}")


def print_warning(message: str) -> None:
    err_console.print(f"[yellow]warning:[/yellow] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]{message}[/green]")


def _features(entry: BridgeEntry) -> str:
    return ", ".join(feature.value for feature in entry.flags.features()) or "-"


def print_programs(programs: list[BridgeEntry]) -> None:
    if not programs:
        console.print("[dim]No program added yet.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Image")
    table.add_column("Features")

    for p in programs:
        table.add_row(p.name, p.version or "", p.image, _features(p))

    console.print(table)


def print_probe_report(results: list[ProbeResult], engine_available: bool) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Feature")
    table.add_column("Status")
    table.add_column("Details")

    for r in results:
        status = "[green]pass[/green]" if r.available else "[red]fail[/red]"
        table.add_row(r.feature.value, status, r.detail)

    console.print(table)

    if engine_available:
        console.print("[green]Docker engine is reachable.[/green]")
    else:
        console.print("[red]Docker engine is not reachable.[/red]")
