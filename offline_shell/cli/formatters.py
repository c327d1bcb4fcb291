"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from offline_shell.models.config import ShellConfig
from offline_shell.storage.lifecycle import LifecycleReport


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `offline-shell init <ORIGIN>` to create a configuration.",
            "• Check the values with `offline-shell --show-config`.",
        ],
        "LifecycleError": [
            "• Check that the origin is reachable and serves every seed path.",
            "• A namespace may be locked by another process; retry the command.",
        ],
        "CacheIOError": [
            "• Check permissions and free space in the cache directory.",
            "• Run `offline-shell --clear-cache` to start from an empty cache.",
        ],
        "NetworkError": [
            "• The origin could not be reached.",
            "• Check the `origin` setting and your network connection.",
        ],
        "OSError": [
            "• The proxy port may already be in use. Try `--port`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the raw configuration file values."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: ShellConfig):
    """Displays a summary of the effective settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Origin:", f"[green]{config.origin}[/green]")
    table.add_row("Static Namespace:", config.static_namespace)
    table.add_row("Runtime Namespace:", config.runtime_namespace)
    table.add_row("Seed Paths:", ", ".join(config.seed_paths))
    table.add_row("Store:", config.store)
    table.add_row("Listen:", f"{config.host}:{config.port}")
    table.add_row("Fetch Timeout:", f"{config.fetch_timeout:g}s")
    table.add_row("Sync Tag:", f"[dim]{config.sync_tag}[/dim]")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_report(report: LifecycleReport):
    """Displays the outcome of an install, activate or purge run."""
    console = Console()
    title = report.operation.capitalize()

    if report.seeded:
        console.print(f"[green]✓ {title}: cached {len(report.seeded)} resources.[/green]")
    for name in sorted(report.deleted):
        console.print(f"[green]✓[/green] Removed namespace [cyan]{name}[/cyan]")
    if report.ok and not report.seeded and not report.deleted:
        console.print(f"[dim]{title}: nothing to do.[/dim]")

    if report.failures:
        table = Table(title=f"[bold red]{title} failures[/bold red]", box=box.ROUNDED)
        table.add_column("Target", style="cyan")
        table.add_column("Error", style="red")
        for target, error in sorted(report.failures.items()):
            table.add_row(target, error)
        console.print(table)


def print_namespaces_table(rows: list[tuple[str, int, bool]]):
    """Displays cache namespaces as (name, entry count, is current) rows."""
    console = Console()
    if not rows:
        console.print("[dim]No cache namespaces exist yet.[/dim]")
        return

    table = Table(title="Cache Namespaces", box=box.ROUNDED)
    table.add_column("Namespace", style="cyan")
    table.add_column("Entries", justify="right", style="green")
    table.add_column("Status")
    for name, count, is_current in rows:
        status = "[green]current[/green]" if is_current else "[yellow]stale[/yellow]"
        table.add_row(name, str(count), status)
    console.print(table)


def print_session_summary(stats: dict[str, Any]):
    """Displays request statistics when the proxy shuts down."""
    console = Console()
    if not stats.get("requests_handled"):
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right", width=20)
    table.add_column(style="white", justify="left")

    table.add_row("Requests:", f"[bold]{stats['requests_handled']}[/bold]")
    table.add_row("Served Offline:", f"[yellow]{stats['offline_responses']}[/yellow]")
    for source, count in sorted(stats.get("by_source", {}).items()):
        table.add_row(f"{source}:", str(count))
    table.add_row("", "")
    table.add_row("Cache Writes:", f"[green]{stats['cache_writes']}[/green]")
    if stats.get("cache_write_failures"):
        table.add_row(
            "Write Failures:", f"[bold red]{stats['cache_write_failures']}[/bold red]"
        )

    console.print()
    console.print(
        Panel(
            table,
            title="[bold]Session Summary[/bold]",
            border_style="green",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
