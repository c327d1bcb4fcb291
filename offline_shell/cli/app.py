"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from aiohttp import web
from rich.console import Console
from rich.logging import RichHandler

from offline_shell import __version__
from offline_shell.core.engine import OfflineEngine
from offline_shell.exceptions import LifecycleError, OfflineShellError
from offline_shell.models.config import ShellConfig
from offline_shell.network.fetcher import HttpFetcher
from offline_shell.storage.cache import create_store
from offline_shell.storage.config_manager import ConfigManager
from offline_shell.storage.lifecycle import LifecycleReport
from offline_shell.web.proxy import build_proxy

from .formatters import (
    print_config,
    print_namespaces_table,
    print_report,
    print_session_summary,
    print_validation_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("offline_shell")

app = typer.Typer(
    name="offline-shell",
    help=(
        "Offline-first caching proxy for web applications. Use 'offline-shell"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "offline-shell"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict | None = None) -> ShellConfig:
    try:
        return ConfigManager(CONFIG_FILE).load_config(cli_options)
    except OfflineShellError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e


def _build_engine(config: ShellConfig) -> tuple[OfflineEngine, HttpFetcher]:
    fetcher = HttpFetcher(
        timeout=config.fetch_timeout,
        max_connections=config.max_connections,
        failure_threshold=config.circuit_failure_threshold,
        recovery_timeout=config.circuit_recovery_timeout,
    )
    return OfflineEngine(config, create_store(config), fetcher), fetcher


def _finish(report: LifecycleReport) -> None:
    print_report(report)
    if not report.ok:
        raise LifecycleError(
            f"{report.operation} finished with {len(report.failures)} failure(s).",
            report.failures,
        )


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    clear_cache: bool = typer.Option(
        False, "--clear-cache", help="Delete every cache namespace and exit."
    ),
):
    """Offline Shell CLI"""
    if version:
        console.print(f"[bold]offline-shell[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("offline_shell").setLevel(log_level)

    if clear_cache:
        config = _load_config()
        console.print("[cyan]Deleting all cache namespaces...[/cyan]")

        async def _clear() -> LifecycleReport:
            engine, fetcher = _build_engine(config)
            async with fetcher:
                # An empty current set makes every namespace stale
                try:
                    return await engine.on_activate(current_names=frozenset())
                finally:
                    await engine.close()

        report = asyncio.run(_clear())
        if report.ok:
            console.print(
                f"[green]✓ Cache cleared successfully ({len(report.deleted)} "
                "namespaces removed).[/green]"
            )
        else:
            print_report(report)
            raise typer.Exit(code=1)
        raise typer.Exit()

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]offline-shell init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        print_config(CONFIG_FILE, ConfigManager(CONFIG_FILE).get_raw_values())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    origin: str = typer.Argument(..., help="URL of the web application to front."),
    cache_prefix: str = typer.Option(
        "app", "--prefix", help="Prefix for cache namespace names."
    ),
    version: str = typer.Option(
        "1", "--cache-version", help="Cache version; bump it to force re-seeding."
    ),
    port: int = typer.Option(8080, "--port", "-p", help="Port the proxy listens on."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Create the configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        "origin": origin,
        "cache_prefix": cache_prefix,
        "version": version,
        "port": port,
    }
    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except OfflineShellError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to serve! Try: [cyan]offline-shell serve[/cyan]")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Interface to bind."),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to listen on."),
    memory: bool = typer.Option(
        False, "--memory", help="Keep the cache in memory instead of on disk."
    ),
    log_dir: str | None = typer.Option(
        None, "--log-dir", help="Also write JSON request logs to this directory."
    ),
):
    """Run the caching proxy in front of the configured origin."""
    cli_options = {
        key: value
        for key, value in {
            "host": host,
            "port": port,
            "store": "memory" if memory else None,
            "log_dir": log_dir,
        }.items()
        if value is not None
    }
    config = _load_config(cli_options)
    proxy = build_proxy(config)

    console.print(
        f"[bold cyan]Offline shell listening on http://{config.host}:{config.port}"
        f"[/bold cyan] → [dim]{config.origin}[/dim]"
    )
    web.run_app(
        proxy.build_app(),
        host=config.host,
        port=config.port,
        print=None,
        access_log=None,
    )
    print_session_summary(proxy.engine.stats.to_dict())


@app.command()
def install():
    """Pre-cache the app shell (seed manifest) into the static namespace."""
    config = _load_config()

    async def _install() -> LifecycleReport:
        engine, fetcher = _build_engine(config)
        async with fetcher:
            try:
                return await engine.on_install()
            finally:
                await engine.close()

    _finish(asyncio.run(_install()))


@app.command()
def activate():
    """Delete every cache namespace that does not belong to the current version."""
    config = _load_config()

    async def _activate() -> LifecycleReport:
        engine, fetcher = _build_engine(config)
        async with fetcher:
            try:
                return await engine.on_activate()
            finally:
                await engine.close()

    _finish(asyncio.run(_activate()))


@app.command()
def purge(
    prefix: str | None = typer.Option(
        None, "--prefix", help="Only purge namespaces starting with this prefix."
    ),
):
    """Delete stale cache namespaces under a prefix (default: this app's)."""
    config = _load_config()

    async def _purge() -> LifecycleReport:
        engine, fetcher = _build_engine(config)
        async with fetcher:
            try:
                return await engine.on_purge_request(prefix=prefix)
            finally:
                await engine.close()

    _finish(asyncio.run(_purge()))


@app.command()
def namespaces():
    """List cache namespaces and their entry counts."""
    config = _load_config()

    async def _list() -> list[tuple[str, int, bool]]:
        store = create_store(config)
        rows = []
        for name in await store.names():
            namespace = await store.open(name)
            rows.append(
                (name, len(await namespace.keys()), name in config.current_namespaces)
            )
        return rows

    try:
        rows = asyncio.run(_list())
    except OfflineShellError as e:
        console.print(f"[red]Error accessing cache: {e}[/red]")
        raise typer.Exit(code=1) from e
    print_namespaces_table(rows)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        print_validation_table(config)
    except OfflineShellError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
