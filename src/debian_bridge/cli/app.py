"""debian-bridge CLI application."""

from __future__ import annotations

import asyncio
import functools
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.logging import RichHandler

from debian_bridge import __version__
from debian_bridge.cli.output import (
    err_console,
    print_error,
    print_probe_report,
    print_programs,
    print_success,
    print_warning,
)
from debian_bridge.core.config import BridgeSettings, load_settings, split_list
from debian_bridge.core.engine import open_engine
from debian_bridge.core.exceptions import BridgeError
from debian_bridge.core.policy import IntegrationFlags

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="debian-bridge",
    help="Run Debian packages in Docker containers with host integration.",
    no_args_is_help=True,
)


def run_async(coro):
    """Run an async coroutine from sync typer commands."""
    return asyncio.run(coro)


def handle_errors(func):
    """Decorator mapping bridge errors to messages and exit codes."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except BridgeError as e:
            print_error(str(e))
            raise typer.Exit(e.exit_code) from None
        except Exception as e:
            logger.debug("Unexpected error", exc_info=True)
            print_error(str(e))
            raise typer.Exit(1) from None
    return wrapper


def configure_logging(verbose: int) -> None:
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"debian-bridge version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", metavar="FILE", help="Set a custom config file"
    ),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Set the level of verbosity"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Bridge Debian packages into containers."""
    configure_logging(verbose)
    ctx.obj = load_settings(config)


@app.command()
@handle_errors
def create(
    ctx: typer.Context,
    package: Path = typer.Argument(..., help="Path to .deb package"),
    command: Optional[str] = typer.Option(None, "--command", help="Custom command to run"),
    dependencies: Optional[str] = typer.Option(
        None, "--dependencies", help="Additional dependencies to install"
    ),
    display: bool = typer.Option(False, "--display", "-d", help="Share host display"),
    sound: bool = typer.Option(False, "--sound", "-s", help="Share sound device"),
    home: bool = typer.Option(False, "--home", "-h", help="Mount home directory"),
    notifications: bool = typer.Option(
        False, "--notifications", "-n", help="Mount dbus"
    ),
    timezone: bool = typer.Option(False, "--timezone", "-t", help="Share local timezone"),
    devices: bool = typer.Option(False, "--devices", "-i", help="Enable devices"),
    desktop_icon: Optional[str] = typer.Option(
        None,
        "--desktop-icon",
        help="Set a path for a desktop icon of current application or use 'default'",
    ),
):
    """Create new docker build for existed package."""
    settings: BridgeSettings = ctx.obj
    flags = IntegrationFlags(
        display=display,
        sound=sound,
        home=home,
        notifications=notifications,
        timezone=timezone,
        devices=devices,
    )

    async def _create():
        async with open_engine(settings) as engine:
            entry = await engine.create(
                package,
                flags,
                command=command,
                dependencies=split_list(dependencies) if dependencies else None,
                desktop_icon=desktop_icon,
            )
            print_success(f"Program '{entry.name}' created.")

    run_async(_create())


@app.command()
@handle_errors
def run(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Program name"),
):
    """Run installed program."""
    settings: BridgeSettings = ctx.obj

    async def _run():
        async with open_engine(settings) as engine:
            status = await engine.run(name)
            if status != 0:
                print_warning(f"'{name}' exited with status {status}")

    run_async(_run())


@app.command()
@handle_errors
def remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Program name"),
):
    """Remove program."""
    settings: BridgeSettings = ctx.obj

    async def _remove():
        async with open_engine(settings) as engine:
            await engine.remove(name)
            print_success(f"Program '{name}' removed.")

    run_async(_remove())


@app.command("list")
@handle_errors
def list_programs(ctx: typer.Context):
    """Show installed programs."""
    settings: BridgeSettings = ctx.obj

    async def _list():
        async with open_engine(settings) as engine:
            print_programs(list(engine.list()))

    run_async(_list())


@app.command()
@handle_errors
def test(ctx: typer.Context):
    """Test compatibility and feature access."""
    settings: BridgeSettings = ctx.obj

    async def _test() -> bool:
        async with open_engine(settings) as engine:
            results = await engine.test()
            engine_available = await engine.engine_available()
            print_probe_report(results, engine_available)
            return engine_available and all(r.available for r in results)

    if not run_async(_test()):
        raise typer.Exit(1)
