"""labelsync CLI - Main application entry point and app structure."""

from importlib.metadata import PackageNotFoundError, version
from typing import Annotated

from rich.console import Console
import typer

from labelsync.config import get_logger, log_startup_info, setup_loguru_logger
from labelsync.infrastructure.cli.reconcile_commands import (
    register_reconcile_commands,
)
from labelsync.infrastructure.cli.setup_commands import register_setup_commands
from labelsync.infrastructure.cli.status_commands import register_status_commands
from labelsync.infrastructure.cli.sync_commands import register_sync_commands

try:
    VERSION = version("labelsync")
except PackageNotFoundError:
    VERSION = "0.0.0+local"

console = Console(width=80)
logger = get_logger(__name__)

app = typer.Typer(
    help=f"💿 labelsync v{VERSION} - Spotify catalog sync for record labels",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
)

register_sync_commands(app)
register_reconcile_commands(app)
register_setup_commands(app)
register_status_commands(app)


@app.command(name="version", rich_help_panel="⚙️ System")
def version_command() -> None:
    """Show version information."""
    console.print(f"[bold bright_blue]💿 labelsync[/bold bright_blue] [dim]v{VERSION}[/dim]")


@app.callback()
def init_cli(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output"),
    ] = False,
) -> None:
    """Initialize labelsync CLI."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    setup_loguru_logger(verbose)
    if verbose:
        log_startup_info()


def main() -> int:
    """Application entry point."""
    try:
        return app() or 0
    except Exception:
        logger.exception("Unhandled exception")
        return 1
