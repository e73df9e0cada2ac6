"""Catalog sync command for the labelsync CLI."""

from typing import Annotated

import typer

from labelsync.application.use_cases.sync_label import run_sync
from labelsync.config import get_logger
from labelsync.domain.entities import CancellationToken, SyncReport
from labelsync.infrastructure.cli.async_helpers import (
    cancel_on_sigint,
    interactive_async_operation,
)
from labelsync.infrastructure.cli.completions import complete_label_names
from labelsync.infrastructure.cli.ui import console, display_sync_report

logger = get_logger(__name__)

# Exit code for a run stopped by Ctrl+C
EXIT_CANCELLED = 130


def register_sync_commands(app: typer.Typer) -> None:
    """Register sync commands with the Typer app."""
    app.command(
        name="sync",
        help="Sync a label's releases from Spotify",
        rich_help_panel="🔄 Catalog",
    )(sync)


def sync(
    label: Annotated[
        str,
        typer.Option(
            "--label",
            "-l",
            help="Label name or slug, e.g. 'Build It Deep'",
            autocompletion=complete_label_names,
        ),
    ],
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Resolve everything but write nothing"),
    ] = False,
    output_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (table, json)"),
    ] = "table",
) -> None:
    """Sync a label's releases from Spotify into the local database."""
    report = _run_sync(label, dry_run)
    display_sync_report(report, output_format)

    if not report.succeeded:
        raise typer.Exit(code=1)
    if report.cancelled:
        raise typer.Exit(code=EXIT_CANCELLED)


@interactive_async_operation()
async def _run_sync(label: str, dry_run: bool) -> SyncReport:
    token = CancellationToken()
    with cancel_on_sigint(token):
        with console.status(f"[bold blue]Syncing {label}..."):
            return await run_sync(label, dry_run=dry_run, cancel_token=token)
