"""Label reconciliation command for the labelsync CLI."""

from typing import Annotated

import typer

from labelsync.application.use_cases.reconcile_label import run_reconcile
from labelsync.domain.entities import ReconcileReport
from labelsync.infrastructure.cli.async_helpers import interactive_async_operation
from labelsync.infrastructure.cli.completions import complete_label_names
from labelsync.infrastructure.cli.ui import console, display_reconcile_report


def register_reconcile_commands(app: typer.Typer) -> None:
    """Register reconcile commands with the Typer app."""
    app.command(
        name="reconcile",
        help="Fix label assignments for a label's releases",
        rich_help_panel="🔄 Catalog",
    )(reconcile)


def reconcile(
    label: Annotated[
        str,
        typer.Option(
            "--label",
            "-l",
            help="Label name or slug, e.g. 'buildit-tech'",
            autocompletion=complete_label_names,
        ),
    ],
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show what would change, then roll back"),
    ] = False,
    output_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format (table, json)"),
    ] = "table",
) -> None:
    """Reassign misfiled releases, repair track labels and flag orphans."""
    report = _run_reconcile(label, dry_run)
    display_reconcile_report(report, output_format)


@interactive_async_operation()
async def _run_reconcile(label: str, dry_run: bool) -> ReconcileReport:
    with console.status(f"[bold blue]Reconciling {label}..."):
        return await run_reconcile(label, dry_run=dry_run)
