"""UI helpers for CLI interaction.

This module provides reusable UI components and helpers for the CLI,
keeping the presentation logic separate from business logic.
"""

from collections.abc import Callable
import functools
import json

from rich.console import Console
from rich.table import Table
import typer

from labelsync.config import get_logger
from labelsync.domain.entities import (
    FailureRecord,
    LabelDistribution,
    ReconcileReport,
    SyncReport,
)

# Initialize console and logger
console = Console()
logger = get_logger(__name__)

# Rows shown per issue table before truncating
MAX_ISSUE_ROWS = 25


def command_error_handler[**P, R](func: Callable[P, R]) -> Callable[P, R]:
    """Decorator to standardize error handling for CLI commands.

    Logs the failure with its traceback, prints a one-line message and
    converts it to ``typer.Exit(1)`` so the process exits non-zero.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        operation = func.__name__.replace("_", " ")

        with logger.contextualize(operation=operation):
            try:
                logger.debug(f"Executing {operation}")
                return func(*args, **kwargs)

            except typer.Exit:
                raise

            except typer.Abort:
                logger.info(f"Operation {operation} aborted by user")
                raise

            except Exception as e:
                logger.exception(f"Error during {operation}")
                console.print(f"\n[bold red]✗ Error during {operation}:[/bold red] {e}")
                raise typer.Exit(code=1) from e

    return wrapper


def _summary_table(rows: list[tuple[str, str]]) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column(style="green bold")
    for metric, value in rows:
        table.add_row(metric, value)
    return table


def display_issues(issues: list[FailureRecord], title: str = "Issues") -> None:
    """Table of skipped or failed items with their reasons."""
    if not issues:
        return

    table = Table(title=f"{title} ({len(issues)})")
    table.add_column("Entity", style="cyan")
    table.add_column("External ID", style="dim")
    table.add_column("Type", style="yellow")
    table.add_column("Reason")

    for issue in issues[:MAX_ISSUE_ROWS]:
        table.add_row(
            issue.entity, issue.external_id or "—", issue.error_type, issue.reason
        )
    console.print(table)

    if len(issues) > MAX_ISSUE_ROWS:
        console.print(f"[dim]… {len(issues) - MAX_ISSUE_ROWS} more in the log file[/dim]")


def display_sync_report(report: SyncReport, output_format: str = "table") -> None:
    """Render a sync report as a summary table or JSON."""
    if output_format == "json":
        console.print_json(json.dumps(report.to_dict()))
        return

    status_style = "green" if report.succeeded else "red"
    mode = " [yellow](dry run)[/yellow]" if report.dry_run else ""
    console.print(
        f"\n[bold blue]Sync: {report.label_name}[/bold blue]{mode} "
        f"[{status_style}]{report.state}[/{status_style}]"
    )

    rows = [
        ("Catalog Total", "—" if report.catalog_total is None else str(report.catalog_total)),
        ("Albums Seen", str(report.albums_seen)),
        ("New Releases", str(report.new_releases)),
        ("Existing Releases", str(report.existing_releases)),
        ("Failed Releases", str(report.failed_releases)),
        ("New Artists", str(report.new_artists)),
        ("New Tracks", str(report.new_tracks)),
    ]
    if report.failed_pages:
        rows.append(("Failed Pages (offset)", ", ".join(map(str, report.failed_pages))))
    if report.repaired_tracks:
        rows.append(("Repaired Track Labels", str(report.repaired_tracks)))
    if report.orphan_release_ids:
        rows.append(("Orphan Releases", str(len(report.orphan_release_ids))))
    if report.execution_time > 0:
        rows.append(("Duration", f"{report.execution_time:.1f}s"))
    console.print(_summary_table(rows))

    display_issues(report.issues)

    if report.cancelled:
        console.print("\n[yellow]Sync was cancelled; re-run to pick up the rest.[/yellow]")
    if report.error:
        console.print(f"\n[bold red]✗ {report.error}[/bold red]")
    console.print()


def display_distribution(distribution: list[LabelDistribution]) -> None:
    """Per-label release and track counts."""
    table = Table(title="Label Distribution")
    table.add_column("Label", style="cyan")
    table.add_column("Releases", justify="right")
    table.add_column("Tracks", justify="right")
    table.add_column("Catalog", justify="right", style="dim")
    table.add_column("Missing", justify="right", style="yellow")

    for row in distribution:
        table.add_row(
            row.label_name,
            str(row.releases),
            str(row.tracks),
            "—" if row.catalog_total is None else str(row.catalog_total),
            "—" if row.missing is None else str(row.missing),
        )
    console.print(table)


def display_reconcile_report(
    report: ReconcileReport, output_format: str = "table"
) -> None:
    """Render a reconcile report as tables or JSON."""
    if output_format == "json":
        console.print_json(
            json.dumps({
                "label": report.label_name,
                "dry_run": report.dry_run,
                "releases_checked": report.releases_checked,
                "reassignments": [
                    {
                        "release_id": r.release_id,
                        "external_id": r.external_id,
                        "from_label_id": r.from_label_id,
                        "to_label_id": r.to_label_id,
                        "rule": r.rule,
                    }
                    for r in report.reassignments
                ],
                "ambiguous": [
                    {"external_id": a.external_id, "reason": a.reason}
                    for a in report.ambiguous
                ],
                "orphan_release_ids": report.orphan_release_ids,
                "repaired_tracks": report.repaired_tracks,
                "placeholder_links_removed": report.placeholder_links_removed,
            })
        )
        return

    mode = " [yellow](dry run, nothing written)[/yellow]" if report.dry_run else ""
    console.print(f"\n[bold blue]Reconcile: {report.label_name}[/bold blue]{mode}")
    console.print(
        _summary_table([
            ("Releases Checked", str(report.releases_checked)),
            ("Reassigned", str(len(report.reassignments))),
            ("Ambiguous", str(len(report.ambiguous))),
            ("Repaired Track Labels", str(report.repaired_tracks)),
            ("Placeholder Links Removed", str(report.placeholder_links_removed)),
            ("Orphan Releases", str(len(report.orphan_release_ids))),
        ])
    )

    if report.reassignments:
        table = Table(title="Reassignments")
        table.add_column("Release", style="dim", justify="right")
        table.add_column("External ID", style="cyan")
        table.add_column("From", justify="right")
        table.add_column("To", justify="right", style="green")
        table.add_column("Rule", style="yellow")
        for r in report.reassignments:
            table.add_row(
                str(r.release_id),
                r.external_id,
                "—" if r.from_label_id is None else str(r.from_label_id),
                str(r.to_label_id),
                r.rule,
            )
        console.print(table)

    display_issues(report.ambiguous, title="Needs Manual Review")

    if report.distribution:
        display_distribution(report.distribution)
    console.print()
