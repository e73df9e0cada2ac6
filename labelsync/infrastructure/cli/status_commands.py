"""Service status commands for the labelsync CLI."""

import asyncio

from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError
import typer

from labelsync.config import get_logger, resilient_operation
from labelsync.domain.errors import AuthError
from labelsync.infrastructure.cli.async_helpers import interactive_async_operation
from labelsync.infrastructure.cli.ui import console
from labelsync.infrastructure.connectors import SpotifyCatalogConnector
from labelsync.infrastructure.persistence.database.db_connection import DatabaseHandle
from labelsync.infrastructure.persistence.unit_of_work import DatabaseUnitOfWork

logger = get_logger(__name__)

SERVICES = ["Spotify", "Database"]


def register_status_commands(app: typer.Typer) -> None:
    """Register status commands with the Typer app."""
    app.command(
        name="status",
        help="Check Spotify credentials and database connectivity",
        rich_help_panel="⚙️ System",
    )(status)


@resilient_operation("spotify_check")
async def _check_spotify() -> tuple[bool, str]:
    """Check that the configured client credentials are accepted."""
    async with SpotifyCatalogConnector() as catalog:
        match catalog.auth_manager:
            case None:
                return False, "Not configured - missing API credentials"
            case _:
                try:
                    await catalog.authenticate()
                except AuthError as e:
                    return False, f"Authentication failed: {e}"
                return True, "Client credentials accepted"


@resilient_operation("database_check")
async def _check_database() -> tuple[bool, str]:
    """Check the database is reachable and initialized."""
    try:
        async with DatabaseHandle.open() as database:
            async with database.read_session() as session:
                labels = await DatabaseUnitOfWork(session).get_label_repository().list_labels()
    except SQLAlchemyError as e:
        return False, f"Not reachable or not initialized: {e.__class__.__name__}"
    if not labels:
        return False, "No labels - run init-db"
    return True, f"{len(labels)} labels"


async def _check_connections() -> list[tuple[str, bool, str]]:
    """Check all services concurrently.

    Returns:
        list[tuple[str, bool, str]]: List of (service_name, is_connected, details)
    """
    results = await asyncio.gather(
        _check_spotify(), _check_database(), return_exceptions=True
    )

    def process_result(service: str, result: object) -> tuple[str, bool, str]:
        match result:
            case Exception() as e:
                return service, False, f"Error: {e!s}"
            case (is_connected, details):
                return service, is_connected, details
            case _:
                return service, False, "Invalid response format"

    return [
        process_result(service, result)
        for service, result in zip(SERVICES, results, strict=True)
    ]


def status() -> None:
    """Check Spotify credentials and database connectivity."""
    results = _run_status_check()

    table = Table(title="labelsync Status")
    table.add_column("Service", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Details", style="dim")
    for service, connected, details in results:
        status_text = (
            "[green]✓ Connected[/green]" if connected else "[red]✗ Not Connected[/red]"
        )
        table.add_row(service, status_text, details)
    console.print(table)

    connected_count = sum(1 for _, connected, _ in results if connected)
    logger.info(
        "Service status check completed", connected=connected_count, total=len(SERVICES)
    )
    if connected_count < len(SERVICES):
        console.print(
            "\n[yellow]Set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET in .env "
            "and run [bold]labelsync init-db[/bold].[/yellow]"
        )
        raise typer.Exit(code=1)


@interactive_async_operation()
async def _run_status_check() -> list[tuple[str, bool, str]]:
    with console.status("[bold blue]Checking connections..."):
        return await _check_connections()
