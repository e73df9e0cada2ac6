"""Database setup and label listing commands for the labelsync CLI."""

import typer

from labelsync.config import get_config, get_logger
from labelsync.domain.entities import LabelDistribution
from labelsync.infrastructure.cli.async_helpers import interactive_async_operation
from labelsync.infrastructure.cli.ui import console, display_distribution
from labelsync.infrastructure.persistence.database.db_connection import DatabaseHandle
from labelsync.infrastructure.persistence.database.db_models import init_db
from labelsync.infrastructure.persistence.unit_of_work import DatabaseUnitOfWork
from labelsync.infrastructure.services.label_reconciler import LabelReconciler

logger = get_logger(__name__)


def register_setup_commands(app: typer.Typer) -> None:
    """Register setup commands with the Typer app."""
    app.command(
        name="init-db",
        help="Initialize the database schema and seed labels",
        rich_help_panel="⚙️ System",
    )(initialize_database)
    app.command(
        name="labels",
        help="List labels with local release and track counts",
        rich_help_panel="⚙️ System",
    )(list_labels)


def initialize_database() -> None:
    """Initialize the database schema based on current models.

    Creates tables that don't exist yet and seeds missing labels. Existing
    tables and rows are left untouched.
    """
    _initialize_database()

    console.print("\n[bold green]✓ Database schema initialized successfully[/bold green]")
    console.print(f"[dim]{get_config('DATABASE_URL')}[/dim]")
    console.print("\nNext steps:")
    console.print("  • Run [cyan]labelsync status[/cyan] to check Spotify credentials")
    console.print(
        "  • Run [cyan]labelsync sync --label 'Build It Deep' --dry-run[/cyan] to preview a sync"
    )


@interactive_async_operation()
async def _initialize_database() -> None:
    with console.status("[bold blue]Initializing database schema..."):
        async with DatabaseHandle.open() as database:
            await init_db(database.engine)
    logger.info("Database initialization completed successfully")


def list_labels() -> None:
    """List labels with local release and track counts."""
    distribution = _load_distribution()
    if not distribution:
        console.print(
            "[yellow]No labels found. Run [bold]labelsync init-db[/bold] first.[/yellow]"
        )
        return
    display_distribution(distribution)


@interactive_async_operation()
async def _load_distribution() -> list[LabelDistribution]:
    async with DatabaseHandle.open() as database:
        async with database.read_session() as session:
            return await LabelReconciler(DatabaseUnitOfWork(session)).label_distribution()

