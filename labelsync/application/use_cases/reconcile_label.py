"""Label reconciliation use case.

Runs the reconciler for one label in a single transaction. A dry run
executes the same statements and rolls them back, so the report shows
exactly what a real run would change.
"""

from collections.abc import Iterable, Mapping
from contextlib import AsyncExitStack

from attrs import define, field

from labelsync.config import get_logger, run_context
from labelsync.domain.entities import ReconcileReport
from labelsync.domain.errors import UnknownLabelError
from labelsync.domain.labels import DEFAULT_KEYWORD_TABLE
from labelsync.infrastructure.persistence.database.db_connection import DatabaseHandle
from labelsync.infrastructure.persistence.unit_of_work import DatabaseUnitOfWork
from labelsync.infrastructure.services.label_reconciler import LabelReconciler

logger = get_logger(__name__)


@define(frozen=True, slots=True)
class ReconcileLabelCommand:
    """Command for reconciling one label."""

    label_name: str
    dry_run: bool = False
    placeholder_names: tuple[str, ...] | None = None


@define(slots=True)
class ReconcileLabelUseCase:
    """Reconcile one label's releases against the classification rules."""

    database: DatabaseHandle
    keyword_table: Mapping[str, Iterable[str]] = field(
        factory=lambda: DEFAULT_KEYWORD_TABLE
    )

    async def execute(self, command: ReconcileLabelCommand) -> ReconcileReport:
        """Execute with explicit transaction control.

        Raises:
            UnknownLabelError: No label matches ``command.label_name``
        """
        with run_context(command.label_name, command.dry_run):
            report = await self._reconcile(command)
        return report

    async def _reconcile(self, command: ReconcileLabelCommand) -> ReconcileReport:
        async with self.database.session_factory() as session:
            async with DatabaseUnitOfWork(session) as uow:
                label = await uow.get_label_repository().find_by_name_or_slug(
                    command.label_name
                )
                if label is None:
                    raise UnknownLabelError(f"Unknown label: {command.label_name!r}")

                report = await LabelReconciler(uow).reconcile_label(
                    label,
                    dry_run=command.dry_run,
                    keyword_table=self.keyword_table,
                    placeholder_names=command.placeholder_names,
                )

                if command.dry_run:
                    await uow.rollback()
                    logger.info("Dry run: reconciliation changes rolled back")

        return report


async def run_reconcile(
    label_name: str,
    dry_run: bool = False,
    *,
    database: DatabaseHandle | None = None,
    placeholder_names: Iterable[str] | None = None,
) -> ReconcileReport:
    """Reconcile one label, acquiring the database for this run only."""
    async with AsyncExitStack() as stack:
        if database is None:
            database = await stack.enter_async_context(DatabaseHandle.open())

        command = ReconcileLabelCommand(
            label_name=label_name,
            dry_run=dry_run,
            placeholder_names=(
                tuple(placeholder_names) if placeholder_names is not None else None
            ),
        )
        return await ReconcileLabelUseCase(database=database).execute(command)
