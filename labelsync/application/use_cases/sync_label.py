"""Per-label catalog sync.

Drives one run through the state machine

    idle -> authenticating -> paginating -> (resolving -> upserting)*
         -> reconciling -> done | failed

Each album is fetched, resolved and written on its own; one bad album is
recorded in the report and never stops the run. Only run-level errors
(unknown label, rejected credentials) move the run to ``failed``.
"""

from contextlib import AsyncExitStack
import time

from attrs import define, field
from sqlalchemy.exc import SQLAlchemyError

from labelsync.config import get_config, get_logger, run_context
from labelsync.domain.entities import (
    CancellationToken,
    CatalogAlbum,
    FailureRecord,
    Label,
    SyncReport,
    SyncState,
)
from labelsync.domain.errors import (
    AuthError,
    CatalogSyncError,
    MalformedPayload,
    RateLimited,
    TransientCatalogError,
    UnknownLabelError,
)
from labelsync.domain.repositories.interfaces import CatalogClientProtocol
from labelsync.infrastructure.connectors import SpotifyCatalogConnector
from labelsync.infrastructure.persistence.database.db_connection import DatabaseHandle
from labelsync.infrastructure.persistence.unit_of_work import DatabaseUnitOfWork
from labelsync.infrastructure.retry import RetryPolicy
from labelsync.infrastructure.services.catalog_writer import write_album_atomically
from labelsync.infrastructure.services.identity_resolver import (
    CatalogIdentityResolver,
)
from labelsync.infrastructure.services.label_reconciler import LabelReconciler

logger = get_logger(__name__)

# A search page failing with one of these is skipped, not fatal
_PAGE_ERRORS = (RateLimited, TransientCatalogError, MalformedPayload)


@define(frozen=True, slots=True)
class SyncLabelCommand:
    """Command for syncing one label's catalog."""

    label_name: str
    dry_run: bool = False


@define(slots=True)
class SyncLabelUseCase:
    """Sync one label from the catalog into the local database.

    The database handle and catalog client are injected; whoever created them
    releases them.
    """

    database: DatabaseHandle
    catalog: CatalogClientProtocol
    retry_policy: RetryPolicy = field(factory=RetryPolicy.from_settings)
    page_size: int = field(factory=lambda: get_config("SPOTIFY_PAGE_SIZE", 50))
    max_albums: int = field(factory=lambda: get_config("SPOTIFY_MAX_ALBUMS", 500))
    write_timeout: float = field(factory=lambda: get_config("DB_WRITE_TIMEOUT", 30))

    async def execute(
        self,
        command: SyncLabelCommand,
        cancel_token: CancellationToken | None = None,
    ) -> SyncReport:
        """Run the sync and return its report; never raises for run-level errors."""
        token = cancel_token or CancellationToken()
        report = SyncReport(label_name=command.label_name, dry_run=command.dry_run)
        with run_context(command.label_name, command.dry_run):
            await self._run(command, report, token)
        return report

    async def _run(
        self, command: SyncLabelCommand, report: SyncReport, token: CancellationToken
    ) -> None:
        start_time = time.perf_counter()

        try:
            label = await self._find_label(command.label_name)
            report.label_name = label.name

            report.transition(SyncState.AUTHENTICATING)
            await self.catalog.authenticate()

            report.transition(SyncState.PAGINATING)
            await self._sync_pages(label, report, token, command.dry_run)

            report.transition(SyncState.RECONCILING)
            await self._post_sync_checks(label, report, command.dry_run)

            report.transition(SyncState.DONE)
        except (AuthError, UnknownLabelError) as e:
            logger.error(f"Sync of '{command.label_name}' failed: {e}")
            report.error = str(e)
            report.record_issue(FailureRecord.from_error("run", None, e))
            report.transition(SyncState.FAILED)
        except Exception as e:
            logger.exception(f"Sync of '{command.label_name}' crashed: {e}")
            report.error = str(e)
            report.transition(SyncState.FAILED)
            raise
        finally:
            report.execution_time = time.perf_counter() - start_time

        logger.info(
            f"Sync of '{report.label_name}' finished: {report.state}",
            dry_run=report.dry_run,
            new_releases=report.new_releases,
            existing_releases=report.existing_releases,
            failed_releases=report.failed_releases,
            failed_pages=report.failed_pages,
            cancelled=report.cancelled,
            execution_time=f"{report.execution_time:.2f}s",
        )

    async def _find_label(self, label_name: str) -> Label:
        async with self.database.read_session() as session:
            label = await DatabaseUnitOfWork(session).get_label_repository().find_by_name_or_slug(
                label_name
            )
        if label is None:
            raise UnknownLabelError(f"Unknown label: {label_name!r}")
        return label

    # -------------------------------------------------------------------------
    # PAGINATION
    # -------------------------------------------------------------------------

    async def _sync_pages(
        self,
        label: Label,
        report: SyncReport,
        token: CancellationToken,
        dry_run: bool,
    ) -> None:
        """Walk search pages until a short page, the safety cap, or the total."""
        seen: set[str] = set()
        # (entity, external_id) a dry run has already counted as new
        planned: set[tuple[str, str]] = set()
        offset = 0
        total: int | None = None

        while offset < self.max_albums:
            if token.cancelled:
                break
            if report.state != SyncState.PAGINATING:
                report.transition(SyncState.PAGINATING)

            limit = min(self.page_size, self.max_albums - offset)
            try:
                page = await self.catalog.search_albums_by_label(
                    label.name, offset=offset, limit=limit
                )
            except _PAGE_ERRORS as e:
                logger.warning(f"Search page at offset {offset} failed: {e}")
                report.failed_pages.append(offset)
                report.record_issue(FailureRecord.from_error("page", None, e))
                # Without a total there is no way to tell where the catalog ends
                if total is None:
                    break
                offset += limit
                if offset >= total:
                    break
                continue

            if total is None:
                total = page.total
                report.catalog_total = total
                logger.info(
                    f"Catalog reports {total} albums for '{label.name}'",
                    max_albums=self.max_albums,
                )

            if page.dropped:
                report.record_issue(
                    FailureRecord(
                        entity="page",
                        external_id=None,
                        reason=f"{page.dropped} null album entries at offset {offset}",
                        error_type=MalformedPayload.error_type,
                    )
                )

            for summary in page.items:
                if token.cancelled:
                    break
                if summary.external_id in seen:
                    logger.debug(f"Skipping duplicate album {summary.external_id}")
                    continue
                seen.add(summary.external_id)
                with logger.contextualize(album_id=summary.external_id):
                    await self._sync_album(summary, label, report, dry_run, planned)

            if token.cancelled:
                break

            offset += limit
            if page.is_last or (total is not None and offset >= total):
                break
        else:
            logger.warning(
                f"Stopped at the {self.max_albums}-album safety cap",
                catalog_total=total,
            )

        if token.cancelled:
            report.cancelled = True
            logger.warning(f"Sync cancelled: {token.reason}", albums_seen=report.albums_seen)

    # -------------------------------------------------------------------------
    # PER-ALBUM WORK
    # -------------------------------------------------------------------------

    async def _sync_album(
        self,
        summary: CatalogAlbum,
        label: Label,
        report: SyncReport,
        dry_run: bool,
        planned: set[tuple[str, str]],
    ) -> None:
        """Fetch, resolve and (unless dry run) write one album."""
        report.albums_seen += 1
        report.transition(SyncState.RESOLVING)

        try:
            album = await self.catalog.get_album_detail(summary.external_id)
        except AuthError:
            raise
        except CatalogSyncError as e:
            self._record_album_failure(report, summary.external_id, e)
            return

        if dry_run:
            await self._preview_album(album, report, planned)
            return

        report.transition(SyncState.UPSERTING)
        try:
            result = await write_album_atomically(
                self.database,
                album,
                label.id,
                retry_policy=self.retry_policy,
                timeout=self.write_timeout,
            )
        except (CatalogSyncError, SQLAlchemyError, TimeoutError) as e:
            self._record_album_failure(report, album.external_id, e)
            return

        if result.release_created:
            report.new_releases += 1
        else:
            report.existing_releases += 1
        report.new_artists += result.new_artists
        report.new_tracks += result.new_tracks
        for failure in result.failures:
            report.record_issue(failure)

    async def _preview_album(
        self,
        album: CatalogAlbum,
        report: SyncReport,
        planned: set[tuple[str, str]],
    ) -> None:
        """Dry run: resolve against the database without writing.

        Nothing is written between albums, so an artist or track shared by
        several albums resolves as new each time; ``planned`` counts it once.
        """
        async with self.database.read_session() as session:
            uow = DatabaseUnitOfWork(session)
            resolver = CatalogIdentityResolver(
                uow.get_artist_repository(),
                uow.get_release_repository(),
                uow.get_track_repository(),
            )
            try:
                resolution = await resolver.resolve_album(album)
            except CatalogSyncError as e:
                self._record_album_failure(report, album.external_id, e)
                return

        if resolution.release.is_new:
            report.new_releases += 1
        else:
            report.existing_releases += 1
        new_artists = {("artist", ext_id) for ext_id in resolution.new_artist_ids}
        new_tracks = {("track", ext_id) for ext_id in resolution.new_track_ids}
        report.new_artists += len(new_artists - planned)
        report.new_tracks += len(new_tracks - planned)
        planned.update(new_artists, new_tracks)

    @staticmethod
    def _record_album_failure(
        report: SyncReport, external_id: str, error: Exception
    ) -> None:
        logger.warning(f"Album {external_id} failed: {error}")
        report.failed_releases += 1
        report.record_issue(FailureRecord.from_error("album", external_id, error))

    # -------------------------------------------------------------------------
    # RECONCILING
    # -------------------------------------------------------------------------

    async def _post_sync_checks(
        self, label: Label, report: SyncReport, dry_run: bool
    ) -> None:
        """Repair track label drift and flag orphan releases for this label."""
        if dry_run:
            async with self.database.read_session() as session:
                reconciler = LabelReconciler(DatabaseUnitOfWork(session))
                report.orphan_release_ids = await reconciler.find_orphan_releases(
                    label.id
                )
            return

        async with self.database.session_factory() as session:
            async with DatabaseUnitOfWork(session) as uow:
                reconciler = LabelReconciler(uow)
                report.repaired_tracks = await reconciler.repair_track_labels(label.id)
                report.orphan_release_ids = await reconciler.find_orphan_releases(
                    label.id
                )


async def run_sync(
    label_name: str,
    dry_run: bool = False,
    cancel_token: CancellationToken | None = None,
    *,
    database: DatabaseHandle | None = None,
    catalog: CatalogClientProtocol | None = None,
    retry_policy: RetryPolicy | None = None,
) -> SyncReport:
    """Sync one label, acquiring database and catalog for this run only.

    Injected ``database`` and ``catalog`` are used as-is and left open.

    Example:
        >>> report = await run_sync("Build It Deep", dry_run=True)
        >>> report.state
        <SyncState.DONE: 'done'>
    """
    async with AsyncExitStack() as stack:
        if database is None:
            database = await stack.enter_async_context(DatabaseHandle.open())
        if catalog is None:
            catalog = await stack.enter_async_context(SpotifyCatalogConnector())

        use_case = SyncLabelUseCase(
            database=database,
            catalog=catalog,
            retry_policy=retry_policy or RetryPolicy.from_settings(),
        )
        return await use_case.execute(
            SyncLabelCommand(label_name=label_name, dry_run=dry_run), cancel_token
        )
