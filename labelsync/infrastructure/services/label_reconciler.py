"""Label reconciliation: moving releases between labels and fixing drift.

Everything here runs inside the caller's unit of work. A dry run uses the
same code path and the caller rolls the transaction back, so dry-run reports
are exactly what a real run would do.
"""

from collections.abc import Iterable, Mapping

from labelsync.config import get_logger, settings
from labelsync.domain.entities import (
    FailureRecord,
    Label,
    LabelDistribution,
    Reassignment,
    ReconcileReport,
    Release,
)
from labelsync.domain.errors import ReconciliationAmbiguous, UnknownLabelError
from labelsync.domain.labels import (
    DEFAULT_KEYWORD_TABLE,
    UNKNOWN,
    classify_by_rule,
    match_label_name,
)
from labelsync.infrastructure.persistence.unit_of_work import DatabaseUnitOfWork

logger = get_logger(__name__)


class LabelReconciler:
    """Reassigns releases, repairs track labels and cleans placeholder credits."""

    def __init__(self, uow: DatabaseUnitOfWork) -> None:
        self.uow = uow
        self.label_repo = uow.get_label_repository()
        self.artist_repo = uow.get_artist_repository()
        self.release_repo = uow.get_release_repository()
        self.track_repo = uow.get_track_repository()

    async def _labels_by_slug(self) -> dict[str, Label]:
        return {label.slug: label for label in await self.label_repo.list_labels()}

    async def reassign_release(self, release_id: int, new_label_id: int) -> int:
        """Move a release and all its tracks to ``new_label_id``.

        Release and track updates share one savepoint; row IDs never change.

        Returns:
            Number of tracks updated

        Raises:
            UnknownLabelError: ``new_label_id`` is not a known label
            ValueError: ``release_id`` does not exist
        """
        try:
            await self.label_repo.get_by_id(new_label_id)
        except ValueError as e:
            raise UnknownLabelError(f"Label {new_label_id} not found") from e
        release = await self.release_repo.get_by_id(release_id)

        async with self.uow.savepoint():
            await self.release_repo.set_label(release_id, new_label_id)
            tracks_updated = await self.track_repo.cascade_label(
                release_id, new_label_id
            )

        logger.info(
            f"Reassigned release '{release.title}'",
            release_id=release_id,
            from_label_id=release.label_id,
            to_label_id=new_label_id,
            tracks=tracks_updated,
        )
        return tracks_updated

    async def find_orphan_releases(self, label_id: int | None = None) -> list[int]:
        """Releases without any artist credit. Flagged for review, never deleted."""
        orphans = await self.release_repo.find_orphans(label_id)
        if orphans:
            logger.warning(
                f"Found {len(orphans)} releases without artist credits",
                label_id=label_id,
                release_ids=orphans[:20],
            )
        return orphans

    async def classify_release(
        self,
        release: Release,
        keyword_table: Mapping[str, Iterable[str]] = DEFAULT_KEYWORD_TABLE,
    ) -> str:
        """Keyword classification over title, credited artist names and genres."""
        artist_names = await self.release_repo.get_artist_names(release.id)
        return classify_by_rule(
            release.title, artist_names, release.genres, keyword_table
        )

    async def decide_label(
        self,
        release: Release,
        labels: Mapping[str, Label],
        keyword_table: Mapping[str, Iterable[str]] = DEFAULT_KEYWORD_TABLE,
    ) -> tuple[str, str]:
        """Target label slug for a release and the rule that chose it.

        The catalog's own label string wins when it maps to a local label,
        then the keyword rule. Returns (UNKNOWN, "none") when neither decides.
        """
        names_by_slug = {slug: label.name for slug, label in labels.items()}
        slug = match_label_name(release.catalog_label, names_by_slug)
        if slug is not None:
            return slug, "catalog_label"

        slug = await self.classify_release(release, keyword_table)
        if slug != UNKNOWN and slug in labels:
            return slug, "keyword"
        return UNKNOWN, "none"

    async def repair_track_labels(self, label_id: int | None = None) -> int:
        """Copy each release's label onto tracks that drifted from it."""
        repaired = await self.track_repo.repair_label_drift(label_id)
        if repaired:
            logger.info(f"Repaired label on {repaired} tracks", label_id=label_id)
        return repaired

    async def cleanup_placeholder_artists(
        self,
        placeholder_names: Iterable[str] | None = None,
        label_id: int | None = None,
    ) -> tuple[int, list[FailureRecord]]:
        """Drop placeholder credits from releases that have real artists.

        Releases credited only to placeholders are left alone and reported.

        Returns:
            (links removed, releases needing manual review)
        """
        names = list(
            placeholder_names
            if placeholder_names is not None
            else settings.reconcile.placeholder_artists
        )
        placeholders = await self.artist_repo.find_by_names(names)
        if not placeholders:
            return 0, []
        placeholder_ids = {artist.id for artist in placeholders}

        if label_id is not None:
            releases = await self.release_repo.list_by_label(label_id)
        else:
            releases = await self.release_repo.find_by({})

        removed = 0
        needs_review: list[FailureRecord] = []
        for release in releases:
            links = await self.release_repo.get_artist_links(release.id)
            linked_ids = list(dict.fromkeys(link.artist_id for link in links))
            if not placeholder_ids.intersection(linked_ids):
                continue

            legitimate = [aid for aid in linked_ids if aid not in placeholder_ids]
            if not legitimate:
                needs_review.append(
                    FailureRecord.from_error(
                        "release",
                        release.external_id,
                        ReconciliationAmbiguous(
                            f"Release '{release.title}' is credited only to placeholder artists",
                            external_id=release.external_id,
                        ),
                    )
                )
                continue

            async with self.uow.savepoint():
                for artist_id in linked_ids:
                    if artist_id in placeholder_ids:
                        removed += await self.release_repo.unlink_artist(
                            release.id, artist_id
                        )
                if release.primary_artist_id in placeholder_ids or (
                    release.primary_artist_id is None
                ):
                    await self.release_repo.set_primary_artist(
                        release.id, legitimate[0]
                    )

        if removed or needs_review:
            logger.info(
                f"Placeholder cleanup removed {removed} links",
                label_id=label_id,
                needs_review=len(needs_review),
            )
        return removed, needs_review

    async def reconcile_label(
        self,
        label: Label,
        *,
        dry_run: bool = False,
        keyword_table: Mapping[str, Iterable[str]] = DEFAULT_KEYWORD_TABLE,
        placeholder_names: Iterable[str] | None = None,
    ) -> ReconcileReport:
        """Reconcile every release currently filed under ``label``.

        Order: placeholder cleanup, label decisions and moves, track label
        repair, orphan detection. Undecidable releases are reported as
        ambiguous and left where they are.
        """
        report = ReconcileReport(label_name=label.name, dry_run=dry_run)
        labels = await self._labels_by_slug()

        report.placeholder_links_removed, review = (
            await self.cleanup_placeholder_artists(placeholder_names, label.id)
        )
        report.ambiguous.extend(review)

        for release in await self.release_repo.list_by_label(label.id):
            report.releases_checked += 1
            target_slug, rule = await self.decide_label(release, labels, keyword_table)

            if target_slug == UNKNOWN:
                report.ambiguous.append(
                    FailureRecord.from_error(
                        "release",
                        release.external_id,
                        ReconciliationAmbiguous(
                            f"No rule decides a label for '{release.title}'",
                            external_id=release.external_id,
                        ),
                    )
                )
                continue

            target = labels[target_slug]
            if target.id == release.label_id:
                continue

            await self.reassign_release(release.id, target.id)
            report.reassignments.append(
                Reassignment(
                    release_id=release.id,
                    external_id=release.external_id,
                    from_label_id=release.label_id,
                    to_label_id=target.id,
                    rule=rule,
                )
            )

        report.repaired_tracks = await self.repair_track_labels(label.id)
        report.orphan_release_ids = await self.find_orphan_releases(label.id)
        report.distribution = await self.label_distribution()

        logger.info(
            f"Reconciled label '{label.name}'",
            dry_run=dry_run,
            checked=report.releases_checked,
            moved=len(report.reassignments),
            ambiguous=len(report.ambiguous),
            orphans=len(report.orphan_release_ids),
        )
        return report

    async def label_distribution(
        self, catalog_totals: Mapping[str, int] | None = None
    ) -> list[LabelDistribution]:
        """Local release and track counts per label.

        Args:
            catalog_totals: Optional label slug -> release count reported by
                the catalog, shown next to the local count
        """
        release_counts = await self.release_repo.count_by_label()
        track_counts = await self.track_repo.count_by_label()
        totals = catalog_totals or {}
        return [
            LabelDistribution(
                label_id=label.id,
                label_name=label.name,
                releases=release_counts.get(label.id, 0),
                tracks=track_counts.get(label.id, 0),
                catalog_total=totals.get(label.slug),
            )
            for label in await self.label_repo.list_labels()
        ]
