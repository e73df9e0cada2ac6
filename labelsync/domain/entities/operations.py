"""Run-level domain entities: sync state, reports and resolution results."""

from enum import StrEnum
from typing import Any

from attrs import define, field

from labelsync.domain.errors import CatalogSyncError

from .external import CatalogAlbum


class SyncState(StrEnum):
    """States of a per-label sync run."""

    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    PAGINATING = "paginating"
    RESOLVING = "resolving"
    UPSERTING = "upserting"
    RECONCILING = "reconciling"
    DONE = "done"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[SyncState, frozenset[SyncState]] = {
    SyncState.IDLE: frozenset({SyncState.AUTHENTICATING, SyncState.FAILED}),
    SyncState.AUTHENTICATING: frozenset({SyncState.PAGINATING, SyncState.FAILED}),
    SyncState.PAGINATING: frozenset({
        SyncState.PAGINATING,
        SyncState.RESOLVING,
        SyncState.RECONCILING,
        SyncState.FAILED,
    }),
    SyncState.RESOLVING: frozenset({
        SyncState.UPSERTING,
        SyncState.RESOLVING,
        SyncState.PAGINATING,
        SyncState.RECONCILING,
        SyncState.FAILED,
    }),
    SyncState.UPSERTING: frozenset({
        SyncState.RESOLVING,
        SyncState.PAGINATING,
        SyncState.RECONCILING,
        SyncState.FAILED,
    }),
    SyncState.RECONCILING: frozenset({SyncState.DONE, SyncState.FAILED}),
    SyncState.DONE: frozenset(),
    SyncState.FAILED: frozenset(),
}


class InvalidStateTransition(RuntimeError):
    """Raised when a sync run attempts an illegal state change."""


@define(slots=True)
class CancellationToken:
    """Cooperative cancel flag, checked between albums."""

    cancelled: bool = False
    reason: str | None = None

    def cancel(self, reason: str = "cancelled by operator") -> None:
        self.cancelled = True
        self.reason = reason


@define(frozen=True, slots=True)
class FailureRecord:
    """A skipped or failed item, kept for the final report."""

    entity: str  # 'album', 'artist', 'track', 'page', 'release', 'run'
    external_id: str | None
    reason: str
    error_type: str

    @classmethod
    def from_error(
        cls, entity: str, external_id: str | None, error: Exception
    ) -> "FailureRecord":
        """Build a record from any exception, using the taxonomy name when known."""
        error_type = (
            error.error_type
            if isinstance(error, CatalogSyncError)
            else type(error).__name__
        )
        return cls(
            entity=entity,
            external_id=external_id,
            reason=str(error) or type(error).__name__,
            error_type=error_type,
        )


@define(frozen=True, slots=True)
class ResolvedEntity:
    """Outcome of identity resolution for one external record."""

    external_id: str
    internal_id: int | None
    matched_by: str | None = None  # 'external_id', 'spotify_url', 'name'

    @property
    def is_new(self) -> bool:
        return self.internal_id is None


@define(frozen=True, slots=True)
class AlbumResolution:
    """Resolution plan for a whole album, used for writes and dry-run reports."""

    album: CatalogAlbum
    release: ResolvedEntity
    artists: dict[str, ResolvedEntity] = field(factory=dict)
    tracks: dict[str, ResolvedEntity] = field(factory=dict)

    @property
    def new_artist_ids(self) -> list[str]:
        return [ext_id for ext_id, r in self.artists.items() if r.is_new]

    @property
    def new_track_ids(self) -> list[str]:
        return [ext_id for ext_id, r in self.tracks.items() if r.is_new]


@define(slots=True)
class AlbumWriteResult:
    """What a single album write changed."""

    release_id: int
    release_created: bool
    new_artists: int = 0
    new_tracks: int = 0
    release_links_created: int = 0
    track_links_created: int = 0
    failures: list[FailureRecord] = field(factory=list)


@define(slots=True)
class SyncReport:
    """Per-label sync run report.

    Every album the run saw ends up in exactly one of new_releases,
    existing_releases or failed_releases; item-level failures inside a
    written album only show up in ``issues``.
    """

    label_name: str
    dry_run: bool = False
    new_releases: int = 0
    existing_releases: int = 0
    failed_releases: int = 0
    new_artists: int = 0
    new_tracks: int = 0
    albums_seen: int = 0
    catalog_total: int | None = None
    failed_pages: list[int] = field(factory=list)
    issues: list[FailureRecord] = field(factory=list)
    orphan_release_ids: list[int] = field(factory=list)
    repaired_tracks: int = 0
    state: SyncState = SyncState.IDLE
    state_history: list[SyncState] = field(factory=lambda: [SyncState.IDLE])
    cancelled: bool = False
    error: str | None = None
    execution_time: float = 0.0

    def transition(self, new_state: SyncState) -> None:
        """Move to ``new_state`` if the state machine allows it."""
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidStateTransition(f"{self.state} -> {new_state}")
        self.state = new_state
        self.state_history.append(new_state)

    def record_issue(self, record: FailureRecord) -> None:
        self.issues.append(record)

    @property
    def succeeded(self) -> bool:
        return self.state == SyncState.DONE

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict view for JSON output."""
        return {
            "label": self.label_name,
            "dry_run": self.dry_run,
            "state": str(self.state),
            "new_releases": self.new_releases,
            "existing_releases": self.existing_releases,
            "failed_releases": self.failed_releases,
            "new_artists": self.new_artists,
            "new_tracks": self.new_tracks,
            "albums_seen": self.albums_seen,
            "catalog_total": self.catalog_total,
            "failed_pages": list(self.failed_pages),
            "orphan_release_ids": list(self.orphan_release_ids),
            "repaired_tracks": self.repaired_tracks,
            "cancelled": self.cancelled,
            "error": self.error,
            "issues": [
                {
                    "entity": i.entity,
                    "external_id": i.external_id,
                    "reason": i.reason,
                    "error_type": i.error_type,
                }
                for i in self.issues
            ],
        }


@define(frozen=True, slots=True)
class Reassignment:
    """A label change applied (or proposed, in dry-run) to one release."""

    release_id: int
    external_id: str
    from_label_id: int | None
    to_label_id: int
    rule: str  # 'catalog_label' or 'keyword'


@define(frozen=True, slots=True)
class LabelDistribution:
    """Local release/track counts for a label, optionally vs. the catalog."""

    label_id: int
    label_name: str
    releases: int
    tracks: int
    catalog_total: int | None = None

    @property
    def missing(self) -> int | None:
        if self.catalog_total is None:
            return None
        return max(self.catalog_total - self.releases, 0)


@define(slots=True)
class ReconcileReport:
    """Result of a reconciliation pass over one label."""

    label_name: str
    dry_run: bool = False
    releases_checked: int = 0
    reassignments: list[Reassignment] = field(factory=list)
    ambiguous: list[FailureRecord] = field(factory=list)
    orphan_release_ids: list[int] = field(factory=list)
    repaired_tracks: int = 0
    placeholder_links_removed: int = 0
    distribution: list[LabelDistribution] = field(factory=list)
