"""Core domain entities for the label catalog."""

from .catalog import (
    Artist,
    ArtistRole,
    Label,
    Release,
    ReleaseArtistLink,
    ReleaseType,
    Track,
    TrackArtistLink,
    derive_release_type,
)
from .external import (
    AlbumSearchPage,
    CatalogAlbum,
    CatalogArtist,
    CatalogToken,
    CatalogTrack,
)
from .operations import (
    AlbumResolution,
    AlbumWriteResult,
    CancellationToken,
    FailureRecord,
    InvalidStateTransition,
    LabelDistribution,
    Reassignment,
    ReconcileReport,
    ResolvedEntity,
    SyncReport,
    SyncState,
)

__all__ = [
    # Catalog entities
    "Artist",
    "ArtistRole",
    "Label",
    "Release",
    "ReleaseArtistLink",
    "ReleaseType",
    "Track",
    "TrackArtistLink",
    "derive_release_type",
    # Catalog payloads
    "AlbumSearchPage",
    "CatalogAlbum",
    "CatalogArtist",
    "CatalogToken",
    "CatalogTrack",
    # Operation entities
    "AlbumResolution",
    "AlbumWriteResult",
    "CancellationToken",
    "FailureRecord",
    "InvalidStateTransition",
    "LabelDistribution",
    "Reassignment",
    "ReconcileReport",
    "ResolvedEntity",
    "SyncReport",
    "SyncState",
]
