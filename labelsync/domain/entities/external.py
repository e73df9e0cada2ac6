"""Catalog-side value objects produced by the client's parse step.

These are what the resolver and writer consume. They only ever hold
validated, bare external IDs.
"""

from datetime import date, datetime

from attrs import define, field

from .catalog import ReleaseType, derive_release_type


@define(frozen=True, slots=True)
class CatalogToken:
    """Client-credentials access token."""

    access_token: str
    expires_at: datetime | None = None


@define(frozen=True, slots=True)
class CatalogArtist:
    """Artist credit as returned by the catalog."""

    external_id: str
    name: str
    spotify_url: str | None = None
    image_url: str | None = None


@define(frozen=True, slots=True)
class CatalogTrack:
    """Track entry from an album's track list."""

    external_id: str
    title: str
    artists: list[CatalogArtist] = field(factory=list)
    duration_ms: int | None = None
    track_number: int | None = None
    disc_number: int | None = None
    preview_url: str | None = None
    external_url: str | None = None


@define(frozen=True, slots=True)
class CatalogAlbum:
    """Album summary (search result) or full detail with tracks."""

    external_id: str
    title: str
    album_type: str | None = None
    artists: list[CatalogArtist] = field(factory=list)
    release_date: date | None = None
    artwork_url: str | None = None
    external_url: str | None = None
    catalog_label: str | None = None
    total_tracks: int | None = None
    genres: list[str] = field(factory=list)
    tracks: list[CatalogTrack] = field(factory=list)

    @property
    def release_type(self) -> ReleaseType:
        """Release type derived from album_type and track count."""
        total = self.total_tracks if self.total_tracks is not None else len(self.tracks)
        return derive_release_type(self.album_type, total)


@define(frozen=True, slots=True)
class AlbumSearchPage:
    """One page of a label-scoped album search."""

    items: list[CatalogAlbum]
    total: int | None
    offset: int
    limit: int
    dropped: int = 0  # null entries the catalog returned in place of albums

    @property
    def is_last(self) -> bool:
        """True when the catalog returned fewer entries than requested."""
        return len(self.items) + self.dropped < self.limit
