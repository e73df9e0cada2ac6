"""Catalog domain entities: labels, artists, releases, tracks and their links.

Pure representations with zero infrastructure dependencies.
"""

from datetime import date
from enum import StrEnum

import attrs
from attrs import define, field, validators


class ReleaseType(StrEnum):
    """Release format as stored in the catalog tables."""

    SINGLE = "single"
    EP = "ep"
    ALBUM = "album"
    COMPILATION = "compilation"


class ArtistRole(StrEnum):
    """Role of an artist credit on a release or track."""

    PRIMARY = "primary"
    FEATURED = "featured"
    REMIXER = "remixer"


# Singles with this many tracks or more are filed as EPs
EP_MIN_TRACKS = 4


def derive_release_type(album_type: str | None, total_tracks: int | None) -> ReleaseType:
    """Map the catalog's album_type onto a ReleaseType."""
    match (album_type or "").lower():
        case "compilation":
            return ReleaseType.COMPILATION
        case "album":
            return ReleaseType.ALBUM
        case _ if (total_tracks or 0) >= EP_MIN_TRACKS:
            return ReleaseType.EP
        case _:
            return ReleaseType.SINGLE


@define(frozen=True, slots=True)
class Label:
    """Publishing imprint. Static reference data, immutable after creation."""

    name: str = field(validator=validators.instance_of(str))
    slug: str = field(validator=validators.instance_of(str))
    id: int | None = field(default=None)


@define(frozen=True, slots=True)
class Artist:
    """Artist row; external_id is None for placeholder rows from legacy data."""

    name: str = field(validator=validators.instance_of(str))
    external_id: str | None = field(default=None)
    image_url: str | None = field(default=None)
    spotify_url: str | None = field(default=None)
    label_id: int | None = field(default=None)
    id: int | None = field(default=None)

    def with_id(self, db_id: int) -> "Artist":
        """Set the internal database ID for this artist."""
        return attrs.evolve(self, id=db_id)


@define(frozen=True, slots=True)
class Release:
    """Release entity keyed by its catalog external_id."""

    external_id: str = field(validator=validators.instance_of(str))
    title: str = field(validator=validators.instance_of(str))
    release_date: date | None = field(default=None)
    artwork_url: str | None = field(default=None)
    external_url: str | None = field(default=None)
    label_id: int | None = field(default=None)
    release_type: ReleaseType = field(default=ReleaseType.SINGLE, converter=ReleaseType)
    primary_artist_id: int | None = field(default=None)
    catalog_label: str | None = field(default=None)
    total_tracks: int | None = field(default=None)
    genres: list[str] = field(factory=list)
    id: int | None = field(default=None)


@define(frozen=True, slots=True)
class Track:
    """Track entity; always a child of exactly one release."""

    external_id: str = field(validator=validators.instance_of(str))
    title: str = field(validator=validators.instance_of(str))
    release_id: int | None = field(default=None)
    duration_ms: int | None = field(default=None)
    track_number: int | None = field(default=None)
    disc_number: int | None = field(default=None)
    preview_url: str | None = field(default=None)
    external_url: str | None = field(default=None)
    label_id: int | None = field(default=None)
    id: int | None = field(default=None)


@define(frozen=True, slots=True)
class ReleaseArtistLink:
    """Credit of an artist on a release."""

    release_id: int
    artist_id: int
    role: ArtistRole = field(default=ArtistRole.PRIMARY, converter=ArtistRole)


@define(frozen=True, slots=True)
class TrackArtistLink:
    """Credit of an artist on a track."""

    track_id: int
    artist_id: int
    role: ArtistRole = field(default=ArtistRole.PRIMARY, converter=ArtistRole)
