"""Boundary parse step for Spotify Web API payloads.

Raw JSON from spotipy is validated through these pydantic models before
anything else touches it. A payload that does not fit raises
``MalformedPayload`` here instead of surfacing later as a missing key deep
inside the writer.
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from labelsync.config import get_logger
from labelsync.domain.entities import (
    AlbumSearchPage,
    CatalogAlbum,
    CatalogArtist,
    CatalogTrack,
)
from labelsync.domain.errors import MalformedPayload

logger = get_logger(__name__).bind(service="spotify")


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class ImagePayload(_Payload):
    url: str
    width: int | None = None
    height: int | None = None


class ArtistPayload(_Payload):
    id: str
    name: str
    external_urls: dict[str, str] = Field(default_factory=dict)
    images: list[ImagePayload] = Field(default_factory=list)


class TrackPayload(_Payload):
    id: str
    name: str
    artists: list[ArtistPayload] = Field(default_factory=list)
    duration_ms: int | None = None
    track_number: int | None = None
    disc_number: int | None = None
    preview_url: str | None = None
    external_urls: dict[str, str] = Field(default_factory=dict)


class TrackPagePayload(_Payload):
    items: list[TrackPayload] = Field(default_factory=list)
    total: int | None = None
    next: str | None = None


class AlbumPayload(_Payload):
    id: str
    name: str
    album_type: str | None = None
    artists: list[ArtistPayload] = Field(default_factory=list)
    release_date: str | None = None
    release_date_precision: str | None = None
    images: list[ImagePayload] = Field(default_factory=list)
    external_urls: dict[str, str] = Field(default_factory=dict)
    label: str | None = None
    total_tracks: int | None = None
    genres: list[str] = Field(default_factory=list)
    tracks: TrackPagePayload | None = None

    @field_validator("release_date")
    @classmethod
    def check_release_date(cls, value: str | None) -> str | None:
        if value is not None:
            parse_release_date(value)
        return value


class AlbumPagePayload(_Payload):
    items: list[AlbumPayload | None] = Field(default_factory=list)
    total: int | None = None
    offset: int | None = None
    limit: int | None = None


class SearchPayload(_Payload):
    albums: AlbumPagePayload


def parse_release_date(value: str) -> date | None:
    """Parse 'YYYY', 'YYYY-MM' or 'YYYY-MM-DD'; '0000' means unknown."""
    parts = value.split("-")
    if not 1 <= len(parts) <= 3 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Unrecognized release date {value!r}")
    year = int(parts[0])
    if year == 0:
        return None
    month = int(parts[1]) if len(parts) > 1 else 1
    day = int(parts[2]) if len(parts) > 2 else 1
    return date(year, month, day)


def _largest_image(images: list[ImagePayload]) -> str | None:
    if not images:
        return None
    return max(images, key=lambda i: (i.width or 0) * (i.height or 0)).url


def _to_artist(payload: ArtistPayload) -> CatalogArtist:
    return CatalogArtist(
        external_id=payload.id,
        name=payload.name,
        spotify_url=payload.external_urls.get("spotify"),
        image_url=_largest_image(payload.images),
    )


def _to_track(payload: TrackPayload) -> CatalogTrack:
    return CatalogTrack(
        external_id=payload.id,
        title=payload.name,
        artists=[_to_artist(a) for a in payload.artists],
        duration_ms=payload.duration_ms,
        track_number=payload.track_number,
        disc_number=payload.disc_number,
        preview_url=payload.preview_url,
        external_url=payload.external_urls.get("spotify"),
    )


def _to_album(payload: AlbumPayload, extra_tracks: list[TrackPayload] | None = None) -> CatalogAlbum:
    tracks = list(payload.tracks.items) if payload.tracks else []
    tracks.extend(extra_tracks or [])
    return CatalogAlbum(
        external_id=payload.id,
        title=payload.name,
        album_type=payload.album_type,
        artists=[_to_artist(a) for a in payload.artists],
        release_date=parse_release_date(payload.release_date)
        if payload.release_date
        else None,
        artwork_url=_largest_image(payload.images),
        external_url=payload.external_urls.get("spotify"),
        catalog_label=payload.label,
        total_tracks=payload.total_tracks,
        genres=list(payload.genres),
        tracks=[_to_track(t) for t in tracks],
    )


def _fail(entity: str, raw: Any, error: ValidationError, external_id: str | None = None) -> MalformedPayload:
    first = error.errors()[0] if error.errors() else {}
    location = ".".join(str(p) for p in first.get("loc", ()))
    logger.warning(
        f"Malformed {entity} payload",
        location=location,
        error_count=error.error_count(),
        payload_type=type(raw).__name__,
    )
    return MalformedPayload(
        f"Malformed {entity} payload at '{location}': {first.get('msg', error)}",
        external_id=external_id,
    )


def parse_search_page(raw: Any, offset: int, limit: int) -> AlbumSearchPage:
    """Validate a search response into an AlbumSearchPage."""
    try:
        payload = SearchPayload.model_validate(raw)
    except ValidationError as e:
        raise _fail("search", raw, e) from e

    items = [item for item in payload.albums.items if item is not None]
    dropped = len(payload.albums.items) - len(items)
    if dropped:
        logger.warning(f"Search page at offset {offset} contained {dropped} null items")

    return AlbumSearchPage(
        items=[_to_album(item) for item in items],
        total=payload.albums.total,
        offset=offset,
        limit=limit,
        dropped=dropped,
    )


def parse_album(raw: Any, external_id: str) -> AlbumPayload:
    """Validate an album detail response."""
    try:
        return AlbumPayload.model_validate(raw)
    except ValidationError as e:
        raise _fail("album", raw, e, external_id) from e


def parse_track_page(raw: Any, external_id: str) -> TrackPagePayload:
    """Validate an album_tracks page."""
    try:
        return TrackPagePayload.model_validate(raw)
    except ValidationError as e:
        raise _fail("album tracks", raw, e, external_id) from e


def build_album(payload: AlbumPayload, extra_tracks: list[TrackPayload] | None = None) -> CatalogAlbum:
    """Convert a validated album payload (plus paginated tracks) to a CatalogAlbum."""
    return _to_album(payload, extra_tracks)
