"""Domain repository interfaces.

These interfaces define the contracts for data access without depending on
infrastructure implementations. Services and use cases are written against
them; the SQLAlchemy repositories and the Spotify connector implement them.
"""

from collections.abc import Awaitable
from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING, Protocol, Self

if TYPE_CHECKING:
    from datetime import date

    from labelsync.domain.entities import (
        AlbumSearchPage,
        Artist,
        ArtistRole,
        CatalogAlbum,
        CatalogToken,
        Label,
        Release,
        ReleaseArtistLink,
        Track,
    )


class CatalogClientProtocol(Protocol):
    """External music catalog used by the sync run."""

    def authenticate(self) -> Awaitable["CatalogToken"]: ...

    def search_albums_by_label(
        self, label_name: str, offset: int = 0, limit: int = 50
    ) -> Awaitable["AlbumSearchPage"]: ...

    def get_album_detail(self, external_id: str) -> Awaitable["CatalogAlbum"]: ...


class LabelRepositoryProtocol(Protocol):
    """Repository interface for the label reference set."""

    def get_by_id(self, id_: int) -> Awaitable["Label"]: ...

    def find_by_name_or_slug(self, value: str) -> Awaitable["Label | None"]: ...

    def list_labels(self) -> Awaitable[list["Label"]]: ...

    def ensure_label(self, name: str, slug: str | None = None) -> Awaitable["Label"]: ...


class ArtistRepositoryProtocol(Protocol):
    """Repository interface for artists."""

    def find_by_external_id(self, external_id: str) -> Awaitable["Artist | None"]: ...

    def find_by_spotify_url(self, url: str) -> Awaitable["Artist | None"]: ...

    def find_placeholder_by_name(self, name: str) -> Awaitable["Artist | None"]: ...

    def find_by_names(self, names: list[str]) -> Awaitable[list["Artist"]]: ...

    def create(self, entity: "Artist") -> Awaitable["Artist"]: ...

    def refresh_metadata(
        self,
        artist_id: int,
        *,
        name: str,
        external_id: str | None,
        image_url: str | None,
        spotify_url: str | None,
    ) -> Awaitable[None]: ...


class ReleaseRepositoryProtocol(Protocol):
    """Repository interface for releases and their artist links."""

    def get_by_id(self, id_: int) -> Awaitable["Release"]: ...

    def find_by_external_id(self, external_id: str) -> Awaitable["Release | None"]: ...

    def create(self, entity: "Release") -> Awaitable["Release"]: ...

    def update_display_fields(
        self,
        release_id: int,
        *,
        title: str,
        artwork_url: str | None,
        release_date: "date | None",
        external_url: str | None,
        total_tracks: int | None,
        catalog_label: str | None,
        genres: list[str],
    ) -> Awaitable[None]: ...

    def set_primary_artist(self, release_id: int, artist_id: int) -> Awaitable[None]: ...

    def set_label(self, release_id: int, label_id: int) -> Awaitable[int]: ...

    def list_by_label(self, label_id: int) -> Awaitable[list["Release"]]: ...

    def find_orphans(self, label_id: int | None = None) -> Awaitable[list[int]]: ...

    def link_artist(
        self, release_id: int, artist_id: int, role: "ArtistRole"
    ) -> Awaitable[bool]: ...

    def unlink_artist(self, release_id: int, artist_id: int) -> Awaitable[int]: ...

    def get_artist_links(self, release_id: int) -> Awaitable[list["ReleaseArtistLink"]]: ...

    def get_artist_names(self, release_id: int) -> Awaitable[list[str]]: ...

    def count_by_label(self) -> Awaitable[dict[int, int]]: ...


class TrackRepositoryProtocol(Protocol):
    """Repository interface for tracks and their artist links."""

    def find_by_external_id(self, external_id: str) -> Awaitable["Track | None"]: ...

    def create(self, entity: "Track") -> Awaitable["Track"]: ...

    def update_metadata(self, track_id: int, entity: "Track") -> Awaitable[None]: ...

    def list_by_release(self, release_id: int) -> Awaitable[list["Track"]]: ...

    def cascade_label(self, release_id: int, label_id: int) -> Awaitable[int]: ...

    def repair_label_drift(self, label_id: int | None = None) -> Awaitable[int]: ...

    def link_artist(
        self, track_id: int, artist_id: int, role: "ArtistRole"
    ) -> Awaitable[bool]: ...

    def count_by_label(self) -> Awaitable[dict[int, int]]: ...


class UnitOfWorkProtocol(Protocol):
    """Transaction boundary with repository accessors sharing one session."""

    async def __aenter__(self) -> Self: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    def savepoint(self) -> AbstractAsyncContextManager[object]: ...

    def get_label_repository(self) -> LabelRepositoryProtocol: ...

    def get_artist_repository(self) -> ArtistRepositoryProtocol: ...

    def get_release_repository(self) -> ReleaseRepositoryProtocol: ...

    def get_track_repository(self) -> TrackRepositoryProtocol: ...
