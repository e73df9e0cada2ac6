"""Catalog identity resolution service.

Maps external album, artist and track records onto internal row IDs. It
focuses solely on identity: it reads, it never writes.

Rules:
- Artists: external ID, then normalized Spotify URL, then exact
  case-insensitive name among rows without an external ID (legacy
  placeholders). Otherwise new.
- Releases: external ID only. Titles are not unique across the catalog.
- Tracks: external ID only.
"""

from labelsync.config import get_logger
from labelsync.domain.entities import (
    AlbumResolution,
    Artist,
    CatalogAlbum,
    CatalogArtist,
    CatalogTrack,
    ResolvedEntity,
)
from labelsync.domain.errors import InvalidExternalId
from labelsync.domain.identifiers import normalize_external_id, normalize_spotify_url
from labelsync.domain.repositories.interfaces import (
    ArtistRepositoryProtocol,
    ReleaseRepositoryProtocol,
    TrackRepositoryProtocol,
)

logger = get_logger(__name__)


def album_external_ids(album: CatalogAlbum) -> list[tuple[str, str]]:
    """Every (entity, external_id) pair an album would write."""
    pairs = [("album", album.external_id)]
    pairs.extend(("artist", a.external_id) for a in album.artists)
    for track in album.tracks:
        pairs.append(("track", track.external_id))
        pairs.extend(("artist", a.external_id) for a in track.artists)
    return pairs


def validate_album_ids(album: CatalogAlbum) -> None:
    """Reject the whole album if any external ID in it is malformed.

    Raises:
        InvalidExternalId: Naming the first offending entity.
    """
    for entity, external_id in album_external_ids(album):
        try:
            normalize_external_id(external_id)
        except InvalidExternalId as e:
            raise InvalidExternalId(
                f"Album {album.external_id!r} has an invalid {entity} ID {external_id!r}",
                external_id=album.external_id,
            ) from e


class CatalogIdentityResolver:
    """Resolves catalog records to internal IDs using the rules above."""

    def __init__(
        self,
        artist_repo: ArtistRepositoryProtocol,
        release_repo: ReleaseRepositoryProtocol,
        track_repo: TrackRepositoryProtocol,
    ) -> None:
        self.artist_repo = artist_repo
        self.release_repo = release_repo
        self.track_repo = track_repo

    async def find_artist(self, catalog_artist: CatalogArtist) -> Artist | None:
        """Existing artist row for this credit, if any."""
        external_id = normalize_external_id(catalog_artist.external_id)

        artist = await self.artist_repo.find_by_external_id(external_id)
        if artist is not None:
            return artist

        spotify_url = normalize_spotify_url(catalog_artist.spotify_url)
        if spotify_url:
            artist = await self.artist_repo.find_by_spotify_url(spotify_url)
            if artist is not None and artist.external_id in (None, external_id):
                return artist

        return await self.artist_repo.find_placeholder_by_name(catalog_artist.name)

    async def resolve_artist(self, catalog_artist: CatalogArtist) -> ResolvedEntity:
        """Resolve an artist credit; ``internal_id`` is None when it must be created."""
        artist = await self.find_artist(catalog_artist)
        if artist is None:
            return ResolvedEntity(external_id=catalog_artist.external_id, internal_id=None)

        if artist.external_id == catalog_artist.external_id:
            matched_by = "external_id"
        elif artist.spotify_url and artist.spotify_url == normalize_spotify_url(
            catalog_artist.spotify_url
        ):
            matched_by = "spotify_url"
        else:
            matched_by = "name"

        if matched_by != "external_id":
            logger.debug(
                f"Artist '{catalog_artist.name}' matched existing row by {matched_by}",
                artist_id=artist.id,
                external_id=catalog_artist.external_id,
            )
        return ResolvedEntity(
            external_id=catalog_artist.external_id,
            internal_id=artist.id,
            matched_by=matched_by,
        )

    async def resolve_release(self, album: CatalogAlbum) -> ResolvedEntity:
        """Resolve strictly by external ID."""
        external_id = normalize_external_id(album.external_id)
        release = await self.release_repo.find_by_external_id(external_id)
        return ResolvedEntity(
            external_id=external_id,
            internal_id=release.id if release else None,
            matched_by="external_id" if release else None,
        )

    async def resolve_track(self, track: CatalogTrack) -> ResolvedEntity:
        """Resolve strictly by external ID."""
        external_id = normalize_external_id(track.external_id)
        existing = await self.track_repo.find_by_external_id(external_id)
        return ResolvedEntity(
            external_id=external_id,
            internal_id=existing.id if existing else None,
            matched_by="external_id" if existing else None,
        )

    async def resolve_album(self, album: CatalogAlbum) -> AlbumResolution:
        """Resolve a whole album after validating every ID in it.

        Raises:
            InvalidExternalId: Any ID in the album is malformed; nothing
                from the album should be written.
        """
        validate_album_ids(album)

        release = await self.resolve_release(album)

        artists: dict[str, ResolvedEntity] = {}
        credits = [*album.artists, *(a for t in album.tracks for a in t.artists)]
        for catalog_artist in credits:
            if catalog_artist.external_id not in artists:
                artists[catalog_artist.external_id] = await self.resolve_artist(
                    catalog_artist
                )

        tracks: dict[str, ResolvedEntity] = {}
        for track in album.tracks:
            if track.external_id not in tracks:
                tracks[track.external_id] = await self.resolve_track(track)

        return AlbumResolution(
            album=album, release=release, artists=artists, tracks=tracks
        )
