"""Idempotent upsert writer for catalog albums.

One album is written in one transaction: artists, then the release, then
release credits, then tracks with their credits. Artists and tracks each
run in their own savepoint, so a bad row is logged, recorded and skipped
while the rest of the album still lands. If the release itself cannot be
written the album has no valid parent and the whole transaction is rolled
back.

Existing releases never have ``label_id`` touched here; moving a release
between labels is the reconciler's job.
"""

import asyncio
import re

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from labelsync.config import get_logger, settings
from labelsync.domain.entities import (
    AlbumWriteResult,
    Artist,
    ArtistRole,
    CatalogAlbum,
    CatalogArtist,
    CatalogTrack,
    FailureRecord,
    Release,
    ResolvedEntity,
    Track,
)
from labelsync.domain.errors import CatalogSyncError, PartialAlbumFailure
from labelsync.domain.identifiers import normalize_spotify_url
from labelsync.infrastructure.persistence.database.db_connection import DatabaseHandle
from labelsync.infrastructure.persistence.unit_of_work import DatabaseUnitOfWork
from labelsync.infrastructure.retry import RetryPolicy
from labelsync.infrastructure.services.identity_resolver import (
    CatalogIdentityResolver,
)

logger = get_logger(__name__)

# Errors that fail a single artist or track without failing the album
_ITEM_ERRORS = (SQLAlchemyError, CatalogSyncError)

# Errors worth retrying the whole album transaction for
TRANSIENT_DB_ERRORS = (OperationalError, TimeoutError)


def track_artist_role(
    track: CatalogTrack, artist: CatalogArtist, album_artist_ids: set[str]
) -> ArtistRole:
    """Credit role of ``artist`` on ``track``.

    Remixers are named in the title ("... (Name Remix)"); artists credited on
    a track but not on the album are featured; everyone else is primary.
    """
    credit = re.compile(
        r"(?<!\w)" + re.escape(artist.name.casefold()) + r"(?!\w)[^()\[\]]*\bremix\b"
    )
    if credit.search(track.title.casefold()):
        return ArtistRole.REMIXER
    if artist.external_id not in album_artist_ids:
        return ArtistRole.FEATURED
    return ArtistRole.PRIMARY


class CatalogWriter:
    """Persists resolved catalog entities inside one unit of work."""

    def __init__(
        self,
        uow: DatabaseUnitOfWork,
        resolver: CatalogIdentityResolver | None = None,
    ) -> None:
        self.uow = uow
        self.artist_repo = uow.get_artist_repository()
        self.release_repo = uow.get_release_repository()
        self.track_repo = uow.get_track_repository()
        self.resolver = resolver or CatalogIdentityResolver(
            self.artist_repo, self.release_repo, self.track_repo
        )

    # -------------------------------------------------------------------------
    # ENTITY UPSERTS
    # -------------------------------------------------------------------------

    async def upsert_artist(self, artist: CatalogArtist, label_id: int | None) -> int:
        """Insert or refresh an artist; returns its internal ID."""
        resolved = await self.resolver.resolve_artist(artist)
        return await self._write_artist(artist, resolved, label_id)

    async def _write_artist(
        self, artist: CatalogArtist, resolved: ResolvedEntity, label_id: int | None
    ) -> int:
        spotify_url = normalize_spotify_url(artist.spotify_url)
        if resolved.is_new:
            created = await self.artist_repo.create(
                Artist(
                    name=artist.name,
                    external_id=artist.external_id,
                    image_url=artist.image_url,
                    spotify_url=spotify_url,
                    label_id=label_id,
                )
            )
            return created.id

        await self.artist_repo.refresh_metadata(
            resolved.internal_id,
            name=artist.name,
            external_id=artist.external_id,
            image_url=artist.image_url,
            spotify_url=spotify_url,
        )
        return resolved.internal_id

    async def upsert_release(
        self,
        album: CatalogAlbum,
        label_id: int,
        primary_artist_id: int | None = None,
    ) -> int:
        """Insert a new release or refresh display fields of an existing one."""
        resolved = await self.resolver.resolve_release(album)
        release_id, _ = await self._write_release(
            album, resolved, label_id, primary_artist_id
        )
        return release_id

    async def _write_release(
        self,
        album: CatalogAlbum,
        resolved: ResolvedEntity,
        label_id: int,
        primary_artist_id: int | None,
    ) -> tuple[int, int | None]:
        """Returns (release_id, label_id as stored)."""
        if resolved.is_new:
            created = await self.release_repo.create(
                Release(
                    external_id=resolved.external_id,
                    title=album.title,
                    release_date=album.release_date,
                    artwork_url=album.artwork_url,
                    external_url=album.external_url,
                    label_id=label_id,
                    release_type=album.release_type,
                    primary_artist_id=primary_artist_id,
                    catalog_label=album.catalog_label,
                    total_tracks=album.total_tracks,
                    genres=album.genres,
                )
            )
            return created.id, created.label_id

        existing = await self.release_repo.get_by_id(resolved.internal_id)
        await self.release_repo.update_display_fields(
            existing.id,
            title=album.title,
            artwork_url=album.artwork_url,
            release_date=album.release_date,
            external_url=album.external_url,
            total_tracks=album.total_tracks,
            catalog_label=album.catalog_label,
            genres=album.genres,
        )
        if existing.primary_artist_id is None and primary_artist_id is not None:
            await self.release_repo.set_primary_artist(existing.id, primary_artist_id)
        if existing.label_id != label_id:
            logger.debug(
                "Existing release keeps its label; reassignment is left to reconcile",
                release_id=existing.id,
                stored_label_id=existing.label_id,
                sync_label_id=label_id,
            )
        return existing.id, existing.label_id

    async def upsert_track(
        self, track: CatalogTrack, release_id: int, label_id: int | None = None
    ) -> int:
        """Insert or refresh a track under ``release_id``.

        The stored label is always the parent release's label; pass
        ``label_id`` only when it was just read from that release.
        """
        if label_id is None:
            label_id = (await self.release_repo.get_by_id(release_id)).label_id

        resolved = await self.resolver.resolve_track(track)
        entity = Track(
            external_id=resolved.external_id,
            title=track.title,
            release_id=release_id,
            duration_ms=track.duration_ms,
            track_number=track.track_number,
            disc_number=track.disc_number,
            preview_url=track.preview_url,
            external_url=track.external_url,
            label_id=label_id,
        )
        if resolved.is_new:
            return (await self.track_repo.create(entity)).id

        await self.track_repo.update_metadata(resolved.internal_id, entity)
        return resolved.internal_id

    async def link_release_artist(
        self, release_id: int, artist_id: int, role: ArtistRole = ArtistRole.PRIMARY
    ) -> bool:
        return await self.release_repo.link_artist(release_id, artist_id, role)

    async def link_track_artist(
        self, track_id: int, artist_id: int, role: ArtistRole = ArtistRole.PRIMARY
    ) -> bool:
        return await self.track_repo.link_artist(track_id, artist_id, role)

    # -------------------------------------------------------------------------
    # ALBUM WRITE
    # -------------------------------------------------------------------------

    async def write_album(self, album: CatalogAlbum, label_id: int) -> AlbumWriteResult:
        """Write a full album inside the current unit of work.

        Raises:
            InvalidExternalId: Album contains a malformed ID; nothing written.
            PartialAlbumFailure: No album artist or the release could be written.
        """
        resolution = await self.resolver.resolve_album(album)
        failures: list[FailureRecord] = []

        # Artists
        artist_ids: dict[str, int] = {}
        new_artists = 0
        credits = [*album.artists, *(a for t in album.tracks for a in t.artists)]
        for catalog_artist in credits:
            if catalog_artist.external_id in artist_ids:
                continue
            try:
                async with self.uow.savepoint():
                    # Re-resolved per write: an earlier credit may have claimed a placeholder
                    resolved = await self.resolver.resolve_artist(catalog_artist)
                    artist_ids[catalog_artist.external_id] = await self._write_artist(
                        catalog_artist, resolved, label_id
                    )
            except OperationalError:
                raise
            except _ITEM_ERRORS as e:
                logger.warning(
                    f"Skipping artist '{catalog_artist.name}': {e}",
                    external_id=catalog_artist.external_id,
                )
                failures.append(
                    FailureRecord.from_error("artist", catalog_artist.external_id, e)
                )
                continue
            if resolved.is_new:
                new_artists += 1

        primary_artist_id = next(
            (artist_ids[a.external_id] for a in album.artists if a.external_id in artist_ids),
            None,
        )
        if primary_artist_id is None:
            raise PartialAlbumFailure(
                f"No album artist could be written for {album.external_id!r}",
                external_id=album.external_id,
            )

        # Release
        try:
            release_id, stored_label_id = await self._write_release(
                album, resolution.release, label_id, primary_artist_id
            )
        except OperationalError:
            raise
        except SQLAlchemyError as e:
            raise PartialAlbumFailure(
                f"Release {album.external_id!r} could not be written: {e}",
                external_id=album.external_id,
            ) from e

        result = AlbumWriteResult(
            release_id=release_id,
            release_created=resolution.release.is_new,
            new_artists=new_artists,
            failures=failures,
        )

        for catalog_artist in album.artists:
            artist_id = artist_ids.get(catalog_artist.external_id)
            if artist_id is not None and await self.link_release_artist(
                release_id, artist_id, ArtistRole.PRIMARY
            ):
                result.release_links_created += 1

        # Tracks
        album_artist_ids = {a.external_id for a in album.artists}
        written_tracks: set[str] = set()
        for track in album.tracks:
            if track.external_id in written_tracks:
                continue
            written_tracks.add(track.external_id)
            try:
                async with self.uow.savepoint():
                    track_id = await self.upsert_track(track, release_id, stored_label_id)
                    for credit in track.artists:
                        artist_id = artist_ids.get(credit.external_id)
                        if artist_id is None:
                            continue
                        role = track_artist_role(track, credit, album_artist_ids)
                        if await self.link_track_artist(track_id, artist_id, role):
                            result.track_links_created += 1
            except OperationalError:
                raise
            except _ITEM_ERRORS as e:
                logger.warning(
                    f"Skipping track '{track.title}': {e}",
                    external_id=track.external_id,
                )
                result.failures.append(
                    FailureRecord.from_error("track", track.external_id, e)
                )
                continue
            if resolution.tracks[track.external_id].is_new:
                result.new_tracks += 1

        logger.debug(
            f"Wrote album '{album.title}'",
            release_id=release_id,
            created=result.release_created,
            new_artists=result.new_artists,
            new_tracks=result.new_tracks,
            item_failures=len(result.failures),
        )
        return result


async def write_album_atomically(
    database: DatabaseHandle,
    album: CatalogAlbum,
    label_id: int,
    *,
    retry_policy: RetryPolicy | None = None,
    timeout: float | None = None,
) -> AlbumWriteResult:
    """Write one album in its own transaction, under timeout and retry policy.

    A crash or timeout mid-album rolls the whole album back, so there is never
    a release without its artists. Transient database errors retry the whole
    transaction; the conflict-ignore links make the retry safe.
    """
    policy = retry_policy or RetryPolicy.from_settings()
    write_timeout = timeout if timeout is not None else settings.timeouts.db_write

    async def attempt() -> AlbumWriteResult:
        async with asyncio.timeout(write_timeout):
            async with database.session_factory() as session:
                async with DatabaseUnitOfWork(session) as uow:
                    return await CatalogWriter(uow).write_album(album, label_id)

    return await policy.run(TRANSIENT_DB_ERRORS, attempt)
