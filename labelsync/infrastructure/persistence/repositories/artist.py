"""Artist repository."""

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from labelsync.domain.entities import Artist
from labelsync.infrastructure.persistence.database.db_models import DBArtist
from labelsync.infrastructure.persistence.repositories.base_repo import BaseRepository
from labelsync.infrastructure.persistence.repositories.mappers import ArtistMapper
from labelsync.infrastructure.persistence.repositories.repo_decorator import (
    db_operation,
)


class ArtistRepository(BaseRepository[DBArtist, Artist]):
    """Artist lookups by each identity key the resolver uses."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model_class=DBArtist, mapper=ArtistMapper())

    @db_operation("find_artist_by_external_id")
    async def find_by_external_id(self, external_id: str) -> Artist | None:
        return await self.find_one_by({"external_id": external_id})

    @db_operation("find_artist_by_spotify_url")
    async def find_by_spotify_url(self, url: str) -> Artist | None:
        """Lookup by stored (normalized) Spotify URL."""
        return await self.find_one_by({"spotify_url": url})

    @db_operation("find_placeholder_artist_by_name")
    async def find_placeholder_by_name(self, name: str) -> Artist | None:
        """Exact case-insensitive name match among artists without an external ID."""
        return await self.find_one_by([
            DBArtist.external_id.is_(None),
            func.lower(DBArtist.name) == name.strip().lower(),
        ])

    @db_operation("find_artists_by_names")
    async def find_by_names(self, names: list[str]) -> list[Artist]:
        if not names:
            return []
        lowered = [n.strip().lower() for n in names]
        return await self.find_by([func.lower(DBArtist.name).in_(lowered)])

    @db_operation("refresh_artist_metadata")
    async def refresh_metadata(
        self,
        artist_id: int,
        *,
        name: str,
        external_id: str | None,
        image_url: str | None,
        spotify_url: str | None,
    ) -> None:
        """Refresh display fields; never clears a value the catalog omitted."""
        values: dict = {"name": name}
        if external_id:
            values["external_id"] = external_id
        if image_url:
            values["image_url"] = image_url
        if spotify_url:
            values["spotify_url"] = spotify_url
        await self.update_fields(artist_id, values)
