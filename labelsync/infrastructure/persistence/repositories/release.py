"""Release repository with release-artist link management."""

from datetime import date

from sqlalchemy import delete, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from labelsync.domain.entities import ArtistRole, Release, ReleaseArtistLink
from labelsync.infrastructure.persistence.database.db_models import (
    DBArtist,
    DBRelease,
    DBReleaseArtist,
)
from labelsync.infrastructure.persistence.repositories.base_repo import BaseRepository
from labelsync.infrastructure.persistence.repositories.mappers import ReleaseMapper
from labelsync.infrastructure.persistence.repositories.repo_decorator import (
    db_operation,
)


class ReleaseRepository(BaseRepository[DBRelease, Release]):
    """Release persistence. ``label_id`` only changes through ``set_label``."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(
            session=session, model_class=DBRelease, mapper=ReleaseMapper()
        )

    @db_operation("find_release_by_external_id")
    async def find_by_external_id(self, external_id: str) -> Release | None:
        return await self.find_one_by({"external_id": external_id})

    @db_operation("update_release_display_fields")
    async def update_display_fields(
        self,
        release_id: int,
        *,
        title: str,
        artwork_url: str | None,
        release_date: date | None,
        external_url: str | None,
        total_tracks: int | None,
        catalog_label: str | None,
        genres: list[str],
    ) -> None:
        """Refresh mutable display fields of an existing release."""
        values: dict = {"title": title}
        if artwork_url:
            values["artwork_url"] = artwork_url
        if release_date:
            values["release_date"] = release_date
        if external_url:
            values["external_url"] = external_url
        if total_tracks is not None:
            values["total_tracks"] = total_tracks
        if catalog_label:
            values["catalog_label"] = catalog_label
        if genres:
            values["genres"] = list(genres)
        await self.update_fields(release_id, values)

    @db_operation("set_primary_artist")
    async def set_primary_artist(self, release_id: int, artist_id: int) -> None:
        await self.update_fields(release_id, {"primary_artist_id": artist_id})

    @db_operation("set_release_label")
    async def set_label(self, release_id: int, label_id: int) -> int:
        """Point the release at ``label_id``; tracks are cascaded by the caller."""
        return await self.update_fields(release_id, {"label_id": label_id})

    @db_operation("list_releases_by_label")
    async def list_by_label(self, label_id: int) -> list[Release]:
        return await self.find_by({"label_id": label_id})

    @db_operation("find_orphan_releases")
    async def find_orphans(self, label_id: int | None = None) -> list[int]:
        """IDs of releases with no release_artists rows."""
        stmt = select(DBRelease.id).where(
            ~exists().where(DBReleaseArtist.release_id == DBRelease.id)
        )
        if label_id is not None:
            stmt = stmt.where(DBRelease.label_id == label_id)
        result = await self.session.execute(stmt.order_by(DBRelease.id))
        return list(result.scalars().all())

    @db_operation("link_release_artist")
    async def link_artist(
        self, release_id: int, artist_id: int, role: ArtistRole
    ) -> bool:
        """Idempotent credit insert; False when the link already existed."""
        return await self.insert_ignore(
            DBReleaseArtist,
            {"release_id": release_id, "artist_id": artist_id, "role": str(role)},
            ["release_id", "artist_id", "role"],
        )

    @db_operation("unlink_release_artist")
    async def unlink_artist(self, release_id: int, artist_id: int) -> int:
        """Remove every credit of ``artist_id`` on the release."""
        result = await self.session.execute(
            delete(DBReleaseArtist).where(
                DBReleaseArtist.release_id == release_id,
                DBReleaseArtist.artist_id == artist_id,
            )
        )
        return result.rowcount or 0

    @db_operation("get_release_artist_links")
    async def get_artist_links(self, release_id: int) -> list[ReleaseArtistLink]:
        result = await self.session.execute(
            select(DBReleaseArtist)
            .where(DBReleaseArtist.release_id == release_id)
            .order_by(DBReleaseArtist.id)
        )
        return [
            ReleaseArtistLink(
                release_id=row.release_id, artist_id=row.artist_id, role=row.role
            )
            for row in result.scalars().all()
        ]

    @db_operation("get_release_artist_names")
    async def get_artist_names(self, release_id: int) -> list[str]:
        result = await self.session.execute(
            select(DBArtist.name)
            .join(DBReleaseArtist, DBReleaseArtist.artist_id == DBArtist.id)
            .where(DBReleaseArtist.release_id == release_id)
            .order_by(DBReleaseArtist.id)
        )
        return list(result.scalars().all())

    @db_operation("count_releases_by_label")
    async def count_by_label(self) -> dict[int, int]:
        result = await self.session.execute(
            select(DBRelease.label_id, func.count(DBRelease.id))
            .where(DBRelease.label_id.is_not(None))
            .group_by(DBRelease.label_id)
        )
        return {label_id: count for label_id, count in result.all()}
