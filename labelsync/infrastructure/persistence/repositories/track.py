"""Track repository with track-artist link management."""

from collections import defaultdict

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from labelsync.domain.entities import ArtistRole, Track
from labelsync.infrastructure.persistence.database.db_models import (
    DBRelease,
    DBTrack,
    DBTrackArtist,
)
from labelsync.infrastructure.persistence.repositories.base_repo import BaseRepository
from labelsync.infrastructure.persistence.repositories.mappers import TrackMapper
from labelsync.infrastructure.persistence.repositories.repo_decorator import (
    db_operation,
)


class TrackRepository(BaseRepository[DBTrack, Track]):
    """Track persistence and label denormalization upkeep."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model_class=DBTrack, mapper=TrackMapper())

    @db_operation("find_track_by_external_id")
    async def find_by_external_id(self, external_id: str) -> Track | None:
        return await self.find_one_by({"external_id": external_id})

    @db_operation("update_track_metadata")
    async def update_metadata(self, track_id: int, entity: Track) -> None:
        """Refresh display fields plus release and label denormalization."""
        values = {
            "title": entity.title,
            "duration_ms": entity.duration_ms,
            "track_number": entity.track_number,
            "disc_number": entity.disc_number,
            "release_id": entity.release_id,
            "label_id": entity.label_id,
        }
        if entity.preview_url:
            values["preview_url"] = entity.preview_url
        if entity.external_url:
            values["external_url"] = entity.external_url
        await self.update_fields(track_id, values)

    @db_operation("list_tracks_by_release")
    async def list_by_release(self, release_id: int) -> list[Track]:
        return await self.find_by(
            {"release_id": release_id}, order_by=("track_number", True)
        )

    @db_operation("cascade_track_label")
    async def cascade_label(self, release_id: int, label_id: int) -> int:
        """Set label_id on every track of the release; returns rows updated."""
        result = await self.session.execute(
            update(DBTrack)
            .where(DBTrack.release_id == release_id)
            .values(label_id=label_id)
        )
        return result.rowcount or 0

    @db_operation("repair_track_label_drift")
    async def repair_label_drift(self, label_id: int | None = None) -> int:
        """Copy the parent release's label_id onto tracks that disagree with it.

        Args:
            label_id: Restrict to releases currently under this label
        """
        drifted = (
            select(DBTrack.id, DBRelease.label_id)
            .join(DBRelease, DBRelease.id == DBTrack.release_id)
            .where(
                DBRelease.label_id.is_not(None),
                DBTrack.label_id.is_(None) | (DBTrack.label_id != DBRelease.label_id),
            )
        )
        if label_id is not None:
            drifted = drifted.where(DBRelease.label_id == label_id)

        by_label: dict[int, list[int]] = defaultdict(list)
        for track_id, target_label_id in (await self.session.execute(drifted)).all():
            by_label[target_label_id].append(track_id)

        repaired = 0
        for target_label_id, track_ids in by_label.items():
            result = await self.session.execute(
                update(DBTrack)
                .where(DBTrack.id.in_(track_ids))
                .values(label_id=target_label_id)
            )
            repaired += result.rowcount or 0
        return repaired

    @db_operation("link_track_artist")
    async def link_artist(self, track_id: int, artist_id: int, role: ArtistRole) -> bool:
        """Idempotent credit insert; False when the link already existed."""
        return await self.insert_ignore(
            DBTrackArtist,
            {"track_id": track_id, "artist_id": artist_id, "role": str(role)},
            ["track_id", "artist_id", "role"],
        )

    @db_operation("count_tracks_by_label")
    async def count_by_label(self) -> dict[int, int]:
        result = await self.session.execute(
            select(DBTrack.label_id, func.count(DBTrack.id))
            .where(DBTrack.label_id.is_not(None))
            .group_by(DBTrack.label_id)
        )
        return {label_id: count for label_id, count in result.all()}
