"""Mappers between catalog ORM rows and domain entities."""

from attrs import define

from labelsync.domain.entities import Artist, Label, Release, Track
from labelsync.infrastructure.persistence.database.db_models import (
    DBArtist,
    DBLabel,
    DBRelease,
    DBTrack,
)
from labelsync.infrastructure.persistence.repositories.base_repo import (
    BaseModelMapper,
)


@define(frozen=True, slots=True)
class LabelMapper(BaseModelMapper[DBLabel, Label]):
    @staticmethod
    async def to_domain(db_model: DBLabel) -> Label:
        return Label(name=db_model.name, slug=db_model.slug, id=db_model.id)

    @staticmethod
    def to_db(domain_model: Label) -> DBLabel:
        return DBLabel(name=domain_model.name, slug=domain_model.slug)


@define(frozen=True, slots=True)
class ArtistMapper(BaseModelMapper[DBArtist, Artist]):
    @staticmethod
    async def to_domain(db_model: DBArtist) -> Artist:
        return Artist(
            id=db_model.id,
            name=db_model.name,
            external_id=db_model.external_id,
            image_url=db_model.image_url,
            spotify_url=db_model.spotify_url,
            label_id=db_model.label_id,
        )

    @staticmethod
    def to_db(domain_model: Artist) -> DBArtist:
        return DBArtist(
            name=domain_model.name,
            external_id=domain_model.external_id,
            image_url=domain_model.image_url,
            spotify_url=domain_model.spotify_url,
            label_id=domain_model.label_id,
        )


@define(frozen=True, slots=True)
class ReleaseMapper(BaseModelMapper[DBRelease, Release]):
    @staticmethod
    async def to_domain(db_model: DBRelease) -> Release:
        return Release(
            id=db_model.id,
            external_id=db_model.external_id,
            title=db_model.title,
            release_date=db_model.release_date,
            artwork_url=db_model.artwork_url,
            external_url=db_model.external_url,
            label_id=db_model.label_id,
            release_type=db_model.release_type,
            primary_artist_id=db_model.primary_artist_id,
            catalog_label=db_model.catalog_label,
            total_tracks=db_model.total_tracks,
            genres=list(db_model.genres or []),
        )

    @staticmethod
    def to_db(domain_model: Release) -> DBRelease:
        return DBRelease(
            external_id=domain_model.external_id,
            title=domain_model.title,
            release_date=domain_model.release_date,
            artwork_url=domain_model.artwork_url,
            external_url=domain_model.external_url,
            label_id=domain_model.label_id,
            release_type=str(domain_model.release_type),
            primary_artist_id=domain_model.primary_artist_id,
            catalog_label=domain_model.catalog_label,
            total_tracks=domain_model.total_tracks,
            genres=list(domain_model.genres),
        )


@define(frozen=True, slots=True)
class TrackMapper(BaseModelMapper[DBTrack, Track]):
    @staticmethod
    async def to_domain(db_model: DBTrack) -> Track:
        return Track(
            id=db_model.id,
            external_id=db_model.external_id,
            title=db_model.title,
            release_id=db_model.release_id,
            duration_ms=db_model.duration_ms,
            track_number=db_model.track_number,
            disc_number=db_model.disc_number,
            preview_url=db_model.preview_url,
            external_url=db_model.external_url,
            label_id=db_model.label_id,
        )

    @staticmethod
    def to_db(domain_model: Track) -> DBTrack:
        return DBTrack(
            external_id=domain_model.external_id,
            title=domain_model.title,
            release_id=domain_model.release_id,
            duration_ms=domain_model.duration_ms,
            track_number=domain_model.track_number,
            disc_number=domain_model.disc_number,
            preview_url=domain_model.preview_url,
            external_url=domain_model.external_url,
            label_id=domain_model.label_id,
        )
