"""SQLAlchemy database models for the label catalog.

This module defines the catalog tables and their relationships using
SQLAlchemy 2.0 patterns with proper type annotations:

labels, artists, releases, tracks, release_artists, track_artists
"""

from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    MetaData,
    String,
    UniqueConstraint,
    inspect,
    select,
)
from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncEngine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from labelsync.config import get_logger
from labelsync.domain.labels import KNOWN_LABELS

# Create module logger
logger = get_logger(__name__)

# Define naming convention for constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",  # Index
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",  # Unique constraint
    "ck": "ck_%(table_name)s_%(constraint_name)s",  # Check constraint
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",  # Foreign key
    "pk": "pk_%(table_name)s",  # Primary key
}

# Create metadata with naming convention
metadata = MetaData(naming_convention=convention)


class LabelSyncDBBase(AsyncAttrs, DeclarativeBase):
    """Base class for all database models with timestamps."""

    metadata = metadata

    id: Mapped[int] = mapped_column(primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )


class DBLabel(LabelSyncDBBase):
    """Publishing imprint; static reference data."""

    __tablename__ = "labels"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)

    releases: Mapped[list["DBRelease"]] = relationship(back_populates="label")

    __table_args__ = (
        UniqueConstraint("name"),
        UniqueConstraint("slug"),
    )


class DBArtist(LabelSyncDBBase):
    """Artist; external_id is NULL for placeholder rows from legacy imports."""

    __tablename__ = "artists"

    external_id: Mapped[str | None] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    image_url: Mapped[str | None] = mapped_column(String(1024))
    spotify_url: Mapped[str | None] = mapped_column(String(1024), index=True)
    label_id: Mapped[int | None] = mapped_column(
        ForeignKey("labels.id", ondelete="SET NULL")
    )

    release_links: Mapped[list["DBReleaseArtist"]] = relationship(
        back_populates="artist",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("external_id"),
        Index(None, "name"),
    )


class DBRelease(LabelSyncDBBase):
    """Release keyed by catalog external_id."""

    __tablename__ = "releases"

    external_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    release_date: Mapped[date | None] = mapped_column(Date)
    artwork_url: Mapped[str | None] = mapped_column(String(1024))
    external_url: Mapped[str | None] = mapped_column(String(1024))
    label_id: Mapped[int | None] = mapped_column(
        ForeignKey("labels.id", ondelete="RESTRICT"), index=True
    )
    release_type: Mapped[str] = mapped_column(String(32), nullable=False)
    primary_artist_id: Mapped[int | None] = mapped_column(
        ForeignKey("artists.id", ondelete="SET NULL")
    )
    catalog_label: Mapped[str | None] = mapped_column(String(255))
    total_tracks: Mapped[int | None]
    genres: Mapped[list[Any]] = mapped_column(JSON, default=list, nullable=False)

    label: Mapped[DBLabel | None] = relationship(back_populates="releases")
    tracks: Mapped[list["DBTrack"]] = relationship(
        back_populates="release",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    artist_links: Mapped[list["DBReleaseArtist"]] = relationship(
        back_populates="release",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (UniqueConstraint("external_id"),)


class DBTrack(LabelSyncDBBase):
    """Track; label_id mirrors the parent release's label_id."""

    __tablename__ = "tracks"

    external_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    duration_ms: Mapped[int | None]
    track_number: Mapped[int | None]
    disc_number: Mapped[int | None]
    preview_url: Mapped[str | None] = mapped_column(String(1024))
    external_url: Mapped[str | None] = mapped_column(String(1024))
    release_id: Mapped[int] = mapped_column(
        ForeignKey("releases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    label_id: Mapped[int | None] = mapped_column(
        ForeignKey("labels.id", ondelete="RESTRICT"), index=True
    )

    release: Mapped[DBRelease] = relationship(back_populates="tracks")
    artist_links: Mapped[list["DBTrackArtist"]] = relationship(
        back_populates="track",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (UniqueConstraint("external_id"),)


class DBReleaseArtist(LabelSyncDBBase):
    """Artist credit on a release."""

    __tablename__ = "release_artists"

    release_id: Mapped[int] = mapped_column(
        ForeignKey("releases.id", ondelete="CASCADE"), nullable=False
    )
    artist_id: Mapped[int] = mapped_column(
        ForeignKey("artists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False)

    release: Mapped[DBRelease] = relationship(back_populates="artist_links")
    artist: Mapped[DBArtist] = relationship(back_populates="release_links")

    __table_args__ = (UniqueConstraint("release_id", "artist_id", "role"),)


class DBTrackArtist(LabelSyncDBBase):
    """Artist credit on a track."""

    __tablename__ = "track_artists"

    track_id: Mapped[int] = mapped_column(
        ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False
    )
    artist_id: Mapped[int] = mapped_column(
        ForeignKey("artists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False)

    track: Mapped[DBTrack] = relationship(back_populates="artist_links")

    __table_args__ = (UniqueConstraint("track_id", "artist_id", "role"),)


async def init_db(engine: AsyncEngine, seed_labels: bool = True) -> None:
    """Initialize database schema and seed the known labels.

    Creates all tables if they don't exist. Safe to run repeatedly; existing
    rows are never touched.
    """
    try:
        async with engine.connect() as conn:
            existing_tables = await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).get_table_names()
            )
            if existing_tables:
                logger.info(f"Found existing tables: {existing_tables}")

        async with engine.begin() as conn:
            await conn.run_sync(LabelSyncDBBase.metadata.create_all)

            if seed_labels:
                existing_slugs = set(
                    (await conn.execute(select(DBLabel.slug))).scalars().all()
                )
                missing = [
                    {"name": label.name, "slug": label.slug}
                    for label in KNOWN_LABELS
                    if label.slug not in existing_slugs
                ]
                if missing:
                    now = datetime.now(UTC)
                    await conn.execute(
                        DBLabel.__table__.insert(),
                        [{**row, "created_at": now, "updated_at": now} for row in missing],
                    )
                    logger.info(f"Seeded {len(missing)} labels")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise
    else:
        logger.info("Database schema initialization complete")
