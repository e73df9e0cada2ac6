"""Database Unit of Work implementation for transaction boundary management.

Provides the concrete UnitOfWork: one session, one transaction, and
repository accessors that all share it.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Self

from sqlalchemy.ext.asyncio import AsyncSession

from labelsync.infrastructure.persistence.database.db_connection import transaction
from labelsync.infrastructure.persistence.repositories import (
    ArtistRepository,
    LabelRepository,
    ReleaseRepository,
    TrackRepository,
)


class DatabaseUnitOfWork:
    """Database implementation of the Unit of Work pattern.

    Commits on successful exit and rolls back when the block raises. Commit
    and rollback can also be called explicitly; a dry run simply calls
    ``rollback()`` before leaving the block.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self._session = session
        self._finished = False

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit with automatic commit on success or rollback on exception."""
        if exc_type is not None:
            await self.rollback()
        elif not self._finished:
            await self.commit()

    async def commit(self) -> None:
        """Explicitly commit the current transaction."""
        await self._session.commit()
        self._finished = True

    async def rollback(self) -> None:
        """Explicitly rollback the current transaction."""
        await self._session.rollback()
        self._finished = True

    @asynccontextmanager
    async def savepoint(self) -> AsyncGenerator[AsyncSession]:
        """Nested transaction for item-level work that may fail on its own."""
        async with transaction(self._session) as session:
            yield session

    def get_label_repository(self) -> LabelRepository:
        """Get label repository using this unit of work's transaction."""
        return LabelRepository(self._session)

    def get_artist_repository(self) -> ArtistRepository:
        """Get artist repository using this unit of work's transaction."""
        return ArtistRepository(self._session)

    def get_release_repository(self) -> ReleaseRepository:
        """Get release repository using this unit of work's transaction."""
        return ReleaseRepository(self._session)

    def get_track_repository(self) -> TrackRepository:
        """Get track repository using this unit of work's transaction."""
        return TrackRepository(self._session)
