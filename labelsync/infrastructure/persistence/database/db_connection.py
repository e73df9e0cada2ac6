"""SQLAlchemy database configuration and connection management.

This module is responsible for:
- Engine creation and configuration
- Session factory creation
- The per-run ``DatabaseHandle`` (engine + session factory, disposed on exit)
- Savepoint handling

There are no module-level engine singletons: each sync or reconcile run
acquires a handle, threads it through the services, and disposes it.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from attrs import define, field
from sqlalchemy import event, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from labelsync.config import get_logger, settings

# Create module logger
logger = get_logger(__name__)


def _is_memory_sqlite(db_url: str) -> bool:
    return db_url.startswith("sqlite") and (":memory:" in db_url or db_url.endswith("://"))


def create_db_engine(connection_string: str | None = None) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    SQLite connections get WAL, foreign keys and a busy timeout, and the
    driver's implicit transaction handling is turned off so SQLAlchemy
    controls BEGIN and SAVEPOINT itself.
    """
    db_url = connection_string or settings.database.url
    is_sqlite = db_url.startswith("sqlite")

    engine_kwargs: dict = {"echo": settings.database.echo}
    if _is_memory_sqlite(db_url):
        # One shared connection, otherwise every checkout sees an empty database
        engine_kwargs.update(
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    elif is_sqlite:
        database_path = make_url(db_url).database
        if database_path:
            Path(database_path).parent.mkdir(parents=True, exist_ok=True)
        engine_kwargs.update(
            connect_args={"check_same_thread": False, "timeout": 30.0},
            pool_pre_ping=True,
        )
    else:
        engine_kwargs.update(
            pool_size=settings.database.pool_size,
            max_overflow=settings.database.max_overflow,
            pool_timeout=settings.database.pool_timeout,
            pool_recycle=settings.database.pool_recycle,
            pool_pre_ping=True,
        )

    engine = create_async_engine(db_url, **engine_kwargs)

    if is_sqlite:

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, _):  # pragma: no cover
            """Set SQLite PRAGMAs and hand transaction control to SQLAlchemy."""
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA busy_timeout = 30000")
            cursor.execute("PRAGMA journal_mode = WAL")
            cursor.execute("PRAGMA synchronous = NORMAL")
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.execute("PRAGMA temp_store = MEMORY")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _do_begin(conn):  # pragma: no cover
            """Emit our own BEGIN so SAVEPOINTs nest inside it."""
            conn.exec_driver_sql("BEGIN")

    logger.debug("Created database engine", dialect=engine.dialect.name)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory for the given engine."""
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,  # Don't expire objects after commit
        autoflush=True,
    )


@define(slots=True)
class DatabaseHandle:
    """Engine plus session factory, acquired once per run.

    Example:
        ```python
        async with DatabaseHandle.open() as database:
            async with database.session() as session:
                ...
        ```
    """

    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession] = field()
    owns_engine: bool = True

    @session_factory.default
    def _default_session_factory(self) -> async_sessionmaker[AsyncSession]:
        return create_session_factory(self.engine)

    @classmethod
    def from_url(cls, connection_string: str | None = None) -> "DatabaseHandle":
        return cls(engine=create_db_engine(connection_string))

    @classmethod
    @asynccontextmanager
    async def open(
        cls, connection_string: str | None = None
    ) -> AsyncGenerator["DatabaseHandle"]:
        """Scoped handle that is disposed on every exit path."""
        handle = cls.from_url(connection_string)
        try:
            yield handle
        finally:
            await handle.dispose()

    @asynccontextmanager
    async def session(self, rollback: bool = True) -> AsyncGenerator[AsyncSession]:
        """Session that commits on success and rolls back on error."""
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except BaseException:
            if rollback:
                await session.rollback()
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def read_session(self) -> AsyncGenerator[AsyncSession]:
        """Session that always rolls back; used for dry runs."""
        session = self.session_factory()
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()

    async def dispose(self) -> None:
        if self.owns_engine:
            await self.engine.dispose()
            logger.debug("Database engine disposed")


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncGenerator[AsyncSession]:
    """Savepoint that commits or rolls back independently of the outer transaction.

    Example:
        ```python
        async with transaction(session):
            await session.execute(stmt1)
            await session.execute(stmt2)
        ```
    """
    async with session.begin_nested():
        yield session
