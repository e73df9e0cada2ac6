import os
from pathlib import Path
import tempfile

# Must be set before labelsync.config builds its settings singleton
_LOG_DIR = Path(tempfile.mkdtemp(prefix="labelsync-tests-"))
os.environ["DATABASE__URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOGGING__LOG_FILE"] = str(_LOG_DIR / "labelsync.log")
os.environ["CREDENTIALS__SPOTIFY_CLIENT_ID"] = ""
os.environ["CREDENTIALS__SPOTIFY_CLIENT_SECRET"] = ""

import pytest  # noqa: E402

from labelsync.infrastructure.persistence.database.db_connection import (  # noqa: E402
    DatabaseHandle,
)
from labelsync.infrastructure.persistence.database.db_models import init_db  # noqa: E402
from labelsync.infrastructure.persistence.unit_of_work import (  # noqa: E402
    DatabaseUnitOfWork,
)
from labelsync.infrastructure.retry import RetryPolicy  # noqa: E402

MEMORY_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def database():
    """Fresh in-memory database with schema and seeded labels."""
    handle = DatabaseHandle.from_url(MEMORY_DB_URL)
    try:
        await init_db(handle.engine)
    except Exception as e:
        pytest.fail(f"Database initialization failed: {e}")
    yield handle
    await handle.dispose()


@pytest.fixture
async def db_session(database):
    """Provide database session with automatic rollback."""
    async with database.session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def uow(db_session):
    """Unit of work over the rollback-only test session."""
    return DatabaseUnitOfWork(db_session)


@pytest.fixture
def fast_retry():
    """Retry policy with no waiting between attempts."""
    return RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0, jitter=False)
