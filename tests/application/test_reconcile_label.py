"""Tests for the reconcile use case and its dry-run rollback."""

import pytest

from labelsync.application.use_cases.reconcile_label import run_reconcile
from labelsync.domain.errors import UnknownLabelError
from labelsync.infrastructure.persistence.repositories import (
    LabelRepository,
    ReleaseRepository,
)
from labelsync.infrastructure.services.catalog_writer import write_album_atomically

from tests.fixtures.catalog import make_album, make_artist, make_track


@pytest.fixture
async def misfiled_release(database, fast_retry):
    """A Build It Deep release sitting under Build It Records."""
    artist = make_artist("solaReyes1", "Sola Reyes")
    album = make_album(
        "misfiled1",
        "Night Drive",
        [artist],
        [make_track("misfiled1T1", "Night Drive", [artist])],
        catalog_label="Build It Deep",
    )
    async with database.read_session() as session:
        records = await LabelRepository(session).find_by_name_or_slug("buildit-records")
    result = await write_album_atomically(
        database, album, records.id, retry_policy=fast_retry
    )
    return result.release_id, records


async def stored_label_id(database, release_id):
    async with database.read_session() as session:
        return (await ReleaseRepository(session).get_by_id(release_id)).label_id


async def test_dry_run_reports_but_rolls_back(database, misfiled_release):
    release_id, records = misfiled_release

    report = await run_reconcile(
        "Build It Records", dry_run=True, database=database, placeholder_names=[]
    )

    assert report.dry_run
    assert [r.release_id for r in report.reassignments] == [release_id]
    assert report.reassignments[0].rule == "catalog_label"
    assert await stored_label_id(database, release_id) == records.id


async def test_real_run_moves_release(database, misfiled_release):
    release_id, records = misfiled_release

    report = await run_reconcile("buildit-records", database=database, placeholder_names=[])

    assert len(report.reassignments) == 1
    assert await stored_label_id(database, release_id) == report.reassignments[0].to_label_id
    assert await stored_label_id(database, release_id) != records.id


async def test_unknown_label(database):
    with pytest.raises(UnknownLabelError):
        await run_reconcile("Nope Records", database=database)
