"""Tests for the per-label sync run."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from labelsync.application.use_cases.sync_label import (
    SyncLabelCommand,
    SyncLabelUseCase,
    run_sync,
)
from labelsync.domain.entities import (
    AlbumSearchPage,
    CancellationToken,
    CatalogToken,
    SyncState,
)
from labelsync.domain.errors import AuthError, NotFound, RateLimited
from labelsync.infrastructure.persistence.repositories import ReleaseRepository

from tests.fixtures.catalog import make_album, make_artist, make_track

LABEL = "Build It Deep"


def catalog_albums(count: int) -> dict:
    artist = make_artist("solaReyes1", "Sola Reyes")
    albums = {}
    for n in range(1, count + 1):
        external_id = f"deepAlbum{n}"
        tracks = [
            make_track(f"{external_id}T{t}", f"Night Drive {n}.{t}", [artist], t)
            for t in (1, 2)
        ]
        albums[external_id] = make_album(
            external_id, f"Night Drive {n}", [artist], tracks, catalog_label=LABEL
        )
    return albums


def make_catalog(albums: dict, search_errors: dict | None = None) -> MagicMock:
    """Catalog double serving ``albums`` in search order, in pages."""
    search_errors = search_errors or {}
    summaries = [
        make_album(album.external_id, album.title, album.artists)
        for album in albums.values()
    ]

    async def search(label_name, offset=0, limit=50):
        if offset in search_errors:
            raise search_errors[offset]
        return AlbumSearchPage(
            items=summaries[offset : offset + limit],
            total=len(summaries),
            offset=offset,
            limit=limit,
        )

    async def detail(external_id):
        try:
            return albums[external_id]
        except KeyError:
            raise NotFound(f"Album {external_id} not found", external_id=external_id) from None

    catalog = MagicMock()
    catalog.authenticate = AsyncMock(return_value=CatalogToken(access_token="token"))
    catalog.search_albums_by_label = AsyncMock(side_effect=search)
    catalog.get_album_detail = AsyncMock(side_effect=detail)
    return catalog


async def count_releases(database) -> int:
    async with database.read_session() as session:
        return await ReleaseRepository(session).count_entities()


@pytest.fixture
def make_use_case(database, fast_retry):
    def _make(catalog, page_size=2):
        return SyncLabelUseCase(
            database=database,
            catalog=catalog,
            retry_policy=fast_retry,
            page_size=page_size,
            max_albums=500,
            write_timeout=10,
        )

    return _make


class TestSyncRun:
    async def test_full_sync(self, database, make_use_case):
        catalog = make_catalog(catalog_albums(3))

        report = await make_use_case(catalog).execute(SyncLabelCommand(LABEL))

        assert report.state == SyncState.DONE
        assert report.state_history[:4] == [
            SyncState.IDLE,
            SyncState.AUTHENTICATING,
            SyncState.PAGINATING,
            SyncState.RESOLVING,
        ]
        assert report.state_history[-2:] == [SyncState.RECONCILING, SyncState.DONE]
        assert report.new_releases == 3
        assert report.new_artists == 1
        assert report.new_tracks == 6
        assert report.albums_seen == 3
        assert report.catalog_total == 3
        assert report.issues == []
        assert catalog.search_albums_by_label.await_count == 2
        assert await count_releases(database) == 3

    async def test_second_run_creates_nothing(self, database, make_use_case):
        albums = catalog_albums(3)
        await make_use_case(make_catalog(albums)).execute(SyncLabelCommand(LABEL))

        report = await make_use_case(make_catalog(albums)).execute(SyncLabelCommand(LABEL))

        assert report.new_releases == 0
        assert report.existing_releases == 3
        assert report.new_artists == 0
        assert report.new_tracks == 0
        assert await count_releases(database) == 3

    async def test_duplicate_search_results_written_once(self, make_use_case):
        albums = catalog_albums(2)
        catalog = make_catalog(albums)
        first = make_album("deepAlbum1", "Night Drive 1", [make_artist("solaReyes1", "Sola Reyes")])
        catalog.search_albums_by_label = AsyncMock(
            return_value=AlbumSearchPage(items=[first, first], total=2, offset=0, limit=50)
        )

        report = await make_use_case(catalog, page_size=50).execute(SyncLabelCommand(LABEL))

        assert report.albums_seen == 1
        assert catalog.get_album_detail.await_count == 1

    async def test_missing_album_is_recorded_and_run_continues(self, database, make_use_case):
        albums = catalog_albums(3)
        del albums["deepAlbum2"]
        catalog = make_catalog(albums)
        catalog.search_albums_by_label = AsyncMock(
            return_value=AlbumSearchPage(
                items=[make_album(f"deepAlbum{n}", "x", []) for n in (1, 2, 3)],
                total=3,
                offset=0,
                limit=50,
            )
        )

        report = await make_use_case(catalog, page_size=50).execute(SyncLabelCommand(LABEL))

        assert report.state == SyncState.DONE
        assert report.new_releases == 2
        assert report.failed_releases == 1
        assert [(i.entity, i.external_id, i.error_type) for i in report.issues] == [
            ("album", "deepAlbum2", "not_found")
        ]
        assert await count_releases(database) == 2


class TestPageFailures:
    async def test_rate_limited_page_is_skipped(self, make_use_case):
        catalog = make_catalog(catalog_albums(5), {2: RateLimited(retry_after=2)})

        report = await make_use_case(catalog).execute(SyncLabelCommand(LABEL))

        assert report.state == SyncState.DONE
        assert report.failed_pages == [2]
        assert report.albums_seen == 3
        assert report.new_releases == 3
        assert report.issues[0].error_type == "rate_limited"

    async def test_first_page_failure_stops_pagination(self, make_use_case):
        catalog = make_catalog(catalog_albums(5), {0: RateLimited()})

        report = await make_use_case(catalog).execute(SyncLabelCommand(LABEL))

        assert report.state == SyncState.DONE
        assert report.failed_pages == [0]
        assert report.albums_seen == 0
        assert catalog.search_albums_by_label.await_count == 1

    async def test_null_entries_are_reported_and_paging_continues(self, make_use_case):
        albums = catalog_albums(3)
        catalog = make_catalog(albums)
        artist = make_artist("solaReyes1", "Sola Reyes")
        pages = {
            0: AlbumSearchPage(
                items=[make_album("deepAlbum1", "Night Drive 1", [artist])],
                total=3,
                offset=0,
                limit=2,
                dropped=1,
            ),
            2: AlbumSearchPage(
                items=[make_album("deepAlbum3", "Night Drive 3", [artist])],
                total=3,
                offset=2,
                limit=2,
            ),
        }
        catalog.search_albums_by_label = AsyncMock(
            side_effect=lambda label_name, offset=0, limit=50: pages[offset]
        )

        report = await make_use_case(catalog).execute(SyncLabelCommand(LABEL))

        assert report.state == SyncState.DONE
        assert report.albums_seen == 2
        assert catalog.search_albums_by_label.await_count == 2
        assert [(i.entity, i.external_id, i.error_type) for i in report.issues] == [
            ("page", None, "malformed_payload")
        ]


class TestRunLevel:
    async def test_rejected_credentials_fail_the_run(self, make_use_case):
        catalog = make_catalog(catalog_albums(1))
        catalog.authenticate.side_effect = AuthError("invalid_client")

        report = await make_use_case(catalog).execute(SyncLabelCommand(LABEL))

        assert report.state == SyncState.FAILED
        assert report.error == "invalid_client"
        assert report.issues[0].entity == "run"
        catalog.search_albums_by_label.assert_not_awaited()

    async def test_unknown_label_fails_before_auth(self, make_use_case):
        catalog = make_catalog(catalog_albums(1))

        report = await make_use_case(catalog).execute(SyncLabelCommand("Nope Records"))

        assert report.state == SyncState.FAILED
        assert report.issues[0].error_type == "unknown_label"
        catalog.authenticate.assert_not_awaited()

    async def test_cancel_between_albums(self, database, make_use_case):
        albums = catalog_albums(3)
        catalog = make_catalog(albums)
        token = CancellationToken()

        async def detail_then_cancel(external_id):
            token.cancel("test")
            return albums[external_id]

        catalog.get_album_detail.side_effect = detail_then_cancel

        report = await make_use_case(catalog).execute(SyncLabelCommand(LABEL), token)

        assert report.cancelled
        assert report.state == SyncState.DONE
        assert report.albums_seen == 1
        assert await count_releases(database) == 1


class TestDryRun:
    async def test_dry_run_writes_nothing(self, database, make_use_case):
        catalog = make_catalog(catalog_albums(3))

        report = await make_use_case(catalog).execute(SyncLabelCommand(LABEL, dry_run=True))

        assert report.state == SyncState.DONE
        assert report.dry_run
        assert report.new_releases == 3
        assert report.new_tracks == 6
        assert report.new_artists == 1
        assert SyncState.UPSERTING not in report.state_history
        assert await count_releases(database) == 0

    async def test_dry_run_after_sync_reports_existing(self, database, make_use_case):
        albums = catalog_albums(2)
        await make_use_case(make_catalog(albums)).execute(SyncLabelCommand(LABEL))

        report = await make_use_case(make_catalog(albums)).execute(
            SyncLabelCommand(LABEL, dry_run=True)
        )

        assert report.new_releases == 0
        assert report.existing_releases == 2

    async def test_dry_run_counts_match_real_run(self, make_use_case):
        albums = catalog_albums(3)

        preview = await make_use_case(make_catalog(albums)).execute(
            SyncLabelCommand(LABEL, dry_run=True)
        )
        real = await make_use_case(make_catalog(albums)).execute(SyncLabelCommand(LABEL))

        assert (preview.new_releases, preview.new_artists, preview.new_tracks) == (
            real.new_releases,
            real.new_artists,
            real.new_tracks,
        )


async def test_run_sync_leaves_injected_resources_open(database, fast_retry):
    catalog = make_catalog(catalog_albums(1))

    report = await run_sync(
        "buildit-deep", database=database, catalog=catalog, retry_policy=fast_retry
    )

    assert report.succeeded
    assert report.label_name == LABEL
    assert await count_releases(database) == 1
