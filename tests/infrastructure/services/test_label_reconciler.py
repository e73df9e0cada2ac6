"""Tests for label reassignment, drift repair and placeholder cleanup."""

import pytest

from labelsync.domain.entities import Artist, Release
from labelsync.domain.errors import UnknownLabelError
from labelsync.infrastructure.services.catalog_writer import CatalogWriter
from labelsync.infrastructure.services.label_reconciler import LabelReconciler

from tests.fixtures.catalog import acme_drift_album, make_album, make_artist, make_track


async def get_label(uow, slug):
    return await uow.get_label_repository().find_by_name_or_slug(slug)


def four_track_album(external_id="fourTrack1", title="Sunday Morning", **kwargs):
    artist = make_artist("sundayArtist1", "Nora Vale")
    tracks = [
        make_track(f"{external_id}T{n}", f"{title} {n}", [artist], n)
        for n in range(1, 5)
    ]
    return make_album(external_id, title, [artist], tracks, **kwargs)


@pytest.fixture
def reconciler(uow):
    return LabelReconciler(uow)


class TestReassignRelease:
    async def test_moves_release_and_all_tracks(self, uow, reconciler):
        records = await get_label(uow, "buildit-records")
        deep = await get_label(uow, "buildit-deep")
        written = await CatalogWriter(uow).write_album(four_track_album(), records.id)
        tracks_before = await uow.get_track_repository().list_by_release(written.release_id)

        updated = await reconciler.reassign_release(written.release_id, deep.id)

        release = await uow.get_release_repository().get_by_id(written.release_id)
        tracks_after = await uow.get_track_repository().list_by_release(written.release_id)
        assert updated == 4
        assert release.label_id == deep.id
        assert [t.id for t in tracks_after] == [t.id for t in tracks_before]
        assert {t.label_id for t in tracks_after} == {deep.id}

    async def test_unknown_label_is_rejected(self, uow, reconciler):
        records = await get_label(uow, "buildit-records")
        written = await CatalogWriter(uow).write_album(four_track_album(), records.id)

        with pytest.raises(UnknownLabelError):
            await reconciler.reassign_release(written.release_id, 9999)

        release = await uow.get_release_repository().get_by_id(written.release_id)
        assert release.label_id == records.id

    async def test_missing_release_raises(self, uow, reconciler):
        deep = await get_label(uow, "buildit-deep")
        with pytest.raises(ValueError, match="not found"):
            await reconciler.reassign_release(424242, deep.id)


class TestDriftAndOrphans:
    async def test_repair_copies_release_label_to_tracks(self, uow, reconciler):
        deep = await get_label(uow, "buildit-deep")
        tech = await get_label(uow, "buildit-tech")
        written = await CatalogWriter(uow).write_album(acme_drift_album(), deep.id)
        track_repo = uow.get_track_repository()
        drifted = (await track_repo.list_by_release(written.release_id))[0]
        await track_repo.update_fields(drifted.id, {"label_id": tech.id})

        assert await reconciler.repair_track_labels() == 1
        assert await reconciler.repair_track_labels() == 0

        repaired = await track_repo.get_by_id(drifted.id)
        assert repaired.label_id == deep.id

    async def test_release_without_credits_is_flagged_not_deleted(self, uow, reconciler):
        deep = await get_label(uow, "buildit-deep")
        await CatalogWriter(uow).write_album(acme_drift_album(), deep.id)
        orphan = await uow.get_release_repository().create(
            Release(external_id="orphan1", title="Lonely", label_id=deep.id)
        )

        assert await reconciler.find_orphan_releases(deep.id) == [orphan.id]
        assert await uow.get_release_repository().find_by_external_id("orphan1")


class TestPlaceholderCleanup:
    async def test_placeholder_credit_removed_and_primary_repointed(self, uow, reconciler):
        deep = await get_label(uow, "buildit-deep")
        release_repo = uow.get_release_repository()
        placeholder = await uow.get_artist_repository().create(
            Artist(name="Label 3 Artist")
        )
        written = await CatalogWriter(uow).write_album(acme_drift_album(), deep.id)
        release = await release_repo.get_by_id(written.release_id)
        real_primary = release.primary_artist_id
        await release_repo.link_artist(written.release_id, placeholder.id, "primary")
        await release_repo.set_primary_artist(written.release_id, placeholder.id)

        removed, review = await reconciler.cleanup_placeholder_artists(
            ["Label 3 Artist"], deep.id
        )

        links = await release_repo.get_artist_links(written.release_id)
        release = await release_repo.get_by_id(written.release_id)
        assert removed == 1
        assert review == []
        assert placeholder.id not in {link.artist_id for link in links}
        assert release.primary_artist_id == real_primary

    async def test_release_credited_only_to_placeholder_needs_review(self, uow, reconciler):
        deep = await get_label(uow, "buildit-deep")
        placeholder = await uow.get_artist_repository().create(Artist(name="BURNTECH"))
        release = await uow.get_release_repository().create(
            Release(
                external_id="burnRelease1",
                title="Burn",
                label_id=deep.id,
                primary_artist_id=placeholder.id,
            )
        )
        await uow.get_release_repository().link_artist(release.id, placeholder.id, "primary")

        removed, review = await reconciler.cleanup_placeholder_artists(["burntech"])

        assert removed == 0
        assert [(r.external_id, r.error_type) for r in review] == [
            ("burnRelease1", "reconciliation_ambiguous")
        ]
        links = await uow.get_release_repository().get_artist_links(release.id)
        assert [link.artist_id for link in links] == [placeholder.id]


class TestReconcileLabel:
    async def test_rules_and_ambiguity(self, uow, reconciler):
        records = await get_label(uow, "buildit-records")
        deep = await get_label(uow, "buildit-deep")
        tech = await get_label(uow, "buildit-tech")
        writer = CatalogWriter(uow)
        by_catalog = await writer.write_album(
            four_track_album("catalogDeep1", "Night Shift", catalog_label="BUILD IT DEEP"),
            records.id,
        )
        by_keyword = await writer.write_album(
            four_track_album("keywordTech1", "Warehouse Techno"), records.id
        )
        undecided = await writer.write_album(
            four_track_album("undecided1", "Sunday Morning"), records.id
        )
        staying = await writer.write_album(
            four_track_album("staying1", "Home", catalog_label="Build It Records"),
            records.id,
        )

        report = await reconciler.reconcile_label(records, placeholder_names=[])

        moves = {r.release_id: (r.to_label_id, r.rule) for r in report.reassignments}
        assert report.releases_checked == 4
        assert moves == {
            by_catalog.release_id: (deep.id, "catalog_label"),
            by_keyword.release_id: (tech.id, "keyword"),
        }
        assert [r.external_id for r in report.ambiguous] == ["undecided1"]
        assert staying.release_id not in moves
        assert undecided.release_id not in moves

        tracks = await uow.get_track_repository().list_by_release(by_catalog.release_id)
        assert {t.label_id for t in tracks} == {deep.id}

        counts = {d.label_name: (d.releases, d.tracks) for d in report.distribution}
        assert counts == {
            "Build It Records": (2, 8),
            "Build It Deep": (1, 4),
            "Build It Tech": (1, 4),
        }

    async def test_distribution_includes_catalog_totals(self, uow, reconciler):
        deep = await get_label(uow, "buildit-deep")
        await CatalogWriter(uow).write_album(acme_drift_album(), deep.id)

        distribution = await reconciler.label_distribution({"buildit-deep": 5})

        by_slug = {d.label_name: d for d in distribution}
        assert by_slug["Build It Deep"].releases == 1
        assert by_slug["Build It Deep"].tracks == 3
        assert by_slug["Build It Deep"].catalog_total == 5
        assert by_slug["Build It Tech"].catalog_total is None
