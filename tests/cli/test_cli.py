"""Tests for the labelsync command line."""

from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from labelsync.domain.entities import (
    FailureRecord,
    Reassignment,
    ReconcileReport,
    SyncReport,
    SyncState,
)
from labelsync.domain.errors import UnknownLabelError
from labelsync.infrastructure.cli.app import app
from labelsync.infrastructure.cli.completions import complete_label_names

SYNC_TARGET = "labelsync.infrastructure.cli.sync_commands.run_sync"
RECONCILE_TARGET = "labelsync.infrastructure.cli.reconcile_commands.run_reconcile"


@pytest.fixture
def runner():
    return CliRunner()


def sync_report(**overrides) -> SyncReport:
    values = {"label_name": "Build It Deep", "state": SyncState.DONE, "new_releases": 3}
    values.update(overrides)
    return SyncReport(**values)


def test_version(runner):
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "labelsync" in result.output


class TestSyncCommand:
    def test_successful_sync(self, runner):
        with patch(SYNC_TARGET, new_callable=AsyncMock) as mock_run:
            mock_run.return_value = sync_report()
            result = runner.invoke(app, ["sync", "--label", "Build It Deep"])

        assert result.exit_code == 0
        assert "New Releases" in result.output
        mock_run.assert_awaited_once()
        assert mock_run.await_args.args == ("Build It Deep",)
        assert mock_run.await_args.kwargs["dry_run"] is False

    def test_dry_run_flag_is_passed(self, runner):
        with patch(SYNC_TARGET, new_callable=AsyncMock) as mock_run:
            mock_run.return_value = sync_report(dry_run=True)
            result = runner.invoke(app, ["sync", "-l", "buildit-deep", "--dry-run"])

        assert result.exit_code == 0
        assert "dry run" in result.output
        assert mock_run.await_args.kwargs["dry_run"] is True

    def test_json_output(self, runner):
        with patch(SYNC_TARGET, new_callable=AsyncMock) as mock_run:
            mock_run.return_value = sync_report(failed_pages=[50])
            result = runner.invoke(
                app, ["sync", "--label", "Build It Deep", "--format", "json"]
            )

        assert result.exit_code == 0
        assert '"new_releases": 3' in result.output
        assert '"failed_pages"' in result.output

    def test_failed_run_exits_nonzero(self, runner):
        report = sync_report(
            state=SyncState.FAILED,
            new_releases=0,
            error="Unknown label: 'Nope'",
            issues=[FailureRecord("run", None, "Unknown label: 'Nope'", "unknown_label")],
        )
        with patch(SYNC_TARGET, new_callable=AsyncMock, return_value=report):
            result = runner.invoke(app, ["sync", "--label", "Nope"])

        assert result.exit_code == 1
        assert "Unknown label" in result.output

    def test_cancelled_run_exit_code(self, runner):
        with patch(
            SYNC_TARGET, new_callable=AsyncMock, return_value=sync_report(cancelled=True)
        ):
            result = runner.invoke(app, ["sync", "--label", "Build It Deep"])

        assert result.exit_code == 130
        assert "cancelled" in result.output

    def test_label_is_required(self, runner):
        result = runner.invoke(app, ["sync"])
        assert result.exit_code != 0


class TestReconcileCommand:
    def test_reconcile_report(self, runner):
        report = ReconcileReport(
            label_name="Build It Records",
            releases_checked=2,
            reassignments=[
                Reassignment(
                    release_id=7,
                    external_id="misfiled1",
                    from_label_id=1,
                    to_label_id=2,
                    rule="catalog_label",
                )
            ],
        )
        with patch(RECONCILE_TARGET, new_callable=AsyncMock, return_value=report) as mock_run:
            result = runner.invoke(app, ["reconcile", "--label", "Build It Records"])

        assert result.exit_code == 0
        assert "misfiled1" in result.output
        assert mock_run.await_args.kwargs["dry_run"] is False

    def test_unknown_label_exits_with_error(self, runner):
        with patch(
            RECONCILE_TARGET,
            new_callable=AsyncMock,
            side_effect=UnknownLabelError("Unknown label: 'Nope'"),
        ):
            result = runner.invoke(app, ["reconcile", "--label", "Nope"])

        assert result.exit_code == 1
        assert "Unknown label" in result.output


class TestSystemCommands:
    def test_init_db(self, runner):
        result = runner.invoke(app, ["init-db"])
        assert result.exit_code == 0
        assert "initialized" in result.output

    def test_status_all_connected(self, runner):
        with (
            patch(
                "labelsync.infrastructure.cli.status_commands._check_spotify",
                new_callable=AsyncMock,
                return_value=(True, "Client credentials accepted"),
            ),
            patch(
                "labelsync.infrastructure.cli.status_commands._check_database",
                new_callable=AsyncMock,
                return_value=(True, "3 labels"),
            ),
        ):
            result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "3 labels" in result.output

    def test_status_missing_credentials(self, runner):
        with (
            patch(
                "labelsync.infrastructure.cli.status_commands._check_spotify",
                new_callable=AsyncMock,
                return_value=(False, "Not configured - missing API credentials"),
            ),
            patch(
                "labelsync.infrastructure.cli.status_commands._check_database",
                new_callable=AsyncMock,
                side_effect=RuntimeError("disk gone"),
            ),
        ):
            result = runner.invoke(app, ["status"])

        assert result.exit_code == 1
        assert "Not configured" in result.output
        assert "disk gone" in result.output


def test_label_completion():
    assert complete_label_names("build it d") == ["Build It Deep"]
    assert complete_label_names("buildit-t") == ["buildit-tech"]
