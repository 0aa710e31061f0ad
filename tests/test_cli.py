from __future__ import annotations

import json

import pytest
from conftest import at, work
from typer.testing import CliRunner

from work_tracker.cli import app
from work_tracker.db import EventStore
from work_tracker.models import ActivityEvent

runner = CliRunner()


@pytest.fixture
def paths(tmp_path):
    db_path = tmp_path / "tracker.db"
    with EventStore(db_path) as store:
        store.append(work(9, project="Website"))
        store.append(ActivityEvent.activity(at(10), "Slack", "general"))
    return ["--db", str(db_path), "--config", str(tmp_path / "config.json")]


def invoke(paths, *args):
    return runner.invoke(app, [*paths, *args])


class TestReports:
    def test_summary_for_date(self, paths):
        result = invoke(paths, "summary", "--date", "2024-03-11")
        assert result.exit_code == 0, result.output
        assert "Summary for 2024-03-11" in result.output
        assert "01:00:00" in result.output
        assert "Website" in result.output

    def test_summary_without_work(self, paths):
        result = invoke(paths, "summary", "--date", "2024-01-01")
        assert "No work recorded for 2024-01-01." in result.output

    def test_bad_date(self, paths):
        assert invoke(paths, "summary", "--date", "yesterday").exit_code != 0

    def test_stats(self, paths):
        result = invoke(paths, "stats", "--start", "2024-03-11", "--end", "2024-03-11")
        assert result.exit_code == 0, result.output
        assert "Website" in result.output
        assert "Total: 1h 0m" in result.output


class TestExport:
    def test_writes_requested_file(self, paths, tmp_path):
        output = tmp_path / "out.json"
        result = invoke(
            paths, "export", "--format", "json", "--start", "2024-03-11", "--end", "2024-03-11",
            "--output", str(output),
        )
        assert result.exit_code == 0, result.output
        assert json.loads(output.read_text(encoding="utf-8"))["summary"]["totalSessions"] == 1

    def test_empty_range_fails(self, paths, tmp_path):
        result = invoke(
            paths, "export", "--start", "2024-01-01", "--end", "2024-01-01",
            "--output", str(tmp_path / "none.csv"),
        )
        assert result.exit_code == 1

    def test_reversed_range_is_rejected(self, paths, tmp_path):
        output = tmp_path / "reversed.csv"
        result = invoke(
            paths, "export", "--start", "2024-03-12", "--end", "2024-03-11",
            "--output", str(output),
        )
        assert result.exit_code == 2
        assert not output.exists()


class TestProjectsAndConfig:
    def test_projects_round_trip(self, paths):
        assert invoke(paths, "projects", "set", "Billing", "invoice", "stripe").exit_code == 0
        listing = invoke(paths, "projects", "list")
        assert "Billing: invoice, stripe" in listing.output
        assert invoke(paths, "projects", "remove", "Billing").exit_code == 0
        assert invoke(paths, "projects", "remove", "Billing").exit_code == 1

    def test_config_set_and_show(self, paths):
        assert invoke(paths, "config", "set", "notifications.dailySummaryTime", "17:45").exit_code == 0
        shown = invoke(paths, "config", "show")
        assert json.loads(shown.stdout)["notifications"]["dailySummaryTime"] == "17:45"

    def test_config_rejects_invalid_value(self, paths):
        assert invoke(paths, "config", "set", "dailyGoalMinutes", "0").exit_code == 2


class TestMigrate:
    def test_imports_legacy_log(self, paths, tmp_path):
        log_path = tmp_path / "activity_log.txt"
        log_path.write_text("2024-03-11T09:00:00.000Z: App: VSCode\nbroken\n", encoding="utf-8")
        result = invoke(paths, "migrate", "--log", str(log_path))
        assert "Migrated 1 entries, skipped 1 line(s)." in result.output
        again = invoke(paths, "migrate", "--log", str(log_path))
        assert "Already migrated (1 entries)." in again.output
