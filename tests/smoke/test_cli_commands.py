"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
from datetime import UTC, datetime, timedelta

import pytest
from typer.testing import CliRunner

from config import get_settings
from learnsight.cli.main import app
from learnsight.db import database

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

runner = CliRunner()

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point settings at a temp database and disable the log file."""
    monkeypatch.setenv("LEARNSIGHT_DATABASE_URL", f"sqlite:///{tmp_path / 'learnsight.db'}")
    monkeypatch.setenv("LEARNSIGHT_LOG_FILE", "")
    monkeypatch.setattr(database, "_engine", None)
    monkeypatch.setattr(database, "_SessionLocal", None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def events_file(tmp_path):
    records = [
        {
            "user_id": "u1",
            "question_id": f"q{i}",
            "category": "finance",
            "difficulty": "medium",
            "is_correct": i not in (0, 5),
            "response_time": 20000,
            "created_at": (T0 + timedelta(hours=0 if i < 5 else 1, minutes=i)).isoformat(),
        }
        for i in range(10)
    ]
    path = tmp_path / "answers.json"
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("snapshot", "timing", "hints", "load", "retention", "stage", "flow", "db-init"):
            assert command in result.output


class TestAnalyticsCommands:
    def test_snapshot(self, events_file):
        result = runner.invoke(app, ["snapshot", "u1", "--events", str(events_file)])
        assert result.exit_code == 0, result.output
        assert "finance" in result.output

    def test_snapshot_json(self, events_file):
        result = runner.invoke(app, ["snapshot", "u1", "--events", str(events_file), "--json"])
        assert result.exit_code == 0, result.output
        assert '"event_count": 10' in result.output

    def test_timing(self, events_file):
        result = runner.invoke(app, ["timing", "u1", "--events", str(events_file)])
        assert result.exit_code == 0, result.output
        assert "9:00" in result.output

    def test_hints(self, events_file):
        result = runner.invoke(app, ["hints", "u1", "--events", str(events_file)])
        assert result.exit_code == 0, result.output
        assert "Finance is a strength" in result.output

    def test_load(self, events_file):
        result = runner.invoke(app, ["load", "u1", "--events", str(events_file)])
        assert result.exit_code == 0, result.output
        assert "Current load" in result.output
        assert "Time until fatigue" in result.output

    def test_retention(self, events_file):
        result = runner.invoke(app, ["retention", "u1", "--events", str(events_file)])
        assert result.exit_code == 0, result.output
        assert "72%" in result.output
        assert "finance" in result.output

    def test_stage(self, events_file):
        result = runner.invoke(app, ["stage", "u1", "--events", str(events_file)])
        assert result.exit_code == 0, result.output
        assert "analyzing" in result.output

    def test_missing_events_file(self, tmp_path):
        result = runner.invoke(app, ["snapshot", "u1", "--events", str(tmp_path / "nope.json")])
        assert result.exit_code == 1


class TestFlowCommand:
    def test_flow_guidance(self):
        result = runner.invoke(app, ["flow", "s1", "--accuracy", "82", "--elapsed", "10", "--times", "4200,3900,5100"])
        assert result.exit_code == 0, result.output
        assert "GOOD" in result.output

    def test_flow_rejects_invalid_accuracy(self):
        result = runner.invoke(app, ["flow", "s1", "--accuracy", "150"])
        assert result.exit_code == 1


class TestDatabaseCommands:
    def test_db_init_import_and_snapshot(self, events_file):
        result = runner.invoke(app, ["db-init"])
        assert result.exit_code == 0, result.output
        assert "Database initialized" in result.output

        result = runner.invoke(app, ["import-events", str(events_file)])
        assert result.exit_code == 0, result.output
        assert "Stored 10 records" in result.output

        result = runner.invoke(app, ["snapshot", "u1", "--json"])
        assert result.exit_code == 0, result.output
        assert '"event_count": 10' in result.output
