"""Tests for the Cadence CLI."""

import json
import os

import pytest
from click.testing import CliRunner

from cadence.adapters.file_store import JsonFileStore
from cadence.cli import main


@pytest.fixture
def store_path(tmp_path, monkeypatch):
    for key in list(os.environ):
        if key.startswith("CADENCE_") and key != "CADENCE_HOME":
            monkeypatch.delenv(key)
    path = tmp_path / "cadence.json"
    monkeypatch.setenv("CADENCE_STORE_PATH", str(path))
    return path


@pytest.fixture
def runner(store_path):
    return CliRunner()


def invoke(runner, *args):
    return runner.invoke(main, ["--today", "2024-01-01", *args])


class TestTasks:
    def test_add_one_off(self, runner, store_path):
        result = invoke(runner, "add", "Dentist", "--due", "2024-01-05")

        assert result.exit_code == 0
        assert "Added 1 occurrence(s)." in result.output
        assert JsonFileStore(store_path).load_occurrences()[0].text == "Dentist"

    def test_add_custom_repeat(self, runner, store_path):
        result = invoke(runner, "add", "Gym", "--repeat", "custom", "--days", "1,3,5")

        assert result.exit_code == 0
        dates = sorted(o.due_date.isoformat() for o in JsonFileStore(store_path).load_occurrences())
        assert dates[:5] == ["2024-01-01", "2024-01-03", "2024-01-05", "2024-01-08", "2024-01-10"]

    def test_add_bad_days(self, runner):
        result = invoke(runner, "add", "Gym", "--repeat", "custom", "--days", "mon,wed")
        assert result.exit_code != 0
        assert "weekday numbers" in result.output

    def test_occurrences_for_day(self, runner):
        invoke(runner, "add", "Stretch", "--repeat", "daily", "--subtask", "Neck")

        result = invoke(runner, "occurrences", "--day", "2024-01-02")

        assert result.exit_code == 0
        assert "### 2024-01-02" in result.output
        assert "Stretch (daily)" in result.output
        assert "Neck" in result.output

    def test_occurrences_json(self, runner):
        invoke(runner, "add", "Dentist")

        result = invoke(runner, "occurrences", "--json")

        data = json.loads(result.output)
        assert data[0]["text"] == "Dentist"
        assert data[0]["due_date"] == "2024-01-01"

    def test_occurrences_empty_day(self, runner):
        result = invoke(runner, "occurrences", "--day", "2024-01-02")
        assert "Nothing scheduled on 2024-01-02." in result.output

    def test_expand_is_idempotent(self, runner):
        invoke(runner, "add", "Stretch", "--repeat", "daily")
        result = invoke(runner, "expand")
        assert "Created 0 occurrence(s)." in result.output

    def test_done(self, runner):
        invoke(runner, "add", "Dentist")
        result = invoke(runner, "done", "1")
        assert result.exit_code == 0
        assert "Completed: Dentist" in result.output

    def test_done_unknown(self, runner):
        result = invoke(runner, "done", "42")
        assert result.exit_code == 1
        assert "No task with id 42" in result.output

    def test_subtask_done(self, runner):
        invoke(runner, "add", "Pack", "--subtask", "Socks", "--subtask", "Charger")
        result = invoke(runner, "subtask-done", "1", "2")
        assert "Pack: 1/2 subtasks done" in result.output

    def test_delete_series(self, runner, store_path):
        invoke(runner, "add", "Gym", "--repeat", "weekly")
        result = invoke(runner, "delete-series", "3")

        assert result.exit_code == 0
        assert "Deleted 12 occurrence(s)." in result.output
        assert len(JsonFileStore(store_path).load_occurrences()) == 2

    def test_rollover_moves_ranged_task(self, runner, store_path):
        runner.invoke(main, ["--today", "2023-12-31", "add", "Report", "--end", "2024-01-05"])
        runner.invoke(main, ["--today", "2023-12-31", "add", "Call"])

        result = invoke(runner, "rollover")

        assert result.exit_code == 0
        assert "Rolled over 1 task(s) to 2024-01-01." in result.output
        due = {o.text: o.due_date.isoformat() for o in JsonFileStore(store_path).load_occurrences()}
        assert due == {"Report": "2024-01-01", "Call": "2023-12-31"}

    def test_add_end_before_due(self, runner):
        result = invoke(runner, "add", "Report", "--end", "2023-12-30")

        assert result.exit_code == 1
        assert "--end is before the due date" in result.output


class TestHabits:
    def test_add_and_list(self, runner):
        invoke(runner, "habit-add", "read", "Read", "--type", "specific_days", "--days", "1,3")

        result = invoke(runner, "habits")

        assert result.exit_code == 0
        assert "read: Read [Mon, Wed] streak 0" in result.output

    def test_no_habits(self, runner):
        assert "No habits yet." in invoke(runner, "habits").output

    def test_check_in_and_streak(self, runner):
        invoke(runner, "habit-add", "read", "Read")
        invoke(runner, "check-in", "read", "--date", "2023-12-31")
        result = invoke(runner, "check-in", "read")
        assert "read done on 2024-01-01" in result.output

        result = invoke(runner, "streak", "read", "--json")

        assert json.loads(result.output) == {"habit": "read", "streak": 2}

    def test_check_in_twice_undoes(self, runner):
        invoke(runner, "check-in", "read")
        result = invoke(runner, "check-in", "read")
        assert "read not done on 2024-01-01" in result.output

    def test_habits_json_marks_streaks(self, runner):
        invoke(runner, "habit-add", "run", "Run", "--type", "interval", "--every", "2")
        invoke(runner, "check-in", "run")

        result = invoke(runner, "habits", "--json")

        data = json.loads(result.output)
        assert data[0]["frequency"] == {"type": "interval", "days": 2, "startDate": "2024-01-01"}
        assert data[0]["streak"] == 1

    def test_streak_unknown_habit(self, runner):
        result = invoke(runner, "streak", "nope")
        assert result.exit_code == 1
        assert "No habit with id nope" in result.output


class TestStreakCheck:
    def test_reports_current_streak(self, runner):
        result = invoke(runner, "streak-check")
        assert result.exit_code == 0
        assert "Current streak: 0 days." in result.output

    def test_celebrates_milestone(self, runner, store_path):
        for day in ("2023-12-29", "2023-12-30", "2023-12-31"):
            runner.invoke(main, ["--today", day, "add", "Walk"])
        for task_id in ("1", "2", "3"):
            invoke(runner, "done", task_id)

        result = invoke(runner, "streak-check")

        assert "3-day streak!" in result.output
        assert JsonFileStore(store_path).last_celebration() == 3
