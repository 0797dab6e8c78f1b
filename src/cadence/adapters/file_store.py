"""File-based storage adapter."""

import json
import logging
from datetime import date
from pathlib import Path

from cadence.core.dates import date_key, day_or_none
from cadence.core.habits import Habit
from cadence.core.identity import Committed, OccurrenceId
from cadence.core.recurrence import Occurrence, Subtask
from cadence.ports.persistence import PersistenceError

logger = logging.getLogger(__name__)


def _empty_document() -> dict:
    return {
        "next_id": 1,
        "occurrences": [],
        "habits": [],
        "completions": {},
        "profile": {"last_streak_celebration": 0},
    }


class JsonFileStore:
    """
    JSON file storage.

    Implements PersistenceGateway, HabitRepository and ProfileRepository
    protocols. The whole store is one JSON document; every write goes to a
    temporary file that then replaces the original, so a call either lands
    completely or not at all.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> dict:
        if not self.path.exists():
            return _empty_document()
        try:
            document = json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt store {self.path}: {e}") from e
        for key, value in _empty_document().items():
            document.setdefault(key, value)
        return document

    def _write(self, document: dict) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp.write_text(json.dumps(document, indent=2))
            tmp.replace(self.path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e

    @staticmethod
    def _take_id(document: dict) -> int:
        value = document["next_id"]
        document["next_id"] = value + 1
        return value

    # ============== Occurrences ==============

    def load_occurrences(self) -> list[Occurrence]:
        return [Occurrence.from_api(row) for row in self._read()["occurrences"]]

    def insert_occurrences(self, payloads: list[Occurrence]) -> list[Occurrence]:
        document = self._read()
        rows = []
        for payload in payloads:
            row = payload.to_api()
            row["id"] = self._take_id(document)
            row["subtasks"] = []
            rows.append(row)
        document["occurrences"].extend(rows)
        self._write(document)
        logger.debug(f"Inserted {len(rows)} occurrences into {self.path}")
        return [Occurrence.from_api(row) for row in rows]

    def insert_subtasks(self, parent_id: OccurrenceId, subtasks: list[Subtask]) -> list[Subtask]:
        document = self._read()
        parent = self._find_row(document, parent_id)
        if parent is None:
            raise PersistenceError(f"No occurrence with id {parent_id}")
        created = []
        for subtask in subtasks:
            row = {"id": self._take_id(document), "text": subtask.text, "completed": subtask.completed}
            parent.setdefault("subtasks", []).append(row)
            created.append(Subtask(text=row["text"], completed=row["completed"], id=Committed(row["id"])))
        self._write(document)
        return created

    def update_occurrence(self, occurrence: Occurrence) -> Occurrence:
        document = self._read()
        row = self._find_row(document, occurrence.id)
        if row is None:
            raise PersistenceError(f"No occurrence with id {occurrence.id}")
        subtask_rows = {st["id"]: st for st in row.get("subtasks", [])}
        row.update(occurrence.to_api())
        row["subtasks"] = []
        for subtask in occurrence.subtasks:
            if isinstance(subtask.id, Committed) and subtask.id.value in subtask_rows:
                existing = dict(subtask_rows[subtask.id.value], text=subtask.text, completed=subtask.completed)
                row["subtasks"].append(existing)
            else:
                row["subtasks"].append(
                    {"id": self._take_id(document), "text": subtask.text, "completed": subtask.completed}
                )
        self._write(document)
        return Occurrence.from_api(row)

    def delete_occurrences(self, ids: list[OccurrenceId]) -> None:
        values = {i.value for i in ids if isinstance(i, Committed)}
        if not values:
            return
        document = self._read()
        document["occurrences"] = [row for row in document["occurrences"] if row.get("id") not in values]
        self._write(document)

    @staticmethod
    def _find_row(document: dict, occurrence_id: OccurrenceId | None) -> dict | None:
        if not isinstance(occurrence_id, Committed):
            return None
        for row in document["occurrences"]:
            if row.get("id") == occurrence_id.value:
                return row
        return None

    # ============== Habits ==============

    def load_habits(self) -> list[Habit]:
        return [Habit.from_api(row) for row in self._read()["habits"]]

    def save_habit(self, habit: Habit) -> None:
        document = self._read()
        document["habits"] = [row for row in document["habits"] if str(row.get("id")) != habit.id]
        document["habits"].append(habit.to_api())
        self._write(document)

    def load_completions(self, habit_id: str) -> set[date]:
        days = (day_or_none(key) for key in self._read()["completions"].get(habit_id, []))
        return {d for d in days if d is not None}

    def set_completion(self, habit_id: str, day: date, done: bool) -> None:
        document = self._read()
        keys = set(document["completions"].get(habit_id, []))
        if done:
            keys.add(date_key(day))
        else:
            keys.discard(date_key(day))
        document["completions"][habit_id] = sorted(keys)
        self._write(document)

    # ============== Profile ==============

    def last_celebration(self) -> int:
        return int(self._read()["profile"].get("last_streak_celebration", 0))

    def save_last_celebration(self, milestone: int) -> None:
        document = self._read()
        document["profile"]["last_streak_celebration"] = milestone
        self._write(document)
