"""Hosted backend adapter - HTTP client for a PostgREST-style API."""

import logging
from dataclasses import replace
from datetime import date

import requests

from cadence.config import Config, load_config
from cadence.core.dates import date_key, day_or_none
from cadence.core.habits import Habit
from cadence.core.identity import Committed, OccurrenceId
from cadence.core.recurrence import Occurrence, Subtask
from cadence.ports.persistence import PersistenceError

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
TIMEOUT_SECONDS = 30
RETURN_ROWS = "return=representation"
MERGE_DUPLICATES = "resolution=merge-duplicates"


def _in_filter(values: list) -> str:
    return "in.(" + ",".join(str(v) for v in values) + ")"


class RestBackend:
    """
    Hosted backend adapter.

    Implements PersistenceGateway, HabitRepository and ProfileRepository
    protocols over the backend's REST tables (todos, subtasks, habits,
    habit_records, profiles). No business logic - just I/O. Every HTTP or
    network failure surfaces as PersistenceError.
    """

    def __init__(self, config: Config | None = None, session: requests.Session | None = None):
        self.config = config or load_config()
        if not self.config.backend_url:
            raise PersistenceError("BACKEND_URL not configured.")
        self._session = session or requests.Session()
        self._session.headers.update(self._auth_headers())

    def _auth_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.backend_key:
            headers["apikey"] = self.config.backend_key
        token = self.config.backend_token or self.config.backend_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(
        self,
        method: str,
        table: str,
        params: dict | None = None,
        payload: dict | list | None = None,
        prefer: str | None = None,
    ) -> list:
        """Make an authenticated API request against one table."""
        headers = {"Prefer": prefer} if prefer else {}
        try:
            resp = self._session.request(
                method,
                f"{self.config.backend_url}{REST_PATH}/{table}",
                params=params,
                json=payload,
                headers=headers,
                timeout=TIMEOUT_SECONDS,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"{method} {table} failed: {e}")
            raise PersistenceError(f"{method} {table} failed: {e}") from e
        if not resp.content:
            return []
        return resp.json()

    # ============== Occurrences ==============

    def load_occurrences(self) -> list[Occurrence]:
        rows = self._request("GET", "todos", params={"select": "*,subtasks(*)", "order": "due_date.asc"})
        return [Occurrence.from_api(row) for row in rows]

    def insert_occurrences(self, payloads: list[Occurrence]) -> list[Occurrence]:
        if not payloads:
            return []
        rows = self._request("POST", "todos", payload=[p.to_api() for p in payloads], prefer=RETURN_ROWS)
        if len(rows) != len(payloads):
            raise PersistenceError(f"Backend returned {len(rows)} rows for {len(payloads)} inserts")
        return [Occurrence.from_api(row) for row in rows]

    def insert_subtasks(self, parent_id: OccurrenceId, subtasks: list[Subtask]) -> list[Subtask]:
        if not subtasks:
            return []
        if not isinstance(parent_id, Committed):
            raise PersistenceError(f"Cannot attach subtasks to uncommitted occurrence {parent_id}")
        rows = self._request(
            "POST",
            "subtasks",
            payload=[{"text": st.text, "completed": st.completed, "todo_id": parent_id.value} for st in subtasks],
            prefer=RETURN_ROWS,
        )
        return [Subtask(text=row["text"], completed=bool(row["completed"]), id=Committed(row["id"])) for row in rows]

    def update_occurrence(self, occurrence: Occurrence) -> Occurrence:
        if not isinstance(occurrence.id, Committed):
            raise PersistenceError(f"Cannot update uncommitted occurrence {occurrence.id}")
        row = occurrence.to_api()
        row.pop("id", None)
        rows = self._request("PATCH", "todos", params={"id": f"eq.{occurrence.id.value}"}, payload=row, prefer=RETURN_ROWS)
        if not rows:
            raise PersistenceError(f"No occurrence with id {occurrence.id}")
        subtask_rows = [
            {"id": st.id.value, "text": st.text, "completed": st.completed, "todo_id": occurrence.id.value}
            for st in occurrence.subtasks
            if isinstance(st.id, Committed)
        ]
        if subtask_rows:
            self._request(
                "POST",
                "subtasks",
                params={"on_conflict": "id"},
                payload=subtask_rows,
                prefer=MERGE_DUPLICATES,
            )
        return replace(Occurrence.from_api(rows[0]), subtasks=occurrence.subtasks)

    def delete_occurrences(self, ids: list[OccurrenceId]) -> None:
        values = [i.value for i in ids if isinstance(i, Committed)]
        if not values:
            return
        self._request("DELETE", "subtasks", params={"todo_id": _in_filter(values)})
        self._request("DELETE", "todos", params={"id": _in_filter(values)})

    # ============== Habits ==============

    def load_habits(self) -> list[Habit]:
        return [Habit.from_api(row) for row in self._request("GET", "habits", params={"select": "*"})]

    def save_habit(self, habit: Habit) -> None:
        self._request(
            "POST",
            "habits",
            params={"on_conflict": "id"},
            prefer=MERGE_DUPLICATES,
            payload=habit.to_api(),
        )

    def load_completions(self, habit_id: str) -> set[date]:
        rows = self._request(
            "GET",
            "habit_records",
            params={"select": "completed_at", "habit_id": f"eq.{habit_id}"},
        )
        days = (day_or_none(row.get("completed_at")) for row in rows)
        return {d for d in days if d is not None}

    def set_completion(self, habit_id: str, day: date, done: bool) -> None:
        if done:
            self._request(
                "POST",
                "habit_records",
                params={"on_conflict": "habit_id,completed_at"},
                prefer=MERGE_DUPLICATES,
                payload={"habit_id": habit_id, "completed_at": date_key(day)},
            )
        else:
            self._request(
                "DELETE",
                "habit_records",
                params={"habit_id": f"eq.{habit_id}", "completed_at": f"eq.{date_key(day)}"},
            )

    # ============== Profile ==============

    def last_celebration(self) -> int:
        rows = self._request("GET", "profiles", params={"select": "last_streak_celebration"})
        if not rows:
            return 0
        return int(rows[0].get("last_streak_celebration") or 0)

    def save_last_celebration(self, milestone: int) -> None:
        params = {"id": f"eq.{self.config.backend_user_id}"} if self.config.backend_user_id else None
        self._request("PATCH", "profiles", params=params, payload={"last_streak_celebration": milestone})
