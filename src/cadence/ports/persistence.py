"""Persistence interfaces for occurrences, habits and the user profile."""

from datetime import date
from typing import Protocol

from cadence.core.habits import Habit
from cadence.core.identity import OccurrenceId
from cadence.core.recurrence import Occurrence, Subtask


class PersistenceError(Exception):
    """Raised when a storage call fails."""

    pass


class PersistenceGateway(Protocol):
    """
    Interface for storing task occurrences on any backend.

    ``insert_occurrences`` is one atomic batch. Other calls may span several
    writes (parent, then subtasks); a failure raises PersistenceError and
    callers that need all-or-nothing roll back themselves.
    """

    def load_occurrences(self) -> list[Occurrence]:
        """Load every stored occurrence, subtasks included."""
        ...

    def insert_occurrences(self, payloads: list[Occurrence]) -> list[Occurrence]:
        """Insert a batch. Returns committed occurrences in the same order, without subtasks."""
        ...

    def insert_subtasks(self, parent_id: OccurrenceId, subtasks: list[Subtask]) -> list[Subtask]:
        """Insert subtasks under one committed parent. Returns them with committed ids."""
        ...

    def update_occurrence(self, occurrence: Occurrence) -> Occurrence:
        """Persist field changes of a committed occurrence, then its subtasks. Raises if the occurrence is missing."""
        ...

    def delete_occurrences(self, ids: list[OccurrenceId]) -> None:
        """Delete occurrences and their subtasks."""
        ...


class HabitRepository(Protocol):
    """Interface for habits and their completion records."""

    def load_habits(self) -> list[Habit]:
        ...

    def save_habit(self, habit: Habit) -> None:
        """Create or replace a habit."""
        ...

    def load_completions(self, habit_id: str) -> set[date]:
        """Days on which the habit was marked done."""
        ...

    def set_completion(self, habit_id: str, day: date, done: bool) -> None:
        """Add or remove the completion record for one day."""
        ...


class ProfileRepository(Protocol):
    """Interface for per-user streak celebration bookkeeping."""

    def last_celebration(self) -> int:
        ...

    def save_last_celebration(self, milestone: int) -> None:
        ...
