"""Task board state - an immutable, caller-owned map of day -> occurrences.

Every function here returns a new board and leaves its input untouched.
"""

from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import date
from types import MappingProxyType

from .dates import add_days, date_key
from .identity import OccurrenceId
from .recurrence import Occurrence

TaskBoard = Mapping[str, tuple[Occurrence, ...]]

UNSCHEDULED = "unscheduled"


def _key_for(occurrence: Occurrence) -> str:
    return date_key(occurrence.due_date) if occurrence.due_date else UNSCHEDULED


def _freeze(days: dict[str, list[Occurrence]]) -> TaskBoard:
    return MappingProxyType({key: tuple(items) for key, items in sorted(days.items()) if items})


def empty_board() -> TaskBoard:
    return MappingProxyType({})


def board_from_occurrences(occurrences: Iterable[Occurrence]) -> TaskBoard:
    days: dict[str, list[Occurrence]] = {}
    for occurrence in occurrences:
        days.setdefault(_key_for(occurrence), []).append(occurrence)
    return _freeze(days)


def all_occurrences(board: TaskBoard) -> list[Occurrence]:
    return [occurrence for items in board.values() for occurrence in items]


def on_day(board: TaskBoard, day: date) -> tuple[Occurrence, ...]:
    return board.get(date_key(day), ())


def find(board: TaskBoard, occurrence_id: OccurrenceId) -> Occurrence | None:
    for occurrence in all_occurrences(board):
        if occurrence.id == occurrence_id:
            return occurrence
    return None


def group_dates(board: TaskBoard, group_id: str | None) -> frozenset[str]:
    """Due-date keys already materialized for a recurrence group."""
    if not group_id:
        return frozenset()
    return frozenset(
        date_key(o.due_date) for o in all_occurrences(board) if o.group_id == group_id and o.due_date
    )


def latest_in_groups(board: TaskBoard) -> list[Occurrence]:
    """The latest-dated occurrence of every recurring group."""
    latest: dict[str, Occurrence] = {}
    for occurrence in all_occurrences(board):
        if not occurrence.is_recurring or not occurrence.group_id or not occurrence.due_date:
            continue
        current = latest.get(occurrence.group_id)
        if current is None or occurrence.due_date > current.due_date:
            latest[occurrence.group_id] = occurrence
    return sorted(latest.values(), key=lambda o: o.due_date)


def with_occurrences(board: TaskBoard, occurrences: Iterable[Occurrence]) -> TaskBoard:
    """Add occurrences, replacing any with the same id (and moving them if re-dated)."""
    incoming = list(occurrences)
    incoming_ids = {o.id for o in incoming if o.id is not None}
    kept = [o for o in all_occurrences(board) if o.id is None or o.id not in incoming_ids]
    return board_from_occurrences(kept + incoming)


def without_ids(board: TaskBoard, ids: Iterable[OccurrenceId]) -> TaskBoard:
    drop = set(ids)
    return board_from_occurrences(o for o in all_occurrences(board) if o.id not in drop)


def toggle_occurrence(board: TaskBoard, occurrence_id: OccurrenceId) -> TaskBoard:
    """Flip an occurrence's completion; its subtasks follow."""
    target = find(board, occurrence_id)
    if target is None:
        return board
    done = not target.completed
    toggled = replace(
        target,
        completed=done,
        subtasks=tuple(replace(st, completed=done) for st in target.subtasks),
    )
    return with_occurrences(board, [toggled])


def toggle_subtask(board: TaskBoard, occurrence_id: OccurrenceId, subtask_id: OccurrenceId) -> TaskBoard:
    """Flip one subtask; the parent is completed exactly when all its subtasks are."""
    target = find(board, occurrence_id)
    if target is None or not any(st.id == subtask_id for st in target.subtasks):
        return board
    subtasks = tuple(
        replace(st, completed=not st.completed) if st.id == subtask_id else st for st in target.subtasks
    )
    return with_occurrences(
        board,
        [replace(target, subtasks=subtasks, completed=all(st.completed for st in subtasks))],
    )


def day_completed(board: TaskBoard, day: date) -> bool:
    """True when the day has occurrences and every one is completed."""
    items = on_day(board, day)
    return bool(items) and all(o.completed for o in items)


def series_tail(board: TaskBoard, occurrence: Occurrence) -> list[OccurrenceId]:
    """Ids of the occurrence and every later one in its group (delete-series scope)."""
    if not occurrence.group_id or not occurrence.due_date:
        return [occurrence.id] if occurrence.id is not None else []
    ids = [
        o.id
        for o in all_occurrences(board)
        if o.group_id == occurrence.group_id and o.due_date and o.due_date >= occurrence.due_date
    ]
    if occurrence.id is not None and occurrence.id not in ids:
        ids.insert(0, occurrence.id)
    return ids


def series_after(board: TaskBoard, occurrence: Occurrence) -> list[OccurrenceId]:
    """
    Ids of the group's occurrences dated after this one, the occurrence itself excluded.

    These are dropped before regenerating a series whose template was edited.
    """
    if not occurrence.group_id or not occurrence.due_date:
        return []
    return [
        o.id
        for o in all_occurrences(board)
        if o.group_id == occurrence.group_id
        and o.id != occurrence.id
        and (o.due_date is None or o.due_date > occurrence.due_date)
    ]


def truncate_series(board: TaskBoard, occurrence: Occurrence) -> TaskBoard:
    return without_ids(board, series_after(board, occurrence))


def rolled_over(board: TaskBoard, today: date) -> list[Occurrence]:
    """
    Yesterday's unfinished ranged tasks, moved onto today.

    Only occurrences whose end date is today or later move; the rest stay
    where they are.
    """
    return [
        replace(o, due_date=today)
        for o in on_day(board, add_days(today, -1))
        if not o.completed and o.end_date is not None and o.end_date >= today
    ]


def rollover(board: TaskBoard, today: date) -> TaskBoard:
    return with_occurrences(board, rolled_over(board, today))
