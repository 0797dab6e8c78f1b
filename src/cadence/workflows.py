"""Shared workflow layer between the CLI and the scheduler.

Each function composes the pure core with the storage and clock ports. Boards
are immutable: a workflow returns a new board on success, and on a storage
failure it rolls back what it can, logs, and re-raises, so the caller's board
is still the pre-call state.
"""

import logging
from dataclasses import replace
from datetime import date

from .adapters.file_store import JsonFileStore
from .adapters.rest_backend import RestBackend
from .config import Config
from .core import board as tb
from .core.board import TaskBoard
from .core.habits import Habit
from .core.habits import rule_problems as habit_rule_problems
from .core.identity import OccurrenceId, is_committed
from .core.recurrence import DEFAULT_POLICY, HorizonPolicy, Occurrence, ensure_group_id, expand, rule_problems
from .core.streaks import (
    CELEBRATION_MILESTONES,
    DAY_STREAK_LOOKBACK_DAYS,
    STREAK_LOOKBACK_DAYS,
    Celebration,
    celebration_for,
    current_streak,
    day_streak,
)
from .ports.clock import ClockSource
from .ports.persistence import HabitRepository, PersistenceError, PersistenceGateway, ProfileRepository

logger = logging.getLogger(__name__)


def get_backend(config: Config) -> JsonFileStore | RestBackend:
    """Hosted backend when BACKEND_URL is set, otherwise the local JSON store."""
    if config.backend_url:
        return RestBackend(config)
    return JsonFileStore(config.resolved_store_path())


def load_board(gateway: PersistenceGateway) -> TaskBoard:
    return tb.board_from_occurrences(gateway.load_occurrences())


def _rollback(gateway: PersistenceGateway, committed: list[Occurrence]) -> None:
    """Best-effort removal of parents committed before a batch failed."""
    ids = [o.id for o in committed if is_committed(o.id)]
    if not ids:
        return
    try:
        gateway.delete_occurrences(ids)
        logger.info(f"Rolled back {len(ids)} partially committed occurrences")
    except PersistenceError as e:
        logger.error(f"Rollback of {len(ids)} occurrences failed: {e}")


# ============== Recurring tasks ==============


def materialize(
    board: TaskBoard,
    source: Occurrence,
    gateway: PersistenceGateway,
    clock: ClockSource,
    policy: HorizonPolicy = DEFAULT_POLICY,
) -> TaskBoard:
    """
    Create the missing occurrences of the source's series up to the horizon.

    The batch (occurrences plus their subtasks, and a newly assigned group id
    on the source) is all-or-nothing: when any write fails, parents already
    committed are deleted again and the error is re-raised. The group id is
    written to the source last, so a failed batch leaves the source as it was.
    """
    if not source.is_recurring:
        return board

    with_group = ensure_group_id(source)
    for problem in rule_problems(with_group.recurrence):
        logger.warning(f"Occurrence {source.id}: {problem}")

    payloads = expand(with_group, tb.group_dates(board, with_group.group_id), clock.today(), policy)
    if not payloads:
        logger.debug(f"Series {with_group.group_id} is already materialized")
        return board

    committed: list[Occurrence] = []
    created: list[Occurrence] = []
    try:
        committed = gateway.insert_occurrences(payloads)
        for payload, row in zip(payloads, committed):
            subtasks = gateway.insert_subtasks(row.id, list(payload.subtasks)) if payload.subtasks else []
            created.append(replace(row, subtasks=tuple(subtasks)))
        if with_group is not source and is_committed(with_group.id):
            with_group = gateway.update_occurrence(with_group)
    except PersistenceError as e:
        logger.error(f"Failed to materialize series {with_group.group_id}: {e}")
        _rollback(gateway, committed)
        raise

    logger.info(f"Created {len(created)} occurrences for series {with_group.group_id}")
    return tb.with_occurrences(board, [with_group, *created])


def materialize_all(
    board: TaskBoard,
    gateway: PersistenceGateway,
    clock: ClockSource,
    policy: HorizonPolicy = DEFAULT_POLICY,
) -> TaskBoard:
    """
    Top up every recurring series from its latest occurrence.

    A series whose batch fails is logged and skipped; the others still run.
    """
    sources = tb.latest_in_groups(board)
    sources += [o for o in tb.all_occurrences(board) if o.is_recurring and not o.group_id and o.due_date]
    failed = 0
    for source in sources:
        try:
            board = materialize(board, source, gateway, clock, policy)
        except PersistenceError:
            failed += 1
    if failed:
        logger.warning(f"{failed} of {len(sources)} series could not be materialized")
    return board


def add_task(
    board: TaskBoard,
    occurrence: Occurrence,
    gateway: PersistenceGateway,
    clock: ClockSource,
    policy: HorizonPolicy = DEFAULT_POLICY,
) -> TaskBoard:
    """Create a task (and its series, when it recurs)."""
    committed = gateway.insert_occurrences([replace(occurrence, subtasks=())])
    created = committed[0]
    try:
        subtasks = gateway.insert_subtasks(created.id, list(occurrence.subtasks)) if occurrence.subtasks else []
    except PersistenceError:
        _rollback(gateway, committed)
        raise
    created = replace(created, subtasks=tuple(subtasks))
    board = tb.with_occurrences(board, [created])
    if created.is_recurring:
        board = materialize(board, created, gateway, clock, policy)
    return board


def edit_task(
    board: TaskBoard,
    edited: Occurrence,
    gateway: PersistenceGateway,
    clock: ClockSource,
    policy: HorizonPolicy = DEFAULT_POLICY,
) -> TaskBoard:
    """
    Save an edited occurrence.

    Later occurrences of its series are dropped and regenerated from the
    edited template. The edit is saved before anything is dropped; when the
    drop fails the original is restored. A failed regeneration re-raises with
    the series truncated, and the next top-up refills it.
    """
    original = tb.find(board, edited.id)
    if original is None:
        raise KeyError(f"No occurrence with id {edited.id}")

    stale = tb.series_after(board, original)
    saved = gateway.update_occurrence(edited)
    if stale:
        try:
            gateway.delete_occurrences(stale)
        except PersistenceError as e:
            logger.error(f"Failed to drop later occurrences of series {original.group_id}: {e}")
            try:
                gateway.update_occurrence(original)
            except PersistenceError as restore_error:
                logger.error(f"Restoring occurrence {original.id} failed: {restore_error}")
            raise
        logger.info(f"Dropped {len(stale)} later occurrences of series {original.group_id}")
    board = tb.with_occurrences(tb.without_ids(board, stale), [saved])
    if saved.is_recurring:
        board = materialize(board, saved, gateway, clock, policy)
    return board


def complete_occurrence(
    board: TaskBoard,
    occurrence_id: OccurrenceId,
    gateway: PersistenceGateway,
    clock: ClockSource,
    policy: HorizonPolicy = DEFAULT_POLICY,
) -> TaskBoard:
    """Toggle an occurrence. Completing a recurring one tops up its series."""
    toggled_board = tb.toggle_occurrence(board, occurrence_id)
    target = tb.find(toggled_board, occurrence_id)
    if target is None:
        raise KeyError(f"No occurrence with id {occurrence_id}")

    saved = gateway.update_occurrence(target)
    board = tb.with_occurrences(toggled_board, [saved])
    if saved.completed and saved.is_recurring:
        board = materialize(board, saved, gateway, clock, policy)
    return board


def complete_subtask(
    board: TaskBoard,
    occurrence_id: OccurrenceId,
    subtask_id: OccurrenceId,
    gateway: PersistenceGateway,
) -> TaskBoard:
    """Toggle a subtask; the parent's completion follows its subtasks."""
    toggled_board = tb.toggle_subtask(board, occurrence_id, subtask_id)
    target = tb.find(toggled_board, occurrence_id)
    if target is None or toggled_board is board:
        raise KeyError(f"No subtask {subtask_id} on occurrence {occurrence_id}")
    saved = gateway.update_occurrence(target)
    return tb.with_occurrences(toggled_board, [saved])


def delete_series(board: TaskBoard, occurrence_id: OccurrenceId, gateway: PersistenceGateway) -> TaskBoard:
    """Delete an occurrence and every later occurrence of its series."""
    target = tb.find(board, occurrence_id)
    if target is None:
        raise KeyError(f"No occurrence with id {occurrence_id}")
    ids = tb.series_tail(board, target)
    gateway.delete_occurrences(ids)
    logger.info(f"Deleted {len(ids)} occurrences")
    return tb.without_ids(board, ids)


def rollover_ranged(board: TaskBoard, gateway: PersistenceGateway, clock: ClockSource) -> TaskBoard:
    """
    Move yesterday's unfinished ranged tasks onto today.

    A task that fails to save is logged and left on yesterday; the others
    still move.
    """
    moved = []
    for occurrence in tb.rolled_over(board, clock.today()):
        try:
            moved.append(gateway.update_occurrence(occurrence))
        except PersistenceError as e:
            logger.error(f"Failed to roll over occurrence {occurrence.id}: {e}")
    if moved:
        logger.info(f"Rolled {len(moved)} ranged tasks over to {clock.today().isoformat()}")
    return tb.with_occurrences(board, moved)


# ============== Habits ==============


def habit_streaks(
    habits: HabitRepository,
    clock: ClockSource,
    lookback: int = STREAK_LOOKBACK_DAYS,
) -> list[tuple[Habit, int]]:
    """Every habit with its current streak."""
    today = clock.today()
    results = []
    for habit in habits.load_habits():
        for problem in habit_rule_problems(habit.frequency):
            logger.warning(f"Habit {habit.id} ({habit.name}): {problem}")
        completed = habits.load_completions(habit.id)
        results.append((habit, current_streak(today, habit.frequency, completed, lookback)))
    return results


def check_in(habits: HabitRepository, habit_id: str, day: date) -> bool:
    """Toggle a habit's completion for a day. Returns the new state."""
    done = day not in habits.load_completions(habit_id)
    habits.set_completion(habit_id, day, done)
    logger.info(f"Habit {habit_id} {'done' if done else 'undone'} on {day.isoformat()}")
    return done


def streak_check(
    board: TaskBoard,
    profile: ProfileRepository,
    clock: ClockSource,
    milestones: list[int] | tuple[int, ...] = CELEBRATION_MILESTONES,
    lookback: int = DAY_STREAK_LOOKBACK_DAYS,
) -> Celebration:
    """Compute the all-tasks-done day streak and record milestone changes."""
    streak = day_streak(board, clock.today(), lookback)
    celebration = celebration_for(streak, profile.last_celebration(), milestones)
    if celebration.last_celebrated is not None:
        profile.save_last_celebration(celebration.last_celebrated)
    logger.info(f"Day streak {streak}: {celebration.kind.value}")
    return celebration
