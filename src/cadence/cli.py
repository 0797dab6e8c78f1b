"""Cadence CLI - recurring tasks and habit streaks."""

import json
import logging
import sys
from datetime import datetime

import click

from .adapters.clock import FixedClock, SystemClock
from .config import load_config
from .core import board as tb
from .core.dates import date_key, to_day
from .core.habits import Daily, Habit, Interval, SpecificDays, TimesPerWeek, describe
from .core.identity import Committed, new_pending
from .core.recurrence import Frequency, Occurrence, RecurrenceRule, Subtask
from .core.streaks import CelebrationKind, rank_streaks
from .ports.persistence import PersistenceError
from .workflows import (
    add_task,
    check_in,
    complete_occurrence,
    complete_subtask,
    delete_series,
    get_backend,
    habit_streaks,
    load_board,
    materialize_all,
    rollover_ranged,
    streak_check,
)

DATE = click.DateTime(formats=["%Y-%m-%d"])


def _parse_id(value: str) -> Committed:
    return Committed(int(value)) if value.isdigit() else Committed(value)


def _parse_days(value: str | None) -> frozenset[int]:
    if not value:
        return frozenset()
    try:
        return frozenset(int(d.strip()) for d in value.split(",") if d.strip())
    except ValueError:
        raise click.BadParameter(f"expected comma-separated weekday numbers, got {value!r}")


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _occurrence_json(o: Occurrence) -> dict:
    return o.to_api(include_subtasks=True)


def _show_occurrences(occurrences: list[Occurrence], as_json: bool, empty_msg: str) -> None:
    if as_json:
        click.echo(json.dumps([_occurrence_json(o) for o in occurrences], indent=2))
        return
    if not occurrences:
        click.echo(empty_msg)
        return

    current_day = None
    for o in occurrences:
        day = date_key(o.due_date) if o.due_date else "Unscheduled"
        if day != current_day:
            if current_day is not None:
                click.echo()
            click.echo(f"### {day}")
            current_day = day
        mark = "x" if o.completed else " "
        repeat = f" ({o.recurrence.frequency.value})" if o.is_recurring else ""
        click.echo(f"  [{mark}] {o.id}: {o.text}{repeat}")
        for st in o.subtasks:
            click.echo(f"      [{'x' if st.completed else ' '}] {st.id}: {st.text}")


@click.group()
@click.version_option()
@click.option("--today", type=DATE, default=None, help="Pin today's date (YYYY-MM-DD)")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx, today: datetime | None, verbose: bool):
    """Cadence - recurring tasks and habit streaks."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if verbose else logging.WARNING,
    )
    config = load_config()
    ctx.obj = {
        "config": config,
        "clock": FixedClock(to_day(today)) if today else SystemClock(),
    }


def _backend(ctx):
    try:
        return get_backend(ctx.obj["config"])
    except PersistenceError as e:
        _fail(str(e))


# ============== Tasks ==============


@main.command()
@click.argument("text")
@click.option("--due", type=DATE, default=None, help="Due date (YYYY-MM-DD)")
@click.option("--end", type=DATE, default=None, help="Last day of a ranged task; unfinished, it rolls over until then")
@click.option(
    "--repeat",
    type=click.Choice([f.value for f in Frequency]),
    default="none",
    help="Recurrence frequency",
)
@click.option("--days", default=None, help="Weekdays for custom recurrence, 0=Sunday (e.g. 1,3,5)")
@click.option("--priority", type=click.Choice(["low", "medium", "high"]), default="medium")
@click.option("--subtask", "subtasks", multiple=True, help="Subtask text (repeatable)")
@click.pass_context
def add(
    ctx,
    text: str,
    due: datetime | None,
    end: datetime | None,
    repeat: str,
    days: str | None,
    priority: str,
    subtasks: tuple[str, ...],
):
    """Add a task; recurring tasks are expanded right away."""
    config = ctx.obj["config"]
    clock = ctx.obj["clock"]
    frequency = Frequency(repeat)
    recurrence = RecurrenceRule(frequency, _parse_days(days)) if frequency is not Frequency.NONE else None
    occurrence = Occurrence(
        id=new_pending(),
        text=text,
        due_date=to_day(due) if due else clock.today(),
        end_date=to_day(end) if end else None,
        recurrence=recurrence,
        priority=priority,
        subtasks=tuple(Subtask(text=s) for s in subtasks),
    )
    if occurrence.end_date and occurrence.end_date < occurrence.due_date:
        _fail("--end is before the due date")

    backend = _backend(ctx)
    try:
        board = load_board(backend)
        before = len(tb.all_occurrences(board))
        board = add_task(board, occurrence, backend, clock, config.horizon_policy())
    except PersistenceError as e:
        _fail(str(e))
    click.echo(f"Added {len(tb.all_occurrences(board)) - before} occurrence(s).")


@main.command()
@click.pass_context
def expand(ctx):
    """Materialize upcoming occurrences of every recurring task."""
    config = ctx.obj["config"]
    backend = _backend(ctx)
    try:
        board = load_board(backend)
    except PersistenceError as e:
        _fail(str(e))
    before = len(tb.all_occurrences(board))
    board = materialize_all(board, backend, ctx.obj["clock"], config.horizon_policy())
    click.echo(f"Created {len(tb.all_occurrences(board)) - before} occurrence(s).")


@main.command()
@click.option("--day", type=DATE, default=None, help="Only this day (YYYY-MM-DD)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def occurrences(ctx, day: datetime | None, as_json: bool):
    """List task occurrences."""
    backend = _backend(ctx)
    try:
        board = load_board(backend)
    except PersistenceError as e:
        _fail(str(e))
    if day:
        items = list(tb.on_day(board, to_day(day)))
        _show_occurrences(items, as_json, f"Nothing scheduled on {date_key(day)}.")
    else:
        _show_occurrences(tb.all_occurrences(board), as_json, "No tasks.")


@main.command()
@click.argument("occurrence_id")
@click.pass_context
def done(ctx, occurrence_id: str):
    """Toggle a task's completion."""
    config = ctx.obj["config"]
    backend = _backend(ctx)
    target_id = _parse_id(occurrence_id)
    try:
        board = complete_occurrence(load_board(backend), target_id, backend, ctx.obj["clock"], config.horizon_policy())
    except KeyError:
        _fail(f"No task with id {occurrence_id}")
    except PersistenceError as e:
        _fail(str(e))
    target = tb.find(board, target_id)
    click.echo(f"{'Completed' if target.completed else 'Reopened'}: {target.text}")


@main.command("subtask-done")
@click.argument("occurrence_id")
@click.argument("subtask_id")
@click.pass_context
def subtask_done(ctx, occurrence_id: str, subtask_id: str):
    """Toggle a subtask's completion."""
    backend = _backend(ctx)
    target_id = _parse_id(occurrence_id)
    try:
        board = complete_subtask(load_board(backend), target_id, _parse_id(subtask_id), backend)
    except KeyError:
        _fail(f"No subtask {subtask_id} on task {occurrence_id}")
    except PersistenceError as e:
        _fail(str(e))
    target = tb.find(board, target_id)
    finished = sum(1 for st in target.subtasks if st.completed)
    click.echo(f"{target.text}: {finished}/{len(target.subtasks)} subtasks done")


@main.command("delete-series")
@click.argument("occurrence_id")
@click.pass_context
def delete_series_cmd(ctx, occurrence_id: str):
    """Delete a task and every later occurrence of its series."""
    backend = _backend(ctx)
    try:
        board = load_board(backend)
        remaining = delete_series(board, _parse_id(occurrence_id), backend)
    except KeyError:
        _fail(f"No task with id {occurrence_id}")
    except PersistenceError as e:
        _fail(str(e))
    click.echo(f"Deleted {len(tb.all_occurrences(board)) - len(tb.all_occurrences(remaining))} occurrence(s).")


@main.command()
@click.pass_context
def rollover(ctx):
    """Move yesterday's unfinished ranged tasks onto today."""
    backend = _backend(ctx)
    try:
        board = load_board(backend)
    except PersistenceError as e:
        _fail(str(e))
    today = ctx.obj["clock"].today()
    moved = rollover_ranged(board, backend, ctx.obj["clock"])
    count = len(tb.on_day(moved, today)) - len(tb.on_day(board, today))
    click.echo(f"Rolled over {count} task(s) to {date_key(today)}.")


# ============== Habits ==============


@main.command("habit-add")
@click.argument("habit_id")
@click.argument("name")
@click.option(
    "--type",
    "kind",
    type=click.Choice(["daily", "times_per_week", "specific_days", "interval"]),
    default="daily",
)
@click.option("--count", type=int, default=3, help="Weekly goal for times_per_week")
@click.option("--days", default="1,2,3,4,5", help="Weekdays for specific_days, 0=Sunday")
@click.option("--every", type=int, default=2, help="Step in days for interval")
@click.option("--start", type=DATE, default=None, help="Interval start date (defaults to today)")
@click.option("--emoji", default="")
@click.pass_context
def habit_add(ctx, habit_id: str, name: str, kind: str, count: int, days: str, every: int, start, emoji: str):
    """Create or replace a habit."""
    match kind:
        case "times_per_week":
            rule = TimesPerWeek(count)
        case "specific_days":
            rule = SpecificDays(_parse_days(days))
        case "interval":
            rule = Interval(every, to_day(start) if start else ctx.obj["clock"].today())
        case _:
            rule = Daily()
    backend = _backend(ctx)
    try:
        backend.save_habit(Habit(id=habit_id, name=name, frequency=rule, emoji=emoji))
    except PersistenceError as e:
        _fail(str(e))
    click.echo(f"Saved habit {habit_id}: {name} ({describe(rule)})")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def habits(ctx, as_json: bool):
    """List habits with their current streaks."""
    config = ctx.obj["config"]
    clock = ctx.obj["clock"]
    backend = _backend(ctx)
    try:
        results = habit_streaks(backend, clock, config.streak_lookback_days)
    except PersistenceError as e:
        _fail(str(e))

    if as_json:
        click.echo(
            json.dumps(
                [{**h.to_api(), "streak": value} for h, value in results],
                indent=2,
            )
        )
        return
    if not results:
        click.echo("No habits yet.")
        return

    top = {h.id for h, _ in rank_streaks(results)}
    for habit, value in results:
        flame = " *" if habit.id in top else ""
        click.echo(f"{habit.emoji or '-'} {habit.id}: {habit.name} [{describe(habit.frequency)}] streak {value}{flame}")


@main.command()
@click.argument("habit_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def streak(ctx, habit_id: str, as_json: bool):
    """Show one habit's current streak."""
    config = ctx.obj["config"]
    backend = _backend(ctx)
    try:
        results = habit_streaks(backend, ctx.obj["clock"], config.streak_lookback_days)
    except PersistenceError as e:
        _fail(str(e))
    found = next(((h, s) for h, s in results if h.id == habit_id), None)
    if found is None:
        _fail(f"No habit with id {habit_id}")
    habit, value = found
    if as_json:
        click.echo(json.dumps({"habit": habit.id, "streak": value}))
    else:
        click.echo(f"{habit.name}: {value} day streak")


@main.command("check-in")
@click.argument("habit_id")
@click.option("--date", "day", type=DATE, default=None, help="Day to toggle (defaults to today)")
@click.pass_context
def check_in_cmd(ctx, habit_id: str, day: datetime | None):
    """Toggle a habit's completion for a day."""
    target = to_day(day) if day else ctx.obj["clock"].today()
    backend = _backend(ctx)
    try:
        now_done = check_in(backend, habit_id, target)
    except PersistenceError as e:
        _fail(str(e))
    click.echo(f"{habit_id} {'done' if now_done else 'not done'} on {date_key(target)}")


@main.command("streak-check")
@click.pass_context
def streak_check_cmd(ctx):
    """Check the all-tasks-done day streak for a new milestone."""
    config = ctx.obj["config"]
    backend = _backend(ctx)
    try:
        celebration = streak_check(
            load_board(backend),
            backend,
            ctx.obj["clock"],
            config.celebration_milestones,
            config.day_streak_lookback_days,
        )
    except PersistenceError as e:
        _fail(str(e))

    match celebration.kind:
        case CelebrationKind.CELEBRATE:
            click.echo(f"{celebration.milestone}-day streak! Keep it going.")
        case CelebrationKind.RESET:
            click.echo(f"Streak reset (currently {celebration.streak} days).")
        case _:
            click.echo(f"Current streak: {celebration.streak} days.")


@main.command()
def daemon():
    """Run the nightly scheduler."""
    from .scheduler import run_daemon

    run_daemon()


if __name__ == "__main__":
    main()
