"""Functional core - pure scheduling logic with no I/O."""

from .recurrence import (
    Frequency,
    HorizonPolicy,
    Occurrence,
    RecurrenceRule,
    Subtask,
    expand,
    ensure_group_id,
)
from .habits import Habit, Daily, TimesPerWeek, SpecificDays, Interval, is_applicable
from .streaks import current_streak, top_habits, day_streak, celebration_for
from .identity import Pending, Committed

__all__ = [
    # Recurrence
    "Frequency",
    "HorizonPolicy",
    "Occurrence",
    "RecurrenceRule",
    "Subtask",
    "expand",
    "ensure_group_id",
    # Habits
    "Habit",
    "Daily",
    "TimesPerWeek",
    "SpecificDays",
    "Interval",
    "is_applicable",
    # Streaks
    "current_streak",
    "top_habits",
    "day_streak",
    "celebration_for",
    # Identity
    "Pending",
    "Committed",
]
