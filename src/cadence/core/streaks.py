"""Pure streak computation - no I/O dependencies."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from enum import Enum

from .board import TaskBoard, on_day
from .dates import add_days, date_key, days_back
from .habits import Habit, HabitRule, is_applicable

STREAK_LOOKBACK_DAYS = 365
DAY_STREAK_LOOKBACK_DAYS = 100
CELEBRATION_MILESTONES = (3, 5, 7, 10, 14, 21, 30, 50, 75, 100)


def current_streak(
    today: date,
    rule: HabitRule,
    completed_dates: Iterable[str | date],
    lookback: int = STREAK_LOOKBACK_DAYS,
) -> int:
    """
    Consecutive completed applicable days, walking back from today.

    Inapplicable days are skipped without breaking the streak. The first
    applicable day without a completion ends the walk.

    Pure function - no I/O.
    """
    completed = {date_key(d) for d in completed_dates}
    streak = 0
    for day in days_back(today, lookback):
        if not is_applicable(day, rule):
            continue
        if date_key(day) not in completed:
            break
        streak += 1
    return streak


def top_habits(
    habits: list[Habit],
    completions: Mapping[str, Iterable[str | date]],
    today: date,
    limit: int = 3,
) -> list[tuple[Habit, int]]:
    """
    Habits with a live streak, longest first.

    ``completions`` maps habit id to its completed dates.
    """
    streaks = [(h, current_streak(today, h.frequency, completions.get(h.id, ()))) for h in habits]
    return rank_streaks(streaks, limit)


def rank_streaks(streaks: list[tuple[Habit, int]], limit: int = 3) -> list[tuple[Habit, int]]:
    """Live streaks, longest first. Ties keep their input order."""
    live = [(h, s) for h, s in streaks if s > 0]
    return sorted(live, key=lambda pair: pair[1], reverse=True)[:limit]


def day_streak(board: TaskBoard, today: date, lookback: int = DAY_STREAK_LOOKBACK_DAYS) -> int:
    """
    Consecutive past days on which every scheduled task was completed.

    Starts from yesterday. Days with nothing scheduled don't count and don't
    break the streak.
    """
    streak = 0
    for day in days_back(add_days(today, -1), lookback):
        items = on_day(board, day)
        if not items:
            continue
        if not all(o.completed for o in items):
            break
        streak += 1
    return streak


def achieved_milestone(streak: int, milestones: Iterable[int] = CELEBRATION_MILESTONES) -> int:
    """Highest milestone the streak has reached, or 0."""
    return max((m for m in milestones if streak >= m), default=0)


class CelebrationKind(Enum):
    CELEBRATE = "celebrate"
    RESET = "reset"
    NONE = "none"


@dataclass(frozen=True)
class Celebration:
    kind: CelebrationKind
    milestone: int
    streak: int

    @property
    def last_celebrated(self) -> int | None:
        """Value to store as the last celebrated milestone, or None to leave it unchanged."""
        match self.kind:
            case CelebrationKind.CELEBRATE:
                return self.milestone
            case CelebrationKind.RESET:
                return 0
            case _:
                return None


def celebration_for(
    streak: int,
    last_celebrated: int,
    milestones: Iterable[int] = CELEBRATION_MILESTONES,
) -> Celebration:
    """
    Decide whether a day streak earns a celebration.

    A new milestone above the last celebrated one is celebrated; a streak
    that fell below the last celebrated milestone resets it.
    """
    milestone = achieved_milestone(streak, milestones)
    if milestone > last_celebrated:
        return Celebration(CelebrationKind.CELEBRATE, milestone, streak)
    if last_celebrated > 0 and streak < last_celebrated:
        return Celebration(CelebrationKind.RESET, 0, streak)
    return Celebration(CelebrationKind.NONE, milestone, streak)
