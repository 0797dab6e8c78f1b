"""Pure habit frequency evaluation - no I/O dependencies."""

from dataclasses import dataclass
from datetime import date

from .dates import date_key, day_or_none, days_between, weekday_ordinal, weekday_set


@dataclass(frozen=True)
class Daily:
    pass


@dataclass(frozen=True)
class TimesPerWeek:
    """Weekly quota. Quota bookkeeping lives in reporting; every day is applicable."""

    count: int


@dataclass(frozen=True)
class SpecificDays:
    """Applicable on the listed weekdays (0=Sunday..6=Saturday)."""

    days: frozenset[int]


@dataclass(frozen=True)
class Interval:
    """Applicable every N days counted from a start date."""

    every: int
    start: date | None = None


HabitRule = Daily | TimesPerWeek | SpecificDays | Interval


@dataclass(frozen=True)
class Habit:
    id: str
    name: str
    frequency: HabitRule
    emoji: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "Habit":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            frequency=rule_from_api(data["frequency"] if isinstance(data.get("frequency"), dict) else {}),
            emoji=data.get("emoji") or "",
        )

    def to_api(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "emoji": self.emoji,
            "frequency": rule_to_api(self.frequency),
        }


def is_applicable(day: date, rule: HabitRule) -> bool:
    """
    Whether the rule expects the habit on this day.

    Total function: malformed rules report not-applicable rather than raising.
    """
    match rule:
        case Daily() | TimesPerWeek():
            return True
        case SpecificDays(days=days):
            return weekday_ordinal(day) in days
        case Interval(every=every, start=start):
            if start is None or every <= 0:
                return False
            return days_between(start, day) % every == 0
        case _:
            return True


def _as_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def rule_from_api(data: dict) -> HabitRule:
    """
    Parse a frequency descriptor like {"type": "interval", "days": 2, "startDate": "2024-01-01"}.

    Unknown types fall back to Daily. Garbled fields never raise: they parse
    to values rule_problems reports (a zero count or step, no start, no days).
    """
    match data.get("type"):
        case "times_per_week":
            return TimesPerWeek(count=_as_int(data.get("count")))
        case "specific_days":
            return SpecificDays(days=weekday_set(data.get("days")))
        case "interval":
            return Interval(every=_as_int(data.get("days")), start=day_or_none(data.get("startDate")))
        case _:
            return Daily()


def rule_to_api(rule: HabitRule) -> dict:
    match rule:
        case TimesPerWeek(count=count):
            return {"type": "times_per_week", "count": count}
        case SpecificDays(days=days):
            return {"type": "specific_days", "days": sorted(days)}
        case Interval(every=every, start=start):
            data = {"type": "interval", "days": every}
            if start:
                data["startDate"] = date_key(start)
            return data
        case _:
            return {"type": "daily"}


def rule_problems(rule: HabitRule) -> list[str]:
    """Reasons a habit rule is malformed. Empty when the rule is usable."""
    match rule:
        case TimesPerWeek(count=count) if count <= 0:
            return [f"weekly goal must be positive, got {count}"]
        case SpecificDays(days=days) if not any(0 <= d <= 6 for d in days):
            return ["no valid weekdays selected"]
        case Interval(every=every, start=start):
            problems = []
            if every <= 0:
                problems.append(f"interval must be positive, got {every}")
            if start is None:
                problems.append("interval has no start date")
            return problems
        case _:
            return []


def describe(rule: HabitRule) -> str:
    """Short human-readable label for a rule."""
    names = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
    match rule:
        case TimesPerWeek(count=count):
            return f"{count}x per week"
        case SpecificDays(days=days):
            return ", ".join(names[d] for d in sorted(days) if 0 <= d <= 6) or "no days"
        case Interval(every=every):
            return f"every {every} days"
        case _:
            return "daily"
