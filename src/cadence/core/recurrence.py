"""Pure recurring-task expansion - no I/O dependencies."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum

from .dates import add_days, add_months, date_key, day_or_none, weekday_ordinal, weekday_set
from .identity import Committed, OccurrenceId, is_committed, new_pending


class Frequency(Enum):
    """How often a recurring task repeats."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: str | None) -> "Frequency":
        try:
            return cls(value or "none")
        except ValueError:
            return cls.NONE


FIXED_STEP_DAYS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
    Frequency.BIWEEKLY: 14,
}


@dataclass(frozen=True)
class HorizonPolicy:
    """How far ahead a single expansion pass materializes occurrences."""

    daily_months: int = 1
    weekly_months: int = 3
    monthly_months: int = 6
    default_days: int = 90
    max_steps: int = 365


DEFAULT_POLICY = HorizonPolicy()


@dataclass(frozen=True)
class RecurrenceRule:
    """Recurrence descriptor shared by every occurrence of a series."""

    frequency: Frequency
    custom_days: frozenset[int] = frozenset()
    group_id: str | None = None
    source_id: OccurrenceId | None = None

    @property
    def is_recurring(self) -> bool:
        return self.frequency is not Frequency.NONE

    @property
    def weekdays(self) -> list[int]:
        """Configured weekday ordinals, sorted, with out-of-range values dropped."""
        return sorted(d for d in self.custom_days if 0 <= d <= 6)

    @classmethod
    def from_api(cls, data: dict) -> "RecurrenceRule":
        source = data.get("sourceId")
        return cls(
            frequency=Frequency.parse(data.get("frequency")),
            custom_days=weekday_set(data.get("customDays")),
            group_id=data.get("id"),
            source_id=Committed(source) if source is not None else None,
        )

    def to_api(self) -> dict:
        data: dict = {"frequency": self.frequency.value}
        if self.custom_days:
            data["customDays"] = sorted(self.custom_days)
        if self.group_id:
            data["id"] = self.group_id
        if is_committed(self.source_id):
            data["sourceId"] = self.source_id.value
        return data


@dataclass(frozen=True)
class Subtask:
    text: str
    completed: bool = False
    id: OccurrenceId | None = None


@dataclass(frozen=True)
class Occurrence:
    """One concrete, dated instance of a (possibly recurring) task."""

    id: OccurrenceId | None
    text: str
    due_date: date | None
    recurrence: RecurrenceRule | None = None
    completed: bool = False
    subtasks: tuple[Subtask, ...] = field(default_factory=tuple)
    priority: str = "medium"
    notes: str = ""
    start_time: str | None = None
    end_time: str | None = None
    reminder_offset: int | None = None
    notification_sent: bool = False
    # Last day of a ranged task; unfinished ranged tasks roll over until then
    end_date: date | None = None

    @property
    def group_id(self) -> str | None:
        return self.recurrence.group_id if self.recurrence else None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None and self.recurrence.is_recurring

    @classmethod
    def from_api(cls, data: dict) -> "Occurrence":
        """Create an Occurrence from a backend row."""
        due = day_or_none(data.get("due_date"))
        recurrence = RecurrenceRule.from_api(data["recurrence"]) if isinstance(data.get("recurrence"), dict) else None
        return cls(
            id=Committed(data["id"]) if data.get("id") is not None else None,
            text=data.get("text", ""),
            due_date=due,
            recurrence=recurrence,
            completed=bool(data.get("completed", False)),
            subtasks=tuple(
                Subtask(
                    text=st.get("text", ""),
                    completed=bool(st.get("completed", False)),
                    id=Committed(st["id"]) if st.get("id") is not None else None,
                )
                for st in data.get("subtasks") or []
            ),
            priority=data.get("priority") or "medium",
            notes=data.get("notes") or "",
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            reminder_offset=data.get("reminder_offset"),
            notification_sent=bool(data.get("notification_sent", False)),
            end_date=day_or_none(data.get("end_date")),
        )

    def to_api(self, include_subtasks: bool = False) -> dict:
        """Backend row for this occurrence. Pending ids are left out."""
        data = {
            "text": self.text,
            "completed": self.completed,
            "priority": self.priority,
            "due_date": date_key(self.due_date) if self.due_date else None,
            "end_date": date_key(self.end_date) if self.end_date else None,
            "notes": self.notes,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "reminder_offset": self.reminder_offset,
            "notification_sent": self.notification_sent,
            "recurrence": self.recurrence.to_api() if self.recurrence else None,
        }
        if is_committed(self.id):
            data["id"] = self.id.value
        if include_subtasks:
            data["subtasks"] = [
                {"id": st.id.value, "text": st.text, "completed": st.completed}
                if is_committed(st.id)
                else {"text": st.text, "completed": st.completed}
                for st in self.subtasks
            ]
        return data


def horizon_for(frequency: Frequency, today: date, policy: HorizonPolicy = DEFAULT_POLICY) -> date:
    """Furthest date a single expansion pass may materialize."""
    match frequency:
        case Frequency.DAILY:
            return add_months(today, policy.daily_months)
        case Frequency.WEEKLY | Frequency.BIWEEKLY | Frequency.CUSTOM:
            return add_months(today, policy.weekly_months)
        case Frequency.MONTHLY:
            return add_months(today, policy.monthly_months)
        case _:
            return add_days(today, policy.default_days)


def next_due_date(current: date, rule: RecurrenceRule) -> date | None:
    """
    Single advancement step for a rule.

    Returns None when the rule cannot advance (no recurrence, unknown
    frequency, or a custom rule with no valid weekdays).
    """
    if rule.frequency in FIXED_STEP_DAYS:
        return add_days(current, FIXED_STEP_DAYS[rule.frequency])
    if rule.frequency is Frequency.MONTHLY:
        return add_months(current, 1)
    if rule.frequency is Frequency.CUSTOM:
        weekdays = rule.weekdays
        if not weekdays:
            return None
        today_ordinal = weekday_ordinal(current)
        for day in weekdays:
            if day > today_ordinal:
                return add_days(current, day - today_ordinal)
        return add_days(current, 7 - today_ordinal + weekdays[0])
    return None


def candidate_dates(
    source: Occurrence,
    today: date,
    policy: HorizonPolicy = DEFAULT_POLICY,
) -> list[date]:
    """
    Every date the series should occupy after the source, up to the horizon.

    Bounded by ``policy.max_steps`` advancement steps. Pure function - no I/O.
    """
    rule = source.recurrence
    if rule is None or not rule.is_recurring or source.due_date is None:
        return []

    horizon = horizon_for(rule.frequency, today, policy)
    dates = []
    current = source.due_date
    for step in range(1, policy.max_steps + 1):
        # Monthly steps count from the source date so clamped month-ends don't drift
        if rule.frequency is Frequency.MONTHLY:
            candidate = add_months(source.due_date, step)
        else:
            candidate = next_due_date(current, rule)
        if candidate is None or candidate > horizon:
            break
        dates.append(candidate)
        current = candidate
    return dates


def expand(
    source: Occurrence,
    existing_dates: Iterable[str | date],
    today: date,
    policy: HorizonPolicy = DEFAULT_POLICY,
    new_id: Callable[[], OccurrenceId] = new_pending,
) -> list[Occurrence]:
    """
    New occurrences to create for the source's recurrence group.

    ``existing_dates`` holds the due dates already materialized for the
    group. Returned payloads carry ids from ``new_id`` (pending ids by
    default) and are ordered by date. With a deterministic ``new_id``, equal
    inputs give equal payloads.
    Malformed rules yield an empty list. Pure function - no I/O.
    """
    existing = {date_key(d) for d in existing_dates}
    new_dates = [d for d in candidate_dates(source, today, policy) if date_key(d) not in existing]
    if not new_dates:
        return []

    recurrence = replace(source.recurrence, source_id=source.id)
    return [
        replace(
            source,
            id=new_id(),
            due_date=due,
            end_date=_shifted_end(source, due),
            completed=False,
            notification_sent=False,
            recurrence=recurrence,
            subtasks=tuple(Subtask(text=st.text, completed=False, id=new_id()) for st in source.subtasks),
        )
        for due in new_dates
    ]


def _shifted_end(source: Occurrence, due: date) -> date | None:
    """The source's end date moved along with its due date, keeping the range length."""
    if source.end_date is None or source.due_date is None:
        return None
    return due + (source.end_date - source.due_date)


def ensure_group_id(occurrence: Occurrence) -> Occurrence:
    """Assign a recurrence group id once; occurrences that have one are returned as-is."""
    rule = occurrence.recurrence
    if rule is None or not rule.is_recurring or rule.group_id:
        return occurrence
    if is_committed(occurrence.id):
        group_id = f"recurrence-{occurrence.id.value}"
    else:
        group_id = f"recurrence-{new_pending().token}"
    return replace(occurrence, recurrence=replace(rule, group_id=group_id))


def rule_problems(rule: RecurrenceRule) -> list[str]:
    """Reasons a recurrence rule cannot produce occurrences. Empty when the rule is usable."""
    problems = []
    if rule.frequency is Frequency.CUSTOM:
        if not rule.custom_days:
            problems.append("custom recurrence has no weekdays")
        elif not rule.weekdays:
            problems.append(f"custom recurrence has no valid weekdays: {sorted(rule.custom_days)}")
    if rule.is_recurring and not rule.group_id:
        problems.append("recurrence has no group id")
    return problems
