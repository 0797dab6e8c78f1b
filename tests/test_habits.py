"""Tests for habit frequency rules."""

from datetime import date

import pytest

from cadence.core.habits import (
    Daily,
    Habit,
    Interval,
    SpecificDays,
    TimesPerWeek,
    describe,
    is_applicable,
    rule_from_api,
    rule_problems,
    rule_to_api,
)


@pytest.fixture
def monday():
    return date(2024, 1, 1)


class TestIsApplicable:
    def test_daily(self, monday):
        assert is_applicable(monday, Daily())

    def test_times_per_week_every_day(self, monday):
        assert all(is_applicable(date(2024, 1, d), TimesPerWeek(3)) for d in range(1, 8))

    def test_specific_days(self, monday):
        rule = SpecificDays(frozenset({1, 3}))
        assert is_applicable(monday, rule)
        assert not is_applicable(date(2024, 1, 2), rule)
        assert is_applicable(date(2024, 1, 3), rule)

    def test_specific_days_sunday(self):
        assert is_applicable(date(2024, 1, 7), SpecificDays(frozenset({0})))

    def test_interval_multiples(self, monday):
        rule = Interval(3, start=monday)
        assert is_applicable(date(2024, 1, 1), rule)
        assert not is_applicable(date(2024, 1, 2), rule)
        assert not is_applicable(date(2024, 1, 3), rule)
        assert is_applicable(date(2024, 1, 4), rule)
        assert is_applicable(date(2024, 1, 7), rule)

    def test_interval_before_start_uses_same_modulus(self, monday):
        rule = Interval(3, start=monday)
        assert is_applicable(date(2023, 12, 29), rule)
        assert not is_applicable(date(2023, 12, 30), rule)

    def test_interval_without_start_never_applies(self, monday):
        assert not is_applicable(monday, Interval(2))

    @pytest.mark.parametrize("every", [0, -3])
    def test_interval_non_positive_never_applies(self, monday, every):
        assert not is_applicable(monday, Interval(every, start=monday))


class TestRuleFromApi:
    def test_times_per_week(self):
        assert rule_from_api({"type": "times_per_week", "count": 4}) == TimesPerWeek(4)

    def test_specific_days(self):
        assert rule_from_api({"type": "specific_days", "days": [1, 5]}) == SpecificDays(frozenset({1, 5}))

    def test_interval(self):
        rule = rule_from_api({"type": "interval", "days": 2, "startDate": "2024-01-01T00:00:00Z"})
        assert rule == Interval(2, date(2024, 1, 1))

    def test_interval_without_start(self):
        assert rule_from_api({"type": "interval", "days": 2}) == Interval(2, None)

    def test_unknown_type_is_daily(self):
        assert rule_from_api({"type": "fortnightly"}) == Daily()
        assert rule_from_api({}) == Daily()

    def test_round_trip_through_habit(self):
        data = {
            "id": "h1",
            "name": "Read",
            "emoji": "📚",
            "frequency": {"type": "interval", "days": 3, "startDate": "2024-01-01"},
        }
        habit = Habit.from_api(data)
        assert habit.frequency == Interval(3, date(2024, 1, 1))
        assert habit.to_api() == data

    def test_daily_to_api(self):
        assert rule_to_api(Daily()) == {"type": "daily"}


class TestRuleProblems:
    def test_valid(self, monday):
        assert rule_problems(Daily()) == []
        assert rule_problems(Interval(2, monday)) == []
        assert rule_problems(SpecificDays(frozenset({2}))) == []

    def test_interval(self):
        assert rule_problems(Interval(0)) == [
            "interval must be positive, got 0",
            "interval has no start date",
        ]

    def test_specific_days_out_of_range(self):
        assert rule_problems(SpecificDays(frozenset({7}))) == ["no valid weekdays selected"]

    def test_times_per_week_zero(self):
        assert rule_problems(TimesPerWeek(0)) == ["weekly goal must be positive, got 0"]


class TestDescribe:
    def test_labels(self):
        assert describe(Daily()) == "daily"
        assert describe(TimesPerWeek(3)) == "3x per week"
        assert describe(SpecificDays(frozenset({5, 1}))) == "Mon, Fri"
        assert describe(Interval(4)) == "every 4 days"


class TestMalformedHabitRows:
    def test_interval_null_step(self, monday):
        rule = rule_from_api({"type": "interval", "days": None, "startDate": "2024-01-01"})
        assert rule == Interval(0, monday)
        assert not is_applicable(monday, rule)
        assert rule_problems(rule) == ["interval must be positive, got 0"]

    def test_interval_garbled_start(self, monday):
        rule = rule_from_api({"type": "interval", "days": 2, "startDate": "next tuesday"})
        assert rule == Interval(2, None)
        assert not is_applicable(monday, rule)

    def test_specific_days_non_integers_dropped(self):
        assert rule_from_api({"type": "specific_days", "days": ["mon", 3]}) == SpecificDays(frozenset({3}))

    def test_specific_days_all_garbled(self, monday):
        rule = rule_from_api({"type": "specific_days", "days": ["mon"]})
        assert not is_applicable(monday, rule)
        assert rule_problems(rule) == ["no valid weekdays selected"]

    def test_times_per_week_garbled_count(self):
        assert rule_from_api({"type": "times_per_week", "count": "lots"}) == TimesPerWeek(0)

    def test_frequency_not_an_object(self):
        assert Habit.from_api({"id": 1, "name": "Read", "frequency": "daily"}).frequency == Daily()
