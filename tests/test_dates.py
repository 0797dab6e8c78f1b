"""Tests for calendar-date normalization."""

from datetime import date, datetime, timedelta, timezone

import pytest

from cadence.core.dates import (
    add_months,
    date_key,
    day_or_none,
    parse_key,
    days_back,
    days_between,
    to_day,
    utc_today,
    weekday_ordinal,
    weekday_set,
)


class TestToDay:
    def test_date_passthrough(self):
        assert to_day(date(2024, 3, 10)) == date(2024, 3, 10)

    def test_aware_datetime_converted_to_utc(self):
        # 01:00 at UTC+5 is still the previous day in UTC
        value = datetime(2024, 3, 10, 1, 0, tzinfo=timezone(timedelta(hours=5)))
        assert to_day(value) == date(2024, 3, 9)

    def test_naive_datetime_taken_as_utc(self):
        assert to_day(datetime(2024, 3, 10, 23, 59)) == date(2024, 3, 10)

    def test_string_with_time_part(self):
        assert to_day("2024-03-10T10:00:00Z") == date(2024, 3, 10)

    def test_invalid_string(self):
        with pytest.raises(ValueError):
            to_day("not a date")


class TestDateKey:
    def test_format(self):
        assert date_key(date(2024, 1, 5)) == "2024-01-05"

    def test_equal_days_share_a_key(self):
        assert date_key(datetime(2024, 1, 5, 8, 0)) == date_key("2024-01-05")

    def test_parse_key(self):
        assert parse_key("2024-01-05") == date(2024, 1, 5)


class TestUtcToday:
    def test_uses_utc(self):
        now = datetime(2024, 3, 10, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert utc_today(now) == date(2024, 3, 11)


class TestWeekdayOrdinal:
    @pytest.mark.parametrize(
        "day,ordinal",
        [
            (date(2024, 3, 10), 0),  # Sunday
            (date(2024, 3, 11), 1),
            (date(2024, 3, 16), 6),  # Saturday
        ],
    )
    def test_sunday_is_zero(self, day, ordinal):
        assert weekday_ordinal(day) == ordinal


class TestAddMonths:
    def test_plain(self):
        assert add_months(date(2024, 1, 15), 1) == date(2024, 2, 15)

    def test_clamps_to_month_end(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_crosses_year(self):
        assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)


class TestDaysBetween:
    def test_absolute(self):
        assert days_between(date(2024, 1, 1), date(2024, 1, 4)) == 3
        assert days_between(date(2024, 1, 4), date(2024, 1, 1)) == 3

    def test_across_dst_change(self):
        assert days_between(date(2024, 3, 9), date(2024, 3, 11)) == 2


class TestDaysBack:
    def test_starts_today(self):
        days = list(days_back(date(2024, 3, 1), 3))
        assert days == [date(2024, 3, 1), date(2024, 2, 29), date(2024, 2, 28)]

    def test_zero(self):
        assert list(days_back(date(2024, 3, 1), 0)) == []


class TestStoredValues:
    @pytest.mark.parametrize("value", [None, "", "someday", 20240101, "2024-13-01"])
    def test_day_or_none_unparsable(self, value):
        assert day_or_none(value) is None

    def test_day_or_none_parses(self):
        assert day_or_none("2024-01-05T08:00:00Z") == date(2024, 1, 5)

    def test_weekday_set(self):
        assert weekday_set([1, "3", "mon", None]) == frozenset({1, 3})
        assert weekday_set("1,3") == frozenset()
        assert weekday_set(None) == frozenset()
