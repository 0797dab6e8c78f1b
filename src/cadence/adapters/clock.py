"""Clock adapters."""

from datetime import date

from cadence.core.dates import utc_today


class SystemClock:
    """
    Wall-clock UTC day.

    Implements ClockSource protocol.
    """

    def today(self) -> date:
        return utc_today()


class FixedClock:
    """A clock pinned to one day, for tests and backfills."""

    def __init__(self, day: date):
        self.day = day

    def today(self) -> date:
        return self.day
