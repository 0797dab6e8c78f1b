"""Clock interface."""

from datetime import date
from typing import Protocol


class ClockSource(Protocol):
    """Supplies the current UTC calendar day."""

    def today(self) -> date:
        ...
