"""Occurrence and subtask identity - pending local tokens vs committed ids."""

import itertools
import secrets
from dataclasses import dataclass

_counter = itertools.count(1)


@dataclass(frozen=True)
class Pending:
    """A local id for a record the backend has not confirmed yet."""

    token: str

    def __str__(self) -> str:
        return f"pending:{self.token}"


@dataclass(frozen=True)
class Committed:
    """An id assigned by persistence."""

    value: int | str

    def __str__(self) -> str:
        return str(self.value)


OccurrenceId = Pending | Committed


def new_pending() -> Pending:
    """
    Fresh pending id.

    Tokens combine a process-wide counter with a random suffix, so ids from
    separate pending batches never collide.
    """
    return Pending(f"{next(_counter)}-{secrets.token_hex(4)}")


def is_committed(value: OccurrenceId | None) -> bool:
    return isinstance(value, Committed)
