"""Ports - interfaces/protocols for external dependencies."""

from .persistence import PersistenceError, PersistenceGateway, HabitRepository, ProfileRepository
from .clock import ClockSource

__all__ = [
    "PersistenceError",
    "PersistenceGateway",
    "HabitRepository",
    "ProfileRepository",
    "ClockSource",
]
