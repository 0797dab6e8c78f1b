"""Adapters - I/O implementations of ports."""

from .file_store import JsonFileStore
from .rest_backend import RestBackend
from .clock import SystemClock, FixedClock

__all__ = [
    "JsonFileStore",
    "RestBackend",
    "SystemClock",
    "FixedClock",
]
