"""Errors raised by the scheduling engine."""

from __future__ import annotations

from datetime import datetime
from typing import Any


class SchedulingError(Exception):
    """Base class for all scheduling engine errors."""


class InvalidDateError(SchedulingError, ValueError):
    """A date could not be parsed or is out of range."""


class InvalidDurationError(SchedulingError, ValueError):
    """A duration is zero, negative or otherwise unusable."""


class ConflictError(SchedulingError):
    """A placement overlaps an existing (saved or pending) interval.

    Carries the blocking item and its time range so callers can render
    their own message or pick a different time.
    """

    def __init__(
        self,
        message: str,
        blocking: Any,
        blocking_start: datetime,
        blocking_end: datetime,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.blocking = blocking
        self.blocking_start = blocking_start
        self.blocking_end = blocking_end
