"""Calendar-date normalisation and minute-precision interval helpers.

All instants handled here are naive local wall-clock datetimes. Calendar
dates are compared by their own year/month/day fields, never by converting
to UTC first, so a picker returning midnight in another zone cannot shift
the day.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, NamedTuple

from dateutil import parser as dateutil_parser
from dateutil.rrule import DAILY, rrule

from watchplan.domain.errors import InvalidDateError, InvalidDurationError

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):(\d{2})$")

# Two defaults that differ in every date field; a field missing from the
# input shows up as a difference between the two parses.
_FILL_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))


class Interval(NamedTuple):
    start: datetime
    end: datetime


def to_calendar_date(value: Any) -> date:
    """Normalise a date-like value to a calendar date.

    Datetimes keep their own wall-clock fields (an aware value is not moved
    to UTC). Strings are parsed with ``dateutil`` and must name a year, a
    month and a day; partial dates are rejected rather than filled in.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidDateError("empty date string")
        try:
            first, second = (
                dateutil_parser.parse(text, default=default).date()
                for default in _FILL_DEFAULTS
            )
        except (ValueError, OverflowError) as exc:
            raise InvalidDateError(f"unparsable date: {value!r}") from exc
        if first != second:
            raise InvalidDateError(f"incomplete date: {value!r}")
        return first
    raise InvalidDateError(f"unsupported date value: {value!r}")


def to_wall_clock(moment: datetime) -> datetime:
    """Drop any UTC offset, keeping the local wall-clock fields."""
    return moment.replace(tzinfo=None)


def require_duration(value: Any) -> int:
    """Return *value* as a positive integer number of minutes."""
    if value is None:
        raise InvalidDurationError("duration is required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidDurationError(f"duration must be whole minutes, got {value!r}")
    if value <= 0:
        raise InvalidDurationError(f"duration must be positive, got {value}")
    return value


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time())


def end_of_day(day: date) -> datetime:
    """Exclusive end of *day*: the following midnight."""
    return start_of_day(day) + timedelta(days=1)


def build_interval(day: Any, hour: int, minute: int, duration_minutes: int) -> Interval:
    """Return the half-open ``[start, end)`` for a placement on *day*."""
    day = to_calendar_date(day)
    if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
        raise InvalidDateError(f"hour must be an integer in 0-23, got {hour!r}")
    if isinstance(minute, bool) or not isinstance(minute, int) or minute < 0:
        raise InvalidDateError(f"minute must be a non-negative integer, got {minute!r}")
    duration = require_duration(duration_minutes)
    start = start_of_day(day) + timedelta(hours=hour, minutes=minute)
    return Interval(start, start + timedelta(minutes=duration))


def intervals_overlap(a: Any, b: Any) -> bool:
    """Half-open overlap test; touching endpoints do not conflict."""
    return a.start < b.end and b.start < a.end


def snap_to_slot(minutes_from_midnight: float, step: int = 15) -> int | None:
    """Round a timeline position to the nearest slot boundary.

    Returns ``None`` when the rounded position falls at or past midnight.
    """
    snapped = int(math.floor(minutes_from_midnight / step + 0.5)) * step
    if snapped >= MINUTES_PER_DAY:
        return None
    return max(snapped, 0)


def format_clock(moment: datetime) -> str:
    """12-hour clock rendering, e.g. ``8:00 PM``."""
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d} {suffix}"


def parse_offset(offset: str) -> timezone:
    """Parse a ``±HH:MM`` offset. Malformed values fall back to UTC."""
    match = _OFFSET_RE.match(offset or "")
    if not match:
        logger.warning("Invalid timezone offset %r, defaulting to UTC", offset)
        return timezone.utc
    sign, hours, minutes = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes))
    return timezone(-delta if sign == "-" else delta)


def localize(moment: datetime, offset: str) -> datetime:
    """Attach the authoring zone to a local wall-clock time for redisplay."""
    return moment.replace(tzinfo=parse_offset(offset))


def iter_days(first: date, last: date) -> list[date]:
    """Every calendar date from *first* to *last*, inclusive."""
    if first > last:
        raise InvalidDateError("start date must be on or before end date")
    rule = rrule(DAILY, dtstart=start_of_day(first), until=start_of_day(last))
    return [dt.date() for dt in rule]
