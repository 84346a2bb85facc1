"""Conversion between datetimes and xAPI epoch-millisecond timestamps."""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone


def to_epoch_millis(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds.

    A naive datetime is taken as a wall-clock value and converted without
    any timezone adjustment (the host's local zone is *not* applied). An
    aware datetime is converted from the instant it denotes. Sub-second
    precision is truncated: the result is always whole seconds times 1000.
    """
    if dt.tzinfo is not None and dt.utcoffset() is not None:
        seconds = calendar.timegm(dt.astimezone(timezone.utc).timetuple())
    else:
        seconds = calendar.timegm(dt.timetuple())
    return seconds * 1000


def from_epoch_millis(millis: int) -> datetime:
    """Convert epoch milliseconds back to a naive wall-clock datetime."""
    return datetime(1970, 1, 1) + timedelta(milliseconds=millis)
