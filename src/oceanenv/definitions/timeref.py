"""Time helpers shared by the time-aware store and the SSP databases.

Times are naive ``datetime`` objects (UTC by convention). Numbers are treated
as POSIX seconds.
"""
from datetime import datetime, timedelta, timezone

import numpy as np

from oceanenv.config import STORE_WILDCARDS

ALL_TIMES = STORE_WILDCARDS['time']

_EPOCH = datetime(1970, 1, 1)


def as_datetime(value) -> datetime:
    """Coerce datetime / numpy datetime64 / pandas Timestamp / POSIX seconds to a naive datetime."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        # pandas.Timestamp is a datetime subclass
        return datetime(value.year, value.month, value.day, value.hour, value.minute,
                        value.second, value.microsecond)
    if isinstance(value, np.datetime64):
        seconds = (value - np.datetime64('1970-01-01T00:00:00')) / np.timedelta64(1, 's')
        return _EPOCH + timedelta(seconds=float(seconds))
    if isinstance(value, (int, float, np.integer, np.floating)):
        return _EPOCH + timedelta(seconds=float(value))
    raise TypeError(f"Cannot interpret {value!r} as a time")


def to_epoch_seconds(value) -> int:
    return int(round((as_datetime(value) - _EPOCH).total_seconds()))


def seconds_between(start, end) -> float:
    """``end - start`` in seconds."""
    return (as_datetime(end) - as_datetime(start)).total_seconds()


def add_seconds(value, seconds: float) -> datetime:
    return as_datetime(value) + timedelta(seconds=float(seconds))
