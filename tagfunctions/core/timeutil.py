"""Naive local civil time helpers.

Readings and tag values carry no offset; everything here stays in the
same wall-clock interpretation the report editor renders.
"""
from datetime import datetime, timedelta, timezone

MINUTE = timedelta(minutes=1)


def to_local_naive(dt: datetime) -> datetime:
    """Drop an explicit offset by converting to local wall-clock time."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def truncate_to_minute(dt: datetime) -> datetime:
    return dt.replace(second=0, microsecond=0)


def minute_key(dt: datetime) -> str:
    """Bucket key and report output format: YYYY-MM-DD HH:mm."""
    return dt.strftime("%Y-%m-%d %H:%M")


def display(dt: datetime) -> str:
    """Short display form used in diagnostic logs."""
    return dt.strftime("%Y/%m/%d %H:%M")


def whole_minutes(start: datetime, end: datetime) -> int:
    return int((end - start) // MINUTE)


def now_utc() -> datetime:
    # Run history stamps only, never compared with readings
    return datetime.now(timezone.utc)
