"""Date helpers shared by the reconciler, snapshots and scheduler."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from dateutil.parser import isoparse


def today() -> date:
    return date.today()


def utcnow() -> datetime:
    return datetime.utcnow()


def week_start(value: Union[date, datetime]) -> date:
    """Return the Monday that opens the week containing ``value``.

    Datetimes are truncated to midnight first, so a Sunday steps back six days
    and any other day steps back ``weekday`` days.
    """
    if isinstance(value, datetime):
        value = value.date()
    return value - timedelta(days=value.weekday())


def parse_iso_date(value: str) -> Optional[date]:
    """Parse an ISO date or datetime string, returning None when malformed."""
    try:
        return isoparse(value[:10]).date()
    except (ValueError, TypeError, OverflowError):
        return None


def iso_to_timestamp(value: str) -> int:
    """Convert an ISO datetime string to Unix seconds (0 when unparseable)."""
    try:
        parsed = isoparse(value)
    except (ValueError, TypeError, OverflowError):
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def timestamp_to_date(seconds: Union[int, float]) -> Optional[date]:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).date()
    except (ValueError, OverflowError, OSError):
        return None
