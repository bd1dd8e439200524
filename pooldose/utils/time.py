"""Time utilities (UTC storage, local calendar days)."""

from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo


def now_utc() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime, naive_assumed_tz: tzinfo = timezone.utc) -> datetime:
    """
    Return ``dt`` as an aware UTC datetime.

    SQLite hands timestamps back without tzinfo, so naive values are
    interpreted as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=naive_assumed_tz)
    return dt.astimezone(timezone.utc)


def local_date(dt: datetime, tz_name: str = "UTC") -> date:
    """Calendar day of ``dt`` in the named timezone."""
    return ensure_utc(dt).astimezone(ZoneInfo(tz_name)).date()
