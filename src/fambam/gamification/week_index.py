"""Week numbering from a fixed epoch.

Week 1 is [2024-01-01 00:00 UTC, 2024-01-08 00:00 UTC). Every stored
``week_number`` depends on EPOCH, so it must never change once deployed.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from fambam.config import get_settings

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)
WEEK = timedelta(days=7)
_LAST_INSTANT = timedelta(days=7) - timedelta(milliseconds=1)


def ensure_utc(dt: datetime) -> datetime:
    """Return dt as an aware UTC datetime (naive values are taken to be UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_local_timezone() -> tzinfo:
    """Zone used to turn timestamps into calendar days (FAMBAM_TIMEZONE)."""
    return ZoneInfo(get_settings().timezone)


def local_date(dt: datetime, tz: tzinfo | None = None) -> date:
    """Calendar date of dt in the given (or configured) timezone."""
    return ensure_utc(dt).astimezone(tz or get_local_timezone()).date()


def get_week_number(now: datetime | None = None) -> int:
    """Week index of ``now`` counted from EPOCH (week 1 starts at the epoch)."""
    if now is None:
        now = utc_now()
    return (ensure_utc(now) - EPOCH) // WEEK + 1


def get_week_start(week_number: int) -> datetime:
    """First instant of the week (00:00:00.000 UTC)."""
    return EPOCH + (week_number - 1) * WEEK


def get_week_end(week_number: int) -> datetime:
    """Last instant of the week: start + 6 days 23:59:59.999."""
    return get_week_start(week_number) + _LAST_INSTANT


def get_week_bounds(week_number: int) -> tuple[datetime, datetime]:
    """(start, exclusive end) for range queries over a week."""
    start = get_week_start(week_number)
    return start, start + WEEK


def get_week_date_range(week_number: int) -> str:
    """Display label e.g. 'Jan 1 - Jan 7'."""
    start = get_week_start(week_number)
    end = get_week_end(week_number)
    return f"{start:%b} {start.day} - {end:%b} {end.day}"
