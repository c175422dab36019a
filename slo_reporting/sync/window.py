"""
Backfill window arithmetic.

Days are local calendar days in the configured time zone. Boundaries are
returned in UTC so that subtracting two of them gives the real elapsed time,
which is 23 or 25 hours (or 23.5/24.5 in half-hour zones) on DST transition
days.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel

from slo_reporting.sync.exceptions import ConfigError


class DayWindow(BaseModel):
    date: str  # YYYY-MM-DD in the local time zone
    start: datetime  # UTC, inclusive
    end: datetime  # UTC, exclusive


def load_zone(name: str) -> ZoneInfo:
    """Resolve an IANA time zone name, raising ConfigError if it is unknown."""
    if not name:
        raise ConfigError("Time zone must not be empty")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise ConfigError(f"Unknown time zone '{name}': {e}") from e


def _local_date(now: datetime, zone: ZoneInfo, days_ago: int) -> date:
    return now.astimezone(zone).date() - timedelta(days=days_ago)


def day_boundary(now: datetime, zone: ZoneInfo, days_ago: int) -> datetime:
    """
    Midnight, local time, of the day that was `days_ago` days before `now`.

    Negative values of days_ago point into the future. The result is in UTC.
    """
    day = _local_date(now, zone, days_ago)
    midnight = datetime(day.year, day.month, day.day, tzinfo=zone)
    return midnight.astimezone(timezone.utc)


def backfill_day(now: datetime, zone: ZoneInfo, days_ago: int) -> DayWindow:
    """The [start, end) window of the local day `days_ago` days before `now`."""
    return DayWindow(
        date=_local_date(now, zone, days_ago).isoformat(),
        start=day_boundary(now, zone, days_ago),
        end=day_boundary(now, zone, days_ago - 1),
    )


def window_start_date(now: datetime, zone: ZoneInfo, backfill_days: int) -> str:
    """Local date (YYYY-MM-DD) of the oldest day in the backfill window."""
    return _local_date(now, zone, backfill_days).isoformat()
