"""
Standardized Date/Time Handling Utilities

All engine timestamps are timezone-aware UTC datetimes.

CRITICAL RULES:
- Always store event timestamps in UTC (use to_utc())
- Period boundaries (start of day/month/year) are computed in UTC
- Never mix naive and aware datetimes
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Union
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")

# Callable returning "now"; services accept one so tests can freeze time
Clock = Callable[[], datetime]

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(UTC)


def to_utc(dt: Union[datetime, str]) -> datetime:
    """
    Convert a datetime (or ISO-8601 string) to an aware UTC datetime

    Naive datetimes are assumed to already be UTC.

    Args:
        dt: datetime or ISO string

    Returns:
        Timezone-aware datetime in UTC
    """
    if isinstance(dt, str):
        # fromisoformat does not accept a trailing "Z" before 3.11
        dt = datetime.fromisoformat(dt.replace("Z", "+00:00"))

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def start_of_day(dt: datetime) -> datetime:
    """Midnight (UTC) of the day containing dt"""
    dt = to_utc(dt)
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(dt: datetime) -> datetime:
    """First instant (UTC) of the month containing dt"""
    return start_of_day(dt).replace(day=1)


def start_of_year(dt: datetime) -> datetime:
    """First instant (UTC) of the year containing dt"""
    return start_of_day(dt).replace(month=1, day=1)


def start_of_week(dt: datetime) -> datetime:
    """Monday midnight (UTC) of the ISO week containing dt"""
    day = start_of_day(dt)
    return day - timedelta(days=day.weekday())


def hours_between(earlier: datetime, later: datetime) -> float:
    """Elapsed hours from earlier to later (negative if reversed)"""
    return (to_utc(later) - to_utc(earlier)).total_seconds() / 3600


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """
    Compute the start cutoff for a named period

    Leaderboard timeframes and personal-stats periods share this table:
    - daily / day: start of today
    - weekly / week: now minus 7 days (rolling window)
    - monthly / month: start of this month
    - year: start of this year
    - all_time: the epoch

    Args:
        period: Period name
        now: Reference time (defaults to now_utc())

    Returns:
        UTC datetime cutoff (inclusive)

    Raises:
        ValueError: If the period name is not recognized
    """
    if now is None:
        now = now_utc()
    now = to_utc(now)

    if period in ("daily", "day"):
        return start_of_day(now)
    if period in ("weekly", "week"):
        return now - timedelta(days=7)
    if period in ("monthly", "month"):
        return start_of_month(now)
    if period == "year":
        return start_of_year(now)
    if period == "all_time":
        return EPOCH

    raise ValueError(f"Unknown period: {period}")


def bucket_start(dt: datetime, granularity: str) -> datetime:
    """
    Truncate dt to the start of its hour/day/week/month/year bucket

    Args:
        dt: Timestamp to truncate
        granularity: One of hour, day, week, month, year

    Returns:
        UTC datetime at the start of the bucket
    """
    dt = to_utc(dt)

    if granularity == "hour":
        return dt.replace(minute=0, second=0, microsecond=0)
    if granularity == "day":
        return start_of_day(dt)
    if granularity == "week":
        return start_of_week(dt)
    if granularity == "month":
        return start_of_month(dt)
    if granularity == "year":
        return start_of_year(dt)

    raise ValueError(f"Unknown granularity: {granularity}")
