"""
Time utilities for the task tracker.

This module provides a single source of truth for "now" and for the
reporting windows, so that every query compares against the same clock.
"""

import calendar
from datetime import datetime, timezone, timedelta


def utc_now() -> datetime:
    """
    Get current UTC time.

    Returns:
        timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def subtract_months(moment: datetime, months: int) -> datetime:
    """
    Step back a number of calendar months, clamping the day of month.

    March 31st minus one month is February 28th (or 29th in leap years).
    """
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


def period_window(period: str, now: datetime = None) -> tuple[datetime, datetime]:
    """
    Calculate the trailing window for a reporting period.

    Args:
        period: "weekly" (last 7 days) or "monthly" (last calendar month)
        now: Optional anchor, defaults to utc_now()

    Returns:
        Tuple of (start, end) as timezone-aware datetimes

    Raises:
        ValueError: if the period is not recognised
    """
    end = now or utc_now()
    if period == "weekly":
        return end - timedelta(days=7), end
    if period == "monthly":
        return subtract_months(end, 1), end
    raise ValueError(f"Unknown period: {period}")


def as_utc(moment: datetime) -> datetime:
    """Normalise a datetime to UTC, treating naive values as already UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
