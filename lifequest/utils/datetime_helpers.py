"""
Standardized Date/Time Handling Utilities

All engine timestamps are timezone-aware UTC. Streak and expiry math is done
on elapsed hours between two instants, never on calendar dates, so the
character's local timezone only matters for display.

CRITICAL RULES:
- Always compare aware datetimes (use ensure_utc())
- Never mix naive and aware datetimes
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is in UTC

    Args:
        dt: Datetime (can be None, naive, or aware)

    Returns:
        Datetime in UTC, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Assume UTC for naive datetimes
        logger.warning(f"Received naive datetime, assuming UTC: {dt}")
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def hours_between(start: datetime, end: datetime) -> float:
    """
    Elapsed hours from start to end (negative if end is earlier)

    Args:
        start: Earlier instant
        end: Later instant

    Returns:
        Fractional hours
    """
    delta = ensure_utc(end) - ensure_utc(start)
    return delta.total_seconds() / 3600


def add_minutes(dt: datetime, minutes: int) -> datetime:
    """Shift an instant forward by whole minutes"""
    return ensure_utc(dt) + timedelta(minutes=minutes)


def format_relative_time(target: datetime, now: datetime) -> str:
    """
    Human-friendly distance between now and target ("in 2h 5m", "3h ago")

    Args:
        target: Instant to describe
        now: Reference instant

    Returns:
        Short relative description
    """
    seconds = int((ensure_utc(target) - ensure_utc(now)).total_seconds())
    future = seconds >= 0
    seconds = abs(seconds)

    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60

    if hours >= 48:
        text = f"{hours // 24}d"
    elif hours:
        text = f"{hours}h {minutes}m" if minutes else f"{hours}h"
    else:
        text = f"{minutes}m"

    return f"in {text}" if future else f"{text} ago"
