"""
clock.py - Time policy for refresh and booster windows

Pure functions over timestamps. All arithmetic happens in UTC; naive
datetimes (for example from an older ledger file) are read as UTC.
"""

from __future__ import annotations
from datetime import datetime, timedelta, timezone
import math

from .core import BOOSTER_WINDOW_DAYS


MILLISECONDS_PER_DAY = 24 * 60 * 60 * 1000


def utc_now() -> datetime:
    """Default clock: the current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(ts: datetime) -> datetime:
    """Return ts as an aware UTC datetime, treating naive values as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def months_elapsed(last_refresh: datetime, now: datetime) -> int:
    """
    Number of calendar-month boundaries crossed between last_refresh and now.

    Day-of-month is ignored: Jan 31 -> Feb 1 is one month, Feb 1 -> Feb 28 is
    zero. A result >= 1 means a refresh is due.
    """
    last = ensure_utc(last_refresh)
    current = ensure_utc(now)
    return (current.year - last.year) * 12 + (current.month - last.month)


def days_elapsed(start: datetime, now: datetime) -> float:
    """
    Fractional days between start and now, at millisecond resolution.

    Negative if now is before start.
    """
    delta = ensure_utc(now) - ensure_utc(start)
    millis = delta // timedelta(milliseconds=1)
    return millis / MILLISECONDS_PER_DAY


def refresh_due(last_refresh: datetime, now: datetime) -> bool:
    return months_elapsed(last_refresh, now) >= 1


def booster_expired(start: datetime, now: datetime, window_days: int = BOOSTER_WINDOW_DAYS) -> bool:
    return days_elapsed(start, now) >= window_days


def booster_days_left(start: datetime, now: datetime, window_days: int = BOOSTER_WINDOW_DAYS) -> int:
    """Whole days left in the booster window, as shown to the user (never negative)."""
    return max(0, window_days - math.floor(days_elapsed(start, now)))
