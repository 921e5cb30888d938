"""UTC time helpers for the sync pipeline and leaderboard windows.

SQLite hands back naive datetimes for ``DateTime(timezone=True)`` columns,
PostgreSQL hands back aware ones. Everything inside spyglass is compared
as aware UTC, so values read from storage go through ``as_utc`` first.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_day(now: datetime | None = None) -> datetime:
    """Midnight UTC of the calendar day containing ``now``."""
    if now is None:
        now = utcnow()
    day: date = as_utc(now).date()
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def get_window_start(period: str, now: datetime | None = None) -> datetime:
    """Start of the leaderboard window for ``period`` ("day" or "week")."""
    if now is None:
        now = utcnow()
    if period == "day":
        return start_of_day(now)
    if period == "week":
        return as_utc(now) - timedelta(days=7)
    raise ValueError(f"Unknown period: {period}")


def retention_cutoff(hours: int, now: datetime | None = None) -> datetime:
    """Oldest timestamp still inside a retention window of ``hours``."""
    if now is None:
        now = utcnow()
    return as_utc(now) - timedelta(hours=hours)
