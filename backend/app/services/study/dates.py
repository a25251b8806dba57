"""
Study Day Normalization

Single source of truth for "which calendar day does this instant belong to".
Days are anchored to one fixed regional offset (IST, UTC+5:30 by default),
independent of server and client local time.

All functions are pure. Callers pass instants in; nothing here reads the
wall clock except utc_now(), which entry points call once and thread through.

Usage:
    from app.services.study.dates import study_day_key

    study_day_key(datetime(2024, 1, 10, 23, 45, tzinfo=timezone.utc))  # "2024-01-11"
"""

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional

from app.config import settings

STUDY_TZ: tzinfo = timezone(
    timedelta(minutes=settings.STUDY_TIMEZONE_OFFSET_MINUTES),
    settings.STUDY_TIMEZONE_NAME,
)

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(ts: datetime) -> datetime:
    """Treat naive datetimes as UTC and return an aware UTC datetime."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def to_study_time(ts: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Express an instant in the study timezone."""
    return ensure_utc(ts).astimezone(tz or STUDY_TZ)


def study_date(ts: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of an instant in the study timezone."""
    return to_study_time(ts, tz).date()


def study_day_key(ts: datetime, tz: Optional[tzinfo] = None) -> str:
    """Calendar-day key (YYYY-MM-DD) of an instant in the study timezone."""
    return study_date(ts, tz).isoformat()


def start_of_study_day(ts: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Instant at which the study day containing ts begins."""
    local = to_study_time(ts, tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def day_start(day: date, tz: Optional[tzinfo] = None) -> datetime:
    """Start-of-day instant of a calendar date in the study timezone."""
    return datetime(day.year, day.month, day.day, tzinfo=tz or STUDY_TZ)


def parse_day_key(key: str) -> date:
    """Inverse of study_day_key."""
    return date.fromisoformat(key)


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Floor of the elapsed time between two instants, in days."""
    elapsed = ensure_utc(later) - ensure_utc(earlier)
    return int(elapsed.total_seconds() // SECONDS_PER_DAY)
