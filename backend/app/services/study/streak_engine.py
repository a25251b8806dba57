"""
Streak Engine

Maintains per-student streak counters and the denormalized study calendar.

Responsibilities:
- Compute current and longest study streaks from the activity log
- Rebuild the study calendar (one aggregate per studied day)
- Cheap same-day update after an activity write
- Streak read model with milestones and achievements

The full recompute is the only place streak rules live. The incremental path
refreshes today's calendar aggregate with the same aggregation function and
falls back to the full recompute whenever today's streak position could
change, so the two paths cannot disagree.

Usage:
    from app.services.study.streak_engine import StreakEngine

    engine = StreakEngine(db)
    record = await engine.recompute_streak("student-1")
    streak = await engine.get_streak_data("student-1")
"""

import logging
from collections import defaultdict
from collections.abc import Collection, Iterable
from datetime import date, datetime, timedelta
from typing import Any, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models_study import Achievement, StreakRecord, StudyCalendarDay
from app.models.study import AchievementResponse, CalendarDayResponse, StreakResponse
from app.services.study.activity_log import ActivityLogService
from app.services.study.dates import (
    day_start,
    parse_day_key,
    start_of_study_day,
    study_date,
    study_day_key,
    utc_now,
)

logger = logging.getLogger(__name__)


class ActivityLike(Protocol):
    """Fields of an activity the streak rules read."""

    subject_id: int
    lesson_id: Optional[int]
    study_day: str
    total_time: int
    confidence: int
    created_at: datetime


# ===========================================
# Pure Streak Rules
# ===========================================


def group_by_study_day(activities: Iterable[ActivityLike]) -> dict[str, list[ActivityLike]]:
    """Group activities by calendar-day key."""
    grouped: dict[str, list[ActivityLike]] = defaultdict(list)
    for activity in activities:
        grouped[activity.study_day].append(activity)
    return dict(grouped)


def calculate_current_streak(
    study_days: Collection[str], today: date
) -> tuple[int, Optional[date]]:
    """
    Count consecutive study days ending today or yesterday.

    A streak stays alive through the current day: if the student has not
    studied yet today but did yesterday, counting starts from yesterday.
    Any older gap resets the streak to zero.

    Args:
        study_days: Calendar-day keys with at least one activity.
        today: Current calendar date in the study timezone.

    Returns:
        Tuple of (current streak length, first day of the streak or None).
    """
    yesterday = today - timedelta(days=1)
    if today.isoformat() in study_days:
        anchor = today
    elif yesterday.isoformat() in study_days:
        anchor = yesterday
    else:
        return 0, None

    streak = 0
    day = anchor
    while day.isoformat() in study_days:
        streak += 1
        day -= timedelta(days=1)

    return streak, day + timedelta(days=1)


def aggregate_calendar_day(day_key: str, activities: Iterable[ActivityLike]) -> dict[str, Any]:
    """
    Aggregate one day's activities into calendar fields.

    Returns:
        dict with day_key, date (start of day), sorted subjects_studied and
        lessons_studied, summed total_time and the highest confidence.
    """
    activities = list(activities)
    return {
        "day_key": day_key,
        "date": day_start(parse_day_key(day_key)),
        "subjects_studied": sorted({a.subject_id for a in activities}),
        "lessons_studied": sorted({a.lesson_id for a in activities if a.lesson_id is not None}),
        "total_time": sum(a.total_time for a in activities),
        "confidence": max((a.confidence for a in activities), default=0),
    }


def build_study_calendar(activities: Iterable[ActivityLike]) -> list[dict[str, Any]]:
    """Aggregate a full activity history into calendar days, newest first."""
    grouped = group_by_study_day(activities)
    return [
        aggregate_calendar_day(day_key, grouped[day_key])
        for day_key in sorted(grouped, reverse=True)
    ]


# ===========================================
# Streak Engine
# ===========================================


class StreakEngine:
    """
    Service owning StreakRecord and StudyCalendarDay rows.

    Every public method takes an optional `now`; it is resolved once and
    passed to the pure rules so results are reproducible in tests.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the streak engine.

        Args:
            db: SQLAlchemy async database session.
        """
        self.db = db
        self.activities = ActivityLogService(db)

    async def get_record(self, student_id: str) -> Optional[StreakRecord]:
        """Get the student's streak record, if one exists."""
        result = await self.db.execute(
            select(StreakRecord).where(StreakRecord.student_id == student_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create_record(self, student_id: str) -> StreakRecord:
        """Get the student's streak record, creating an empty one on first use."""
        record = await self.get_record(student_id)
        if record is not None:
            return record

        record = StreakRecord(student_id=student_id)
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            record = await self.get_record(student_id)
            if record is None:
                raise
        return record

    async def recompute_streak(
        self, student_id: str, now: Optional[datetime] = None
    ) -> StreakRecord:
        """
        Recompute all streak counters and rebuild the study calendar.

        The current streak is walked over the trailing STREAK_WINDOW_DAYS;
        total study days and the calendar come from the full history.
        longest_streak never decreases. Safe to call any number of times.

        Args:
            student_id: Student to recompute.
            now: Reference instant (defaults to the current time).

        Returns:
            StreakRecord: The updated record.
        """
        now = now or utc_now()
        record = await self.get_or_create_record(student_id)
        activities = await self.activities.fetch_activities(student_id)

        window_start = start_of_study_day(now) - timedelta(days=settings.STREAK_WINDOW_DAYS)
        window_days = {a.study_day for a in activities if a.created_at >= window_start}
        current_streak, streak_start = calculate_current_streak(window_days, study_date(now))

        record.current_streak = current_streak
        record.longest_streak = max(record.longest_streak or 0, current_streak)
        record.streak_start_date = day_start(streak_start) if streak_start else None
        record.last_study_date = max((a.created_at for a in activities), default=None)
        record.total_study_days = len({a.study_day for a in activities})

        calendar = build_study_calendar(activities)
        await self.db.execute(
            delete(StudyCalendarDay).where(StudyCalendarDay.streak_record_id == record.id)
        )
        self.db.add_all(
            StudyCalendarDay(streak_record_id=record.id, **day) for day in calendar
        )
        await self.db.commit()

        logger.info(
            f"Rebuilt study calendar for student {student_id} with {len(calendar)} days "
            f"(current={current_streak}, longest={record.longest_streak})"
        )
        return record

    async def incremental_update(
        self,
        student_id: str,
        activity: ActivityLike,
        now: Optional[datetime] = None,
    ) -> StreakRecord:
        """
        Update streak state after an activity write.

        When today already has a calendar entry, the streak counters cannot
        change, so only today's aggregate is rebuilt from today's activities.
        Any other case (first activity of the day, no record yet, or an
        activity outside today) runs the full recompute.

        Args:
            student_id: Owner of the activity.
            activity: The activity just written.
            now: Reference instant (defaults to the current time).
        """
        now = now or utc_now()
        today_key = study_day_key(now)

        record = await self.get_record(student_id)
        if record is None or activity.study_day != today_key:
            return await self.recompute_streak(student_id, now)

        result = await self.db.execute(
            select(StudyCalendarDay).where(
                StudyCalendarDay.streak_record_id == record.id,
                StudyCalendarDay.day_key == today_key,
            )
        )
        calendar_day = result.scalar_one_or_none()
        if calendar_day is None:
            return await self.recompute_streak(student_id, now)

        todays = await self.activities.fetch_activities(student_id, study_day=today_key)
        for field, value in aggregate_calendar_day(today_key, todays).items():
            setattr(calendar_day, field, value)

        latest = max((a.created_at for a in todays), default=None)
        if latest is not None and (
            record.last_study_date is None or latest > record.last_study_date
        ):
            record.last_study_date = latest
        await self.db.commit()

        logger.debug(f"Updated today's calendar entry for student {student_id}")
        return record

    async def refresh(self, student_id: str, now: Optional[datetime] = None) -> bool:
        """
        Best-effort recompute.

        Failures are logged and rolled back so the stored counters stay as
        they were; the next successful recompute heals them.

        Returns:
            bool: True if the recompute succeeded.
        """
        try:
            await self.recompute_streak(student_id, now)
        except Exception:
            logger.exception(f"Streak recompute failed for student {student_id}")
            await self.db.rollback()
            return False
        return True

    async def get_streak_data(
        self, student_id: str, now: Optional[datetime] = None
    ) -> StreakResponse:
        """
        Build the streak read model.

        Includes counters, milestones from STREAK_MILESTONES, the full study
        calendar (newest first) and earned achievements (oldest first).
        """
        now = now or utc_now()
        record = await self.get_or_create_record(student_id)

        calendar_result = await self.db.execute(
            select(StudyCalendarDay)
            .where(StudyCalendarDay.streak_record_id == record.id)
            .order_by(StudyCalendarDay.day_key.desc())
        )
        calendar = list(calendar_result.scalars().all())

        achievement_result = await self.db.execute(
            select(Achievement)
            .where(Achievement.streak_record_id == record.id)
            .order_by(Achievement.earned_at, Achievement.id)
        )
        achievements = list(achievement_result.scalars().all())

        milestones = settings.STREAK_MILESTONES
        today_key = study_day_key(now)

        return StreakResponse(
            student_id=student_id,
            current_streak=record.current_streak,
            longest_streak=record.longest_streak,
            last_study_date=record.last_study_date,
            streak_start_date=record.streak_start_date,
            total_study_days=record.total_study_days,
            is_active_today=any(day.day_key == today_key for day in calendar),
            milestones_reached=[m for m in milestones if record.longest_streak >= m],
            next_milestone=next((m for m in milestones if m > record.current_streak), None),
            study_calendar=[CalendarDayResponse.model_validate(day) for day in calendar],
            achievements=[AchievementResponse.model_validate(a) for a in achievements],
        )
