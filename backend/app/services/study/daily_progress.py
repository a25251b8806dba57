"""
Daily Progress Tracker

Per-subject snapshot of one study day: minutes studied, number of entries,
average confidence and whether the daily goal was met.

A snapshot is derived from the activity log and rebuilt whole on every
recompute, so recomputing twice, or after the day's activity is deleted,
leaves the row matching the log.

Usage:
    from app.services.study.daily_progress import DailyProgressTracker

    tracker = DailyProgressTracker(db)
    row = await tracker.recompute_daily_progress("student-1", subject_id=3, day_key="2024-01-15")
    if row.goal_achieved:
        ...
"""

import logging
from collections.abc import Sequence
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models_study import DailyProgress, StudyActivity
from app.services.study.activity_log import ActivityLogService

logger = logging.getLogger(__name__)


def summarize_day(activities: Sequence[StudyActivity], daily_goal: int) -> dict[str, Any]:
    """
    Aggregate one subject's activities of one day.

    Args:
        activities: The day's activities for the subject.
        daily_goal: Target minutes.

    Returns:
        dict: Column values for a DailyProgress row.
    """
    total = sum(a.total_time for a in activities)
    count = len(activities)
    return {
        "total_study_time": total,
        "entries_count": count,
        "average_confidence": (
            sum(a.confidence for a in activities) / count if count else 0.0
        ),
        "daily_goal": daily_goal,
        "goal_achieved": total >= daily_goal,
    }


class DailyProgressTracker:
    """Maintains DailyProgress snapshots from the activity log."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activities = ActivityLogService(db)

    async def get_daily_progress(
        self, student_id: str, subject_id: int, day_key: str
    ) -> Optional[DailyProgress]:
        result = await self.db.execute(
            select(DailyProgress).where(
                DailyProgress.student_id == student_id,
                DailyProgress.subject_id == subject_id,
                DailyProgress.study_day == day_key,
            )
        )
        return result.scalar_one_or_none()

    async def recompute_daily_progress(
        self, student_id: str, subject_id: int, day_key: str
    ) -> DailyProgress:
        """
        Rebuild the snapshot of one subject on one study day.

        A day with no remaining activities keeps its row, zeroed.

        Args:
            student_id: Owner.
            subject_id: Subject studied.
            day_key: Study day (YYYY-MM-DD).

        Returns:
            DailyProgress: The stored snapshot.
        """
        activities = await self.activities.list_activities(
            student_id, subject_id=subject_id, day_key=day_key
        )
        summary = summarize_day(activities, settings.DAILY_GOAL_MINUTES)

        row = await self.get_daily_progress(student_id, subject_id, day_key)
        if row is None:
            row = DailyProgress(student_id=student_id, subject_id=subject_id, study_day=day_key)
            self.db.add(row)
        self._apply(row, summary)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            row = await self.get_daily_progress(student_id, subject_id, day_key)
            if row is None:
                raise
            self._apply(row, summary)
            await self.db.commit()

        logger.debug(
            f"Daily progress for student {student_id}, subject {subject_id} on {day_key}: "
            f"{summary['total_study_time']}/{summary['daily_goal']} min"
        )
        return row

    async def list_daily_progress(
        self,
        student_id: str,
        day_key: Optional[str] = None,
        subject_id: Optional[int] = None,
    ) -> list[DailyProgress]:
        """Snapshots of a student, newest day first, then by subject."""
        query = select(DailyProgress).where(DailyProgress.student_id == student_id)
        if day_key is not None:
            query = query.where(DailyProgress.study_day == day_key)
        if subject_id is not None:
            query = query.where(DailyProgress.subject_id == subject_id)
        query = query.order_by(DailyProgress.study_day.desc(), DailyProgress.subject_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    def _apply(row: DailyProgress, summary: dict[str, Any]) -> None:
        for field, value in summary.items():
            setattr(row, field, value)
