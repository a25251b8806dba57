"""
Study Tracking Service

Coordinates a durable activity write with the derived-state updates that
follow it.

The activity log is the source of truth. Once an activity write commits,
the streak engine, mastery tracker, daily progress tracker and achievement
notifier run in that order, each in isolation: a failing step is logged and
reported as a DerivedStateFailure, its session work is rolled back and the
remaining steps still run. The caller always gets the activity back, with a
DerivedStateReport describing what the derived updates did.

Usage:
    from app.services.study.tracking import StudyTrackingService

    service = StudyTrackingService(db)
    result = await service.record_activity("student-1", ActivityCreate(subject_id=1))
    if not result.derived_state.ok:
        ...  # streaks/progress are stale until the next successful recompute
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.middleware.error_handling import DerivedStateFailure
from app.models.study import (
    ActivityCreate,
    ActivityDeleteResponse,
    ActivityResponse,
    ActivityUpdate,
    ActivityWriteResponse,
    DerivedStateReport,
    DerivedStepFailure,
    StreakResponse,
)
from app.services.study.achievements import AchievementNotifier
from app.services.study.activity_log import ActivityLogService
from app.services.study.daily_progress import DailyProgressTracker
from app.services.study.dates import utc_now
from app.services.study.mastery_tracker import ProgressTracker
from app.services.study.streak_engine import StreakEngine

logger = logging.getLogger(__name__)


class StudyTrackingService:
    """Entry point for activity writes and streak refreshes."""

    def __init__(self, db: AsyncSession):
        """
        Initialize the tracking service and its collaborators on one session.

        Args:
            db: SQLAlchemy async database session.
        """
        self.db = db
        self.activities = ActivityLogService(db)
        self.streaks = StreakEngine(db)
        self.progress = ProgressTracker(db)
        self.daily_progress = DailyProgressTracker(db)
        self.achievements = AchievementNotifier(db)

    async def record_activity(
        self,
        student_id: str,
        request: ActivityCreate,
        now: Optional[datetime] = None,
    ) -> ActivityWriteResponse:
        """
        Record a study submission and reconcile derived state.

        Raises:
            ValidationError / NotFoundError: The write was rejected; nothing
            was stored and no derived update ran.
        """
        now = now or utc_now()
        activity = await self.activities.record_activity(
            student_id,
            subject_id=request.subject_id,
            lesson_id=request.lesson_id,
            sub_activities=request.sub_activities(),
            confidence=request.confidence,
            total_time=request.total_time,
            now=now,
        )
        # Snapshot before derived steps; a rollback there expires ORM state
        snapshot = ActivityResponse.model_validate(activity)
        report = await self.reconcile(snapshot, now)
        return ActivityWriteResponse(activity=snapshot, derived_state=report)

    async def update_activity(
        self,
        activity_id: int,
        student_id: str,
        request: ActivityUpdate,
        now: Optional[datetime] = None,
    ) -> ActivityWriteResponse:
        """Overlay changes onto an owned activity and reconcile derived state."""
        now = now or utc_now()
        activity = await self.activities.update_activity(
            activity_id,
            student_id,
            lesson_id=request.lesson_id,
            sub_activities=request.sub_activities(),
            confidence=request.confidence,
            total_time=request.total_time,
            now=now,
        )
        snapshot = ActivityResponse.model_validate(activity)
        report = await self.reconcile(snapshot, now)
        return ActivityWriteResponse(activity=snapshot, derived_state=report)

    async def delete_activity(
        self,
        activity_id: int,
        student_id: Optional[str] = None,
        require_owner: bool = True,
        now: Optional[datetime] = None,
    ) -> ActivityDeleteResponse:
        """
        Delete an activity, then recompute the owner's streak and the daily
        progress of the deleted activity's day.

        Progress records keep the history of what was studied and are not
        rolled back.
        """
        now = now or utc_now()
        deleted = await self.activities.delete_activity(activity_id, student_id, require_owner)
        owner, subject_id, day_key = deleted.student_id, deleted.subject_id, deleted.study_day

        report = DerivedStateReport()
        report.streak_updated = await self._run_step(
            "streak", owner, report, lambda: self.streaks.recompute_streak(owner, now)
        )
        report.daily_progress_updated = await self._run_step(
            "daily_progress",
            owner,
            report,
            lambda: self.daily_progress.recompute_daily_progress(owner, subject_id, day_key),
        )
        return ActivityDeleteResponse(
            message="Study activity deleted successfully", derived_state=report
        )

    async def reconcile(
        self, activity: ActivityResponse, now: Optional[datetime] = None
    ) -> DerivedStateReport:
        """
        Run the derived-state updates for a written activity.

        Each step is attempted even if an earlier one failed. Running this
        twice for the same activity revision leaves the same state.

        Args:
            activity: Snapshot of the activity as committed.
            now: Reference instant (defaults to the current time).

        Returns:
            DerivedStateReport: Which steps succeeded, awarded achievements and
            one failure entry per failed step.
        """
        now = now or utc_now()
        student_id = activity.student_id
        report = DerivedStateReport()

        report.streak_updated = await self._run_step(
            "streak",
            student_id,
            report,
            lambda: self.streaks.incremental_update(student_id, activity, now),
        )

        if activity.lesson_id is not None:
            report.progress_updated = await self._run_step(
                "progress",
                student_id,
                report,
                lambda: self.progress.update_progress(activity, now),
            )

        report.daily_progress_updated = await self._run_step(
            "daily_progress",
            student_id,
            report,
            lambda: self.daily_progress.recompute_daily_progress(
                student_id, activity.subject_id, activity.study_day
            ),
        )

        awarded: list = []

        async def check_achievements() -> None:
            awarded.extend(await self.achievements.check_achievements(student_id, now))

        if await self._run_step("achievements", student_id, report, check_achievements):
            report.achievements_awarded = [a.type for a in awarded]

        return report

    async def refresh_streak(
        self, student_id: str, now: Optional[datetime] = None
    ) -> StreakResponse:
        """
        Best-effort recompute, then read.

        A failed recompute is logged and the previously stored counters are
        returned.
        """
        now = now or utc_now()
        await self.streaks.refresh(student_id, now)
        return await self.streaks.get_streak_data(student_id, now)

    async def force_refresh(
        self, student_id: str, now: Optional[datetime] = None
    ) -> StreakResponse:
        """Recompute streak and achievements; errors propagate to the caller."""
        now = now or utc_now()
        await self.streaks.recompute_streak(student_id, now)
        await self.achievements.check_achievements(student_id, now)
        return await self.streaks.get_streak_data(student_id, now)

    async def _run_step(
        self,
        step: str,
        student_id: str,
        report: DerivedStateReport,
        action: Callable[[], Awaitable[object]],
    ) -> bool:
        try:
            await action()
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            failure = DerivedStateFailure(f"{step} update failed for student {student_id}")
            logger.error(f"{failure.message}: {error}", exc_info=e)
            await self.db.rollback()
            report.errors.append(f"{step}: {error}")
            report.failures.append(
                DerivedStepFailure(
                    step=step,
                    error_code=failure.error_code,
                    message=failure.message,
                    error=error,
                )
            )
            return False
        return True
