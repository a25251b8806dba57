"""
Mastery / Progress Tracker

Per-lesson mastery levels and review scheduling for each student.

Every study submission that names a lesson is applied to the student's
ProgressRecord for that lesson: study count and time accumulate, the latest
confidence replaces the previous one, the mastery level is re-derived and the
next review is scheduled with a simplified SM-2 interval.

Mastery levels:
    1 New, 2 Learning, 3 Good, 4 Great, 5 Mastered

Usage:
    from app.services.study.mastery_tracker import ProgressTracker

    tracker = ProgressTracker(db)
    record = await tracker.update_progress(activity)
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models_study import ProgressRecord
from app.enums.study import MasteryLevel
from app.services.study.dates import utc_now

logger = logging.getLogger(__name__)


class StudySubmission(Protocol):
    """Fields of an activity the mastery rules read."""

    id: int
    revision: int
    student_id: str
    subject_id: int
    lesson_id: Optional[int]
    confidence: int
    total_time: int
    reading: dict[str, Any]


def mastery_level_for(study_count: int, confidence: int) -> MasteryLevel:
    """
    Derive the mastery level from the updated study count and confidence.

    First matching rule wins:
        count >= 5 and confidence >= 4 -> Mastered
        count >= 3 and confidence >= 3 -> Great
        count >= 2                     -> Good
        otherwise                      -> Learning
    """
    if study_count >= 5 and confidence >= 4:
        return MasteryLevel.MASTERED
    if study_count >= 3 and confidence >= 3:
        return MasteryLevel.GREAT
    if study_count >= 2:
        return MasteryLevel.GOOD
    return MasteryLevel.LEARNING


def next_review_interval(
    interval: int, confidence: int, max_interval: Optional[int] = None
) -> int:
    """
    Simplified SM-2 interval update.

    Confident reviews (>= 4) double the interval up to max_interval, neutral
    ones (3) keep it, anything lower resets it to one day.
    """
    max_interval = max_interval or settings.MAX_REVIEW_INTERVAL_DAYS
    if confidence >= 4:
        return min(interval * 2, max_interval)
    if confidence >= 3:
        return max(interval, 1)
    return 1


def history_entry(activity: StudySubmission, now: datetime) -> dict[str, Any]:
    """Revision history entry for one submission."""
    return {
        "date": now.isoformat(),
        "confidence": activity.confidence,
        "time_spent": activity.total_time,
        "notes": (activity.reading or {}).get("notes") or "",
        "activity_id": activity.id,
        "activity_revision": activity.revision,
    }


def is_applied(record: ProgressRecord, activity: StudySubmission) -> bool:
    """Whether this exact submission (activity id and revision) was already applied."""
    return any(
        entry.get("activity_id") == activity.id
        and entry.get("activity_revision") == activity.revision
        for entry in record.revision_history or []
    )


def new_progress_record(activity: StudySubmission, now: datetime) -> ProgressRecord:
    """First study of a lesson: level New, one-day interval."""
    return ProgressRecord(
        student_id=activity.student_id,
        subject_id=activity.subject_id,
        lesson_id=activity.lesson_id,
        first_studied=now,
        last_studied=now,
        study_count=1,
        mastery_level=int(MasteryLevel.NEW),
        confidence=activity.confidence,
        total_time_spent=activity.total_time,
        revision_history=[history_entry(activity, now)],
        next_review_date=now + timedelta(days=1),
        interval=1,
        ease_factor=settings.DEFAULT_EASE_FACTOR,
        repetitions=0,
    )


def apply_study_session(
    record: ProgressRecord, activity: StudySubmission, now: datetime
) -> ProgressRecord:
    """
    Apply a repeat study of a lesson to its progress record.

    Mastery and interval rules see the updated count and confidence.
    repetitions counts consecutive submissions with confidence >= 3; the
    ease factor is carried unchanged.
    """
    record.study_count += 1
    record.total_time_spent += activity.total_time
    record.confidence = activity.confidence
    record.last_studied = now
    # Reassign so the JSON column is flagged dirty
    record.revision_history = [*(record.revision_history or []), history_entry(activity, now)]

    record.mastery_level = int(mastery_level_for(record.study_count, record.confidence))
    record.interval = next_review_interval(record.interval, record.confidence)
    record.next_review_date = now + timedelta(days=record.interval)
    record.repetitions = record.repetitions + 1 if record.confidence >= 3 else 0
    return record


class ProgressTracker:
    """Service owning ProgressRecord rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_progress(self, student_id: str, lesson_id: int) -> Optional[ProgressRecord]:
        result = await self.db.execute(
            select(ProgressRecord).where(
                ProgressRecord.student_id == student_id,
                ProgressRecord.lesson_id == lesson_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_progress(
        self, student_id: str, subject_id: Optional[int] = None
    ) -> list[ProgressRecord]:
        """List a student's progress records, most recently studied first."""
        query = select(ProgressRecord).where(ProgressRecord.student_id == student_id)
        if subject_id is not None:
            query = query.where(ProgressRecord.subject_id == subject_id)
        query = query.order_by(ProgressRecord.last_studied.desc(), ProgressRecord.id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update_progress(
        self, activity: StudySubmission, now: Optional[datetime] = None
    ) -> Optional[ProgressRecord]:
        """
        Apply a study submission to the lesson's progress record.

        Subject-only activities are skipped. A submission already applied
        (same activity id and revision) leaves the record unchanged, so
        reconciling the same write twice is harmless.

        Args:
            activity: The activity just written.
            now: Study instant (defaults to the current time).

        Returns:
            The updated record, or None when the activity names no lesson.
        """
        if activity.lesson_id is None:
            return None

        now = now or utc_now()
        record = await self.get_progress(activity.student_id, activity.lesson_id)

        if record is None:
            record = new_progress_record(activity, now)
            self.db.add(record)
            try:
                await self.db.commit()
                logger.debug(
                    f"Started progress for student {activity.student_id}, "
                    f"lesson {activity.lesson_id}"
                )
                return record
            except IntegrityError:
                # Created concurrently; apply on top of the winner
                await self.db.rollback()
                record = await self.get_progress(activity.student_id, activity.lesson_id)
                if record is None:
                    raise

        if is_applied(record, activity):
            logger.debug(
                f"Activity {activity.id} revision {activity.revision} already applied "
                f"to lesson {activity.lesson_id}"
            )
            return record

        apply_study_session(record, activity, now)
        await self.db.commit()
        logger.debug(
            f"Lesson {activity.lesson_id} for student {activity.student_id}: "
            f"count={record.study_count}, mastery={record.mastery_level}, "
            f"interval={record.interval}"
        )
        return record
