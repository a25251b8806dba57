"""
Study Activity Log Service

Append/update-only record of what a student did in a study session. The raw
input to the streak engine, mastery tracker and revision planner.

Responsibilities:
- Record activities with per-day merge semantics
- List activities newest first (lazy, restartable iteration)
- Owner-checked read, update and delete
- Study statistics per subject and sub-activity

The merge target of a submission is the activity with the same student,
subject and study day; the database enforces that key with a unique
constraint, so two racing first submissions end in one row.

Usage:
    from app.services.study.activity_log import ActivityLogService

    service = ActivityLogService(db)
    activity = await service.record_activity(
        "student-1", subject_id=3, lesson_id=12,
        sub_activities={"reading": {"completed": True}},
        confidence=4, total_time=45,
    )
"""

import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Mapping
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models_study import Lesson, StudyActivity, Subject
from app.enums.study import SubActivityType
from app.middleware.error_handling import ForbiddenError, NotFoundError, ValidationError
from app.models.study import (
    SUB_ACTIVITY_MODELS,
    ActivityTypeStats,
    StudyStatsResponse,
    SubjectStudyStats,
)
from app.services.study.dates import study_day_key, utc_now

logger = logging.getLogger(__name__)


def validate_sub_activities(
    sub_activities: Optional[Mapping[str, Mapping[str, Any]]],
) -> dict[str, dict[str, Any]]:
    """
    Validate sub-activity blocks and reduce each to the keys that were given.

    Args:
        sub_activities: Mapping of block name (e.g. "reading") to block fields.

    Returns:
        dict: Block name to JSON-ready dict of the provided fields only.

    Raises:
        ValidationError: Unknown block name or invalid block fields.
    """
    blocks: dict[str, dict[str, Any]] = {}
    for name, block in (sub_activities or {}).items():
        try:
            activity_type = SubActivityType(name)
        except ValueError:
            raise ValidationError(f"Unknown sub-activity '{name}'")

        model = SUB_ACTIVITY_MODELS[activity_type]
        try:
            parsed = model.model_validate(dict(block))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid {name} block",
                details={"errors": e.errors(include_url=False, include_context=False)},
            )
        blocks[activity_type.value] = parsed.model_dump(mode="json", exclude_unset=True)
    return blocks


def _validate_scores(confidence: Optional[int], total_time: Optional[int]) -> None:
    if confidence is not None and not 1 <= confidence <= 5:
        raise ValidationError("Confidence must be between 1 and 5")
    if total_time is not None and total_time < 0:
        raise ValidationError("Total time cannot be negative")


def _default_block(activity_type: SubActivityType) -> dict[str, Any]:
    return SUB_ACTIVITY_MODELS[activity_type]().model_dump(mode="json")


class ActivityLogService:
    """
    Data access for study activities.

    Derived state (streaks, progress, achievements) is not touched here;
    StudyTrackingService reconciles it after each successful write.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the activity log service.

        Args:
            db: SQLAlchemy async database session.
        """
        self.db = db

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record_activity(
        self,
        student_id: str,
        subject_id: Optional[int],
        lesson_id: Optional[int] = None,
        sub_activities: Optional[Mapping[str, Mapping[str, Any]]] = None,
        confidence: Optional[int] = None,
        total_time: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> StudyActivity:
        """
        Record a study submission.

        If the student already has an activity for this subject on the
        current study day, the submission is merged into it: each provided
        sub-activity block overlays the stored one key by key, confidence,
        time and lesson are overwritten when given. Otherwise a new activity
        is inserted with confidence 3 and time 0 unless provided.

        Args:
            student_id: Authenticated student.
            subject_id: Subject studied (required).
            lesson_id: Lesson studied, optional.
            sub_activities: Block name to block fields.
            confidence: Self-assessed confidence 1-5.
            total_time: Minutes spent, >= 0.
            now: Submission instant (defaults to the current time).

        Returns:
            StudyActivity: The inserted or merged activity.

        Raises:
            ValidationError: Invalid input; nothing is written.
            NotFoundError: Subject or lesson does not exist.
        """
        if subject_id is None:
            raise ValidationError("Subject is required")
        _validate_scores(confidence, total_time)
        blocks = validate_sub_activities(sub_activities)
        await self._require_subject(subject_id)
        if lesson_id is not None:
            await self._require_lesson(lesson_id, subject_id)

        now = now or utc_now()
        day_key = study_day_key(now)

        activity = await self._find_merge_target(student_id, subject_id, day_key)
        if activity is not None:
            self._overlay(activity, lesson_id, blocks, confidence, total_time, now)
        else:
            activity = self._new_activity(
                student_id, subject_id, lesson_id, day_key, blocks, confidence, total_time, now
            )
            self.db.add(activity)

        try:
            await self.db.commit()
        except IntegrityError:
            # Another submission created the day's row first; merge into it
            await self.db.rollback()
            activity = await self._find_merge_target(student_id, subject_id, day_key)
            if activity is None:
                raise
            logger.info(
                f"Concurrent first submission for student {student_id}, "
                f"subject {subject_id} on {day_key}; merging"
            )
            self._overlay(activity, lesson_id, blocks, confidence, total_time, now)
            await self.db.commit()

        logger.debug(
            f"Recorded activity {activity.id} (revision {activity.revision}) "
            f"for student {student_id} on {day_key}"
        )
        return activity

    async def update_activity(
        self,
        activity_id: int,
        student_id: str,
        lesson_id: Optional[int] = None,
        sub_activities: Optional[Mapping[str, Mapping[str, Any]]] = None,
        confidence: Optional[int] = None,
        total_time: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> StudyActivity:
        """
        Overlay fields onto an existing activity owned by the student.

        Same merge semantics as record_activity. The study day never changes.

        Raises:
            ValidationError: Invalid input.
            NotFoundError: Activity or lesson does not exist.
            ForbiddenError: Activity belongs to another student.
        """
        _validate_scores(confidence, total_time)
        blocks = validate_sub_activities(sub_activities)
        activity = await self.get_activity(activity_id, student_id)
        if lesson_id is not None:
            await self._require_lesson(lesson_id, activity.subject_id)

        self._overlay(activity, lesson_id, blocks, confidence, total_time, now or utc_now())
        await self.db.commit()
        return activity

    async def delete_activity(
        self,
        activity_id: int,
        student_id: Optional[str] = None,
        require_owner: bool = True,
    ) -> StudyActivity:
        """
        Delete an activity.

        Args:
            activity_id: Activity to delete.
            student_id: Caller; must own the activity when require_owner is set.
            require_owner: False for admin deletes.

        Returns:
            StudyActivity: The deleted row (detached).

        Raises:
            NotFoundError: Activity does not exist.
            ForbiddenError: Ownership mismatch.
        """
        activity = await self.get_activity(
            activity_id, student_id if require_owner else None
        )
        await self.db.delete(activity)
        await self.db.commit()
        logger.info(f"Deleted activity {activity_id} of student {activity.student_id}")
        return activity

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_activity(
        self, activity_id: int, student_id: Optional[str] = None
    ) -> StudyActivity:
        """
        Get an activity by id.

        Args:
            activity_id: Activity id.
            student_id: When given, the activity must belong to this student.

        Raises:
            NotFoundError: Activity does not exist.
            ForbiddenError: Activity belongs to another student.
        """
        activity = await self.db.get(StudyActivity, activity_id)
        if activity is None:
            raise NotFoundError("Study activity not found")
        if student_id is not None and activity.student_id != student_id:
            raise ForbiddenError("Access denied")
        return activity

    async def iter_activities(
        self,
        student_id: str,
        subject_id: Optional[int] = None,
        lesson_id: Optional[int] = None,
        day_key: Optional[str] = None,
        limit: Optional[int] = None,
        batch_size: int = 100,
    ) -> AsyncIterator[StudyActivity]:
        """
        Iterate a student's activities newest first.

        Rows are fetched in keyset-paginated batches, so iteration is lazy;
        calling again starts over from the newest activity.

        Args:
            student_id: Owner.
            subject_id: Only this subject.
            lesson_id: Only this lesson.
            day_key: Only this study day (YYYY-MM-DD).
            limit: Stop after this many activities.
            batch_size: Rows per query.
        """
        filters = [StudyActivity.student_id == student_id]
        if subject_id is not None:
            filters.append(StudyActivity.subject_id == subject_id)
        if lesson_id is not None:
            filters.append(StudyActivity.lesson_id == lesson_id)
        if day_key is not None:
            filters.append(StudyActivity.study_day == day_key)

        yielded = 0
        cursor: Optional[tuple[datetime, int]] = None
        while limit is None or yielded < limit:
            size = batch_size if limit is None else min(batch_size, limit - yielded)
            query = select(StudyActivity).where(*filters)
            if cursor is not None:
                last_created, last_id = cursor
                query = query.where(
                    or_(
                        StudyActivity.created_at < last_created,
                        and_(
                            StudyActivity.created_at == last_created,
                            StudyActivity.id < last_id,
                        ),
                    )
                )
            query = query.order_by(
                StudyActivity.created_at.desc(), StudyActivity.id.desc()
            ).limit(size)

            result = await self.db.execute(query)
            batch = list(result.scalars().all())
            for activity in batch:
                yield activity
            yielded += len(batch)
            if len(batch) < size:
                return
            cursor = (batch[-1].created_at, batch[-1].id)

    async def list_activities(
        self,
        student_id: str,
        subject_id: Optional[int] = None,
        lesson_id: Optional[int] = None,
        day_key: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[StudyActivity]:
        """Collect iter_activities into a list."""
        return [
            activity
            async for activity in self.iter_activities(
                student_id, subject_id, lesson_id, day_key, limit
            )
        ]

    async def fetch_activities(
        self,
        student_id: str,
        since: Optional[datetime] = None,
        study_day: Optional[str] = None,
    ) -> list[StudyActivity]:
        """
        Fetch a student's activities in one query, newest first.

        Args:
            student_id: Owner.
            since: Only activities created at or after this instant.
            study_day: Only activities of this study day.
        """
        query = select(StudyActivity).where(StudyActivity.student_id == student_id)
        if since is not None:
            query = query.where(StudyActivity.created_at >= since)
        if study_day is not None:
            query = query.where(StudyActivity.study_day == study_day)
        query = query.order_by(StudyActivity.created_at.desc(), StudyActivity.id.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_study_stats(self, student_id: str) -> StudyStatsResponse:
        """
        Aggregate a student's study totals.

        Returns:
            StudyStatsResponse with overall totals, a per-subject breakdown
            and a per-sub-activity breakdown counting completed blocks.
        """
        activities = await self.fetch_activities(student_id)

        by_subject: dict[int, list[StudyActivity]] = defaultdict(list)
        activity_time: dict[str, int] = defaultdict(int)
        activity_count: dict[str, int] = defaultdict(int)
        for activity in activities:
            by_subject[activity.subject_id].append(activity)
            for activity_type in SubActivityType:
                block = getattr(activity, activity_type.value) or {}
                if block.get("completed"):
                    activity_time[activity_type.label] += activity.total_time
                    activity_count[activity_type.label] += 1

        total_entries = len(activities)
        return StudyStatsResponse(
            total_study_time=sum(a.total_time for a in activities),
            total_entries=total_entries,
            average_confidence=(
                sum(a.confidence for a in activities) / total_entries
                if total_entries
                else 0.0
            ),
            by_subject=[
                SubjectStudyStats(
                    subject_id=subject_id,
                    total_time=sum(a.total_time for a in entries),
                    entries_count=len(entries),
                    average_confidence=sum(a.confidence for a in entries) / len(entries),
                )
                for subject_id, entries in sorted(by_subject.items())
            ],
            by_activity=[
                ActivityTypeStats(
                    activity=label,
                    total_time=activity_time[label],
                    entries_count=activity_count[label],
                )
                for label in activity_count
            ],
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _find_merge_target(
        self, student_id: str, subject_id: int, day_key: str
    ) -> Optional[StudyActivity]:
        result = await self.db.execute(
            select(StudyActivity).where(
                StudyActivity.student_id == student_id,
                StudyActivity.subject_id == subject_id,
                StudyActivity.study_day == day_key,
            )
        )
        return result.scalar_one_or_none()

    async def _require_subject(self, subject_id: int) -> Subject:
        subject = await self.db.get(Subject, subject_id)
        if subject is None:
            raise NotFoundError(f"Subject {subject_id} not found")
        return subject

    async def _require_lesson(self, lesson_id: int, subject_id: int) -> Lesson:
        lesson = await self.db.get(Lesson, lesson_id)
        if lesson is None:
            raise NotFoundError(f"Lesson {lesson_id} not found")
        if lesson.subject_id != subject_id:
            raise ValidationError(
                f"Lesson {lesson_id} does not belong to subject {subject_id}"
            )
        return lesson

    @staticmethod
    def _new_activity(
        student_id: str,
        subject_id: int,
        lesson_id: Optional[int],
        day_key: str,
        blocks: dict[str, dict[str, Any]],
        confidence: Optional[int],
        total_time: Optional[int],
        now: datetime,
    ) -> StudyActivity:
        fields = {
            activity_type.value: {
                **_default_block(activity_type),
                **blocks.get(activity_type.value, {}),
            }
            for activity_type in SubActivityType
        }
        return StudyActivity(
            student_id=student_id,
            subject_id=subject_id,
            lesson_id=lesson_id,
            study_day=day_key,
            confidence=confidence if confidence is not None else settings.DEFAULT_CONFIDENCE,
            total_time=total_time if total_time is not None else 0,
            is_completed=True,
            revision=1,
            created_at=now,
            updated_at=now,
            **fields,
        )

    @staticmethod
    def _overlay(
        activity: StudyActivity,
        lesson_id: Optional[int],
        blocks: dict[str, dict[str, Any]],
        confidence: Optional[int],
        total_time: Optional[int],
        now: datetime,
    ) -> None:
        # New dict objects so the JSON columns are flagged dirty
        for name, block in blocks.items():
            setattr(activity, name, {**(getattr(activity, name) or {}), **block})
        if confidence is not None:
            activity.confidence = confidence
        if total_time is not None:
            activity.total_time = total_time
        if lesson_id is not None:
            activity.lesson_id = lesson_id
        activity.revision = (activity.revision or 0) + 1
        activity.updated_at = now
