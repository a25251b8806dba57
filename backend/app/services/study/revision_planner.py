"""
Revision Planner

Read-only revision planning derived from the activity log and progress
records. Nothing here is stored; every call recomputes from history.

Two views:
- Revision plan: recent activities grouped per lesson, each with a revision
  date, priority and status computed from average confidence and the time
  since the lesson was last studied.
- Review overview: progress records due for review, stale subjects, weak
  areas, per-subject progress and dashboard recommendations.

Usage:
    from app.services.study.revision_planner import RevisionPlanner

    planner = RevisionPlanner(db)
    plan = await planner.get_revision_plan("student-1")
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models_study import ProgressRecord, StudyActivity, Subject
from app.enums.study import (
    MasteryLevel,
    RecommendationType,
    RevisionPriority,
    RevisionStatus,
)
from app.models.study import (
    ActivityResponse,
    ProgressResponse,
    Recommendation,
    ReviewOverviewResponse,
    RevisionPlanItem,
    RevisionPlanResponse,
    SubjectProgressSummary,
)
from app.services.study.activity_log import ActivityLogService
from app.services.study.dates import study_date, utc_now, whole_days_between

logger = logging.getLogger(__name__)

# Recommendations show only the first few items of each list
RECOMMENDATION_PREVIEW = 3


# ===========================================
# Pure Planning Rules
# ===========================================


def revision_offset_days(average_confidence: float, days_since_study: int) -> int:
    """
    Days from today until the lesson should be revised.

    Confident lessons wait longer; low-confidence lessons come back quickly.
    """
    if average_confidence >= 4:
        if days_since_study >= 14:
            return 0
        if days_since_study >= 7:
            return 3
        return 7
    if average_confidence >= 3:
        if days_since_study >= 7:
            return 0
        if days_since_study >= 3:
            return 2
        return 5
    if days_since_study >= 3:
        return 0
    if days_since_study >= 1:
        return 1
    return 2


def revision_priority(average_confidence: float, days_since_study: int) -> RevisionPriority:
    """Priority of a lesson, HIGH (1) being the most urgent."""
    if (average_confidence <= 2 and days_since_study >= 7) or (
        average_confidence <= 3 and days_since_study >= 14
    ):
        return RevisionPriority.HIGH
    if (
        (average_confidence <= 2 and days_since_study >= 3)
        or (average_confidence <= 3 and days_since_study >= 7)
        or (average_confidence <= 4 and days_since_study >= 21)
    ):
        return RevisionPriority.MEDIUM
    return RevisionPriority.LOW


def revision_status(revision_date: date, today: date) -> RevisionStatus:
    """Bucket a revision date relative to today."""
    days_until = (revision_date - today).days
    if days_until < 0:
        return RevisionStatus.OVERDUE
    if days_until == 0:
        return RevisionStatus.TODAY
    if days_until <= 2:
        return RevisionStatus.SOON
    return RevisionStatus.SCHEDULED


def build_revision_plan(
    activities: Iterable[StudyActivity], now: datetime
) -> list[RevisionPlanItem]:
    """
    Group activities per (subject, lesson) and schedule each group.

    Activities without a lesson are skipped. The result is sorted by
    priority, then revision date.

    Args:
        activities: Activities inside the planning window.
        now: Reference instant; "today" is its study-timezone date.
    """
    groups: dict[tuple[int, int], list[StudyActivity]] = defaultdict(list)
    for activity in activities:
        if activity.subject_id is None or activity.lesson_id is None:
            continue
        groups[(activity.subject_id, activity.lesson_id)].append(activity)

    today = study_date(now)
    items = []
    for (subject_id, lesson_id), entries in groups.items():
        average_confidence = round(sum(a.confidence for a in entries) / len(entries), 1)
        last_studied = max(a.created_at for a in entries)
        days_since_study = whole_days_between(last_studied, now)
        revision_date = today + timedelta(
            days=revision_offset_days(average_confidence, days_since_study)
        )

        items.append(
            RevisionPlanItem(
                subject_id=subject_id,
                lesson_id=lesson_id,
                entries=[ActivityResponse.model_validate(a) for a in entries],
                average_confidence=average_confidence,
                last_studied=last_studied,
                total_time=sum(a.total_time for a in entries),
                days_since_study=days_since_study,
                revision_date=revision_date,
                priority=revision_priority(average_confidence, days_since_study),
                status=revision_status(revision_date, today),
            )
        )

    items.sort(key=lambda i: (i.priority, i.revision_date, i.subject_id, i.lesson_id))
    return items


def build_recommendations(
    due_for_review: list[ProgressResponse],
    stale_subjects: list[int],
    weak_areas: list[ProgressResponse],
) -> list[Recommendation]:
    """Dashboard recommendations: urgent reviews first, then stale and weak areas."""
    recommendations = []
    if due_for_review:
        recommendations.append(
            Recommendation(
                type=RecommendationType.URGENT,
                title="Due for Review",
                description=f"{len(due_for_review)} topics need your attention",
                priority="high",
                progress_items=due_for_review[:RECOMMENDATION_PREVIEW],
            )
        )
    if stale_subjects:
        recommendations.append(
            Recommendation(
                type=RecommendationType.STALE,
                title="Stale Subjects",
                description="Haven't studied these subjects recently",
                priority="medium",
                subject_ids=stale_subjects[:RECOMMENDATION_PREVIEW],
            )
        )
    if weak_areas:
        recommendations.append(
            Recommendation(
                type=RecommendationType.WEAK,
                title="Weak Areas",
                description="Focus on improving these topics",
                priority="medium",
                progress_items=weak_areas[:RECOMMENDATION_PREVIEW],
            )
        )
    return recommendations


# ===========================================
# Revision Planner Service
# ===========================================


class RevisionPlanner:
    """Read-only service building revision plans and review overviews."""

    def __init__(self, db: AsyncSession):
        """
        Initialize the revision planner.

        Args:
            db: SQLAlchemy async database session.
        """
        self.db = db
        self.activities = ActivityLogService(db)

    async def get_revision_plan(
        self,
        student_id: str,
        now: Optional[datetime] = None,
        window_days: Optional[int] = None,
    ) -> RevisionPlanResponse:
        """
        Build the revision plan from the trailing activity window.

        Args:
            student_id: Student to plan for.
            now: Reference instant (defaults to the current time).
            window_days: History window (defaults to REVISION_WINDOW_DAYS).
        """
        now = now or utc_now()
        window_days = window_days or settings.REVISION_WINDOW_DAYS

        activities = await self.activities.fetch_activities(
            student_id, since=now - timedelta(days=window_days)
        )
        items = build_revision_plan(activities, now)
        logger.debug(
            f"Revision plan for student {student_id}: {len(items)} lessons "
            f"from {len(activities)} activities"
        )
        return RevisionPlanResponse(
            student_id=student_id,
            generated_at=now,
            window_days=window_days,
            items=items,
        )

    async def get_review_overview(
        self, student_id: str, now: Optional[datetime] = None
    ) -> ReviewOverviewResponse:
        """
        Summarize what the student should review.

        Returns:
            ReviewOverviewResponse with due reviews (earliest first), stale
            subjects, weak areas (lowest mastery first), per-subject progress
            for every catalog subject and recommendations.
        """
        now = now or utc_now()
        limit = settings.REVIEW_OVERVIEW_LIMIT

        due_result = await self.db.execute(
            select(ProgressRecord)
            .where(
                ProgressRecord.student_id == student_id,
                ProgressRecord.next_review_date <= now,
            )
            .order_by(ProgressRecord.next_review_date, ProgressRecord.id)
        )
        due_for_review = [ProgressResponse.model_validate(p) for p in due_result.scalars()]

        stale_cutoff = now - timedelta(days=settings.STALE_SUBJECT_DAYS)
        stale_result = await self.db.execute(
            select(ProgressRecord.subject_id)
            .where(
                ProgressRecord.student_id == student_id,
                ProgressRecord.last_studied < stale_cutoff,
            )
            .distinct()
            .order_by(ProgressRecord.subject_id)
        )
        stale_subjects = list(stale_result.scalars().all())

        weak_result = await self.db.execute(
            select(ProgressRecord)
            .where(
                ProgressRecord.student_id == student_id,
                ProgressRecord.mastery_level < int(MasteryLevel.GOOD),
            )
            .order_by(
                ProgressRecord.mastery_level, ProgressRecord.last_studied, ProgressRecord.id
            )
            .limit(limit)
        )
        weak_areas = [ProgressResponse.model_validate(p) for p in weak_result.scalars()]

        subject_progress = await self._subject_progress(student_id, now)

        return ReviewOverviewResponse(
            due_for_review=due_for_review[:limit],
            stale_subjects=stale_subjects[: settings.STALE_SUBJECT_LIMIT],
            weak_areas=weak_areas,
            subject_progress=subject_progress,
            recommendations=build_recommendations(due_for_review, stale_subjects, weak_areas),
        )

    async def _subject_progress(
        self, student_id: str, now: datetime
    ) -> list[SubjectProgressSummary]:
        subjects = (
            await self.db.execute(select(Subject).order_by(Subject.name))
        ).scalars().all()
        progress = (
            await self.db.execute(
                select(ProgressRecord).where(ProgressRecord.student_id == student_id)
            )
        ).scalars().all()

        by_subject: dict[int, list[ProgressRecord]] = defaultdict(list)
        for record in progress:
            by_subject[record.subject_id].append(record)

        summaries = []
        for subject in subjects:
            records = by_subject.get(subject.id, [])
            last_studied = max((r.last_studied for r in records), default=None)
            summaries.append(
                SubjectProgressSummary(
                    subject_id=subject.id,
                    subject_name=subject.name,
                    last_studied=last_studied,
                    days_since_last_study=(
                        whole_days_between(last_studied, now) if last_studied else None
                    ),
                    total_lessons=len(records),
                    mastered_lessons=sum(
                        1 for r in records if r.mastery_level >= MasteryLevel.GREAT
                    ),
                    average_confidence=(
                        round(sum(r.confidence for r in records) / len(records), 1)
                        if records
                        else 0.0
                    ),
                )
            )
        return summaries
