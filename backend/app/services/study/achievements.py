"""
Achievement Notifier

Awards one-time achievements from the current streak record and the
student's progress records.

Rules:
    streak_7             current streak >= 7
    streak_30            current streak >= 30
    century              total study days >= 100
    subject_master_{id}  >= 10 lessons of a subject at mastery Great or above

Achievements are append-only. Uniqueness per (streak record, type) is
enforced by a database constraint, so concurrent checks cannot award the
same type twice. A conflicting insert skips only the types that were
awarded concurrently; the rest of the batch is retried.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.models_study import Achievement, ProgressRecord
from app.enums.study import SUBJECT_MASTER_PREFIX, AchievementType, MasteryLevel
from app.services.study.dates import utc_now
from app.services.study.streak_engine import StreakEngine

logger = logging.getLogger(__name__)

ACHIEVEMENT_DESCRIPTIONS = {
    AchievementType.STREAK_7.value: "7 Day Streak! 🔥",
    AchievementType.STREAK_30.value: "30 Day Streak! 🏆",
    AchievementType.CENTURY.value: "100 Study Days! 💯",
}
SUBJECT_MASTER_DESCRIPTION = "Subject Master! 🎓"


def subject_master_type(subject_id: int) -> str:
    return f"{SUBJECT_MASTER_PREFIX}{subject_id}"


def describe_achievement(achievement_type: str) -> str:
    if achievement_type.startswith(SUBJECT_MASTER_PREFIX):
        return SUBJECT_MASTER_DESCRIPTION
    return ACHIEVEMENT_DESCRIPTIONS.get(achievement_type, achievement_type)


def evaluate_achievements(
    current_streak: int,
    total_study_days: int,
    mastered_lessons_by_subject: Mapping[int, int],
) -> list[str]:
    """
    Achievement types whose thresholds are currently met.

    Args:
        current_streak: Current streak length.
        total_study_days: Distinct study days over the full history.
        mastered_lessons_by_subject: Subject id to number of lessons at
            mastery Great or above.

    Returns:
        list[str]: Qualifying types, earned or not.
    """
    qualifying = []
    if current_streak >= settings.ACHIEVEMENT_STREAK_WEEK:
        qualifying.append(AchievementType.STREAK_7.value)
    if current_streak >= settings.ACHIEVEMENT_STREAK_MONTH:
        qualifying.append(AchievementType.STREAK_30.value)
    if total_study_days >= settings.ACHIEVEMENT_CENTURY_DAYS:
        qualifying.append(AchievementType.CENTURY.value)
    for subject_id, mastered in sorted(mastered_lessons_by_subject.items()):
        if mastered >= settings.ACHIEVEMENT_SUBJECT_MASTER_LESSONS:
            qualifying.append(subject_master_type(subject_id))
    return qualifying


class AchievementNotifier:
    """Checks achievement rules and appends newly earned achievements."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.streaks = StreakEngine(db)

    async def check_achievements(
        self, student_id: str, now: Optional[datetime] = None
    ) -> list[Achievement]:
        """
        Award every qualifying achievement the student has not earned yet.

        Args:
            student_id: Student to check.
            now: Award instant (defaults to the current time).

        Returns:
            list[Achievement]: Newly awarded achievements. Types a concurrent
            check awarded first are left out.
        """
        now = now or utc_now()
        record = await self.streaks.get_or_create_record(student_id)
        record_id = record.id

        qualifying = evaluate_achievements(
            record.current_streak,
            record.total_study_days,
            await self._mastered_lessons_by_subject(student_id),
        )
        if not qualifying:
            return []

        # Each conflict means another check stored one of the pending types,
        # so the pending set shrinks on every retry
        for _ in range(len(qualifying)):
            earned = await self._earned_types(record_id)
            awarded = [
                Achievement(
                    streak_record_id=record_id,
                    type=achievement_type,
                    earned_at=now,
                    description=describe_achievement(achievement_type),
                )
                for achievement_type in qualifying
                if achievement_type not in earned
            ]
            if not awarded:
                return []

            self.db.add_all(awarded)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.warning(
                    f"Achievements for student {student_id} were awarded concurrently; "
                    f"retrying the rest"
                )
                continue

            for achievement in awarded:
                logger.info(f"Student {student_id} earned achievement {achievement.type}")
            return awarded

        return []

    async def _earned_types(self, record_id: int) -> set[str]:
        result = await self.db.execute(
            select(Achievement.type).where(Achievement.streak_record_id == record_id)
        )
        return set(result.scalars().all())

    async def _mastered_lessons_by_subject(self, student_id: str) -> dict[int, int]:
        result = await self.db.execute(
            select(ProgressRecord.subject_id, func.count(ProgressRecord.id))
            .where(
                ProgressRecord.student_id == student_id,
                ProgressRecord.mastery_level >= int(MasteryLevel.GREAT),
            )
            .group_by(ProgressRecord.subject_id)
        )
        return {subject_id: count for subject_id, count in result.all()}
