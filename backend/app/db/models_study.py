"""
SQLAlchemy Database Models for Study Tracking

Tables:
- subjects: Catalog of subjects managed by admins
- lessons: Lessons (chapters) belonging to a subject
- study_activities: Activity log, one merge target per student+subject+day
- streak_records: Per-student streak counters
- study_calendar_days: Denormalized per-day study calendar of a streak record
- achievements: One-time achievements earned by a student
- progress_records: Per-student, per-lesson mastery and review schedule
- daily_progress: Per-student, per-subject snapshot of one study day
- notes: Free-text student notes

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    There is a corresponding Pydantic file: app/models/study.py

    Data flows: Service Layer → Pydantic → SQLAlchemy → Database

    Relationships are intentionally not mapped: services query child rows
    explicitly so nothing lazy-loads inside an async session.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import UTCDateTime


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# ===========================================
# Catalog
# ===========================================


class Subject(Base):
    """
    A subject students can log study activities against.

    Attributes:
        id: Primary key.
        name: Unique display name (e.g. "Maths").
        total_marks: Exam weight of the subject.
        color: UI color hex code.
        icon: UI icon (emoji).
        description: Free-form description.
    """

    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True)
    total_marks: Mapped[int] = mapped_column(Integer)
    color: Mapped[str] = mapped_column(String(20), default="#3B82F6")
    icon: Mapped[str] = mapped_column(String(20), default="📚")
    description: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)


class Lesson(Base):
    """
    A lesson (chapter) within a subject.

    Attributes:
        id: Primary key.
        subject_id: Owning subject.
        name: Lesson name.
        chapter_number: Ordering within the subject. Optional.
        description: Free-form description. Optional.
        is_active: Inactive lessons are hidden from listings.
        created_by: Identifier of the admin who created the lesson.
    """

    __tablename__ = "lessons"
    __table_args__ = (Index("ix_lessons_subject_chapter", "subject_id", "chapter_number"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id", ondelete="CASCADE"))
    name: Mapped[str] = mapped_column(String(300))
    chapter_number: Mapped[Optional[int]] = mapped_column(Integer)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[str] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)


# ===========================================
# Activity Log
# ===========================================


class StudyActivity(Base):
    """
    What a student did for a subject on one calendar day.

    Later submissions for the same student, subject and study day overlay
    this row instead of creating a new one.

    Attributes:
        id: Primary key.
        student_id: Opaque identifier from the auth context.
        subject_id: Subject studied.
        lesson_id: Lesson studied. Optional; subject-only activities do not
            feed mastery tracking.
        study_day: Calendar-day key (YYYY-MM-DD) of created_at in the study
            timezone. Part of the merge key.
        reading, grammar, writing, math_practice, science_practice,
        social_practice: Sub-activity blocks (completed flag, metadata,
            photo URLs, document references).
        confidence: Self-assessed confidence 1-5.
        total_time: Minutes spent.
        is_completed: Whether the session was completed.
        revision: Incremented on every write; identifies one submission.
        created_at: First submission instant; decides the study day.
        updated_at: Last write instant.
    """

    __tablename__ = "study_activities"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "subject_id", "study_day", name="uq_activity_student_subject_day"
        ),
        Index("ix_activity_student_created", "student_id", "created_at"),
        Index("ix_activity_student_lesson", "student_id", "lesson_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id"))
    lesson_id: Mapped[Optional[int]] = mapped_column(ForeignKey("lessons.id"))
    study_day: Mapped[str] = mapped_column(String(10))

    # Sub-activity blocks
    reading: Mapped[dict] = mapped_column(JSON, default=dict)
    grammar: Mapped[dict] = mapped_column(JSON, default=dict)
    writing: Mapped[dict] = mapped_column(JSON, default=dict)
    math_practice: Mapped[dict] = mapped_column(JSON, default=dict)
    science_practice: Mapped[dict] = mapped_column(JSON, default=dict)
    social_practice: Mapped[dict] = mapped_column(JSON, default=dict)

    # Overall assessment
    confidence: Mapped[int] = mapped_column(Integer, default=3)
    total_time: Mapped[int] = mapped_column(Integer, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=True)

    revision: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)


# ===========================================
# Streaks
# ===========================================


class StreakRecord(Base):
    """
    Streak counters for one student.

    Created lazily on first read or write. Counters are recomputed, never
    appended; longest_streak is a high-water mark.

    Attributes:
        student_id: Owner, unique.
        current_streak: Consecutive study days ending today or yesterday.
        longest_streak: Highest current_streak ever recorded.
        last_study_date: Instant of the most recent activity.
        streak_start_date: Start of day of the first day in the current streak.
        total_study_days: Distinct study days over the full history.
    """

    __tablename__ = "streak_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), unique=True)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_study_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    streak_start_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    total_study_days: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utc_now, onupdate=_utc_now
    )


class StudyCalendarDay(Base):
    """
    Aggregate of one studied day, keyed by calendar-day key.

    Attributes:
        streak_record_id: Owning streak record.
        day_key: Calendar-day key (YYYY-MM-DD), unique per streak record.
        date: Start-of-day instant of the day in the study timezone.
        subjects_studied: Sorted subject ids touched that day.
        lessons_studied: Sorted lesson ids touched that day.
        total_time: Summed minutes.
        confidence: Highest confidence seen that day.
    """

    __tablename__ = "study_calendar_days"
    __table_args__ = (
        UniqueConstraint("streak_record_id", "day_key", name="uq_calendar_record_day"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    streak_record_id: Mapped[int] = mapped_column(
        ForeignKey("streak_records.id", ondelete="CASCADE"), index=True
    )
    day_key: Mapped[str] = mapped_column(String(10))
    date: Mapped[datetime] = mapped_column(UTCDateTime)
    subjects_studied: Mapped[list] = mapped_column(JSON, default=list)
    lessons_studied: Mapped[list] = mapped_column(JSON, default=list)
    total_time: Mapped[int] = mapped_column(Integer, default=0)
    confidence: Mapped[int] = mapped_column(Integer, default=0)


class Achievement(Base):
    """
    One-time achievement. Unique per (streak record, type).

    Attributes:
        type: Achievement type, e.g. "streak_7" or "subject_master_4".
        earned_at: When it was awarded.
        description: Display text.
    """

    __tablename__ = "achievements"
    __table_args__ = (
        UniqueConstraint("streak_record_id", "type", name="uq_achievement_record_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    streak_record_id: Mapped[int] = mapped_column(
        ForeignKey("streak_records.id", ondelete="CASCADE"), index=True
    )
    type: Mapped[str] = mapped_column(String(100))
    earned_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    description: Mapped[Optional[str]] = mapped_column(String(200))


# ===========================================
# Mastery Progress
# ===========================================


class ProgressRecord(Base):
    """
    Mastery and review schedule of one lesson for one student.

    Attributes:
        first_studied / last_studied: First and latest study instants.
        study_count: Number of study submissions applied.
        mastery_level: 1=New, 2=Learning, 3=Good, 4=Great, 5=Mastered.
        confidence: Confidence of the latest submission.
        total_time_spent: Summed minutes.
        revision_history: List of {date, confidence, time_spent, notes,
            activity_id, activity_revision} entries.
        next_review_date: When the lesson is next due.
        interval: Days between reviews.
        ease_factor: SM-2 ease factor.
        repetitions: Consecutive submissions with confidence >= 3.
    """

    __tablename__ = "progress_records"
    __table_args__ = (
        UniqueConstraint("student_id", "lesson_id", name="uq_progress_student_lesson"),
        Index("ix_progress_student_subject", "student_id", "subject_id"),
        Index("ix_progress_next_review", "next_review_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64))
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id"))
    lesson_id: Mapped[int] = mapped_column(ForeignKey("lessons.id"))

    first_studied: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    last_studied: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    study_count: Mapped[int] = mapped_column(Integer, default=1)
    mastery_level: Mapped[int] = mapped_column(Integer, default=1)
    confidence: Mapped[int] = mapped_column(Integer, default=3)
    total_time_spent: Mapped[int] = mapped_column(Integer, default=0)
    revision_history: Mapped[list] = mapped_column(JSON, default=list)

    # Spaced repetition
    next_review_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    interval: Mapped[int] = mapped_column(Integer, default=1)
    ease_factor: Mapped[float] = mapped_column(Float, default=2.5)
    repetitions: Mapped[int] = mapped_column(Integer, default=0)


class DailyProgress(Base):
    """
    Per-subject snapshot of one study day, rebuilt from the activity log.

    Attributes:
        study_day: Calendar-day key (YYYY-MM-DD) in the study timezone.
        total_study_time: Minutes summed over the day's activities.
        entries_count: Activities counted.
        average_confidence: Mean confidence of those activities.
        daily_goal: Target minutes for the day.
        goal_achieved: total_study_time >= daily_goal.
    """

    __tablename__ = "daily_progress"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "subject_id", "study_day", name="uq_daily_progress_student_subject_day"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subjects.id", ondelete="CASCADE"))
    study_day: Mapped[str] = mapped_column(String(10))
    total_study_time: Mapped[int] = mapped_column(Integer, default=0)
    entries_count: Mapped[int] = mapped_column(Integer, default=0)
    average_confidence: Mapped[float] = mapped_column(Float, default=0.0)
    daily_goal: Mapped[int] = mapped_column(Integer, default=60)
    goal_achieved: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utc_now, onupdate=_utc_now
    )


# ===========================================
# Notes
# ===========================================


class Note(Base):
    """Free-text note owned by one student."""

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utc_now)
