"""
Pydantic Models for Study Tracking

Request and response schemas for the activity log, daily progress, streaks,
mastery progress, revision planning, notes and the subject/lesson catalog.

ARCHITECTURE NOTE:
    The matching SQLAlchemy models live in app/db/models_study.py.
    Response models are built with model_validate(orm_row).
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from app.enums.study import (
    RecommendationType,
    RevisionStatus,
    SubActivityType,
    WritingType,
)
from app.models.base import StrictRequest, StrictResponse


# ===========================================
# Sub-activity Blocks
# ===========================================


class DocumentRef(StrictRequest):
    """Reference to an uploaded document. File contents are never read."""

    path: str
    original_name: Optional[str] = None
    type: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)


class ReadingBlock(StrictRequest):
    """Reading progress."""

    completed: bool = False
    notes: Optional[str] = None


class PracticeBlock(StrictRequest):
    """Fields shared by every practice block: uploads and notes."""

    completed: bool = False
    photos: list[str] = Field(default_factory=list)
    documents: list[DocumentRef] = Field(default_factory=list)
    notes: Optional[str] = None


class GrammarBlock(PracticeBlock):
    """Grammar practice (language subjects)."""

    topic: Optional[str] = None


class WritingBlock(PracticeBlock):
    """Writing practice."""

    type: WritingType = WritingType.QUESTIONS
    topic: Optional[str] = None


class MathPracticeBlock(PracticeBlock):
    """Math practice."""

    formulas: list[str] = Field(default_factory=list)
    problems_solved: int = Field(0, ge=0)


class SciencePracticeBlock(PracticeBlock):
    """Science practice."""

    diagrams: bool = False
    questions_answered: int = Field(0, ge=0)


class SocialPracticeBlock(PracticeBlock):
    """Social studies practice."""

    questions_answered: int = Field(0, ge=0)


SUB_ACTIVITY_MODELS: dict[SubActivityType, type[BaseModel]] = {
    SubActivityType.READING: ReadingBlock,
    SubActivityType.GRAMMAR: GrammarBlock,
    SubActivityType.WRITING: WritingBlock,
    SubActivityType.MATH_PRACTICE: MathPracticeBlock,
    SubActivityType.SCIENCE_PRACTICE: SciencePracticeBlock,
    SubActivityType.SOCIAL_PRACTICE: SocialPracticeBlock,
}


# ===========================================
# Activity Log Models
# ===========================================


class ActivityChanges(StrictRequest):
    """Fields a submission may overlay onto an activity."""

    lesson_id: Optional[int] = None
    reading: Optional[ReadingBlock] = None
    grammar: Optional[GrammarBlock] = None
    writing: Optional[WritingBlock] = None
    math_practice: Optional[MathPracticeBlock] = None
    science_practice: Optional[SciencePracticeBlock] = None
    social_practice: Optional[SocialPracticeBlock] = None
    confidence: Optional[int] = Field(None, ge=1, le=5)
    total_time: Optional[int] = Field(None, ge=0)

    def sub_activities(self) -> dict[str, dict[str, Any]]:
        """
        Provided sub-activity blocks, each reduced to the keys the client set.

        Omitted keys stay out so a merge preserves what is already stored.
        """
        blocks: dict[str, dict[str, Any]] = {}
        for activity_type in SubActivityType:
            block = getattr(self, activity_type.value)
            if block is not None:
                blocks[activity_type.value] = block.model_dump(
                    mode="json", exclude_unset=True
                )
        return blocks


class ActivityCreate(ActivityChanges):
    """
    Request to record a study activity.

    Note: Uses StrictRequest - unknown fields will be rejected with 422.
    """

    subject_id: int


class ActivityUpdate(ActivityChanges):
    """Request to overlay fields onto an existing activity."""

    pass


class ActivityResponse(StrictResponse):
    """A stored study activity."""

    id: int
    student_id: str
    subject_id: int
    lesson_id: Optional[int] = None
    study_day: str
    reading: dict[str, Any] = Field(default_factory=dict)
    grammar: dict[str, Any] = Field(default_factory=dict)
    writing: dict[str, Any] = Field(default_factory=dict)
    math_practice: dict[str, Any] = Field(default_factory=dict)
    science_practice: dict[str, Any] = Field(default_factory=dict)
    social_practice: dict[str, Any] = Field(default_factory=dict)
    confidence: int
    total_time: int
    is_completed: bool = True
    revision: int = 1
    created_at: datetime
    updated_at: datetime


class DerivedStepFailure(StrictResponse):
    """A derived-state step that failed after the activity was stored."""

    step: str
    error_code: str
    message: str
    error: str


class DerivedStateReport(StrictResponse):
    """
    Outcome of the derived-state updates that follow an activity write.

    Kept apart from the activity itself: a failed streak or progress update
    never turns a durable write into an error response.
    """

    streak_updated: bool = False
    progress_updated: bool = False
    daily_progress_updated: bool = False
    achievements_awarded: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    failures: list[DerivedStepFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class ActivityWriteResponse(StrictResponse):
    """Response for a recorded or updated activity."""

    success: bool = True
    activity: ActivityResponse
    derived_state: DerivedStateReport


class ActivityDeleteResponse(StrictResponse):
    """Response for a deleted activity."""

    success: bool = True
    message: str
    derived_state: DerivedStateReport


class SubjectStudyStats(StrictResponse):
    """Study totals for one subject."""

    subject_id: int
    total_time: int
    entries_count: int
    average_confidence: float


class ActivityTypeStats(StrictResponse):
    """Totals for one sub-activity type, counting completed blocks."""

    activity: str
    total_time: int
    entries_count: int


class StudyStatsResponse(StrictResponse):
    """Overall study statistics of a student."""

    total_study_time: int
    total_entries: int
    average_confidence: float
    by_subject: list[SubjectStudyStats] = Field(default_factory=list)
    by_activity: list[ActivityTypeStats] = Field(default_factory=list)


class DailyProgressResponse(StrictResponse):
    """Per-subject snapshot of one study day."""

    student_id: str
    subject_id: int
    study_day: str
    total_study_time: int
    entries_count: int
    average_confidence: float
    daily_goal: int
    goal_achieved: bool


# ===========================================
# Streak Models
# ===========================================


class CalendarDayResponse(StrictResponse):
    """One studied day of the study calendar."""

    day_key: str
    date: datetime
    subjects_studied: list[int] = Field(default_factory=list)
    lessons_studied: list[int] = Field(default_factory=list)
    total_time: int = 0
    confidence: int = 0


class AchievementResponse(StrictResponse):
    """An earned achievement."""

    type: str
    earned_at: datetime
    description: Optional[str] = None


class StreakResponse(StrictResponse):
    """
    Streak information for a student.

    Includes the counters, milestone tracking, the full study calendar
    (newest first) and earned achievements.
    """

    student_id: str
    current_streak: int
    longest_streak: int
    last_study_date: Optional[datetime] = None
    streak_start_date: Optional[datetime] = None
    total_study_days: int
    is_active_today: bool = False
    # Milestones
    milestones_reached: list[int] = Field(default_factory=list)
    next_milestone: Optional[int] = None
    study_calendar: list[CalendarDayResponse] = Field(default_factory=list)
    achievements: list[AchievementResponse] = Field(default_factory=list)


# ===========================================
# Mastery Models
# ===========================================


class RevisionHistoryEntry(StrictResponse):
    """One study submission applied to a progress record."""

    date: datetime
    confidence: int
    time_spent: int = 0
    notes: str = ""
    activity_id: Optional[int] = None
    activity_revision: Optional[int] = None


class ProgressResponse(StrictResponse):
    """Mastery state of one lesson."""

    id: int
    student_id: str
    subject_id: int
    lesson_id: int
    first_studied: datetime
    last_studied: datetime
    study_count: int
    mastery_level: int
    confidence: int
    total_time_spent: int
    revision_history: list[RevisionHistoryEntry] = Field(default_factory=list)
    next_review_date: Optional[datetime] = None
    interval: int
    ease_factor: float
    repetitions: int


# ===========================================
# Revision Planning Models
# ===========================================


class RevisionPlanItem(StrictResponse):
    """A lesson to revise, with its computed urgency."""

    subject_id: int
    lesson_id: int
    entries: list[ActivityResponse] = Field(default_factory=list)
    average_confidence: float
    last_studied: datetime
    total_time: int
    days_since_study: int
    revision_date: date
    priority: int
    status: RevisionStatus


class RevisionPlanResponse(StrictResponse):
    """Ordered revision plan. Derived on every request, never stored."""

    student_id: str
    generated_at: datetime
    window_days: int
    items: list[RevisionPlanItem] = Field(default_factory=list)


class SubjectProgressSummary(StrictResponse):
    """Progress summary of one subject."""

    subject_id: int
    subject_name: str
    last_studied: Optional[datetime] = None
    days_since_last_study: Optional[int] = None
    total_lessons: int = 0
    mastered_lessons: int = 0
    average_confidence: float = 0.0


class Recommendation(StrictResponse):
    """A review recommendation shown on the dashboard."""

    type: RecommendationType
    title: str
    description: str
    priority: str
    progress_items: list[ProgressResponse] = Field(default_factory=list)
    subject_ids: list[int] = Field(default_factory=list)


class ReviewOverviewResponse(StrictResponse):
    """Due reviews, stale subjects, weak areas and recommendations."""

    due_for_review: list[ProgressResponse] = Field(default_factory=list)
    stale_subjects: list[int] = Field(default_factory=list)
    weak_areas: list[ProgressResponse] = Field(default_factory=list)
    subject_progress: list[SubjectProgressSummary] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)


# ===========================================
# Catalog Models
# ===========================================


class SubjectCreate(StrictRequest):
    """Request to create a subject."""

    name: str = Field(..., min_length=1, max_length=200)
    total_marks: int = Field(..., ge=0)
    color: str = "#3B82F6"
    icon: str = "📚"
    description: str = ""


class SubjectUpdate(StrictRequest):
    """Partial subject update."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    total_marks: Optional[int] = Field(None, ge=0)
    color: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None


class SubjectResponse(StrictResponse):
    """A catalog subject."""

    id: int
    name: str
    total_marks: int
    color: str
    icon: str
    description: str = ""


class LessonCreate(StrictRequest):
    """Request to create a lesson."""

    subject_id: int
    name: str = Field(..., min_length=1, max_length=300)
    chapter_number: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None


class LessonUpdate(StrictRequest):
    """Partial lesson update."""

    name: Optional[str] = Field(None, min_length=1, max_length=300)
    chapter_number: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class LessonResponse(StrictResponse):
    """A catalog lesson."""

    id: int
    subject_id: int
    name: str
    chapter_number: Optional[int] = None
    description: Optional[str] = None
    is_active: bool = True
    created_by: str


class SubjectLessons(StrictResponse):
    """A subject with its active lessons."""

    subject: SubjectResponse
    lessons: list[LessonResponse] = Field(default_factory=list)


# ===========================================
# Note Models
# ===========================================


class NoteCreate(StrictRequest):
    """Request to create a note."""

    content: str = Field(..., min_length=1)


class NoteUpdate(StrictRequest):
    """Replace the content of a note."""

    content: str = Field(..., min_length=1)


class NoteResponse(StrictResponse):
    """A student note."""

    id: int
    student_id: str
    content: str
    created_at: datetime
    updated_at: datetime
