"""
Study Tracking Services

Activity log, daily progress, streaks, mastery progress, achievements,
revision planning, notes and the subject/lesson catalog.

Usage:
    from app.services.study import StudyTrackingService, RevisionPlanner

    result = await StudyTrackingService(db).record_activity(student_id, request)
    plan = await RevisionPlanner(db).get_revision_plan(student_id)
"""

from app.services.study.achievements import AchievementNotifier
from app.services.study.activity_log import ActivityLogService
from app.services.study.catalog import CatalogService
from app.services.study.daily_progress import DailyProgressTracker
from app.services.study.mastery_tracker import ProgressTracker
from app.services.study.notes import NoteService
from app.services.study.revision_planner import RevisionPlanner
from app.services.study.streak_engine import StreakEngine
from app.services.study.tracking import StudyTrackingService

__all__ = [
    "AchievementNotifier",
    "ActivityLogService",
    "CatalogService",
    "DailyProgressTracker",
    "NoteService",
    "ProgressTracker",
    "RevisionPlanner",
    "StreakEngine",
    "StudyTrackingService",
]
