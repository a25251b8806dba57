"""Services package for study tracking."""

from app.services.study import (
    AchievementNotifier,
    ActivityLogService,
    CatalogService,
    DailyProgressTracker,
    NoteService,
    ProgressTracker,
    RevisionPlanner,
    StreakEngine,
    StudyTrackingService,
)

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
