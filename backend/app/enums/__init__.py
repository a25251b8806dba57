"""
Centralized enum definitions for the application.

Usage:
    from app.enums import MasteryLevel, RevisionStatus

    # Or import from the module
    from app.enums.study import SubActivityType
"""

from app.enums.study import (
    SUBJECT_MASTER_PREFIX,
    AchievementType,
    MasteryLevel,
    RecommendationType,
    RevisionPriority,
    RevisionStatus,
    SubActivityType,
    UserRole,
    WritingType,
)

__all__ = [
    "SUBJECT_MASTER_PREFIX",
    "AchievementType",
    "MasteryLevel",
    "RecommendationType",
    "RevisionPriority",
    "RevisionStatus",
    "SubActivityType",
    "UserRole",
    "WritingType",
]
