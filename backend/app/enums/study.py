"""
Study Tracking Enums

Defines enums for activity logging, mastery tracking, revision planning
and achievements.
"""

from enum import Enum, IntEnum


class SubActivityType(str, Enum):
    """
    Sub-activity blocks a study activity can carry.

    Values are the storage column names of the blocks.
    """

    READING = "reading"
    GRAMMAR = "grammar"
    WRITING = "writing"
    MATH_PRACTICE = "math_practice"
    SCIENCE_PRACTICE = "science_practice"
    SOCIAL_PRACTICE = "social_practice"

    @property
    def label(self) -> str:
        """Human readable name used in statistics."""
        return self.value.replace("_", " ").title()


class WritingType(str, Enum):
    """Kinds of writing practice."""

    QUESTIONS = "questions"
    LETTERS = "letters"
    ESSAYS = "essays"
    OTHER = "other"


class MasteryLevel(IntEnum):
    """
    Per-lesson mastery levels.

    NEW only applies to a freshly created progress record; every later
    submission moves the lesson to LEARNING or above.
    """

    NEW = 1
    LEARNING = 2
    GOOD = 3
    GREAT = 4
    MASTERED = 5


class RevisionStatus(str, Enum):
    """Urgency bucket of a revision plan item."""

    OVERDUE = "overdue"  # Revision date already passed
    TODAY = "today"  # Revise today
    SOON = "soon"  # Within the next two days
    SCHEDULED = "scheduled"  # Later


class RevisionPriority(IntEnum):
    """Revision priority, 1 is the most urgent."""

    HIGH = 1
    MEDIUM = 2
    LOW = 3


class AchievementType(str, Enum):
    """
    Fixed achievement types.

    Subject mastery achievements are per subject and use
    SUBJECT_MASTER_PREFIX followed by the subject id.
    """

    STREAK_7 = "streak_7"
    STREAK_30 = "streak_30"
    CENTURY = "century"


SUBJECT_MASTER_PREFIX = "subject_master_"


class RecommendationType(str, Enum):
    """Kinds of review recommendations."""

    URGENT = "urgent"
    STALE = "stale"
    WEAK = "weak"


class UserRole(str, Enum):
    """Roles forwarded by the authentication gateway."""

    STUDENT = "student"
    ADMIN = "admin"
