"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across the unit tests: an
in-memory SQLite database per test, catalog rows and an activity factory
that writes activities at fixed instants.
"""

import os
import sys
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load .env file from project root BEFORE any app module is imported
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

# Settings are read once at import time; point the app at SQLite for tests
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "false"
os.environ["LOG_LEVEL"] = "DEBUG"

from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.db.base import Base  # noqa: E402
from app.db.models_study import Lesson, StudyActivity, Subject  # noqa: E402
from app.services.study.dates import study_day_key  # noqa: E402

# 12:00 IST on 2024-01-15
NOW = datetime(2024, 1, 15, 6, 30, tzinfo=timezone.utc)

STUDENT_ID = "student-1"
OTHER_STUDENT_ID = "student-2"
ADMIN_ID = "admin-1"


# ============================================================================
# Database
# ============================================================================


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Database session for a single test."""
    async with session_maker() as session:
        yield session


# ============================================================================
# Catalog
# ============================================================================


@pytest_asyncio.fixture
async def subject(db_session: AsyncSession) -> Subject:
    """The Maths subject."""
    subject = Subject(name="Maths", total_marks=100, color="#8B5CF6", icon="🔢")
    db_session.add(subject)
    await db_session.commit()
    return subject


@pytest_asyncio.fixture
async def other_subject(db_session: AsyncSession) -> Subject:
    """The Biology subject."""
    subject = Subject(name="Biology", total_marks=50, color="#8B5CF6", icon="🧬")
    db_session.add(subject)
    await db_session.commit()
    return subject


@pytest_asyncio.fixture
async def lessons(db_session: AsyncSession, subject: Subject) -> list[Lesson]:
    """Twelve Maths chapters."""
    lessons = [
        Lesson(
            subject_id=subject.id,
            name=f"Chapter {n}",
            chapter_number=n,
            created_by=ADMIN_ID,
        )
        for n in range(1, 13)
    ]
    db_session.add_all(lessons)
    await db_session.commit()
    return lessons


@pytest.fixture
def lesson(lessons: list[Lesson]) -> Lesson:
    """First Maths chapter."""
    return lessons[0]


# ============================================================================
# Activities
# ============================================================================

ActivityFactory = Callable[..., Awaitable[StudyActivity]]


@pytest.fixture
def add_activity(db_session: AsyncSession, subject: Subject) -> ActivityFactory:
    """
    Insert an activity created at a given instant, bypassing merge rules.

    Usage:
        await add_activity(NOW - timedelta(days=2), lesson_id=lesson.id)
    """

    async def factory(
        created_at: datetime,
        student_id: str = STUDENT_ID,
        subject_id: Optional[int] = None,
        lesson_id: Optional[int] = None,
        confidence: int = 3,
        total_time: int = 30,
    ) -> StudyActivity:
        activity = StudyActivity(
            student_id=student_id,
            subject_id=subject_id or subject.id,
            lesson_id=lesson_id,
            study_day=study_day_key(created_at),
            reading={"completed": True, "notes": None},
            grammar={},
            writing={},
            math_practice={},
            science_practice={},
            social_practice={},
            confidence=confidence,
            total_time=total_time,
            revision=1,
            created_at=created_at,
            updated_at=created_at,
        )
        db_session.add(activity)
        await db_session.commit()
        return activity

    return factory


def days_ago(days: int, now: datetime = NOW) -> datetime:
    """Instant `days` study days before now, at the same time of day."""
    return now - timedelta(days=days)
