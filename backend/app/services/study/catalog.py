"""
Subject and Lesson Catalog Service

Admin-managed catalog that study activities reference.

Usage:
    from app.services.study.catalog import CatalogService

    catalog = CatalogService(db)
    created = await catalog.initialize_default_subjects()
    lessons = await catalog.list_lessons(subject_id=1)
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models_study import Lesson, Subject
from app.middleware.error_handling import NotFoundError, ValidationError
from app.models.study import (
    LessonCreate,
    LessonResponse,
    LessonUpdate,
    SubjectCreate,
    SubjectLessons,
    SubjectResponse,
    SubjectUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_SUBJECTS: list[dict] = [
    {"name": "Telugu", "total_marks": 100, "color": "#EF4444", "icon": "📖",
     "description": "Telugu Language and Literature"},
    {"name": "Hindi", "total_marks": 100, "color": "#F97316", "icon": "📚",
     "description": "Hindi Language and Literature"},
    {"name": "English", "total_marks": 100, "color": "#3B82F6", "icon": "📝",
     "description": "English Language and Literature"},
    {"name": "Maths", "total_marks": 100, "color": "#8B5CF6", "icon": "🔢",
     "description": "Mathematics"},
    {"name": "Social Studies", "total_marks": 100, "color": "#10B981", "icon": "🌍",
     "description": "History, Geography, Civics, Economics"},
    {"name": "Biology", "total_marks": 50, "color": "#8B5CF6", "icon": "🧬",
     "description": "Life Sciences and Biology"},
    {"name": "Physical Science", "total_marks": 50, "color": "#06B6D4", "icon": "⚗️",
     "description": "Physics and Chemistry"},
]


class CatalogService:
    """CRUD for subjects and lessons."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Subjects
    # ------------------------------------------------------------------

    async def list_subjects(self) -> list[Subject]:
        result = await self.db.execute(select(Subject).order_by(Subject.name))
        return list(result.scalars().all())

    async def get_subject(self, subject_id: int) -> Subject:
        subject = await self.db.get(Subject, subject_id)
        if subject is None:
            raise NotFoundError("Subject not found")
        return subject

    async def create_subject(self, request: SubjectCreate) -> Subject:
        """
        Create a subject.

        Raises:
            ValidationError: A subject with this name already exists.
        """
        subject = Subject(**request.model_dump())
        self.db.add(subject)
        await self._commit_unique_name(request.name)
        logger.info(f"Created subject {subject.name} ({subject.id})")
        return subject

    async def update_subject(self, subject_id: int, request: SubjectUpdate) -> Subject:
        """Apply the provided fields to a subject."""
        subject = await self.get_subject(subject_id)
        for field, value in request.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(subject, field, value)
        await self._commit_unique_name(subject.name)
        return subject

    async def delete_subject(self, subject_id: int) -> None:
        """
        Delete a subject.

        Raises:
            NotFoundError: Subject does not exist.
            ValidationError: Study activities still reference it.
        """
        subject = await self.get_subject(subject_id)
        await self.db.delete(subject)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ValidationError("Subject is referenced by study activities")
        logger.info(f"Deleted subject {subject_id}")

    async def initialize_default_subjects(self) -> list[Subject]:
        """
        Seed the default subjects. Existing names are left untouched.

        Returns:
            list[Subject]: Subjects created by this call.
        """
        existing = set((await self.db.execute(select(Subject.name))).scalars().all())
        created = [
            Subject(**data) for data in DEFAULT_SUBJECTS if data["name"] not in existing
        ]
        if created:
            self.db.add_all(created)
            await self.db.commit()
        logger.info(f"Initialized {len(created)} default subjects")
        return created

    async def _commit_unique_name(self, name: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ValidationError(f"Subject with name '{name}' already exists")

    # ------------------------------------------------------------------
    # Lessons
    # ------------------------------------------------------------------

    async def list_lessons(self, subject_id: Optional[int] = None) -> list[Lesson]:
        """List active lessons ordered by chapter number."""
        query = select(Lesson).where(Lesson.is_active.is_(True))
        if subject_id is not None:
            query = query.where(Lesson.subject_id == subject_id)
        query = query.order_by(Lesson.subject_id, Lesson.chapter_number, Lesson.id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_lesson(self, lesson_id: int) -> Lesson:
        lesson = await self.db.get(Lesson, lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson not found")
        return lesson

    async def lessons_by_subject(self) -> list[SubjectLessons]:
        """Every subject (by name) with its active lessons."""
        subjects = await self.list_subjects()
        lessons = await self.list_lessons()

        grouped: dict[int, list[LessonResponse]] = {s.id: [] for s in subjects}
        for lesson in lessons:
            grouped.setdefault(lesson.subject_id, []).append(
                LessonResponse.model_validate(lesson)
            )
        return [
            SubjectLessons(
                subject=SubjectResponse.model_validate(subject),
                lessons=grouped[subject.id],
            )
            for subject in subjects
        ]

    async def create_lesson(self, request: LessonCreate, created_by: str) -> Lesson:
        """
        Create a lesson in an existing subject.

        Raises:
            ValidationError: The subject does not exist.
        """
        if await self.db.get(Subject, request.subject_id) is None:
            raise ValidationError("Subject not found")

        lesson = Lesson(**request.model_dump(), created_by=created_by)
        self.db.add(lesson)
        await self.db.commit()
        logger.info(f"Created lesson {lesson.name} in subject {lesson.subject_id}")
        return lesson

    async def update_lesson(self, lesson_id: int, request: LessonUpdate) -> Lesson:
        lesson = await self.get_lesson(lesson_id)
        for field, value in request.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(lesson, field, value)
        await self.db.commit()
        return lesson

    async def delete_lesson(self, lesson_id: int) -> None:
        lesson = await self.get_lesson(lesson_id)
        await self.db.delete(lesson)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ValidationError("Lesson is referenced by study activities")
        logger.info(f"Deleted lesson {lesson_id}")
