"""
Lessons API Router

Endpoints:
- GET /api/lessons - List active lessons (optionally of one subject)
- GET /api/lessons/by-subject - Subjects with their active lessons
- GET /api/lessons/{id} - Get a lesson
- POST /api/lessons - Create a lesson (admin)
- PUT /api/lessons/{id} - Update a lesson (admin)
- DELETE /api/lessons/{id} - Delete a lesson (admin)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import get_db
from app.dependencies import AuthContext, RequireAdmin, get_auth_context, require_admin
from app.middleware.error_handling import handle_endpoint_errors
from app.models.base import SuccessResponse
from app.models.study import LessonCreate, LessonResponse, LessonUpdate, SubjectLessons
from app.services.study import CatalogService

router = APIRouter(
    prefix="/api/lessons", tags=["lessons"], dependencies=[Depends(get_auth_context)]
)


async def get_catalog(db: AsyncSession = Depends(get_db)) -> CatalogService:
    """Get catalog service."""
    return CatalogService(db)


@router.get("", response_model=list[LessonResponse])
@handle_endpoint_errors("List lessons")
async def list_lessons(
    subject_id: Optional[int] = Query(None, description="Filter by subject"),
    catalog: CatalogService = Depends(get_catalog),
) -> list[LessonResponse]:
    """List active lessons ordered by chapter number."""
    lessons = await catalog.list_lessons(subject_id)
    return [LessonResponse.model_validate(lesson) for lesson in lessons]


@router.get("/by-subject", response_model=list[SubjectLessons])
@handle_endpoint_errors("List lessons by subject")
async def lessons_by_subject(
    catalog: CatalogService = Depends(get_catalog),
) -> list[SubjectLessons]:
    return await catalog.lessons_by_subject()


@router.get("/{lesson_id}", response_model=LessonResponse)
@handle_endpoint_errors("Get lesson")
async def get_lesson(
    lesson_id: int,
    catalog: CatalogService = Depends(get_catalog),
) -> LessonResponse:
    return LessonResponse.model_validate(await catalog.get_lesson(lesson_id))


@router.post("", response_model=LessonResponse, status_code=status.HTTP_201_CREATED)
@handle_endpoint_errors("Create lesson")
async def create_lesson(
    request: LessonCreate,
    admin: AuthContext = Depends(require_admin),
    catalog: CatalogService = Depends(get_catalog),
) -> LessonResponse:
    """Create a lesson; the subject must exist."""
    lesson = await catalog.create_lesson(request, created_by=admin.user_id)
    return LessonResponse.model_validate(lesson)


@router.put("/{lesson_id}", response_model=LessonResponse, dependencies=[RequireAdmin])
@handle_endpoint_errors("Update lesson")
async def update_lesson(
    lesson_id: int,
    request: LessonUpdate,
    catalog: CatalogService = Depends(get_catalog),
) -> LessonResponse:
    return LessonResponse.model_validate(await catalog.update_lesson(lesson_id, request))


@router.delete("/{lesson_id}", response_model=SuccessResponse, dependencies=[RequireAdmin])
@handle_endpoint_errors("Delete lesson")
async def delete_lesson(
    lesson_id: int,
    catalog: CatalogService = Depends(get_catalog),
) -> SuccessResponse:
    await catalog.delete_lesson(lesson_id)
    return SuccessResponse(message="Lesson deleted successfully")
