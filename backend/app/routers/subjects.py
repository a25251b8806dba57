"""
Subjects API Router

Endpoints:
- GET /api/subjects - List subjects
- GET /api/subjects/{id} - Get a subject
- POST /api/subjects - Create a subject (admin)
- POST /api/subjects/initialize - Seed the default subjects (admin)
- PUT /api/subjects/{id} - Update a subject (admin)
- DELETE /api/subjects/{id} - Delete a subject (admin)
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import get_db
from app.dependencies import RequireAdmin, get_auth_context
from app.middleware.error_handling import handle_endpoint_errors
from app.models.base import SuccessResponse
from app.models.study import SubjectCreate, SubjectResponse, SubjectUpdate
from app.services.study import CatalogService

router = APIRouter(
    prefix="/api/subjects", tags=["subjects"], dependencies=[Depends(get_auth_context)]
)


async def get_catalog(db: AsyncSession = Depends(get_db)) -> CatalogService:
    """Get catalog service."""
    return CatalogService(db)


@router.get("", response_model=list[SubjectResponse])
@handle_endpoint_errors("List subjects")
async def list_subjects(
    catalog: CatalogService = Depends(get_catalog),
) -> list[SubjectResponse]:
    """List subjects by name."""
    return [SubjectResponse.model_validate(s) for s in await catalog.list_subjects()]


@router.post(
    "/initialize",
    response_model=list[SubjectResponse],
    dependencies=[RequireAdmin],
)
@handle_endpoint_errors("Initialize subjects")
async def initialize_subjects(
    catalog: CatalogService = Depends(get_catalog),
) -> list[SubjectResponse]:
    """Create the default subjects that do not exist yet."""
    created = await catalog.initialize_default_subjects()
    return [SubjectResponse.model_validate(s) for s in created]


@router.get("/{subject_id}", response_model=SubjectResponse)
@handle_endpoint_errors("Get subject")
async def get_subject(
    subject_id: int,
    catalog: CatalogService = Depends(get_catalog),
) -> SubjectResponse:
    return SubjectResponse.model_validate(await catalog.get_subject(subject_id))


@router.post(
    "",
    response_model=SubjectResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[RequireAdmin],
)
@handle_endpoint_errors("Create subject")
async def create_subject(
    request: SubjectCreate,
    catalog: CatalogService = Depends(get_catalog),
) -> SubjectResponse:
    return SubjectResponse.model_validate(await catalog.create_subject(request))


@router.put("/{subject_id}", response_model=SubjectResponse, dependencies=[RequireAdmin])
@handle_endpoint_errors("Update subject")
async def update_subject(
    subject_id: int,
    request: SubjectUpdate,
    catalog: CatalogService = Depends(get_catalog),
) -> SubjectResponse:
    return SubjectResponse.model_validate(await catalog.update_subject(subject_id, request))


@router.delete("/{subject_id}", response_model=SuccessResponse, dependencies=[RequireAdmin])
@handle_endpoint_errors("Delete subject")
async def delete_subject(
    subject_id: int,
    catalog: CatalogService = Depends(get_catalog),
) -> SuccessResponse:
    await catalog.delete_subject(subject_id)
    return SuccessResponse(message="Subject deleted successfully")
