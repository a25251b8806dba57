"""
Notes API Router

Endpoints:
- POST /api/notes - Create a note
- GET /api/notes - List notes, newest first
- GET /api/notes/{id} - Get a note
- PUT /api/notes/{id} - Replace a note's content
- DELETE /api/notes/{id} - Delete a note

Students only reach their own notes; admins may reach any.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import get_db
from app.dependencies import AuthContext, get_auth_context, resolve_student_id
from app.middleware.error_handling import handle_endpoint_errors
from app.models.base import SuccessResponse
from app.models.study import NoteCreate, NoteResponse, NoteUpdate
from app.services.study import NoteService

router = APIRouter(prefix="/api/notes", tags=["notes"])


async def get_note_service(db: AsyncSession = Depends(get_db)) -> NoteService:
    """Get note service."""
    return NoteService(db)


def _owner_filter(auth: AuthContext) -> Optional[str]:
    return None if auth.is_admin else auth.user_id


@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
@handle_endpoint_errors("Create note")
async def create_note(
    request: NoteCreate,
    student_id: str = Depends(resolve_student_id),
    service: NoteService = Depends(get_note_service),
) -> NoteResponse:
    return NoteResponse.model_validate(await service.create_note(student_id, request.content))


@router.get("", response_model=list[NoteResponse])
@handle_endpoint_errors("List notes")
async def list_notes(
    student_id: str = Depends(resolve_student_id),
    service: NoteService = Depends(get_note_service),
) -> list[NoteResponse]:
    """List notes newest first."""
    return [NoteResponse.model_validate(n) for n in await service.list_notes(student_id)]


@router.get("/{note_id}", response_model=NoteResponse)
@handle_endpoint_errors("Get note")
async def get_note(
    note_id: int,
    auth: AuthContext = Depends(get_auth_context),
    service: NoteService = Depends(get_note_service),
) -> NoteResponse:
    return NoteResponse.model_validate(await service.get_note(note_id, _owner_filter(auth)))


@router.put("/{note_id}", response_model=NoteResponse)
@handle_endpoint_errors("Update note")
async def update_note(
    note_id: int,
    request: NoteUpdate,
    auth: AuthContext = Depends(get_auth_context),
    service: NoteService = Depends(get_note_service),
) -> NoteResponse:
    note = await service.update_note(note_id, request.content, _owner_filter(auth))
    return NoteResponse.model_validate(note)


@router.delete("/{note_id}", response_model=SuccessResponse)
@handle_endpoint_errors("Delete note")
async def delete_note(
    note_id: int,
    auth: AuthContext = Depends(get_auth_context),
    service: NoteService = Depends(get_note_service),
) -> SuccessResponse:
    await service.delete_note(note_id, _owner_filter(auth))
    return SuccessResponse(message="Note deleted successfully")
