"""
Student Notes Service

Free-text notes owned by one student. Admins may read and manage any note.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models_study import Note
from app.middleware.error_handling import ForbiddenError, NotFoundError, ValidationError
from app.services.study.dates import utc_now

logger = logging.getLogger(__name__)


def _require_content(content: Optional[str]) -> str:
    if content is None or not content.strip():
        raise ValidationError("Content is required")
    return content


class NoteService:
    """CRUD for student notes."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_note(
        self, student_id: str, content: str, now: Optional[datetime] = None
    ) -> Note:
        """
        Create a note.

        Raises:
            ValidationError: Content is empty.
        """
        now = now or utc_now()
        note = Note(
            student_id=student_id,
            content=_require_content(content),
            created_at=now,
            updated_at=now,
        )
        self.db.add(note)
        await self.db.commit()
        logger.debug(f"Created note {note.id} for student {student_id}")
        return note

    async def list_notes(self, student_id: str) -> list[Note]:
        """A student's notes, newest first."""
        result = await self.db.execute(
            select(Note)
            .where(Note.student_id == student_id)
            .order_by(Note.created_at.desc(), Note.id.desc())
        )
        return list(result.scalars().all())

    async def get_note(self, note_id: int, student_id: Optional[str] = None) -> Note:
        """
        Get a note by id.

        Args:
            note_id: Note id.
            student_id: When given, the note must belong to this student.

        Raises:
            NotFoundError: Note does not exist.
            ForbiddenError: Note belongs to another student.
        """
        note = await self.db.get(Note, note_id)
        if note is None:
            raise NotFoundError("Note not found")
        if student_id is not None and note.student_id != student_id:
            raise ForbiddenError("Access denied")
        return note

    async def update_note(
        self,
        note_id: int,
        content: str,
        student_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Note:
        """Replace the content of a note."""
        content = _require_content(content)
        note = await self.get_note(note_id, student_id)
        note.content = content
        note.updated_at = now or utc_now()
        await self.db.commit()
        return note

    async def delete_note(self, note_id: int, student_id: Optional[str] = None) -> None:
        note = await self.get_note(note_id, student_id)
        await self.db.delete(note)
        await self.db.commit()
        logger.info(f"Deleted note {note_id} of student {note.student_id}")
